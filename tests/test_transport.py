"""Mini README: Tests for the httpx transport's failure classification."""

from __future__ import annotations

import httpx
import pytest

from tripledger.errors import ApiError, NetworkError
from tripledger.offline import HttpTransport


def _transport(handler) -> HttpTransport:
    client = httpx.Client(base_url="http://ledger.test", transport=httpx.MockTransport(handler))
    return HttpTransport(client=client)


def test_connection_failures_become_network_errors() -> None:
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError, match="check your connection"):
        _transport(refuse).send("POST", "/api/trips/t/expenses", {"amount": 1})


def test_timeouts_become_network_errors() -> None:
    def stall(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(NetworkError):
        _transport(stall).get("/api/trips/t/balances")


def test_error_status_carries_server_code() -> None:
    def reject(request):
        return httpx.Response(400, json={"error": {"code": "validation_error", "message": "Sum of splits is off"}})

    with pytest.raises(ApiError) as info:
        _transport(reject).send("POST", "/api/trips/t/expenses", {"amount": 1})

    assert info.value.status_code == 400
    assert info.value.is_validation_error
    assert info.value.message == "Sum of splits is off"


def test_error_status_without_json_body() -> None:
    def crash(request):
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(ApiError) as info:
        _transport(crash).get("/api/trips/t/expenses")

    assert info.value.status_code == 502
    assert info.value.code == "http_error"
    assert not info.value.is_validation_error


def test_sends_json_and_idempotency_header() -> None:
    seen = {}

    def record(request):
        seen["method"] = request.method
        seen["key"] = request.headers.get("Idempotency-Key")
        seen["body"] = request.content
        return httpx.Response(200, json={"id": "e1"})

    transport = _transport(record)

    assert transport.send("post", "/api/trips/t/expenses", {"amount": 5}, idempotency_key="abc") == {"id": "e1"}
    assert seen["method"] == "POST"
    assert seen["key"] == "abc"
    assert b'"amount"' in seen["body"]


def test_empty_body_returns_none() -> None:
    transport = _transport(lambda request: httpx.Response(204))

    assert transport.send("DELETE", "/api/trips/t/activities/1") is None
