"""Mini README: HTTP transport used by the offline queue and trip views.

Structure:
    * Transport - protocol the queue depends on, easy to fake in tests.
    * HttpTransport - ``httpx`` implementation with a bounded timeout.

Failures are split in two: anything that prevents a response from arriving
(connection refused, DNS, timeout) becomes ``NetworkError`` and is safe to
retry later; any response with an error status becomes ``ApiError`` and
carries the server's error code so callers can tell validation failures
apart.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

import httpx

from ..errors import ApiError, NetworkError
from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"


class Transport(Protocol):
    def send(
        self,
        method: str,
        target: str,
        payload: Optional[Mapping[str, Any]] = None,
        *,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        ...


def _error_from_response(response: httpx.Response) -> ApiError:
    code = None
    message = f"Server responded with HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            code = error.get("code")
            message = error.get("message") or message
        elif isinstance(error, str):
            message = error
    return ApiError(message, status_code=response.status_code, code=code)


class HttpTransport:
    """Send JSON requests and classify failures for the offline queue."""

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._timeout = timeout

    def send(
        self,
        method: str,
        target: str,
        payload: Optional[Mapping[str, Any]] = None,
        *,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        headers = {IDEMPOTENCY_HEADER: idempotency_key} if idempotency_key else {}
        body = dict(payload) if payload is not None and method.upper() != "GET" else None
        try:
            response = self._client.request(
                method.upper(),
                target,
                json=body,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TransportError as error:
            LOGGER.warning("Network failure for %s %s: %s", method.upper(), target, error)
            raise NetworkError(f"Network error. Please check your connection. ({error})") from error

        if response.is_error:
            error = _error_from_response(response)
            LOGGER.warning(
                "%s %s rejected with HTTP %s (%s)", method.upper(), target, response.status_code, error.code
            )
            raise error
        if not response.content:
            return None
        return response.json()

    def get(self, target: str) -> Any:
        return self.send("GET", target)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
