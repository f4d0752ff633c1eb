"""Mini README: Error taxonomy shared by the ledger server and offline client.

Structure:
    * TripLedgerError - base class carrying a stable machine readable ``code``.
    * ValidationError - malformed or inconsistent input, never retried.
    * NotFoundError - unknown trip, user, or expense identifiers.
    * NetworkError - client side connectivity failure or timeout.
    * ApiError - client side view of any non-network error response.

Server handlers translate the first two into HTTP responses; the offline
queue uses the last two to decide between retrying and giving up.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TripLedgerError(Exception):
    """Base error with a code that survives the trip over the wire."""

    code = "ledger_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def as_dict(self) -> Dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message}}


class ValidationError(TripLedgerError):
    """Raised when a request is malformed or violates a ledger invariant."""

    code = "validation_error"
    status_code = 400


class NotFoundError(TripLedgerError):
    """Raised when an identifier does not resolve to a stored record."""

    code = "not_found"
    status_code = 404


class NetworkError(TripLedgerError):
    """The server could not be reached or did not answer in time."""

    code = "network_error"
    status_code = 0


class ApiError(TripLedgerError):
    """The server answered with an error status."""

    def __init__(self, message: str, *, status_code: int, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code or "http_error"

    @property
    def is_validation_error(self) -> bool:
        return self.code == ValidationError.code
