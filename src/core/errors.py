"""Canonical gateway errors.

Every venue-specific failure shape is normalised into this hierarchy so
callers can handle errors without knowing which exchange produced them.
"""
from __future__ import annotations
from typing import Optional, Union

TRANSIENT_STATUSES = frozenset({408, 429})


class GatewayError(Exception):
    """Base class for all gateway errors."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        raw_body: Optional[str] = None,
    ):
        self.message = message
        self.endpoint = endpoint
        self.status_code = status_code
        self.raw_body = raw_body
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.endpoint:
            parts.append(f"endpoint={self.endpoint}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.raw_body:
            parts.append(f"body={self.raw_body[:500]}")
        return " ".join(parts)


class GatewayConfigError(GatewayError):
    """Misconfiguration detected before or instead of a network call."""
    pass


class UnsupportedOperationError(GatewayError):
    """The venue does not offer the requested operation."""

    def __init__(self, venue: str, operation: str):
        self.venue = venue
        self.operation = operation
        super().__init__(f"{operation} is not supported for {venue}")


class GatewayConnectionError(GatewayError):
    """No response was received from the venue."""
    pass


class RequestFailedError(GatewayError):
    """Non-success status without a venue error envelope to explain it."""

    def __init__(self, endpoint: str, status_code: int, raw_body: str = ""):
        super().__init__("Request not successful", endpoint, status_code, raw_body)

    @property
    def is_transient(self) -> bool:
        return self.status_code in TRANSIENT_STATUSES or (self.status_code or 0) >= 500


class DeserializationError(GatewayError):
    """The payload did not have the expected shape."""
    pass


class AssetNotFoundError(GatewayError):
    """The venue lists no such currency, network or symbol."""
    pass


class VenueError(GatewayError):
    """The venue rejected the request with its own error code."""

    def __init__(
        self,
        code: Union[int, str, None],
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        raw_body: Optional[str] = None,
        name: Optional[str] = None,
    ):
        self.code = code
        self.name = name
        super().__init__(message, endpoint, status_code, raw_body)

    def __str__(self) -> str:
        label = f"{self.name} " if self.name else ""
        return f"[{label}{self.code}] {super().__str__()}"


class AccountStatusError(VenueError):
    """The venue reports a restricted or abnormal account."""
    pass


class SettlementError(GatewayError):
    """A withdrawal or deposit did not settle."""

    def __init__(self, settlement_id: str, message: str):
        self.settlement_id = settlement_id
        super().__init__(message)


class SettlementFailed(SettlementError):
    def __init__(self, settlement_id: str, status: str):
        self.status = status
        super().__init__(settlement_id, f"Settlement {settlement_id} failed with status {status}")


class SettlementTimeout(SettlementError):
    def __init__(self, settlement_id: str, attempts: int):
        self.attempts = attempts
        super().__init__(
            settlement_id,
            f"Settlement {settlement_id} still pending after {attempts} polls",
        )
