"""
Application-level exceptions.

Domain exceptions with a stable error code, used by the API server to map
failures to HTTP responses and by the ingestion layer to report dropped
records.
"""

from __future__ import annotations


class FlowTraceError(Exception):
    """Base class for FlowTrace errors."""

    code = "flowtrace_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class InvalidAddressError(FlowTraceError):
    """Address is empty or not a valid base58 Solana public key."""

    code = "invalid_address"


class InvalidTransactionError(FlowTraceError):
    """Transaction record is missing required fields or has the wrong shape."""

    code = "invalid_transaction"


class TransactionFetchError(FlowTraceError):
    """RPC call failed or returned an error payload."""

    code = "transaction_fetch_failed"
