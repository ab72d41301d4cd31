"""
Custom domain exceptions for consistent error handling.

These exceptions are mapped to HTTP status codes by the global exception handler
in main.py. Inside the payment pipeline they are caught at the orchestrator
boundary and turned into a single `error` step instead.
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class for all domain-specific errors."""
    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, details: dict | None = None):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class NotFoundError(DomainError):
    """Resource not found (404)."""
    def __init__(self, resource_type: str, identifier: str, details: dict | None = None):
        message = f"{resource_type} not found: {identifier}"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class ValidationError(DomainError):
    """Validation error (400)."""
    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        if field:
            message = f"Validation error on {field}: {message}"
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class ConflictError(DomainError):
    """Resource conflict (409)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, details=details)


class BlockchainError(DomainError):
    """Blockchain/on-chain operation error (502)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_502_BAD_GATEWAY, details=details)


# ── Key custody ─────────────────────────────────────────────────────


class StorageError(DomainError):
    """Secret storage unavailable; no wallet can be obtained (503)."""
    def __init__(self, message: str = "Secure storage unavailable", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, details=details)


class BurnFailure(DomainError):
    """Burner key could not be erased; the key is still live (500)."""
    def __init__(self, message: str = "Burner wallet could not be destroyed", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, details=details)


# ── Transfers ───────────────────────────────────────────────────────


class TransferFailure(BlockchainError):
    """Native transfer failed: submission error, confirmation timeout or revert."""
    def __init__(self, message: str, tx_id: str | None = None, details: dict | None = None):
        details = dict(details or {})
        if tx_id:
            details["txId"] = tx_id
        super().__init__(message, details=details)
        self.tx_id = tx_id


# ── Discovery ───────────────────────────────────────────────────────


class DiscoveryTimeout(DomainError):
    """No channel produced a valid address in time (408)."""
    def __init__(self, timeout: float, details: dict | None = None):
        super().__init__(
            f"No counterparty found within {timeout:g}s",
            status_code=status.HTTP_408_REQUEST_TIMEOUT,
            details=details,
        )


class NoValidAddress(DomainError):
    """Both channels finished without a valid address (422)."""
    def __init__(self, message: str = "No valid counterparty address received", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, details=details)


class DiscoveryCancelled(ConflictError):
    """Discovery session cancelled by the user."""
    def __init__(self, message: str = "Discovery cancelled", details: dict | None = None):
        super().__init__(message, details=details)


# ── Payment ─────────────────────────────────────────────────────────


class PaymentInProgress(ConflictError):
    """Only one payment pipeline may run at a time."""
    def __init__(self, message: str = "A payment is already in progress", details: dict | None = None):
        super().__init__(message, details=details)
