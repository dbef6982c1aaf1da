"""Custom exception hierarchy."""

from typing import Any, Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class ValidationError(AppError):
    """Raised when input validation fails before any state change."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails (connection loss, lock timeout)."""
    pass


class TenantAccessError(AppError):
    """Raised when a tenant-scoped caller touches another municipality's data."""

    def __init__(self, message: str, municipality_id: Optional[int] = None):
        super().__init__(message)
        self.municipality_id = municipality_id


class ConflictError(AppError):
    """Raised when a request conflicts with the current state of a record."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class InvalidTransitionError(ConflictError):
    """Raised when a claim transition is not allowed from its current status."""

    def __init__(self, claim_id: int, current_status: str, action: str):
        super().__init__(
            f"Cannot {action} claim {claim_id} while it is {current_status}",
            context={"claim_id": claim_id, "current_status": current_status, "action": action},
        )
        self.claim_id = claim_id
        self.current_status = current_status
        self.action = action


class DuplicatePairError(ConflictError):
    """Raised when a beneficiary pair already has a standing adjudication."""
    pass


class NotFoundError(AppError):
    """Raised when a requested record does not exist."""
    pass


class BeneficiaryNotFoundError(NotFoundError):
    """Raised when a beneficiary is not found."""
    pass


class ClaimNotFoundError(NotFoundError):
    """Raised when a claim is not found."""
    pass


class MunicipalityNotFoundError(NotFoundError):
    """Raised when a municipality is not found."""
    pass


class PairNotFoundError(NotFoundError):
    """Raised when a verified pair is not found."""
    pass


class SettingNotFoundError(NotFoundError):
    """Raised when a system setting key is not found."""
    pass


class GoldenRecordViolationError(AppError):
    """Raised when a duplicate beneficiary insert happens under the identity lock.

    This means the locking contract was broken; it is never retried.
    """
    pass
