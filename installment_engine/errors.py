"""Exception hierarchy for the installment engine."""

from typing import Any, Dict, Optional


class InstallmentError(Exception):
    """Base exception for all engine errors."""

    code = "installment_error"
    http_status = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        result = {"message": self.message, "error": self.code}
        result.update(self.details)
        return result


class ValidationError(InstallmentError):
    """Raised when terms or a payment command are malformed."""

    code = "validation_error"
    http_status = 400


class NotFoundError(InstallmentError):
    """Raised when a referenced plan, installment, customer or transaction does not exist."""

    code = "not_found"
    http_status = 404


class AlreadyPaidError(InstallmentError):
    """Raised when a payment targets an installment with nothing left to pay."""

    code = "already_paid"
    http_status = 409


class InsufficientBalanceError(InstallmentError):
    """Raised when a ledger debit exceeds the customer's current balance."""

    code = "insufficient_balance"
    http_status = 422


class InvalidPlanStateError(InstallmentError):
    """Raised when a plan is in the wrong lifecycle state for the operation."""

    code = "invalid_plan_state"
    http_status = 409


class ConcurrencyConflictError(InstallmentError):
    """Raised when a plan was modified by another writer since it was read."""

    code = "concurrency_conflict"
    http_status = 409
