"""
Ledger error taxonomy.

Every failure a ledger operation can report to its caller is a subclass of
LedgerError. Each carries a stable ``code`` and the HTTP status the API layer
maps it to, so the service functions never import FastAPI.
"""
from typing import Any, Dict, Optional


class LedgerError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        error = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return error


class ValidationError(LedgerError):
    """Malformed, missing or out-of-range input (including non-member participants)."""
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(LedgerError):
    """The actor lacks the relationship the operation requires."""
    code = "FORBIDDEN"
    status_code = 403


class NotMemberError(ForbiddenError):
    pass


class AlreadySettledError(LedgerError):
    """A transition was attempted on a debt that is no longer active."""
    code = "ALREADY_SETTLED"
    status_code = 400


class FeatureNotImplementedError(LedgerError):
    code = "NOT_IMPLEMENTED"
    status_code = 501


class StorageError(LedgerError):
    """Unexpected persistence failure. The message never exposes storage internals."""
    code = "INTERNAL_ERROR"
    status_code = 500
