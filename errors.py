"""
Ledger error types.

Validation errors are reported back to the user and leave the ledger
untouched; store errors are logged and surfaced as 500s.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for client handling."""
    # Input errors (400s)
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_ITEM = "INVALID_ITEM"
    INVALID_VALUE = "INVALID_VALUE"
    INVALID_IMPORT = "INVALID_IMPORT"

    # Lookup errors (404)
    NOT_FOUND = "NOT_FOUND"

    # Storage errors (500)
    STORE_ERROR = "STORE_ERROR"


class LedgerError(Exception):
    """Base exception with structured error info."""

    status_code = 500

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.details = details or []
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API response format."""
        result = {
            "error": self.code.value,
            "message": self.message
        }
        if self.details:
            result["details"] = self.details
        return result


class ValidationError(LedgerError):
    """A save was rejected; nothing was changed."""

    status_code = 400

    def __init__(self, message: str, details: Optional[List[str]] = None,
                 code: ErrorCode = ErrorCode.MISSING_FIELD):
        super().__init__(code, message, details)


class NotFoundError(LedgerError):
    status_code = 404

    def __init__(self, kind: str, identifier: str):
        super().__init__(
            ErrorCode.NOT_FOUND,
            f"{kind} not found",
            context={"kind": kind, "id": identifier},
        )


class StoreError(LedgerError):
    status_code = 500

    def __init__(self, key: str, detail: str):
        super().__init__(
            ErrorCode.STORE_ERROR,
            f"Could not save '{key}'",
            details=[detail],
            context={"key": key},
        )
