# app/errors.py
from typing import Any, Dict, List, Optional


class BudgetError(Exception):
    """Base error; carries the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(BudgetError):
    """Missing or malformed required input."""

    status_code = 400

    def __init__(self, message: str, missing_columns: Optional[List[str]] = None):
        super().__init__(message)
        self.missing_columns = missing_columns or []


class ConfigurationError(BudgetError):
    """A required credential or setting is unavailable."""


class StorageError(BudgetError):
    """Query or insert failure at the data store."""


class UpstreamError(BudgetError):
    """The text-generation service failed or answered with something unusable."""


class InternalError(BudgetError):
    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
