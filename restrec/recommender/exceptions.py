"""Custom exceptions for RestRec.

Defines specific exception types for better error handling and reporting.
Every error is terminal for the operation that raised it.
"""

from typing import Any, Dict, Optional


class RestRecError(Exception):
    """Base exception for RestRec errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ParseError(RestRecError):
    """Raised when a ratings file contains a malformed row."""

    def __init__(
        self,
        path: str,
        reason: str,
        line: Optional[int] = None,
    ):
        location = f"{path}:{line}" if line is not None else path
        super().__init__(
            message=f"Malformed ratings data at {location}: {reason}",
            details={"path": path, "line": line, "reason": reason},
        )
        self.path = path
        self.line = line


class InsufficientDataError(RestRecError):
    """Raised when the data is empty or too degenerate to train on."""


class UnknownCategoryError(RestRecError, KeyError):
    """Raised when an identifier has no encoding in a fitted encoder."""

    def __init__(self, value: Any, category: str = "value"):
        super().__init__(
            message=f"Unknown {category} '{value}': not seen during training",
            details={"value": value, "category": category},
        )
        self.value = value
        self.category = category

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.message


class PersistenceError(RestRecError):
    """Raised when a saved model is corrupt or incompatible."""


class ModelNotFoundError(PersistenceError, FileNotFoundError):
    """Raised when model files cannot be found."""

    def __init__(self, model_path: str, details: Optional[Dict[str, Any]] = None):
        message = f"Model not found at '{model_path}'. Please train a model first."
        super().__init__(
            message=message,
            details=details or {"model_path": model_path},
        )
