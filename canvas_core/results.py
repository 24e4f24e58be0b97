"""
Operation outcomes shared by the graph model and the document service.

Expected failures (missing ids, bad references, malformed input) are never
raised to callers; they are returned as an OperationResult with an ErrorKind
and a human-readable message.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure categories reported by canvas operations."""
    NOT_FOUND = "NotFound"                   # Document, node or connection id does not resolve
    INVALID_REFERENCE = "InvalidReference"   # Connection endpoint missing
    INVALID_INPUT = "InvalidInput"           # Malformed JSON, unknown algorithm/template, bad field
    UNKNOWN_OPERATION = "UnknownOperation"   # Tool dispatch for an unrecognized name


@dataclass
class OperationResult:
    """Declarative success/failure outcome of a canvas operation."""
    success: bool
    message: str = ""
    error: ErrorKind | None = None
    data: Any = None

    @classmethod
    def ok(cls, message: str = "", data: Any = None) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, error: ErrorKind, message: str) -> "OperationResult":
        return cls(success=False, message=message, error=error)

    @classmethod
    def not_found(cls, what: str, ident: str) -> "OperationResult":
        return cls.fail(ErrorKind.NOT_FOUND, f"{what} not found: {ident}")

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
        }
        if self.error:
            result["error"] = self.error.value
        return result
