"""
Error types for esmodeller.

This module defines all exception types raised by the modelling layer:
- ModellerError: Base exception
- ValidationError: Document failed schema validation
- StateError: Operation not allowed in the model's current state
- NotFoundError: Document does not exist in the store
- SchemaError: Invalid field definition
- StoreError / StoreConnectionError: Failures raised by bundled stores

Invariants:
    - All errors inherit from ModellerError
    - Errors include context for debugging
    - Errors raised by the Elasticsearch client are never wrapped
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FieldError:
    """A single validation failure.

    Attributes:
        field: Path of the offending field (``data.<name>``)
        message: What is wrong with it
        value: Offending value (verbose validation only)
        type: Expected type tag (verbose validation only)
    """

    field: str
    message: str
    value: Any = None
    type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, omitting verbose keys when unset."""
        result: Dict[str, Any] = {"field": self.field, "message": self.message}
        if self.type is not None:
            result["value"] = self.value
            result["type"] = self.type
        return result


class ModellerError(Exception):
    """Base exception for all esmodeller errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "MODELLER_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ModellerError):
    """Document validation failed.

    Raised when:
    - Required field is missing
    - Field value has wrong type

    The error list preserves the order in which fields are declared.
    """

    def __init__(
        self,
        errors: Optional[List[FieldError]] = None,
        message: str = "Validation error",
    ) -> None:
        errors = list(errors or [])
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"errors": [e.to_dict() for e in errors]},
        )
        self.errors = errors


class StateError(ModellerError):
    """Operation is not allowed in the model's current state.

    Raised when:
    - update/remove/fetch is called on an unsaved model
    """

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="STATE_ERROR",
            details={"operation": operation},
        )
        self.operation = operation


class NotFoundError(ModellerError):
    """Document not found.

    Raised when fetch() finds nothing under the model's id.
    """

    def __init__(self, model_name: str, document_id: str) -> None:
        super().__init__(
            f"Unable to fetch {model_name}#{document_id}",
            code="NOT_FOUND",
            details={"model": model_name, "id": document_id},
        )
        self.model_name = model_name
        self.document_id = document_id


class SchemaError(ModellerError):
    """Schema definition is invalid.

    Raised when:
    - A field uses an unknown type tag
    - A field definition is neither a mapping nor a type tag
    """

    def __init__(self, message: str, field_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="SCHEMA_ERROR",
            details={"field": field_name},
        )
        self.field_name = field_name


class StoreError(ModellerError):
    """Failure inside a bundled document store."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="STORE_ERROR", details=details)


class StoreConnectionError(StoreError):
    """Store is not connected or could not be reached."""

    def __init__(self, message: str, hosts: Optional[List[str]] = None) -> None:
        super().__init__(message, details={"hosts": hosts or []})
        self.code = "CONNECTION_ERROR"
        self.hosts = hosts or []
