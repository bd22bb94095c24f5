"""
Schema types for esmodeller.

This module provides the field-definition model used by entity classes:
- FieldKind: Supported primitive type tags
- FieldDef: Individual field definition
- ValidatorOptions: Knobs passed through to validation
- Schema: Field definitions plus the derived validate/filter operations

Schemas are immutable. A Schema is normally built from a plain
field-definition mapping:

Example:
    >>> schema = Schema.from_dict({
    ...     "title": {"required": True, "type": "string"},
    ...     "views": "integer",
    ... })
    >>> schema.filter({"title": "Hello", "junk": 1})
    {'title': 'Hello'}
    >>> schema.validate({})
    (False, [FieldError(field='data.title', message='is required', value=None, type=None)])

Invariants:
    - filter() output keys are always a subset of the declared field names
    - filter(filter(x)) == filter(x)
    - validate() errors follow field declaration order
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from typing import Any

from .errors import FieldError, SchemaError


class FieldKind(Enum):
    """Supported field types (JSON primitive names)."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    NULL = "null"
    ANY = "any"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string to FieldKind."""
        for kind in cls:
            if kind.value == value:
                return kind
        valid = ", ".join(k.value for k in cls)
        raise SchemaError(f"Invalid field type '{value}'. Valid types: {valid}")


@dataclass(frozen=True)
class FieldDef:
    """Field definition within a schema.

    Attributes:
        name: Field name as stored in the document
        kind: Data type
        required: Whether field must be present
        description: Documentation
    """

    name: str
    kind: FieldKind = FieldKind.ANY
    required: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        """Validate field definition."""
        if not self.name:
            raise SchemaError("Field name cannot be empty")
        if self.name == "id":
            raise SchemaError("'id' is reserved for the document identifier", field_name="id")

    @classmethod
    def from_definition(cls, name: str, definition: Any) -> FieldDef:
        """Build a FieldDef from a mapping entry.

        ``definition`` is either a mapping (``{"type": ..., "required": ...}``)
        or a bare type tag string.
        """
        if isinstance(definition, str):
            return cls(name=name, kind=FieldKind.from_str(definition))

        if not isinstance(definition, Mapping):
            raise SchemaError(
                f"Field '{name}' must be a mapping or a type name, "
                f"got {type(definition).__name__}",
                field_name=name,
            )

        kind_value = definition.get("type", FieldKind.ANY.value)
        try:
            kind = FieldKind.from_str(kind_value)
        except SchemaError as e:
            raise SchemaError(f"Field '{name}': {e.message}", field_name=name) from e

        return cls(
            name=name,
            kind=kind,
            required=bool(definition.get("required", False)),
            description=definition.get("description", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {"type": self.kind.value}
        if self.required:
            result["required"] = True
        if self.description:
            result["description"] = self.description
        return result


@dataclass(frozen=True)
class ValidatorOptions:
    """Options controlling validation output.

    Attributes:
        greedy: Keep checking types after a required field is missing
        verbose: Attach the offending value and expected type to each error
    """

    greedy: bool = True
    verbose: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ValidatorOptions:
        """Create from a plain mapping, ignoring unknown keys."""
        data = data or {}
        return cls(
            greedy=bool(data.get("greedy", True)),
            verbose=bool(data.get("verbose", False)),
        )


@dataclass(frozen=True)
class Schema:
    """An ordered set of field definitions.

    Attributes:
        fields: Field definitions, in declaration order
        options: Validator options
    """

    fields: tuple[FieldDef, ...] = dataclass_field(default_factory=tuple)
    options: ValidatorOptions = dataclass_field(default_factory=ValidatorOptions)

    def __post_init__(self) -> None:
        """Validate schema definition."""
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise SchemaError("Duplicate field name in schema")

    @classmethod
    def from_dict(
        cls,
        properties: Mapping[str, Any],
        options: ValidatorOptions | Mapping[str, Any] | None = None,
    ) -> Schema:
        """Build a schema from a field-definition mapping.

        Args:
            properties: Mapping of field name to definition
            options: Validator options (object or mapping)

        Returns:
            Schema instance

        Raises:
            SchemaError: If a definition is invalid
        """
        if not isinstance(options, ValidatorOptions):
            options = ValidatorOptions.from_dict(options)
        fields = tuple(FieldDef.from_definition(name, d) for name, d in properties.items())
        return cls(fields=fields, options=options)

    @property
    def field_names(self) -> list[str]:
        """Declared field names, in order."""
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> FieldDef | None:
        """Get field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def __contains__(self, name: object) -> bool:
        return any(f.name == name for f in self.fields)

    def filter(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """Project a document onto the declared fields.

        Keys keep the document's own order; values are passed through
        unchanged.
        """
        from .validate import filter_document

        return filter_document(self, document)

    def validate(self, document: Mapping[str, Any]) -> tuple[bool, list[FieldError]]:
        """Validate the filtered view of a document.

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        from .validate import validate_document

        return validate_document(self, document)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a normalized field-definition mapping."""
        return {f.name: f.to_dict() for f in self.fields}


def as_schema(
    schema: Schema | Mapping[str, Any],
    options: ValidatorOptions | Mapping[str, Any] | None = None,
) -> Schema:
    """Return ``schema`` unchanged if it already is one, else wrap it."""
    if isinstance(schema, Schema):
        return schema
    return Schema.from_dict(schema, options)
