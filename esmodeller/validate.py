"""
Document validation for esmodeller.

This module provides the validation engine behind Schema:
- Field filtering against declared names
- Required and type checks with ordered, deterministic errors
- Dropped-field reporting with suggestions (used by the admin CLI)

Invariants:
    - Validation always runs against the filtered document
    - Errors are reported in field declaration order
    - Error paths are ``data.<field name>``
"""

from __future__ import annotations

from collections.abc import Mapping
from difflib import get_close_matches
from typing import Any, Dict, List, Tuple

from .errors import FieldError, ValidationError
from .schema import FieldKind, Schema

REQUIRED_MESSAGE = "is required"
WRONG_TYPE_MESSAGE = "is the wrong type"


def filter_document(schema: Schema, document: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep only the keys the schema declares.

    Args:
        schema: Schema to filter against
        document: Document to filter

    Returns:
        New dictionary with declared keys only
    """
    return {key: value for key, value in document.items() if key in schema}


def validate_document(
    schema: Schema,
    document: Mapping[str, Any],
) -> Tuple[bool, List[FieldError]]:
    """Validate a document against a schema.

    Args:
        schema: Schema to validate against
        document: Document to validate (filtered before checking)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    data = filter_document(schema, document)
    options = schema.options
    errors: List[FieldError] = []
    missing_required = False

    for field_def in schema.fields:
        path = f"data.{field_def.name}"
        value = data.get(field_def.name)
        present = field_def.name in data and (
            value is not None or field_def.kind == FieldKind.NULL
        )

        if not present:
            if field_def.required:
                missing_required = True
                errors.append(_error(path, REQUIRED_MESSAGE, value, field_def.kind, options.verbose))
            continue

        if not _matches_kind(field_def.kind, value):
            errors.append(_error(path, WRONG_TYPE_MESSAGE, value, field_def.kind, options.verbose))

    # Non-greedy: only the required-field pass is reported
    if missing_required and not options.greedy:
        errors = [e for e in errors if e.message == REQUIRED_MESSAGE]

    return len(errors) == 0, errors


def _error(
    path: str,
    message: str,
    value: Any,
    kind: FieldKind,
    verbose: bool,
) -> FieldError:
    if verbose:
        return FieldError(field=path, message=message, value=value, type=kind.value)
    return FieldError(field=path, message=message)


def _matches_kind(kind: FieldKind, value: Any) -> bool:
    """Check a single value against a type tag."""
    if kind == FieldKind.ANY:
        return True

    if kind == FieldKind.STRING:
        return isinstance(value, str)

    if kind == FieldKind.INTEGER:
        if isinstance(value, bool):
            return False
        if isinstance(value, float):
            return value.is_integer()
        return isinstance(value, int)

    if kind == FieldKind.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)

    if kind == FieldKind.BOOLEAN:
        return isinstance(value, bool)

    if kind == FieldKind.OBJECT:
        return isinstance(value, Mapping)

    if kind == FieldKind.ARRAY:
        return isinstance(value, (list, tuple))

    if kind == FieldKind.NULL:
        return value is None

    return False


def validate_or_raise(schema: Schema, document: Mapping[str, Any]) -> None:
    """Validate a document and raise if invalid.

    Raises:
        ValidationError: If validation fails
    """
    is_valid, errors = validate_document(schema, document)
    if not is_valid:
        raise ValidationError(errors)


def dropped_fields(
    schema: Schema,
    document: Mapping[str, Any],
    limit: int = 3,
) -> Dict[str, List[str]]:
    """Report keys that filtering would drop.

    Args:
        schema: Schema to compare against
        document: Raw document
        limit: Maximum suggestions per key

    Returns:
        Mapping of dropped key to similar declared field names
    """
    known = schema.field_names
    return {
        key: get_close_matches(key, known, n=limit)
        for key in document
        if key not in schema and key != "id"
    }
