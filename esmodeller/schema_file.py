"""
Schema file loading.

Entity schemas can live in JSON or YAML files, either as a bare
field-definition map:

    title: {type: string, required: true}
    views: integer

or wrapped with the index binding:

    index: posts
    type: _doc
    options: {verbose: true}
    schema:
      title: {type: string, required: true}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import SchemaError
from .schema import Schema
from .store.base import DEFAULT_DOC_TYPE


@dataclass(frozen=True)
class SchemaFile:
    """Parsed schema file.

    Attributes:
        schema: The schema
        index: Index name, when the file names one
        doc_type: Mapping type
    """

    schema: Schema
    index: str | None = None
    doc_type: str = DEFAULT_DOC_TYPE


def parse_schema_document(data: Any) -> SchemaFile:
    """Build a SchemaFile from already-parsed JSON/YAML content."""
    if not isinstance(data, dict):
        raise SchemaError("Schema file must contain a mapping")

    if "schema" in data and isinstance(data["schema"], dict):
        return SchemaFile(
            schema=Schema.from_dict(data["schema"], data.get("options")),
            index=data.get("index"),
            doc_type=data.get("type") or DEFAULT_DOC_TYPE,
        )

    return SchemaFile(schema=Schema.from_dict(data))


def load_schema_file(path: str | Path) -> SchemaFile:
    """Load a schema from a ``.json``, ``.yaml`` or ``.yml`` file.

    Raises:
        SchemaError: If the file cannot be parsed or describes an invalid schema
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SchemaError(f"Failed to parse schema file {path}: {e}") from e

    return parse_schema_document(data)
