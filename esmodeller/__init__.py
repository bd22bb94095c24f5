"""
esmodeller - schema-validated document models over Elasticsearch.

This package turns raw JSON records into lifecycle-managed entities:
- Schema: field definitions with validate/filter
- Modeller: registry of entity classes sharing one store connection
- Model: CRUD with lifecycle hooks
- ScrollCursor: pull-based iteration over large result sets

Example:
    >>> from esmodeller import Modeller, ModellerConfig
    >>>
    >>> async with Modeller(ModellerConfig.from_env()) as modeller:
    ...     Post = modeller.create_model("posts", {
    ...         "title": {"type": "string", "required": True},
    ...         "created_at": "string",
    ...     })
    ...
    ...     @Post.hook("before_create")
    ...     def stamp(post):
    ...         post.created_at = datetime.now(timezone.utc).isoformat()
    ...
    ...     post = await Post.create({"title": "Hello"})
    ...     async with Post.find_iterator({"query": {"match_all": {}}}) as cursor:
    ...         async for p in cursor:
    ...             print(p.to_dict())

Invariants:
    - Writes are visible to the next read (refresh="wait_for")
    - Scroll contexts are released when a cursor is exhausted or closed
    - Elasticsearch client errors propagate unchanged
"""

__version__ = "1.0.0"

from .config import (
    ElasticsearchConfig,
    ModellerConfig,
    ObservabilityConfig,
    ScrollConfig,
    StoreBackend,
)
from .cursor import BulkCursor, ScrollCursor
from .errors import (
    FieldError,
    ModellerError,
    NotFoundError,
    SchemaError,
    StateError,
    StoreConnectionError,
    StoreError,
    ValidationError,
)
from .hooks import HOOK_NAMES, Hooks
from .model import Model
from .registry import Modeller
from .schema import FieldDef, FieldKind, Schema, ValidatorOptions
from .schema_file import load_schema_file
from .store import (
    DEFAULT_DOC_TYPE,
    REFRESH_WAIT_FOR,
    DocumentStore,
    ElasticsearchStore,
    InMemoryStore,
    create_store,
)

__all__ = [
    # Version
    "__version__",
    # Schema
    "Schema",
    "FieldDef",
    "FieldKind",
    "ValidatorOptions",
    "load_schema_file",
    # Models
    "Modeller",
    "Model",
    "Hooks",
    "HOOK_NAMES",
    "ScrollCursor",
    "BulkCursor",
    # Stores
    "DocumentStore",
    "ElasticsearchStore",
    "InMemoryStore",
    "create_store",
    "REFRESH_WAIT_FOR",
    "DEFAULT_DOC_TYPE",
    # Config
    "ModellerConfig",
    "ElasticsearchConfig",
    "ScrollConfig",
    "ObservabilityConfig",
    "StoreBackend",
    # Errors
    "ModellerError",
    "FieldError",
    "ValidationError",
    "StateError",
    "NotFoundError",
    "SchemaError",
    "StoreError",
    "StoreConnectionError",
]
