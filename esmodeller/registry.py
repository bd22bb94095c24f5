"""
Entity class registry for esmodeller.

A Modeller owns one store connection and the entity classes bound to it,
keyed by (index, doc_type).

Example:
    >>> async with Modeller(ModellerConfig.from_env()) as modeller:
    ...     Post = modeller.create_model("posts", {"title": "string"})
    ...     assert modeller.get("posts") is Post

Invariants:
    - One entity class per (index, doc_type); registering the same key again
      replaces the previous class (a warning is logged)
    - Every class created by a Modeller shares its store connection
    - close() closes the connection and empties the registry
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

from .config import ModellerConfig
from .hooks import HookFn
from .model import Model, ModelMeta
from .schema import Schema, ValidatorOptions, as_schema
from .store.base import DEFAULT_DOC_TYPE, DocumentStore, create_store

logger = logging.getLogger(__name__)

RegistryKey = tuple[str, str]


class Modeller:
    """Registry of entity classes sharing one document store.

    Attributes:
        config: Modeller configuration
        connection: The shared document store
    """

    def __init__(
        self,
        config: ModellerConfig | None = None,
        *,
        connection: DocumentStore | None = None,
    ) -> None:
        """Initialize the modeller.

        Args:
            config: Configuration (defaults to ModellerConfig())
            connection: Store to use instead of building one from config
        """
        self.config = config or ModellerConfig()
        self.connection = connection if connection is not None else create_store(self.config)
        self._models: dict[RegistryKey, type[Model]] = {}

    async def connect(self) -> None:
        """Connect the underlying store."""
        if not self.connection.is_connected:
            await self.connection.connect()

    async def close(self) -> None:
        """Close the store and forget every registered class."""
        await self.connection.close()
        self._models.clear()
        logger.info("Modeller closed")

    async def __aenter__(self) -> Modeller:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def create_model(
        self,
        index: str,
        doc_type: str | Schema | Mapping[str, Any] | None = None,
        schema: Schema | Mapping[str, Any] | None = None,
        options: ValidatorOptions | Mapping[str, Any] | None = None,
        *,
        hooks: Mapping[str, HookFn | list[HookFn]] | None = None,
        name: str | None = None,
        base: type[Model] = Model,
    ) -> type[Model]:
        """Create and register an entity class.

        ``doc_type`` may be omitted: ``create_model("posts", schema)`` binds
        the class to the default ``_doc`` type.

        Args:
            index: Index name
            doc_type: Mapping type (default ``_doc``)
            schema: Schema or field-definition mapping
            options: Validator options, used when wrapping a mapping
            hooks: Hooks per lifecycle slot, run after those copied from ``base``
            name: Class name (derived from index and type by default)
            base: Model subclass to derive from; its hooks are copied

        Returns:
            The new entity class

        Raises:
            SchemaError: If the field definitions are invalid
        """
        if doc_type is not None and not isinstance(doc_type, str):
            if schema is not None and options is None:
                options = schema
            schema, doc_type = doc_type, None

        if schema is None:
            raise TypeError("create_model() requires a schema")
        if not index:
            raise ValueError("Index name cannot be empty")

        doc_type = doc_type or DEFAULT_DOC_TYPE
        bound_schema = as_schema(schema, options)
        class_name = name or _class_name(index, doc_type)
        class_hooks = base.hooks.copy()
        class_hooks.update(hooks)

        model = ModelMeta(
            class_name,
            (base,),
            {
                "__module__": base.__module__,
                "__qualname__": class_name,
                "connection": self.connection,
                "schema": bound_schema,
                "index": index,
                "doc_type": doc_type,
                "hooks": class_hooks,
                "scroll_config": self.config.scroll,
                "_bound": True,
            },
        )

        key = (index, doc_type)
        if key in self._models:
            logger.warning(
                f"Replacing entity class registered for {index}.{doc_type}",
                extra={"index": index, "doc_type": doc_type},
            )
        self._models[key] = model

        logger.info(
            "Entity class registered",
            extra={
                "model": class_name,
                "index": index,
                "doc_type": doc_type,
                "fields": bound_schema.field_names,
            },
        )
        return model

    def create_model_from_file(self, path: str, **kwargs: Any) -> type[Model]:
        """Create an entity class from a JSON or YAML schema file.

        The file must name its index (see load_schema_file()).
        """
        from .schema_file import load_schema_file

        definition = load_schema_file(path)
        if not definition.index:
            raise ValueError(f"Schema file {path} does not name an index")
        return self.create_model(
            definition.index,
            definition.doc_type,
            definition.schema,
            **kwargs,
        )

    def get(self, index: str, doc_type: str | None = None) -> type[Model] | None:
        """Registered class for (index, doc_type), or None."""
        return self._models.get((index, doc_type or DEFAULT_DOC_TYPE))

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            key = (key, DEFAULT_DOC_TYPE)
        return key in self._models

    def __iter__(self) -> Iterator[type[Model]]:
        return iter(list(self._models.values()))

    def __len__(self) -> int:
        return len(self._models)

    async def ping(self, timeout_ms: int = 1000) -> bool:
        """Ask the store whether it is reachable within ``timeout_ms``."""
        return await self.connection.ping(request_timeout=timeout_ms / 1000)


def _class_name(index: str, doc_type: str) -> str:
    parts = [p for p in index.replace("-", "_").replace(".", "_").split("_") if p]
    name = "".join(p[:1].upper() + p[1:] for p in parts) or "Model"
    if doc_type != DEFAULT_DOC_TYPE:
        name += "".join(p[:1].upper() + p[1:] for p in doc_type.split("_") if p)
    return name
