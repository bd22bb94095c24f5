"""
Entity model for esmodeller.

This module provides the Model base class. A Modeller creates one Model
subclass per (index, doc_type) pair, bound to a store connection and a
schema. Instances are single documents with a lifecycle:

    New (no id) --save()--> Persisted (id) --remove()--> New

Example:
    >>> Post = modeller.create_model("posts", {"title": {"type": "string", "required": True}})
    >>> post = await Post.create({"title": "Hello"})
    >>> post.is_new
    False
    >>> await post.update({"title": "Hello again"})
    >>> await post.remove()
    >>> post.is_new
    True

Invariants:
    - Fields set through the constructor or update() are filtered to the schema
    - Data read from the store (fetch, find) is trusted and not filtered
    - ``id`` is assigned only by save() and cleared only by remove()
    - Validation failures abort save()/update() before any store write
    - Hooks run in a fixed order; a raising hook aborts the remaining steps
    - Writes use refresh="wait_for"
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, ClassVar, Dict, List, Optional

from .config import ScrollConfig
from .cursor import BulkCursor, ScrollCursor
from .errors import NotFoundError, StateError, ValidationError
from .hooks import HookFn, Hooks
from .schema import Schema
from .store.base import DEFAULT_DOC_TYPE, REFRESH_WAIT_FOR, DocumentStore
from .validate import validate_or_raise

logger = logging.getLogger(__name__)


class ModelMeta(type):
    """Keeps the store binding of a registered entity class read-only."""

    BOUND_ATTRIBUTES = frozenset({"connection", "schema", "index", "doc_type"})

    def __setattr__(cls, name: str, value: Any) -> None:
        if name in ModelMeta.BOUND_ATTRIBUTES and cls.__dict__.get("_bound", False):
            raise AttributeError(f"{cls.__name__}.{name} is read-only")
        super().__setattr__(name, value)


class Model(metaclass=ModelMeta):
    """A schema-bound, identity-carrying document.

    Class attributes (set by Modeller.create_model):
        connection: Shared document store
        schema: Field definitions
        index: Index name
        doc_type: Mapping type name
        hooks: Lifecycle hook slots
        scroll_config: Keep-alive and page size for cursors

    Field values are available as attributes (``post.title``) and by key
    (``post["title"]``). Use the key form for fields whose names clash with
    Model attributes, such as ``index`` or ``count``.
    """

    connection: ClassVar[Optional[DocumentStore]] = None
    schema: ClassVar[Schema] = Schema()
    index: ClassVar[str] = ""
    doc_type: ClassVar[str] = DEFAULT_DOC_TYPE
    hooks: ClassVar[Hooks] = Hooks()
    scroll_config: ClassVar[ScrollConfig] = ScrollConfig()
    _bound: ClassVar[bool] = False

    def __init__(self, data: Optional[Mapping[str, Any]] = None, *, trusted: bool = False) -> None:
        """Build an instance.

        Args:
            data: Field values, optionally with an ``id``
            trusted: Keep every key (store-sourced data) instead of filtering
        """
        data = dict(data or {})
        doc_id = data.pop("id", None)
        fields = data if trusted else self.schema.filter(data)
        object.__setattr__(self, "_fields", dict(fields))
        object.__setattr__(self, "_id", doc_id or None)

    # Identity

    @property
    def id(self) -> Optional[str]:
        """Document id; None while the model is unsaved."""
        return self._id

    @property
    def is_new(self) -> bool:
        """True until the document has been saved."""
        return self._id is None

    def _assign_id(self, doc_id: str) -> None:
        if not self.is_new:
            raise StateError("model already has an id", operation="save")
        object.__setattr__(self, "_id", doc_id)

    def _clear_id(self) -> None:
        object.__setattr__(self, "_id", None)

    # Field access

    @property
    def fields(self) -> Mapping[str, Any]:
        """Read-only view of the current field values."""
        return MappingProxyType(self._fields)

    def __getattr__(self, name: str) -> Any:
        fields = self.__dict__.get("_fields", {})
        if name in fields:
            return fields[name]
        if name in self.schema:
            return None
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id":
            raise AttributeError("id is assigned by save() and cannot be set directly")
        if name in self.schema or name in self._fields:
            self._fields[name] = value
            return
        if name.startswith("_"):
            object.__setattr__(self, name, value)
            return
        raise AttributeError(
            f"'{type(self).__name__}' has no field '{name}'. "
            f"Declared fields: {', '.join(self.schema.field_names) or '(none)'}"
        )

    def __delattr__(self, name: str) -> None:
        if name in self._fields:
            del self._fields[name]
            return
        object.__delattr__(self, name)

    def __getitem__(self, name: str) -> Any:
        return self._fields[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.__setattr__(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def get(self, name: str, default: Any = None) -> Any:
        """Field value or ``default``."""
        return self._fields.get(name, default)

    # Serialization

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict: ``id`` first when set, then fields in insertion order."""
        result: Dict[str, Any] = {}
        if self._id is not None:
            result["id"] = self._id
        result.update(self._fields)
        return result

    to_json = to_dict

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Model):
            return NotImplemented
        return type(self) is type(other) and self.to_dict() == other.to_dict()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self._id!r} {self._fields!r}>"

    # Class-level plumbing

    @classmethod
    def store(cls) -> DocumentStore:
        """The store this class is bound to."""
        if cls.connection is None:
            raise StateError(
                f"{cls.__name__} is not bound to a connection; create it with Modeller.create_model()",
                operation="store",
            )
        return cls.connection

    @classmethod
    def hook(cls, name: str):
        """Decorator registering a lifecycle hook.

        Example:
            >>> @Post.hook("before_update")
            ... def touch(post):
            ...     post.updated_at = now()
        """

        def decorator(fn: HookFn) -> HookFn:
            return cls.hooks.add(name, fn)

        return decorator

    async def _run_hooks(self, name: str) -> None:
        await type(self).hooks.run(name, self)

    def _document(self) -> Dict[str, Any]:
        """Body sent to the store: the filtered snapshot, without id."""
        return self.schema.filter(self.to_dict())

    # Lifecycle

    async def validate(self) -> Model:
        """Validate the current fields against the schema.

        Runs before_validate and after_validate around the check.

        Raises:
            ValidationError: If the fields do not satisfy the schema
        """
        await self._run_hooks("before_validate")

        try:
            validate_or_raise(self.schema, self.to_dict())
        except ValidationError as e:
            logger.debug(
                "Validation failed",
                extra={"model": type(self).__name__, "errors": [err.to_dict() for err in e.errors]},
            )
            raise

        await self._run_hooks("after_validate")
        return self

    async def save(self) -> Model:
        """Insert a new document, or update() one that is already persisted.

        Returns:
            self, with ``id`` assigned

        Raises:
            ValidationError: If validation fails (nothing is written)
        """
        if not self.is_new:
            return await self.update()

        cls = type(self)
        store = cls.store()

        await self.validate()

        await self._run_hooks("before_create")
        await self._run_hooks("before_save")

        response = await store.index(
            index=cls.index,
            doc_type=cls.doc_type,
            body=self._document(),
            refresh=REFRESH_WAIT_FOR,
        )
        self._assign_id(response["_id"])

        logger.debug(
            "Model created",
            extra={"model": cls.__name__, "index": cls.index, "id": self._id},
        )

        await self._run_hooks("after_save")
        await self._run_hooks("after_create")

        return self

    async def update(self, data: Optional[Mapping[str, Any]] = None) -> Model:
        """Merge ``data`` into the fields and write the full snapshot.

        Args:
            data: Field values to merge (filtered to the schema)

        Returns:
            self

        Raises:
            StateError: If the model has not been saved
            ValidationError: If validation fails (nothing is written)
        """
        if self.is_new:
            raise StateError("cannot update unsaved model", operation="update")

        cls = type(self)
        store = cls.store()

        if data:
            self._fields.update(self.schema.filter(data))

        await self.validate()

        await self._run_hooks("before_update")
        await self._run_hooks("before_save")

        await store.update(
            index=cls.index,
            doc_type=cls.doc_type,
            id=self._id,
            doc=self._document(),
            refresh=REFRESH_WAIT_FOR,
        )

        logger.debug(
            "Model updated",
            extra={"model": cls.__name__, "index": cls.index, "id": self._id},
        )

        await self._run_hooks("after_save")
        await self._run_hooks("after_update")

        return self

    async def remove(self) -> Model:
        """Delete the document; the instance becomes new again.

        Field values are kept, so the instance can be saved again.

        Raises:
            StateError: If the model has not been saved
        """
        if self.is_new:
            raise StateError("cannot remove unsaved model", operation="remove")

        cls = type(self)
        store = cls.store()

        await self._run_hooks("before_remove")

        await store.delete(
            index=cls.index,
            doc_type=cls.doc_type,
            id=self._id,
            refresh=REFRESH_WAIT_FOR,
        )

        logger.debug(
            "Model removed",
            extra={"model": cls.__name__, "index": cls.index, "id": self._id},
        )
        self._clear_id()

        await self._run_hooks("after_remove")

        return self

    async def fetch(self) -> Model:
        """Reload fields from the stored document.

        Raises:
            StateError: If the model has not been saved
            NotFoundError: If the store has no document under this id
        """
        if self.is_new:
            raise StateError("cannot fetch unsaved model", operation="fetch")

        cls = type(self)
        store = cls.store()

        await self._run_hooks("before_fetch")

        response = await store.get(index=cls.index, doc_type=cls.doc_type, id=self._id)
        if not response.get("found"):
            raise NotFoundError(cls.__name__, self._id)

        self._fields.update(response.get("_source", {}))

        await self._run_hooks("after_fetch")

        return self

    # Class-level operations

    @classmethod
    def build(cls, data: Optional[Mapping[str, Any]] = None, *, trusted: bool = False) -> Model:
        """Build an unsaved instance (or a persisted stub when ``data`` has an id)."""
        return cls(data, trusted=trusted)

    @classmethod
    async def create(cls, data: Mapping[str, Any]) -> Model:
        """Build and save."""
        return await cls.build(data).save()

    @classmethod
    async def find_by_id(cls, id: str) -> Model:
        """Fetch a document by id.

        Raises:
            NotFoundError: If it does not exist
        """
        return await cls.build({"id": id}).fetch()

    @classmethod
    async def find_one(cls, query: Optional[Dict[str, Any]] = None) -> Optional[Model]:
        """First hit of a search, or None."""
        response = await cls.store().search(
            index=cls.index,
            doc_type=cls.doc_type,
            body=query,
            size=1,
        )
        hits = response.get("hits", {}).get("hits", [])
        if not hits:
            return None
        hit = hits[0]
        return cls.build({"id": hit["_id"], **hit.get("_source", {})}, trusted=True)

    @classmethod
    async def find_or_create(
        cls,
        query: Optional[Dict[str, Any]],
        data: Mapping[str, Any],
    ) -> Model:
        """find_one(query), falling back to create(data)."""
        found = await cls.find_one(query)
        if found is not None:
            return found
        return await cls.create(data)

    @classmethod
    def find_iterator(cls, query: Optional[Dict[str, Any]] = None) -> ScrollCursor:
        """Lazy cursor over every document matching ``query``.

        The scroll context is released when the cursor is exhausted. Callers
        that stop early should use ``async with`` or call ``aclose()``; an
        abandoned ``async for`` loop is released later, when the event loop
        finalizes it.
        """
        return ScrollCursor(
            cls,
            query,
            keep_alive=cls.scroll_config.keep_alive,
            page_size=cls.scroll_config.page_size,
        )

    @classmethod
    async def find(cls, query: Optional[Dict[str, Any]] = None) -> List[Model]:
        """Every document matching ``query``, loaded eagerly."""
        async with cls.find_iterator(query) as cursor:
            return [item async for item in cursor]

    @classmethod
    def update_iterator(
        cls,
        query: Optional[Dict[str, Any]],
        data: Optional[Mapping[str, Any]] = None,
    ) -> BulkCursor:
        """Lazy cursor that update()s each matching document as it is pulled."""

        async def apply(item: Model) -> Model:
            return await item.update(data)

        return BulkCursor(cls.find_iterator(query), apply)

    @classmethod
    async def update_many(
        cls,
        query: Optional[Dict[str, Any]],
        data: Optional[Mapping[str, Any]] = None,
    ) -> List[Model]:
        """Update every matching document; returns the updated instances."""
        async with cls.update_iterator(query, data) as cursor:
            return [item async for item in cursor]

    @classmethod
    def remove_iterator(cls, query: Optional[Dict[str, Any]] = None) -> BulkCursor:
        """Lazy cursor that remove()s each matching document as it is pulled."""

        async def apply(item: Model) -> Model:
            return await item.remove()

        return BulkCursor(cls.find_iterator(query), apply)

    @classmethod
    async def remove_many(cls, query: Optional[Dict[str, Any]] = None) -> int:
        """Remove every matching document; returns how many were removed."""
        removed = 0
        async with cls.remove_iterator(query) as cursor:
            async for _ in cursor:
                removed += 1
        return removed

    @classmethod
    async def update_by_id(cls, id: str, data: Mapping[str, Any]) -> Model:
        """Fetch a document and update it."""
        found = await cls.find_by_id(id)
        return await found.update(data)

    @classmethod
    async def remove_by_id(cls, id: str) -> None:
        """Delete a document by id without fetching it first."""
        await cls.build({"id": id}).remove()

    @classmethod
    async def count(cls, query: Optional[Dict[str, Any]] = None) -> int:
        """Number of documents matching ``query``."""
        response = await cls.store().count(index=cls.index, doc_type=cls.doc_type, body=query)
        return int(response["count"])

