"""
Base protocol for document store backends.

This module defines the DocumentStore protocol that every backend must
implement. Request and response shapes follow the Elasticsearch REST API so
that query bodies can be passed through untouched.

Invariants:
    - Every write is issued with refresh="wait_for": when the call returns the
      document is visible to the next get/search
    - search/scroll responses carry ``hits.total`` and ``hits.hits``
    - get() reports a missing document with ``found: False`` instead of raising

How to change safely:
    - Protocol changes require updating all implementations
    - Keep response shapes compatible with the Elasticsearch REST API
"""

from __future__ import annotations

from abc import abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Optional,
    Protocol,
    runtime_checkable,
)
import logging

if TYPE_CHECKING:
    from ..config import ModellerConfig

logger = logging.getLogger(__name__)

# Block writes until the change is searchable.
REFRESH_WAIT_FOR = "wait_for"

# Mapping type used when an entity class is declared without one.
DEFAULT_DOC_TYPE = "_doc"


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for document store backends.

    Visibility contract:
        - index/update/delete return only after the change is visible
          (refresh="wait_for")

    Scroll contract:
        - search(scroll=...) opens a scroll context and returns its id
        - scroll() returns the next page of the same shape as search()
        - clear_scroll() releases the context; calling it for an unknown or
          expired id is not an error

    Example:
        >>> store = ElasticsearchStore(config.elasticsearch)
        >>> await store.connect()
        >>> response = await store.index("posts", "_doc", {"title": "Hi"})
        >>> print(response["_id"])
    """

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the store.

        Must be called before any other operations.

        Raises:
            StoreConnectionError: If connection fails
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and release resources."""
        ...

    @abstractmethod
    async def ping(self, request_timeout: float = 1.0) -> bool:
        """Check whether the store answers within ``request_timeout`` seconds."""
        ...

    @abstractmethod
    async def get(self, index: str, doc_type: str, id: str) -> Dict[str, Any]:
        """Get a document by id.

        Returns:
            ``{"found": bool, "_id": ..., "_source": {...}}``
        """
        ...

    @abstractmethod
    async def index(
        self,
        index: str,
        doc_type: str,
        body: Dict[str, Any],
        refresh: str = REFRESH_WAIT_FOR,
    ) -> Dict[str, Any]:
        """Insert a document, letting the store assign its id.

        Returns:
            Response containing at least ``_id``
        """
        ...

    @abstractmethod
    async def update(
        self,
        index: str,
        doc_type: str,
        id: str,
        doc: Dict[str, Any],
        refresh: str = REFRESH_WAIT_FOR,
    ) -> Dict[str, Any]:
        """Merge ``doc`` into the stored document (partial update)."""
        ...

    @abstractmethod
    async def delete(
        self,
        index: str,
        doc_type: str,
        id: str,
        refresh: str = REFRESH_WAIT_FOR,
    ) -> Dict[str, Any]:
        """Delete a document by id."""
        ...

    @abstractmethod
    async def search(
        self,
        index: str,
        doc_type: str,
        body: Optional[Dict[str, Any]] = None,
        size: Optional[int] = None,
        scroll: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run a search.

        Args:
            index: Index name
            doc_type: Mapping type
            body: Opaque query body
            size: Maximum hits in the first page
            scroll: Keep-alive for a scroll context (opens one when given)

        Returns:
            ``{"hits": {"total": n, "hits": [...]}, "_scroll_id": ...}``
        """
        ...

    @abstractmethod
    async def scroll(self, scroll_id: str, scroll: str) -> Dict[str, Any]:
        """Fetch the next page of a scroll context."""
        ...

    @abstractmethod
    async def clear_scroll(self, scroll_id: str) -> Dict[str, Any]:
        """Release a scroll context."""
        ...

    @abstractmethod
    async def count(
        self,
        index: str,
        doc_type: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Count documents matching a query.

        Returns:
            ``{"count": n}``
        """
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected to the store."""
        ...


def total_hits(response: Dict[str, Any]) -> int:
    """Read ``hits.total`` from a search response.

    Accepts both the integer form and the ``{"value": n}`` object form.
    """
    total = response.get("hits", {}).get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


def create_store(config: "ModellerConfig") -> DocumentStore:
    """Factory function to create a document store from configuration.

    Args:
        config: Modeller configuration

    Returns:
        Appropriate DocumentStore implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StoreBackend
    from .elasticsearch import ElasticsearchStore
    from .memory import InMemoryStore

    if config.backend == StoreBackend.ELASTICSEARCH:
        return ElasticsearchStore(config.elasticsearch)
    elif config.backend == StoreBackend.MEMORY:
        return InMemoryStore(page_size=config.scroll.page_size)
    else:
        raise ValueError(f"Unsupported store backend: {config.backend}")
