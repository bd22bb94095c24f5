"""
Elasticsearch document store implementation.

This module provides the production backend, built on the official async
client (``elasticsearch.AsyncElasticsearch``, 8.x).

Invariants:
    - Mapping types no longer exist on the wire; ``doc_type`` only takes part
      in entity class registration and is not sent to the cluster
    - Writes pass refresh="wait_for" through unchanged
    - get() turns a 404 into ``{"found": False}``; every other client error
      propagates unchanged
    - Search and scroll responses always carry an integer ``hits.total``

How to change safely:
    - Test against a real cluster (tests/e2e) before relying on new calls
    - Keep response shapes compatible with the DocumentStore protocol
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from elasticsearch import AsyncElasticsearch, NotFoundError

from ..config import ElasticsearchConfig
from ..errors import StoreConnectionError
from .base import REFRESH_WAIT_FOR

logger = logging.getLogger(__name__)


class ElasticsearchStore:
    """Elasticsearch implementation of the DocumentStore protocol.

    Attributes:
        config: Elasticsearch configuration

    Example:
        >>> store = ElasticsearchStore(ElasticsearchConfig(hosts=("http://localhost:9200",)))
        >>> await store.connect()
        >>> await store.ping()
        True
    """

    def __init__(
        self,
        config: ElasticsearchConfig | None = None,
        client: AsyncElasticsearch | None = None,
    ) -> None:
        """Initialize Elasticsearch store.

        Args:
            config: Connection settings
            client: Pre-built client (used as-is, mainly for tests)
        """
        self.config = config or ElasticsearchConfig()
        self._client = client
        self._owns_client = client is None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Whether a client has been set up."""
        return self._connected and self._client is not None

    @property
    def client(self) -> AsyncElasticsearch:
        """Underlying async client."""
        if not self.is_connected:
            raise StoreConnectionError("Not connected", hosts=list(self.config.hosts))
        return self._client

    async def connect(self) -> None:
        """Create the client.

        Raises:
            StoreConnectionError: If the client cannot be configured
        """
        if self._connected:
            return

        if self._client is None:
            client_config: Dict[str, Any] = {
                "hosts": list(self.config.hosts),
                "verify_certs": self.config.verify_certs,
                "request_timeout": self.config.request_timeout,
            }
            if self.config.api_key:
                client_config["api_key"] = self.config.api_key
            elif self.config.username:
                client_config["basic_auth"] = (self.config.username, self.config.password)
            if self.config.ca_certs:
                client_config["ca_certs"] = self.config.ca_certs

            try:
                self._client = AsyncElasticsearch(**client_config)
            except Exception as e:
                raise StoreConnectionError(
                    f"Failed to configure Elasticsearch client: {e}",
                    hosts=list(self.config.hosts),
                ) from e

        self._connected = True
        logger.info(
            "Connected to Elasticsearch",
            extra={"hosts": list(self.config.hosts)},
        )

    async def close(self) -> None:
        """Close the client's HTTP connections."""
        if self._client is not None and self._owns_client:
            try:
                await self._client.close()
            except Exception as e:
                logger.warning(f"Error closing Elasticsearch client: {e}")
            self._client = None

        self._connected = False
        logger.info("Elasticsearch connection closed")

    async def ping(self, request_timeout: float = 1.0) -> bool:
        """Return True if the cluster answers within ``request_timeout`` seconds."""
        return bool(await self.client.options(request_timeout=request_timeout).ping())

    async def get(self, index: str, doc_type: str, id: str) -> Dict[str, Any]:
        """Get a document by id."""
        logger.debug("get", extra={"index": index, "id": id})
        try:
            response = await self.client.get(index=index, id=id)
        except NotFoundError:
            return {"_index": index, "_id": id, "found": False}
        return _body(response)

    async def index(
        self,
        index: str,
        doc_type: str,
        body: Dict[str, Any],
        refresh: str = REFRESH_WAIT_FOR,
    ) -> Dict[str, Any]:
        """Insert a document under a cluster-generated id."""
        logger.debug("index", extra={"index": index})
        response = await self.client.index(index=index, document=body, refresh=refresh)
        return _body(response)

    async def update(
        self,
        index: str,
        doc_type: str,
        id: str,
        doc: Dict[str, Any],
        refresh: str = REFRESH_WAIT_FOR,
    ) -> Dict[str, Any]:
        """Partial update (``doc`` merge)."""
        logger.debug("update", extra={"index": index, "id": id})
        response = await self.client.update(index=index, id=id, doc=doc, refresh=refresh)
        return _body(response)

    async def delete(
        self,
        index: str,
        doc_type: str,
        id: str,
        refresh: str = REFRESH_WAIT_FOR,
    ) -> Dict[str, Any]:
        """Delete a document by id."""
        logger.debug("delete", extra={"index": index, "id": id})
        response = await self.client.delete(index=index, id=id, refresh=refresh)
        return _body(response)

    async def search(
        self,
        index: str,
        doc_type: str,
        body: Optional[Dict[str, Any]] = None,
        size: Optional[int] = None,
        scroll: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run a search, optionally opening a scroll context."""
        request_body = dict(body or {})
        if size is not None:
            request_body["size"] = size
        request_body.setdefault("track_total_hits", True)

        kwargs: Dict[str, Any] = {
            "index": index,
            "body": request_body,
            "rest_total_hits_as_int": True,
        }
        if scroll is not None:
            kwargs["scroll"] = scroll

        logger.debug("search", extra={"index": index, "scroll": scroll, "size": size})
        response = await self.client.search(**kwargs)
        return _body(response)

    async def scroll(self, scroll_id: str, scroll: str) -> Dict[str, Any]:
        """Fetch the next page of a scroll context."""
        response = await self.client.scroll(
            scroll_id=scroll_id,
            scroll=scroll,
            rest_total_hits_as_int=True,
        )
        return _body(response)

    async def clear_scroll(self, scroll_id: str) -> Dict[str, Any]:
        """Release a scroll context; an already-expired context is not an error."""
        try:
            response = await self.client.clear_scroll(scroll_id=scroll_id)
        except NotFoundError:
            return {"succeeded": True, "num_freed": 0}
        return _body(response)

    async def count(
        self,
        index: str,
        doc_type: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Count documents matching a query."""
        if body:
            response = await self.client.count(index=index, body=body)
        else:
            response = await self.client.count(index=index)
        return _body(response)


def _body(response: Any) -> Dict[str, Any]:
    """Unwrap an ObjectApiResponse into a plain dict."""
    return getattr(response, "body", response)
