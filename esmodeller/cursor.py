"""
Scroll-based cursors over search results.

This module provides the pull-based iteration used by find/update/remove by
query:
- ScrollCursor: pages through a search with the store's scroll API and
  yields one model instance per hit
- BulkCursor: applies an async action to every item of a ScrollCursor

Example:
    >>> async with Post.find_iterator({"query": {"match_all": {}}}) as cursor:
    ...     async for post in cursor:
    ...         print(post.id, post.title)

Invariants:
    - A page is requested only when the consumer pulls past the previous one
    - The scroll context is cleared exactly once: on exhaustion, on aclose(),
      when the ``async with`` block exits, or when the event loop finalizes
      an abandoned ``async for`` loop
    - A failed first search leaves the cursor unstarted; the next pull
      searches again
    - Hits are turned into instances without schema filtering
    - Cursors are single use; a new find_iterator() call re-runs the search
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Deque, Dict, Optional, Tuple

from .store.base import total_hits

if TYPE_CHECKING:
    from .model import Model

logger = logging.getLogger(__name__)


class _PullIterator:
    """Shared async-iterator plumbing for cursors."""

    def __aiter__(self):
        return self._drain()

    async def _drain(self):
        # Abandoned loops are finalized by the event loop, which closes the
        # generator and with it the cursor.
        try:
            while True:
                try:
                    item = await self.__anext__()
                except StopAsyncIteration:
                    return
                yield item
        except GeneratorExit:
            await self.aclose()
            raise

    async def __anext__(self) -> Any:
        raise NotImplementedError

    async def aclose(self) -> None:
        raise NotImplementedError

    async def pull(self) -> Tuple[Optional[Any], bool]:
        """Pull one item.

        Returns:
            ``(item, False)`` while items remain, then ``(None, True)``
        """
        try:
            return await self.__anext__(), False
        except StopAsyncIteration:
            return None, True

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


class ScrollCursor(_PullIterator):
    """Lazy sequence of model instances backed by a scroll context.

    Attributes:
        model: Entity class the hits are built into
        query: Opaque search body
        keep_alive: Scroll keep-alive sent with every page request
        page_size: Hits per page
    """

    def __init__(
        self,
        model: type[Model],
        query: Optional[Dict[str, Any]] = None,
        *,
        keep_alive: str = "30s",
        page_size: Optional[int] = None,
    ) -> None:
        self.model = model
        self.query = query
        self.keep_alive = keep_alive
        self.page_size = page_size
        self._buffer: Deque[Dict[str, Any]] = deque()
        self._scroll_id: Optional[str] = None
        self._seen = 0
        self._total: Optional[int] = None
        self._started = False
        self._exhausted = False
        self._closed = False

    @property
    def total(self) -> Optional[int]:
        """Total hits reported by the store (None before the first pull)."""
        return self._total

    @property
    def seen(self) -> int:
        """Hits received from the store so far."""
        return self._seen

    @property
    def scroll_id(self) -> Optional[str]:
        """Current scroll context id."""
        return self._scroll_id

    @property
    def closed(self) -> bool:
        """Whether the scroll context has been released."""
        return self._closed

    def _load(self, response: Dict[str, Any]) -> None:
        hits = response.get("hits", {}).get("hits", [])
        self._scroll_id = response.get("_scroll_id", self._scroll_id)
        self._total = total_hits(response)
        self._seen += len(hits)
        self._buffer.extend(hits)
        if not hits or self._seen >= self._total:
            self._exhausted = True
        logger.debug(
            "Scroll page loaded",
            extra={
                "index": self.model.index,
                "hits": len(hits),
                "seen": self._seen,
                "total": self._total,
            },
        )

    async def __anext__(self) -> Model:
        if self._closed:
            raise StopAsyncIteration

        store = self.model.store()

        if not self._started:
            response = await store.search(
                index=self.model.index,
                doc_type=self.model.doc_type,
                body=self.query,
                size=self.page_size,
                scroll=self.keep_alive,
            )
            self._load(response)
            self._started = True

        while not self._buffer:
            if self._exhausted:
                await self.aclose()
                raise StopAsyncIteration
            response = await store.scroll(scroll_id=self._scroll_id, scroll=self.keep_alive)
            self._load(response)

        hit = self._buffer.popleft()
        return self.model.build({"id": hit["_id"], **hit.get("_source", {})}, trusted=True)

    async def aclose(self) -> None:
        """Release the scroll context. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()

        if self._scroll_id is None:
            return

        scroll_id, self._scroll_id = self._scroll_id, None
        try:
            await self.model.store().clear_scroll(scroll_id=scroll_id)
        except Exception as e:
            logger.warning(
                f"Failed to clear scroll context: {e}",
                extra={"index": self.model.index},
            )


class BulkCursor(_PullIterator):
    """Applies ``action`` to each item of a ScrollCursor as it is pulled.

    An action that raises propagates out of that pull only; the underlying
    cursor stays open and the next pull continues with the next item.
    """

    def __init__(
        self,
        cursor: ScrollCursor,
        action: Callable[[Model], Awaitable[Model]],
    ) -> None:
        self.cursor = cursor
        self.action = action

    async def __anext__(self) -> Model:
        item = await self.cursor.__anext__()
        return await self.action(item)

    async def aclose(self) -> None:
        """Release the underlying scroll context."""
        await self.cursor.aclose()
