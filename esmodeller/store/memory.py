"""
In-memory document store implementation for testing.

This module provides a simple in-memory backend for:
- Unit tests
- Integration tests
- Local development without an Elasticsearch cluster

It understands a small subset of the Elasticsearch query DSL (match_all,
match, match_phrase, term, terms, ids, exists, bool) and supports scroll
paging. Scroll contexts never expire; they live until clear_scroll().

Invariants:
    - All data is lost on process exit
    - Writes are visible immediately, so refresh is accepted and ignored
    - Documents are returned in insertion order unless the body sorts them
    - Returned sources are copies; callers cannot mutate stored documents

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the DocumentStore protocol
"""

from __future__ import annotations

import asyncio
import copy
import re
import uuid
from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import logging

from ..errors import StoreConnectionError, StoreError
from .base import REFRESH_WAIT_FOR

logger = logging.getLogger(__name__)

# Top-level search body keys this store knows how to handle.
_BODY_KEYS = {"query", "size", "from", "sort", "_source", "track_total_hits"}

_TOKEN_RE = re.compile(r"\w+")
_MISSING = object()


@dataclass
class ScrollContext:
    """Remaining hits of an open scroll."""

    index: str
    doc_type: str
    page_size: int
    remaining: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0


class InMemoryStore:
    """In-memory implementation of DocumentStore for testing.

    Attributes:
        page_size: Hits per page when a search does not set ``size``
        calls: Every request made, as (method, arguments) tuples

    Example:
        >>> store = InMemoryStore()
        >>> await store.connect()
        >>> created = await store.index("posts", "_doc", {"title": "Hi"})
        >>> (await store.get("posts", "_doc", created["_id"]))["found"]
        True
    """

    def __init__(self, page_size: int = 10) -> None:
        """Initialize in-memory store.

        Args:
            page_size: Default hits per page
        """
        self.page_size = page_size
        self._documents: Dict[Tuple[str, str], OrderedDict[str, Dict[str, Any]]] = defaultdict(
            OrderedDict
        )
        self._scrolls: Dict[str, ScrollContext] = {}
        self._connected = False
        self._lock = asyncio.Lock()
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryStore connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._documents.clear()
        self._scrolls.clear()
        logger.debug("InMemoryStore closed")

    async def ping(self, request_timeout: float = 1.0) -> bool:
        """Answer as long as the store is connected."""
        self._record("ping", request_timeout=request_timeout)
        return self._connected

    async def get(self, index: str, doc_type: str, id: str) -> Dict[str, Any]:
        """Get a document by id."""
        self._require_connection()
        self._record("get", index=index, doc_type=doc_type, id=id)

        source = self._documents[(index, doc_type)].get(id)
        response: Dict[str, Any] = {
            "_index": index,
            "_type": doc_type,
            "_id": id,
            "found": source is not None,
        }
        if source is not None:
            response["_source"] = copy.deepcopy(source)
        return response

    async def index(
        self,
        index: str,
        doc_type: str,
        body: Dict[str, Any],
        refresh: str = REFRESH_WAIT_FOR,
    ) -> Dict[str, Any]:
        """Insert a document under a generated id."""
        self._require_connection()
        self._record("index", index=index, doc_type=doc_type, body=body, refresh=refresh)

        doc_id = uuid.uuid4().hex
        async with self._lock:
            self._documents[(index, doc_type)][doc_id] = copy.deepcopy(dict(body))

        logger.debug(
            "Document indexed in memory",
            extra={"index": index, "doc_type": doc_type, "id": doc_id},
        )
        return {
            "_index": index,
            "_type": doc_type,
            "_id": doc_id,
            "_version": 1,
            "result": "created",
        }

    async def update(
        self,
        index: str,
        doc_type: str,
        id: str,
        doc: Dict[str, Any],
        refresh: str = REFRESH_WAIT_FOR,
    ) -> Dict[str, Any]:
        """Merge a partial document into a stored one."""
        self._require_connection()
        self._record("update", index=index, doc_type=doc_type, id=id, doc=doc, refresh=refresh)

        async with self._lock:
            stored = self._documents[(index, doc_type)].get(id)
            if stored is None:
                raise StoreError(
                    f"[{id}]: document missing",
                    details={"index": index, "doc_type": doc_type, "id": id},
                )
            _merge(stored, copy.deepcopy(dict(doc)))

        return {"_index": index, "_type": doc_type, "_id": id, "result": "updated"}

    async def delete(
        self,
        index: str,
        doc_type: str,
        id: str,
        refresh: str = REFRESH_WAIT_FOR,
    ) -> Dict[str, Any]:
        """Delete a document by id."""
        self._require_connection()
        self._record("delete", index=index, doc_type=doc_type, id=id, refresh=refresh)

        async with self._lock:
            removed = self._documents[(index, doc_type)].pop(id, None)
        if removed is None:
            raise StoreError(
                f"[{id}]: document not found",
                details={"index": index, "doc_type": doc_type, "id": id},
            )

        return {"_index": index, "_type": doc_type, "_id": id, "result": "deleted"}

    async def search(
        self,
        index: str,
        doc_type: str,
        body: Optional[Dict[str, Any]] = None,
        size: Optional[int] = None,
        scroll: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run a search, optionally opening a scroll context."""
        self._require_connection()
        self._record("search", index=index, doc_type=doc_type, body=body, size=size, scroll=scroll)

        body = dict(body or {})
        unknown = set(body) - _BODY_KEYS
        if unknown:
            raise StoreError(
                f"Unknown key(s) in search body: {sorted(unknown)}",
                details={"keys": sorted(unknown)},
            )

        hits = self._matching_hits(index, doc_type, body)
        total = len(hits)
        page_size = size if size is not None else body.get("size", self.page_size)

        if scroll is None:
            offset = body.get("from", 0)
            return _search_response(hits[offset : offset + page_size], total)

        scroll_id = uuid.uuid4().hex
        self._scrolls[scroll_id] = ScrollContext(
            index=index,
            doc_type=doc_type,
            page_size=page_size,
            remaining=hits[page_size:],
            total=total,
        )
        response = _search_response(hits[:page_size], total)
        response["_scroll_id"] = scroll_id
        return response

    async def scroll(self, scroll_id: str, scroll: str) -> Dict[str, Any]:
        """Return the next page of an open scroll."""
        self._require_connection()
        self._record("scroll", scroll_id=scroll_id, scroll=scroll)

        context = self._scrolls.get(scroll_id)
        if context is None:
            raise StoreError(
                f"No search context found for id [{scroll_id}]",
                details={"scroll_id": scroll_id},
            )

        page = context.remaining[: context.page_size]
        context.remaining = context.remaining[context.page_size :]
        response = _search_response(page, context.total)
        response["_scroll_id"] = scroll_id
        return response

    async def clear_scroll(self, scroll_id: str) -> Dict[str, Any]:
        """Release a scroll context."""
        self._require_connection()
        self._record("clear_scroll", scroll_id=scroll_id)

        released = self._scrolls.pop(scroll_id, None) is not None
        return {"succeeded": True, "num_freed": 1 if released else 0}

    async def count(
        self,
        index: str,
        doc_type: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Count documents matching a query."""
        self._require_connection()
        self._record("count", index=index, doc_type=doc_type, body=body)

        return {"count": len(self._matching_hits(index, doc_type, dict(body or {})))}

    def _require_connection(self) -> None:
        if not self._connected:
            raise StoreConnectionError("Not connected")

    def _record(self, method: str, **arguments: Any) -> None:
        self.calls.append((method, arguments))

    def _matching_hits(
        self,
        index: str,
        doc_type: str,
        body: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        query = body.get("query") or {"match_all": {}}
        hits = [
            {
                "_index": index,
                "_type": doc_type,
                "_id": doc_id,
                "_score": 1.0,
                "_source": copy.deepcopy(source),
            }
            for doc_id, source in self._documents[(index, doc_type)].items()
            if _matches(query, doc_id, source)
        ]
        if body.get("sort"):
            hits = _sort_hits(hits, body["sort"])
        return hits

    # Testing helpers

    def documents(self, index: str, doc_type: str = "_doc") -> Dict[str, Dict[str, Any]]:
        """Get a copy of all stored documents keyed by id (testing helper)."""
        return copy.deepcopy(dict(self._documents.get((index, doc_type), {})))

    @property
    def open_scrolls(self) -> List[str]:
        """Ids of scroll contexts not yet cleared (testing helper)."""
        return list(self._scrolls)

    def clear(self) -> None:
        """Drop all documents, scroll contexts and recorded calls (testing helper)."""
        self._documents.clear()
        self._scrolls.clear()
        self.calls.clear()

    def calls_to(self, method: str) -> List[Dict[str, Any]]:
        """Arguments of every recorded call to ``method`` (testing helper)."""
        return [arguments for name, arguments in self.calls if name == method]


def _search_response(hits: List[Dict[str, Any]], total: int) -> Dict[str, Any]:
    return {
        "timed_out": False,
        "hits": {"total": total, "max_score": 1.0 if hits else None, "hits": hits},
    }


def _merge(target: Dict[str, Any], patch: Dict[str, Any]) -> None:
    """Recursively merge ``patch`` into ``target`` like a partial update."""
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value


def _lookup(source: Dict[str, Any], path: str) -> Any:
    value: Any = source
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _tokens(value: Any) -> List[str]:
    if isinstance(value, list):
        return [t for item in value for t in _tokens(item)]
    return _TOKEN_RE.findall(str(value).lower())


def _field_clause(clause: Dict[str, Any], value_key: str) -> Tuple[str, Any]:
    if len(clause) != 1:
        raise StoreError("Field query must name exactly one field", details={"clause": clause})
    ((field_name, spec),) = clause.items()
    if isinstance(spec, dict):
        spec = spec.get(value_key)
    return field_name, spec


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _matches(query: Dict[str, Any], doc_id: str, source: Dict[str, Any]) -> bool:
    """Evaluate a query DSL clause against one document."""
    if len(query) != 1:
        raise StoreError("Query clause must have exactly one key", details={"query": query})
    ((kind, clause),) = query.items()

    if kind == "match_all":
        return True

    if kind == "ids":
        return doc_id in clause.get("values", [])

    if kind == "exists":
        return _lookup(source, clause["field"]) not in (_MISSING, None)

    if kind == "term":
        field_name, expected = _field_clause(clause, "value")
        actual = _lookup(source, field_name)
        if isinstance(actual, list):
            return expected in actual
        return actual == expected

    if kind == "terms":
        if len(clause) != 1:
            raise StoreError("terms query must name exactly one field", details={"clause": clause})
        ((field_name, expected),) = clause.items()
        actual = _lookup(source, field_name)
        actual_values = actual if isinstance(actual, list) else [actual]
        return any(v in expected for v in actual_values)

    if kind in ("match", "match_phrase"):
        field_name, expected = _field_clause(clause, "query")
        actual = _lookup(source, field_name)
        if actual is _MISSING or actual is None:
            return False
        if not isinstance(expected, str):
            return actual == expected or (isinstance(actual, list) and expected in actual)
        wanted = _tokens(expected)
        have = _tokens(actual)
        if not wanted:
            return False
        if kind == "match":
            return any(t in have for t in wanted)
        return any(have[i : i + len(wanted)] == wanted for i in range(len(have) - len(wanted) + 1))

    if kind == "bool":
        must = _as_list(clause.get("must")) + _as_list(clause.get("filter"))
        should = _as_list(clause.get("should"))
        must_not = _as_list(clause.get("must_not"))

        if not all(_matches(q, doc_id, source) for q in must):
            return False
        if any(_matches(q, doc_id, source) for q in must_not):
            return False
        if should:
            minimum = clause.get("minimum_should_match", 0 if must else 1)
            if sum(1 for q in should if _matches(q, doc_id, source)) < int(minimum):
                return False
        return True

    raise StoreError(f"Unsupported query type '{kind}'", details={"query": query})


def _sort_hits(hits: List[Dict[str, Any]], sort: Any) -> List[Dict[str, Any]]:
    """Apply an Elasticsearch-style sort specification (stable, last key first)."""
    keys: List[Tuple[str, bool]] = []
    for entry in _as_list(sort):
        if isinstance(entry, str):
            keys.append((entry, False))
        else:
            ((field_name, spec),) = entry.items()
            order = spec.get("order", "asc") if isinstance(spec, dict) else spec
            keys.append((field_name, order == "desc"))

    for field_name, descending in reversed(keys):
        if field_name == "_id":
            hits.sort(key=lambda h: h["_id"], reverse=descending)
            continue
        present = [h for h in hits if _lookup(h["_source"], field_name) not in (_MISSING, None)]
        absent = [h for h in hits if _lookup(h["_source"], field_name) in (_MISSING, None)]
        present.sort(key=lambda h: _lookup(h["_source"], field_name), reverse=descending)
        hits = present + absent
    return hits
