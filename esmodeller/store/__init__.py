"""
Document store abstraction for esmodeller.

This module provides a pluggable store interface supporting:
- Elasticsearch (production)
- In-memory (for testing and local development)

Invariants:
    - Writes return only after the change is searchable (refresh="wait_for")
    - Response shapes follow the Elasticsearch REST API

How to change safely:
    - New backends must implement the DocumentStore protocol
    - Run the e2e suite against a real cluster when touching the Elasticsearch backend
"""

from .base import (
    DEFAULT_DOC_TYPE,
    REFRESH_WAIT_FOR,
    DocumentStore,
    create_store,
    total_hits,
)
from .elasticsearch import ElasticsearchStore
from .memory import InMemoryStore

__all__ = [
    # Protocol and constants
    "DocumentStore",
    "REFRESH_WAIT_FOR",
    "DEFAULT_DOC_TYPE",
    "total_hits",
    # Factory
    "create_store",
    # Implementations
    "ElasticsearchStore",
    "InMemoryStore",
]
