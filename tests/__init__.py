"""
esmodeller Test Suite.

This package contains:
- unit/: Unit tests (in-memory store, no external dependencies)
- integration/: Integration tests (full modelling flow, mocked Elasticsearch client)
- e2e/: End-to-end tests (live Elasticsearch cluster)
"""
