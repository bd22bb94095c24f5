"""
E2E test fixtures for esmodeller.

These tests require a running Elasticsearch cluster, for example:

    docker run -p 9200:9200 -e discovery.type=single-node \
        -e xpack.security.enabled=false elasticsearch:8.13.4

Connection settings come from the usual ES_* environment variables.
"""

import uuid

import pytest
import pytest_asyncio

from esmodeller import Modeller, ModellerConfig, StoreBackend


@pytest.fixture
def test_index() -> str:
    """Generate unique index name for test isolation."""
    return f"esmodeller-e2e-{uuid.uuid4().hex[:8]}"


@pytest_asyncio.fixture
async def modeller(test_index):
    """Modeller connected to the cluster; drops the test index afterwards."""
    config = ModellerConfig.from_env()
    if config.backend != StoreBackend.ELASTICSEARCH:
        pytest.skip("E2E tests need STORE_BACKEND=elasticsearch")

    modeller = Modeller(config)
    await modeller.connect()
    if not await modeller.ping(timeout_ms=5000):
        await modeller.close()
        pytest.fail(f"Elasticsearch not reachable at {config.elasticsearch.hosts}")

    client = modeller.connection.client
    try:
        yield modeller
    finally:
        await client.indices.delete(index=test_index, ignore_unavailable=True)
        await modeller.close()
