"""
End-to-end tests against a real Elasticsearch cluster.

Tests cover:
- Instance lifecycle with read-after-write visibility
- Scroll paging over more than one page
- Query-driven update/remove
- Scroll context release
"""

import os

import pytest

from esmodeller import NotFoundError

pytestmark = pytest.mark.skipif(
    os.environ.get("ESMODELLER_E2E_TESTS", "0") != "1",
    reason="E2E tests disabled. Set ESMODELLER_E2E_TESTS=1 to enable.",
)

SCHEMA = {
    "test": {"required": True, "type": "string"},
    "n": "integer",
    "updated_at": "string",
}


def phrase(value):
    return {"query": {"match_phrase": {"test": value}}}


class TestLifecycle:
    """Instance operations on a real cluster."""

    @pytest.mark.asyncio
    async def test_create_fetch_update_remove(self, modeller, test_index):
        """Writes are visible to the next read."""
        Entry = modeller.create_model(test_index, SCHEMA)

        created = await Entry.create({"test": "lifecycle"})
        found = await Entry.find_by_id(created.id)
        assert found.to_json() == created.to_json()

        await created.update({"test": "lifecycle!"})
        assert (await Entry.find_one(phrase("lifecycle!"))).id == created.id

        doc_id = created.id
        await created.remove()
        assert created.is_new
        with pytest.raises(NotFoundError):
            await Entry.find_by_id(doc_id)

    @pytest.mark.asyncio
    async def test_find_or_create_is_stable(self, modeller, test_index):
        """find_or_create twice leaves one document."""
        Entry = modeller.create_model(test_index, SCHEMA)
        query = phrase("findOrCreate")

        a = await Entry.find_or_create(query, {"test": "findOrCreate"})
        b = await Entry.find_or_create(query, {"test": "findOrCreate"})

        assert a.id == b.id
        assert await Entry.count(query) == 1


class TestScrolling:
    """Scroll-backed operations on a real cluster."""

    @pytest.mark.asyncio
    async def test_find_walks_pages(self, modeller, test_index):
        """Results larger than one page are all returned."""
        Entry = modeller.create_model(test_index, SCHEMA)
        for n in range(modeller.config.scroll.page_size * 2 + 3):
            await Entry.create({"test": "paged", "n": n})

        items = await Entry.find({"query": {"match_all": {}}, "sort": ["n"]})

        assert [i.n for i in items] == list(range(len(items)))
        assert len(items) == modeller.config.scroll.page_size * 2 + 3

    @pytest.mark.asyncio
    async def test_early_close_clears_scroll(self, modeller, test_index):
        """aclose() releases the scroll context on the cluster."""
        Entry = modeller.create_model(test_index, SCHEMA)
        for n in range(modeller.config.scroll.page_size + 1):
            await Entry.create({"test": "early", "n": n})

        cursor = Entry.find_iterator()
        await cursor.pull()
        scroll_id = cursor.scroll_id
        await cursor.aclose()

        cleared = await modeller.connection.clear_scroll(scroll_id)
        assert cleared["num_freed"] == 0

    @pytest.mark.asyncio
    async def test_update_and_remove_many(self, modeller, test_index):
        """Bulk operations touch every match."""
        Entry = modeller.create_model(test_index, SCHEMA)
        for n in range(3):
            await Entry.create({"test": "bulk", "n": n})

        updated = await Entry.update_many(phrase("bulk"), {"updated_at": "now"})
        assert len(updated) == 3

        removed = await Entry.remove_many(phrase("bulk"))
        assert removed == 3
        assert await Entry.count() == 0
