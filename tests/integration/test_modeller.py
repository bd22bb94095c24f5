"""
Integration tests for entity classes over the in-memory store.

Tests cover the full modelling flow end to end:
- Registration and lookup
- Instance lifecycle with timestamp hooks
- Query-driven class operations (find, update, remove, count)
"""

import itertools

import pytest
import pytest_asyncio

from esmodeller import Modeller, ModellerConfig, NotFoundError, StoreBackend, ValidationError

SCHEMA = {
    "test": {"required": True, "type": "string"},
    "foo": "string",
    "created_at": "string",
    "updated_at": "string",
}


def phrase(value):
    return {"query": {"match_phrase": {"test": value}}}


@pytest_asyncio.fixture
async def modeller():
    """Connected modeller on the memory backend."""
    async with Modeller(ModellerConfig(backend=StoreBackend.MEMORY)) as modeller:
        yield modeller


@pytest.fixture
def entry_model(modeller):
    """Entity class stamping created_at/updated_at from a clock."""
    Entry = modeller.create_model("index", SCHEMA)
    clock = itertools.count(1)

    @Entry.hook("before_create")
    def stamp_created(entry):
        entry.created_at = f"t{next(clock)}"

    @Entry.hook("before_update")
    def stamp_updated(entry):
        entry.updated_at = f"t{next(clock)}"

    return Entry


class TestRegistration:
    """Tests for class registration."""

    @pytest.mark.asyncio
    async def test_create_model(self, modeller, entry_model):
        """Classes expose their binding and are registered."""
        assert entry_model.schema.to_dict()["test"] == {"type": "string", "required": True}
        assert entry_model.index == "index"
        assert entry_model.doc_type == "_doc"
        assert modeller.get("index", "_doc") is entry_model

    @pytest.mark.asyncio
    async def test_ping(self, modeller):
        """The store answers."""
        assert await modeller.ping()


class TestInstanceLifecycle:
    """Tests for instance operations."""

    @pytest.mark.asyncio
    async def test_build(self, entry_model):
        """build() makes a new, unsaved instance."""
        instance = entry_model.build({"test": "build static"})

        assert instance.test == "build static"
        assert instance.is_new

    @pytest.mark.asyncio
    async def test_create_and_remove(self, entry_model):
        """create() persists; remove() returns to new with fields intact."""
        instance = await entry_model.create({"test": "create static and remove method"})
        assert not instance.is_new

        await instance.remove()

        assert instance.test == "create static and remove method"
        assert instance.is_new

    @pytest.mark.asyncio
    async def test_to_json(self, entry_model):
        """to_json() of a new instance is exactly its fields."""
        assert entry_model.build({"test": "toJSON"}).to_json() == {"test": "toJSON"}

    @pytest.mark.asyncio
    async def test_validate(self, entry_model):
        """Invalid instances raise with one error per failure."""
        instance = entry_model.build({"nope": "fail"})

        with pytest.raises(ValidationError) as exc_info:
            await instance.validate()

        error = exc_info.value
        assert error.message == "Validation error"
        assert [e.to_dict() for e in error.errors] == [
            {"field": "data.test", "message": "is required"}
        ]

    @pytest.mark.asyncio
    async def test_save_and_remove(self, entry_model):
        """save() and remove() flip is_new."""
        instance = entry_model.build({"test": "save"})
        assert instance.is_new

        await instance.save()
        assert not instance.is_new
        assert instance.created_at == "t1"

        await instance.remove()
        assert instance.is_new

    @pytest.mark.asyncio
    async def test_update_changes_updated_at(self, entry_model):
        """update() runs before_update hooks."""
        instance = await entry_model.create({"test": "update"})
        before = instance.updated_at

        await instance.update({"test": "update!"})

        assert instance.updated_at != before
        assert instance.test == "update!"

    @pytest.mark.asyncio
    async def test_fetch(self, entry_model):
        """fetch() loads the stored document into a stub."""
        instance = await entry_model.create({"test": "fetch method"})
        found = entry_model.build({"id": instance.id})

        await found.fetch()

        assert found.to_json() == instance.to_json()


class TestClassOperations:
    """Tests for query-driven class operations."""

    @pytest.mark.asyncio
    async def test_find_by_id(self, entry_model):
        """find_by_id() returns the stored instance."""
        instance = await entry_model.create({"test": "findById static"})

        found = await entry_model.find_by_id(instance.id)

        assert found.to_json() == instance.to_json()

    @pytest.mark.asyncio
    async def test_find_by_id_missing(self, entry_model):
        """find_by_id() of an unknown id raises."""
        with pytest.raises(NotFoundError):
            await entry_model.find_by_id("missing")

    @pytest.mark.asyncio
    async def test_find_one(self, entry_model):
        """find_one() returns the first hit."""
        instance = await entry_model.create({"test": "findOne static"})

        found = await entry_model.find_one(phrase(instance.test))

        assert found.to_json() == instance.to_json()

    @pytest.mark.asyncio
    async def test_find_one_no_hits(self, entry_model):
        """find_one() returns None without hits."""
        assert await entry_model.find_one(phrase("nothing here")) is None

    @pytest.mark.asyncio
    async def test_find(self, entry_model):
        """find() loads every hit."""
        instance = await entry_model.create({"test": "find static"})
        await entry_model.create({"test": "something else"})

        items = await entry_model.find(phrase(instance.test))

        assert [i.to_json() for i in items] == [instance.to_json()]

    @pytest.mark.asyncio
    async def test_find_iterator(self, entry_model):
        """find_iterator() yields one hit then reports done."""
        instance = await entry_model.create({"test": "find static"})

        cursor = entry_model.find_iterator(phrase(instance.test))
        first, first_done = await cursor.pull()
        second, second_done = await cursor.pull()

        assert first.to_json() == instance.to_json()
        assert not first_done
        assert second is None
        assert second_done

    @pytest.mark.asyncio
    async def test_find_or_create(self, entry_model):
        """find_or_create() creates once and then finds."""
        query = phrase("findOrCreate static")

        a = await entry_model.find_or_create(query, {"test": "findOrCreate static"})
        b = await entry_model.find_or_create(query, {"test": "findOrCreate static"})

        items = await entry_model.find(query)
        assert len(items) == 1
        assert items[0].to_json() == a.to_json()
        assert items[0].to_json() == b.to_json()

    @pytest.mark.asyncio
    async def test_update_iterator(self, entry_model):
        """update_iterator() updates each pulled hit."""
        a = await entry_model.create({"test": "update static"})

        cursor = entry_model.update_iterator(phrase(a.test), {"test": "update static!"})
        first, first_done = await cursor.pull()
        second, second_done = await cursor.pull()

        assert first.updated_at != a.updated_at
        assert first.test == "update static!"
        assert not first_done
        assert second is None
        assert second_done

        stored = await entry_model.find_by_id(a.id)
        assert stored.test == "update static!"

    @pytest.mark.asyncio
    async def test_update_many(self, entry_model):
        """update_many() updates every match."""
        await entry_model.create({"test": "bulk one", "foo": "x"})
        await entry_model.create({"test": "bulk two", "foo": "x"})
        await entry_model.create({"test": "other"})

        updated = await entry_model.update_many(
            {"query": {"term": {"foo": "x"}}}, {"foo": "y"}
        )

        assert len(updated) == 2
        assert await entry_model.count({"query": {"term": {"foo": "y"}}}) == 2

    @pytest.mark.asyncio
    async def test_remove_many(self, entry_model):
        """remove_many() deletes every match and returns the count."""
        await entry_model.create({"test": "remove static"})
        await entry_model.create({"test": "remove static"})
        await entry_model.create({"test": "keep"})

        removed = await entry_model.remove_many(phrase("remove static"))

        assert removed == 2
        assert await entry_model.count() == 1

    @pytest.mark.asyncio
    async def test_remove_iterator(self, entry_model):
        """remove_iterator() yields instances that are new again."""
        await entry_model.create({"test": "remove static"})

        async with entry_model.remove_iterator(phrase("remove static")) as cursor:
            removed = [item async for item in cursor]

        assert len(removed) == 1
        assert removed[0].is_new

    @pytest.mark.asyncio
    async def test_update_by_id(self, entry_model):
        """update_by_id() fetches, merges and writes."""
        a = await entry_model.create({"test": "updateById static"})

        await entry_model.update_by_id(a.id, {"test": "updateById static!"})

        b = await entry_model.find_one(phrase("updateById static!"))
        assert b.id == a.id
        assert b.updated_at != a.updated_at

    @pytest.mark.asyncio
    async def test_remove_by_id(self, entry_model):
        """remove_by_id() deletes without fetching."""
        instance = await entry_model.create({"test": "removeById static"})

        await entry_model.remove_by_id(instance.id)

        assert await entry_model.count() == 0

    @pytest.mark.asyncio
    async def test_count(self, entry_model):
        """count() applies the query."""
        await entry_model.create({"test": "count"})
        await entry_model.create({"test": "other"})

        assert await entry_model.count(phrase("count")) == 1
        assert await entry_model.count() == 2

    @pytest.mark.asyncio
    async def test_many_pages(self, modeller):
        """Cursors walk result sets larger than one page."""
        Item = modeller.create_model("items", {"n": "integer"})
        for n in range(25):
            await Item.create({"n": n})

        items = await Item.find()

        assert [i.n for i in items] == list(range(25))
        assert modeller.connection.open_scrolls == []
