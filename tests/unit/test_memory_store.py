"""Memory store unit tests.

Tests exercise ``MemoryStore`` directly against an in-process Redis.
"""

from __future__ import annotations

import numpy as np
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from haikuagent.errors import MemoryStoreError
from haikuagent.memory import cosine_similarities
from haikuagent.memory import MemoryStore

NORTH = {("region", "north")}
SOUTH = {("region", "south")}


@pytest.fixture()
async def store(redis_client) -> MemoryStore:
    memory = MemoryStore(redis_client, key_prefix="test", dimension=3)
    await memory.initialize()
    return memory


# -----------------------------------------------------------------------
# Similarity
# -----------------------------------------------------------------------


class TestCosineSimilarities:
    def test_identical_vector_scores_one(self):
        scores = cosine_similarities(
            np.array([1.0, 2.0, 3.0]), np.array([[1.0, 2.0, 3.0], [3.0, 2.0, 1.0]])
        )
        assert scores[0] == 1.0
        assert scores[1] < 1.0

    def test_zero_norm_scores_zero(self):
        scores = cosine_similarities(np.array([1.0, 0.0]), np.array([[0.0, 0.0]]))
        assert scores[0] == 0.0

    def test_opposite_vector_scores_minus_one(self):
        scores = cosine_similarities(np.array([1.0, 0.0]), np.array([[-2.0, 0.0]]))
        assert scores[0] == -1.0


# -----------------------------------------------------------------------
# Write
# -----------------------------------------------------------------------


class TestStore:
    async def test_store_assigns_increasing_ids(self, store):
        first = await store.store("first", [1.0, 0.0, 0.0], NORTH)
        second = await store.store("second", [0.0, 1.0, 0.0], NORTH)
        assert second.id > first.id
        assert await store.count() == 2

    async def test_stored_record_round_trips(self, store):
        record = await store.store("the river sleeps", [0.5, 0.5, 0.0], NORTH)
        loaded = await store.get(record.id)
        assert loaded is not None
        assert loaded.text == "the river sleeps"
        assert loaded.embedding == [0.5, 0.5, 0.0]
        assert loaded.tags == [("region", "north")]

    async def test_rejects_empty_text(self, store):
        with pytest.raises(MemoryStoreError, match="empty"):
            await store.store("   ", [1.0, 0.0, 0.0])
        assert await store.count() == 0

    async def test_rejects_wrong_dimension(self, store):
        with pytest.raises(MemoryStoreError, match="dimensions"):
            await store.store("text", [1.0, 0.0])

    async def test_rejects_non_finite_values(self, store):
        with pytest.raises(MemoryStoreError, match="non-finite"):
            await store.store("text", [1.0, float("nan"), 0.0])

    async def test_first_store_pins_dimension(self, redis_client):
        memory = MemoryStore(redis_client, key_prefix="pin")
        await memory.store("a", [1.0, 0.0])
        assert memory.dimension == 2
        with pytest.raises(MemoryStoreError, match="dimensions"):
            await memory.store("b", [1.0, 0.0, 0.0])

    async def test_initialize_rejects_other_dimension(self, redis_client):
        await MemoryStore(redis_client, key_prefix="dim", dimension=3).initialize()
        with pytest.raises(MemoryStoreError, match="configured dimension"):
            await MemoryStore(redis_client, key_prefix="dim", dimension=4).initialize()

    async def test_initialize_adopts_recorded_dimension(self, redis_client):
        await MemoryStore(redis_client, key_prefix="adopt", dimension=5).initialize()
        memory = MemoryStore(redis_client, key_prefix="adopt")
        await memory.initialize()
        assert memory.dimension == 5


# -----------------------------------------------------------------------
# Retrieval
# -----------------------------------------------------------------------


class TestRetrieveSimilar:
    async def test_empty_store_returns_empty(self, store):
        assert await store.retrieve_similar([1.0, 0.0, 0.0], NORTH, 3) == []
        assert await store.retrieve_similar([0.0, 1.0, 0.0], set(), 10) == []

    async def test_self_similarity_ranks_first(self, store):
        await store.store("east wind", [0.9, 0.1, 0.0], NORTH)
        await store.store("target", [0.2, 0.3, 0.9], NORTH)
        await store.store("west wind", [0.1, 0.9, 0.1], NORTH)

        result = await store.retrieve_similar([0.2, 0.3, 0.9], NORTH, 3)

        assert result[0] == "target"

    async def test_ranked_by_descending_similarity(self, store):
        await store.store("far", [0.0, 1.0, 0.0], NORTH)
        await store.store("near", [1.0, 0.1, 0.0], NORTH)
        await store.store("middle", [1.0, 1.0, 0.0], NORTH)

        result = await store.retrieve_similar([1.0, 0.0, 0.0], NORTH, 3)

        assert result == ["near", "middle", "far"]

    async def test_never_returns_more_than_limit(self, store):
        for i in range(6):
            await store.store(f"memory {i}", [1.0, float(i), 0.0], NORTH)

        assert len(await store.retrieve_similar([1.0, 0.0, 0.0], NORTH, 4)) == 4
        assert await store.retrieve_similar([1.0, 0.0, 0.0], NORTH, 0) == []

    async def test_filters_by_exact_tags(self, store):
        await store.store("north only", [1.0, 0.0, 0.0], NORTH)
        await store.store("south only", [1.0, 0.0, 0.0], SOUTH)
        await store.store(
            "north knight", [1.0, 0.0, 0.0], NORTH | {("actor", "knight")}
        )

        results = await store.search([1.0, 0.0, 0.0], NORTH, 10)

        assert [r.text for r in results] == ["north only", "north knight"]
        for record in results:
            assert record.has_tags(NORTH)

    async def test_filter_requires_every_tag(self, store):
        await store.store("north only", [1.0, 0.0, 0.0], NORTH)
        await store.store(
            "north knight", [1.0, 0.0, 0.0], NORTH | {("actor", "knight")}
        )

        result = await store.retrieve_similar(
            [1.0, 0.0, 0.0], NORTH | {("actor", "knight")}, 10
        )

        assert result == ["north knight"]

    async def test_empty_filter_matches_everything(self, store):
        await store.store("north", [1.0, 0.0, 0.0], NORTH)
        await store.store("untagged", [0.0, 1.0, 0.0])

        result = await store.retrieve_similar([0.0, 1.0, 0.0], (), 10)

        assert result == ["untagged", "north"]

    async def test_ties_break_by_insertion_order(self, store):
        await store.store("older", [2.0, 0.0, 0.0], NORTH)
        await store.store("newer", [1.0, 0.0, 0.0], NORTH)
        await store.store("oldest-looking", [3.0, 0.0, 0.0], NORTH)

        first = await store.retrieve_similar([1.0, 0.0, 0.0], NORTH, 3)
        second = await store.retrieve_similar([1.0, 0.0, 0.0], NORTH, 3)

        assert first == ["older", "newer", "oldest-looking"]
        assert first == second

    async def test_query_dimension_mismatch(self, store):
        await store.store("north", [1.0, 0.0, 0.0], NORTH)
        with pytest.raises(MemoryStoreError, match="dimensions"):
            await store.retrieve_similar([1.0, 0.0], NORTH, 3)


# -----------------------------------------------------------------------
# Availability
# -----------------------------------------------------------------------


class TestUnavailableStorage:
    async def test_redis_errors_become_memory_store_errors(self, store, monkeypatch):
        async def _boom(*args, **kwargs):
            raise RedisConnectionError("connection refused")

        monkeypatch.setattr(store._redis, "incr", _boom)
        monkeypatch.setattr(store._redis, "sinter", _boom)

        with pytest.raises(MemoryStoreError, match="failed to store"):
            await store.store("text", [1.0, 0.0, 0.0], NORTH)
        with pytest.raises(MemoryStoreError, match="failed to query"):
            await store.retrieve_similar([1.0, 0.0, 0.0], NORTH, 3)


class TestGet:
    async def test_returns_stored_record(self, store):
        record = await store.store("Frost on the gate", [1.0, 0.0, 0.0], NORTH)
        assert await store.get(record.id) == record

    async def test_unknown_id_is_none(self, store):
        assert await store.get(42) is None

    async def test_malformed_record_raises_memory_store_error(self, store, redis_client):
        await redis_client.set("test:memory:7", "{not a record}")
        with pytest.raises(MemoryStoreError, match="memory id=7 is malformed"):
            await store.get(7)
