"""Redis-backed append-only memory store.

Records are stored as JSON strings keyed by ``{prefix}:memory:{id}``, where
``id`` comes from the ``{prefix}:memory:seq`` counter.  A sorted set
``{prefix}:memories`` tracks insertion order (score = id).  Sets
``{prefix}:tag:["key", "value"]`` index records by exact tag.
``{prefix}:meta:dimension`` pins the embedding length of the store.

Retrieval is two-phase: an exact structural filter over the tag sets, then
a cosine-similarity ranking of the filtered subset.  Ties are broken by
insertion order, so identical inputs always give identical results.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from collections.abc import Sequence

import numpy as np
from pydantic import ValidationError
from redis.asyncio import Redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from haikuagent.errors import MemoryStoreError
from haikuagent.memory.schemas import MemoryRecord

logger = logging.getLogger(__name__)

# Scores are rounded so that parallel vectors tie exactly and fall back to
# insertion order instead of floating-point noise.
_SCORE_DECIMALS = 12


def _decode(raw: bytes | str) -> str:
    return raw.decode() if isinstance(raw, bytes) else raw


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of *query* against each row of *matrix*.

    Rows (or a query) with zero norm score ``0.0``.
    """
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms > 0, dots / norms, 0.0)
    return np.round(np.clip(scores, -1.0, 1.0), _SCORE_DECIMALS)


class MemoryStore:
    """Durable append-only store of (text, embedding, tags) records."""

    def __init__(
        self,
        redis: Redis,
        *,
        key_prefix: str = "haiku",
        dimension: int | None = None,
    ) -> None:
        self._redis = redis
        self._dimension = dimension
        self._seq_key = f"{key_prefix}:memory:seq"
        self._record_key = f"{key_prefix}:memory"
        self._order_key = f"{key_prefix}:memories"
        self._tag_key = f"{key_prefix}:tag"
        self._dimension_key = f"{key_prefix}:meta:dimension"

    @property
    def dimension(self) -> int | None:
        return self._dimension

    # -- lifecycle --

    async def initialize(self) -> None:
        """Check connectivity and pin the embedding dimension.

        A store that already holds records of another dimension cannot be
        reused with this configuration.
        """
        try:
            await self._redis.ping()
            stored = await self._redis.get(self._dimension_key)
            if self._dimension is not None and stored is None:
                await self._redis.setnx(self._dimension_key, self._dimension)
                stored = await self._redis.get(self._dimension_key)
        except RedisError as exc:
            raise MemoryStoreError(f"memory store unavailable: {exc}") from exc

        if stored is not None:
            stored_dim = int(_decode(stored))
            if self._dimension is not None and stored_dim != self._dimension:
                raise MemoryStoreError(
                    f"store holds {stored_dim}-dimensional embeddings, "
                    f"configured dimension is {self._dimension}"
                )
            self._dimension = stored_dim
        logger.info("Memory store ready (dimension=%s)", self._dimension)

    async def close(self) -> None:
        await self._redis.aclose()

    # -- write --

    async def store(
        self,
        text: str,
        embedding: Sequence[float],
        tags: Iterable[tuple[str, str]] = (),
    ) -> MemoryRecord:
        """Append a new memory and return the stored record."""
        if not text.strip():
            raise MemoryStoreError("refusing to store an empty memory")
        vector = self._validate_vector(embedding)
        tag_list = sorted({(str(k), str(v)) for k, v in tags})

        try:
            await self._pin_dimension(len(vector))
            record_id = int(await self._redis.incr(self._seq_key))
            record = MemoryRecord(
                id=record_id,
                text=text,
                embedding=vector,
                tags=tag_list,
            )
            pipe = self._redis.pipeline(transaction=True)
            pipe.set(f"{self._record_key}:{record_id}", record.model_dump_json())
            pipe.zadd(self._order_key, {str(record_id): record_id})
            for tag in tag_list:
                pipe.sadd(self._tag_set(tag), record_id)
            await pipe.execute()
        except RedisError as exc:
            raise MemoryStoreError(f"failed to store memory: {exc}") from exc

        logger.debug("Stored memory id=%d tags=%s", record.id, tag_list)
        return record

    # -- read --

    async def retrieve_similar(
        self,
        query_embedding: Sequence[float],
        tags: Iterable[tuple[str, str]] = (),
        limit: int = 3,
    ) -> list[str]:
        """Return up to *limit* memory texts ranked by similarity.

        Only records carrying every (key, value) in *tags* are considered.
        An empty list means no relevant memory, never an error.
        """
        records = await self.search(query_embedding, tags, limit)
        return [record.text for record in records]

    async def search(
        self,
        query_embedding: Sequence[float],
        tags: Iterable[tuple[str, str]] = (),
        limit: int = 3,
    ) -> list[MemoryRecord]:
        """Same as ``retrieve_similar`` but returns whole records."""
        if limit <= 0:
            return []
        tag_filter = {(str(k), str(v)) for k, v in tags}

        try:
            if self._dimension is None:
                await self._load_dimension()
            query = np.asarray(
                self._validate_vector(query_embedding), dtype=float
            )
            candidate_ids = await self._filter_ids(tag_filter)
            if not candidate_ids:
                return []
            raws = await self._redis.mget(
                [f"{self._record_key}:{rid}" for rid in candidate_ids]
            )
        except RedisError as exc:
            raise MemoryStoreError(f"failed to query memories: {exc}") from exc

        records: list[MemoryRecord] = []
        for rid, raw in zip(candidate_ids, raws):
            if raw is None:
                logger.warning("Memory id=%d is indexed but missing", rid)
                continue
            try:
                record = MemoryRecord.model_validate_json(raw)
            except ValidationError:
                logger.warning("Skipping malformed memory id=%d", rid)
                continue
            if record.has_tags(tag_filter):
                records.append(record)
        if not records:
            return []

        matrix = np.asarray([record.embedding for record in records], dtype=float)
        scores = cosine_similarities(query, matrix)
        ranked = sorted(
            range(len(records)), key=lambda i: (-scores[i], records[i].id)
        )
        return [records[i] for i in ranked[:limit]]

    async def get(self, record_id: int) -> MemoryRecord | None:
        """Return one record by id, or ``None``."""
        try:
            raw = await self._redis.get(f"{self._record_key}:{record_id}")
        except RedisError as exc:
            raise MemoryStoreError(f"failed to read memory: {exc}") from exc
        if raw is None:
            return None
        try:
            return MemoryRecord.model_validate_json(raw)
        except ValidationError as exc:
            raise MemoryStoreError(f"memory id={record_id} is malformed") from exc

    async def count(self) -> int:
        """Return the number of stored memories."""
        try:
            return int(await self._redis.zcard(self._order_key))
        except RedisError as exc:
            raise MemoryStoreError(f"failed to count memories: {exc}") from exc

    # -- internal --

    def _tag_set(self, tag: tuple[str, str]) -> str:
        return f"{self._tag_key}:{json.dumps(list(tag))}"

    async def _filter_ids(self, tag_filter: set[tuple[str, str]]) -> list[int]:
        """Phase one: ids of records matching every tag, in insertion order."""
        if tag_filter:
            raw_ids = await self._redis.sinter(
                *[self._tag_set(tag) for tag in sorted(tag_filter)]
            )
        else:
            raw_ids = await self._redis.zrange(self._order_key, 0, -1)
        return sorted(int(_decode(raw)) for raw in raw_ids)

    async def _load_dimension(self) -> None:
        stored = await self._redis.get(self._dimension_key)
        if stored is not None:
            self._dimension = int(_decode(stored))

    async def _pin_dimension(self, length: int) -> None:
        if self._dimension is not None:
            return
        await self._redis.setnx(self._dimension_key, length)
        await self._load_dimension()
        if self._dimension != length:
            raise MemoryStoreError(
                f"embedding has {length} dimensions, store expects {self._dimension}"
            )

    def _validate_vector(self, embedding: Sequence[float]) -> list[float]:
        vector = [float(x) for x in embedding]
        if not vector:
            raise MemoryStoreError("embedding must not be empty")
        if not np.all(np.isfinite(vector)):
            raise MemoryStoreError("embedding contains non-finite values")
        if self._dimension is not None and len(vector) != self._dimension:
            raise MemoryStoreError(
                f"embedding has {len(vector)} dimensions, store expects {self._dimension}"
            )
        return vector
