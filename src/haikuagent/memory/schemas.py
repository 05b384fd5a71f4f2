"""Memory domain data models."""

from __future__ import annotations

import time

from pydantic import BaseModel
from pydantic import Field


class MemoryRecord(BaseModel):
    """A generated response kept as a retrievable memory."""

    id: int = Field(
        description="Insertion sequence number, unique within one store.",
    )
    text: str = Field(
        description="Generated response text.",
    )
    embedding: list[float] = Field(
        description="Fixed-length embedding of ``text``.",
    )
    tags: list[tuple[str, str]] = Field(
        default_factory=list,
        description="Sorted (key, value) pairs used for exact-match filtering.",
    )
    timestamp: float = Field(
        default_factory=time.time,
        description="Unix epoch when the memory was stored.",
    )

    def has_tags(self, tags: frozenset[tuple[str, str]] | set[tuple[str, str]]) -> bool:
        """Return whether every (key, value) in *tags* is present on the record."""
        return set(tags).issubset(self.tags)
