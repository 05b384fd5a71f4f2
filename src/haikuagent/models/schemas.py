"""Pipeline data models.

``PromptRequest`` travels from the ingestion actor to the processing
actor; ``OffchainMessage`` is what the processing actor signs and
publishes.  ``EventUpdate`` is the normalized shape of one raw event
coming out of the subscription.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel
from pydantic import Field

Tag = tuple[str, str]


class PromptRequest(BaseModel):
    """One prompt to handle, derived from one on-chain update."""

    model_config = {"frozen": True}

    id: int = Field(description="Identifier assigned by the ingestion actor.")
    event_tag: str = Field(description="Tag of the event model that fired.")
    prompt_text: str = Field(description="Rendered event prompt.")
    retrieval_tags: frozenset[Tag] = Field(
        default_factory=frozenset,
        description="Exact-match filter for memory retrieval.",
    )
    storage_tags: frozenset[Tag] = Field(
        default_factory=frozenset,
        description="Tags attached to the memory stored for this request.",
    )
    timestamp: int = Field(
        default_factory=lambda: int(time.time()),
        description="Unix epoch seconds when the event was received.",
    )


class OffchainMessage(BaseModel):
    """Application-level message published to the relay network."""

    model_config = {"frozen": True}

    agent_name: str
    request_id: int
    event_tag: str
    response_text: str
    timestamp: int


class SignedMessage(BaseModel):
    """Typed-data message text plus its ``[r, s]`` signature."""

    model_config = {"frozen": True}

    message: str = Field(description="SNIP-12 typed data, JSON encoded.")
    signature: tuple[str, str] = Field(description="Hex encoded (r, s).")

    @property
    def r(self) -> int:
        return int(self.signature[0], 16)

    @property
    def s(self) -> int:
        return int(self.signature[1], 16)


class ModelUpdate(BaseModel):
    """Field data of one model carried by an event."""

    tag: str = Field(min_length=1)
    fields: dict[str, Any] = Field(default_factory=dict)


class EventUpdate(BaseModel):
    """An on-chain event message update, normalized."""

    entity_id: str | None = None
    models: list[ModelUpdate] = Field(default_factory=list)
