"""Audit event types and data models."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field


class AuditEventType(str, Enum):
    """Outcomes of a prompt request worth keeping a trail of."""

    MEMORY_STORED = "MEMORY_STORED"
    MESSAGE_PUBLISHED = "MESSAGE_PUBLISHED"
    PROMPT_FAILED = "PROMPT_FAILED"


class AuditEvent(BaseModel):
    """A single immutable audit entry."""

    model_config = {"frozen": True}

    timestamp: float = Field(
        default_factory=time.time,
        description="Unix epoch when the event occurred.",
    )
    event_type: AuditEventType
    request_id: int | None = Field(
        default=None,
        description="Prompt request the event belongs to.",
    )
    event_tag: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
