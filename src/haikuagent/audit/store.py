"""Async JSONL audit logger."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from haikuagent.audit.schemas import AuditEvent
from haikuagent.audit.schemas import AuditEventType
from haikuagent.config import AuditConfig

logger = logging.getLogger(__name__)


class AuditLogger:
    """Append-only JSONL audit trail.

    File I/O runs in a worker thread; an ``asyncio.Lock`` keeps lines whole.
    """

    def __init__(self, config: AuditConfig) -> None:
        self.config = config
        self._path = Path(config.file_path)
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        """Append *event* as one JSON line."""
        if not self.config.enabled:
            return
        line = event.model_dump_json() + "\n"
        async with self._lock:
            await asyncio.to_thread(self._append, line)

    def _append(self, line: str) -> None:
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(line)

    async def read_events(
        self,
        *,
        event_type: AuditEventType | None = None,
        request_id: int | None = None,
        since: float | None = None,
    ) -> list[AuditEvent]:
        """Read events back, optionally filtered by type, request and time."""
        if not self._path.exists():
            return []

        async with self._lock:
            raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")

        events: list[AuditEvent] = []
        for line_no, line in enumerate(raw.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                event = AuditEvent.model_validate_json(line)
            except ValidationError:
                logger.warning(
                    "Skipping malformed audit line %d in %s", line_no, self._path
                )
                continue
            if event_type is not None and event.event_type != event_type:
                continue
            if request_id is not None and event.request_id != request_id:
                continue
            if since is not None and event.timestamp < since:
                continue
            events.append(event)
        return events
