"""Event ingestion actor.

Turns the subscription stream of on-chain event updates into
``PromptRequest`` objects and hands them to the processing actor over a
bounded ``asyncio.Queue``.  A full queue suspends ingestion; nothing is
dropped.  ``None`` on the queue marks the end of the stream.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import AsyncIterable
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from haikuagent.config import Config
from haikuagent.config import EventConfig
from haikuagent.engine.prompt_builder import render_event_prompt
from haikuagent.errors import EventParseError
from haikuagent.errors import SubscriptionError
from haikuagent.models import EventUpdate
from haikuagent.models import PromptRequest
from haikuagent.models import Tag

logger = logging.getLogger(__name__)

PromptChannel = asyncio.Queue[PromptRequest | None]


def _tags(event: EventConfig, keys: tuple[str, ...], fields: Mapping[str, Any]) -> frozenset[Tag]:
    missing = [key for key in keys if key not in fields]
    if missing:
        raise EventParseError(
            f"event {event.tag} is missing tag field(s): {', '.join(missing)}"
        )
    return frozenset((key, str(fields[key])) for key in keys)


def _prompt_parts(
    event: EventConfig, fields: Mapping[str, Any]
) -> tuple[str, frozenset[Tag], frozenset[Tag]]:
    try:
        prompt_text = render_event_prompt(event, fields)
    except (KeyError, IndexError, ValueError, AttributeError, TypeError) as exc:
        raise EventParseError(f"cannot render prompt for {event.tag}: {exc!r}") from exc
    return (
        prompt_text,
        _tags(event, event.retrieval_keys, fields),
        _tags(event, event.storage_keys, fields),
    )


class EventIngestionActor:
    """Producer side of the prompt channel."""

    def __init__(self, channel: PromptChannel, config: Config, *, first_id: int = 1) -> None:
        self._channel = channel
        self._config = config
        self._ids = itertools.count(first_id)

    def convert(self, raw: Mapping[str, Any]) -> list[PromptRequest]:
        """Build one prompt request per configured model carried by *raw*.

        A configured model that cannot be turned into a prompt is logged
        and skipped; its siblings still convert.  Ids are assigned only
        once every model has been examined.
        """
        try:
            update = EventUpdate.model_validate(raw)
        except ValidationError as exc:
            raise EventParseError(f"malformed event: {exc.error_count()} error(s)") from exc

        converted: list[tuple[EventConfig, str, frozenset[Tag], frozenset[Tag]]] = []
        failures: list[str] = []
        for model in update.models:
            event = self._config.find_event(model.tag)
            if event is None:
                logger.debug("Ignoring model %s: not a configured event", model.tag)
                continue
            try:
                converted.append((event, *_prompt_parts(event, model.fields)))
            except EventParseError as exc:
                logger.warning("Skipping model %s: %s", model.tag, exc)
                failures.append(str(exc))

        if not converted:
            if failures:
                raise EventParseError("; ".join(failures))
            raise EventParseError(
                f"event {update.entity_id} carries no configured model"
            )

        timestamp = int(time.time())
        return [
            PromptRequest(
                id=next(self._ids),
                event_tag=event.tag,
                prompt_text=prompt_text,
                retrieval_tags=retrieval_tags,
                storage_tags=storage_tags,
                timestamp=timestamp,
            )
            for event, prompt_text, retrieval_tags, storage_tags in converted
        ]

    async def run(self, events: AsyncIterable[Mapping[str, Any]]) -> None:
        """Consume *events* until the stream ends, then close the channel.

        Only cancellation skips the end-of-stream marker.
        """
        try:
            async for raw in events:
                try:
                    requests = self.convert(raw)
                except EventParseError as exc:
                    logger.warning("Skipping event: %s", exc)
                    continue
                for request in requests:
                    logger.debug(
                        "Queueing prompt request id=%d event_tag=%s",
                        request.id,
                        request.event_tag,
                    )
                    await self._channel.put(request)
        except SubscriptionError as exc:
            logger.error("Event subscription ended: %s", exc)
        except Exception:
            logger.exception("Event ingestion failed")
        await self._channel.put(None)
        logger.info("Event ingestion stopped")
