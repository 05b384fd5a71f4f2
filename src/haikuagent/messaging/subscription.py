"""Torii event-message subscription over GraphQL websockets.

The subscription asks for ``eventMessageUpdated`` with one inline fragment
per configured event model.  Dojo tags (``namespace-Model``) map to GraphQL
type names (``namespace_Model``).  Each payload is normalized into the
``EventUpdate`` shape before it reaches the ingestion actor::

    {"entity_id": "0x..", "models": [{"tag": "ns-Model", "fields": {...}}]}
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from collections.abc import Sequence
from typing import Any

import aiohttp

from haikuagent.config import EventConfig
from haikuagent.errors import SubscriptionError

logger = logging.getLogger(__name__)

GRAPHQL_WS_PROTOCOL = "graphql-transport-ws"
_SUBSCRIPTION_ID = "1"


def graphql_type_name(tag: str) -> str:
    """Return the GraphQL type name Torii exposes for a model *tag*."""
    return tag.replace("-", "_")


def build_subscription_query(events: Sequence[EventConfig]) -> str:
    """Build the ``eventMessageUpdated`` subscription document."""
    fragments = []
    for event in events:
        selection = " ".join(event.fields) or "__typename"
        fragments.append(f"... on {graphql_type_name(event.tag)} {{ {selection} }}")
    return (
        "subscription { eventMessageUpdated { id keys models { __typename "
        + " ".join(fragments)
        + " } } }"
    )


def normalize_event(
    payload: dict[str, Any], events: Sequence[EventConfig]
) -> dict[str, Any]:
    """Map a subscription payload to the ``EventUpdate`` dict shape.

    Models whose GraphQL type is not configured are dropped.
    """
    by_type = {graphql_type_name(event.tag): event.tag for event in events}
    data = payload.get("data") if isinstance(payload, dict) else None
    update = data.get("eventMessageUpdated") if isinstance(data, dict) else None
    if not isinstance(update, dict):
        return {"entity_id": None, "models": []}
    raw_models = update.get("models")
    models = []
    for model in raw_models if isinstance(raw_models, list) else []:
        if not isinstance(model, dict):
            continue
        tag = by_type.get(model.get("__typename", ""))
        if tag is None:
            continue
        fields = {k: v for k, v in model.items() if k != "__typename"}
        models.append({"tag": tag, "fields": fields})
    return {"entity_id": update.get("id"), "models": models}


def _frame(msg: aiohttp.WSMessage) -> dict[str, Any] | None:
    """Decode a text frame; anything else is logged and dropped."""
    if msg.type != aiohttp.WSMsgType.TEXT:
        return None
    try:
        frame = json.loads(msg.data)
    except ValueError:
        frame = None
    if not isinstance(frame, dict):
        logger.warning("Ignoring malformed subscription frame")
        return None
    return frame


class ToriiSubscription:
    """Yields normalized event updates for the configured event models."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        graphql_ws_url: str,
        events: Sequence[EventConfig],
        *,
        heartbeat: float = 30.0,
    ) -> None:
        self._session = session
        self._url = graphql_ws_url
        self._events = tuple(events)
        self._heartbeat = heartbeat

    async def stream(self) -> AsyncIterator[dict[str, Any]]:
        """Connect, subscribe, and yield events until the server completes."""
        try:
            async with self._session.ws_connect(
                self._url,
                protocols=(GRAPHQL_WS_PROTOCOL,),
                heartbeat=self._heartbeat,
            ) as ws:
                await ws.send_json({"type": "connection_init", "payload": {}})
                await self._wait_for_ack(ws)
                await ws.send_json(
                    {
                        "id": _SUBSCRIPTION_ID,
                        "type": "subscribe",
                        "payload": {"query": build_subscription_query(self._events)},
                    }
                )
                logger.info(
                    "Subscribed to %d event model(s) at %s", len(self._events), self._url
                )
                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.ERROR:
                        raise SubscriptionError(
                            f"subscription websocket error: {ws.exception()}"
                        )
                    frame = _frame(msg)
                    if frame is None:
                        continue
                    frame_type = frame.get("type")
                    if frame_type == "next":
                        yield normalize_event(frame.get("payload") or {}, self._events)
                    elif frame_type == "ping":
                        await ws.send_json({"type": "pong"})
                    elif frame_type == "error":
                        raise SubscriptionError(
                            f"subscription rejected: {frame.get('payload')}"
                        )
                    elif frame_type == "complete":
                        logger.info("Subscription completed by server")
                        return
        except (aiohttp.ClientError, OSError) as exc:
            raise SubscriptionError(f"subscription failed: {exc}") from exc

    @staticmethod
    async def _wait_for_ack(ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            frame = _frame(msg)
            if frame is None:
                continue
            if frame.get("type") == "connection_ack":
                return
            if frame.get("type") == "ping":
                await ws.send_json({"type": "pong"})
                continue
            raise SubscriptionError(f"unexpected frame before ack: {frame}")
        raise SubscriptionError("connection closed before ack")
