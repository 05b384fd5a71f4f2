"""Relay connection and message publication.

``RelayClient`` owns one websocket connection to the relay.  ``run()`` is
the background connection loop (connect, dispatch acknowledgements,
reconnect on drop); ``publish()`` is the only operation the processing
actor calls.  Mutable connection state is guarded by an internal
``asyncio.Lock``, so callers never touch it directly.

Frames are JSON objects::

    -> {"type": "publish", "id": 7, "message": "<typed data>", "signature": ["0x..", "0x.."]}
    <- {"type": "ack", "id": 7}
    <- {"type": "error", "id": 7, "message": "reason"}
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Protocol
from typing import runtime_checkable

import aiohttp

from haikuagent.errors import RelayError
from haikuagent.models import SignedMessage

logger = logging.getLogger(__name__)


@runtime_checkable
class Publisher(Protocol):
    """Anything that can deliver one signed message."""

    async def publish(self, message: SignedMessage) -> None: ...


class RelayClient:
    """Websocket relay client shared by the publish path and its own loop."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        relay_url: str,
        *,
        publish_timeout: float = 10.0,
        reconnect_delay: float = 5.0,
        heartbeat: float = 30.0,
    ) -> None:
        self._session = session
        self._relay_url = relay_url
        self._publish_timeout = publish_timeout
        self._reconnect_delay = reconnect_delay
        self._heartbeat = heartbeat
        self._lock = asyncio.Lock()
        self._connected = asyncio.Event()
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._pending: dict[int, asyncio.Future[None]] = {}
        self._frame_ids = itertools.count(1)
        self._closing = False

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    # -- publish --

    async def publish(self, message: SignedMessage) -> None:
        """Send *message* and wait for the relay's acknowledgement.

        Raises ``RelayError`` on rejection, timeout, or connection loss.
        """
        try:
            await asyncio.wait_for(self._connected.wait(), self._publish_timeout)
        except asyncio.TimeoutError as exc:
            raise RelayError("relay connection is not established") from exc

        frame_id = next(self._frame_ids)
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        async with self._lock:
            ws = self._ws
            if ws is None or ws.closed:
                raise RelayError("relay connection is not established")
            self._pending[frame_id] = future

        try:
            await ws.send_json(
                {
                    "type": "publish",
                    "id": frame_id,
                    "message": message.message,
                    "signature": list(message.signature),
                }
            )
            await asyncio.wait_for(future, self._publish_timeout)
        except asyncio.TimeoutError as exc:
            raise RelayError(
                f"relay did not acknowledge message within {self._publish_timeout}s"
            ) from exc
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as exc:
            raise RelayError(f"failed to send message to relay: {exc}") from exc
        finally:
            async with self._lock:
                self._pending.pop(frame_id, None)
        logger.debug("Relay acknowledged frame id=%d", frame_id)

    # -- connection loop --

    async def run(self) -> None:
        """Maintain the relay connection until ``close()`` is called."""
        while not self._closing:
            try:
                async with self._session.ws_connect(
                    self._relay_url, heartbeat=self._heartbeat
                ) as ws:
                    async with self._lock:
                        self._ws = ws
                        self._connected.set()
                    logger.info("Relay connection established url=%s", self._relay_url)
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            await self._dispatch(msg.data)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            logger.warning("Relay websocket error: %s", ws.exception())
                            break
            except (aiohttp.ClientError, OSError) as exc:
                logger.warning("Relay connection failed url=%s: %s", self._relay_url, exc)
            finally:
                await self._drop_connection("relay connection lost")

            if self._closing:
                break
            logger.info("Reconnecting to relay in %.1fs", self._reconnect_delay)
            await asyncio.sleep(self._reconnect_delay)

    async def close(self) -> None:
        """Stop the connection loop and close the current socket."""
        self._closing = True
        async with self._lock:
            ws = self._ws
        if ws is not None and not ws.closed:
            await ws.close()

    # -- internal --

    async def _dispatch(self, raw: str) -> None:
        """Resolve the publisher waiting on an ack/error frame."""
        try:
            frame = json.loads(raw)
        except ValueError:
            frame = None
        if not isinstance(frame, dict):
            logger.warning("Ignoring malformed relay frame")
            return
        frame_id = frame.get("id")
        async with self._lock:
            future = self._pending.get(frame_id) if isinstance(frame_id, int) else None
        if future is None or future.done():
            logger.debug("Ignoring relay frame without pending publish: %s", frame)
            return

        frame_type = frame.get("type")
        if frame_type == "ack":
            future.set_result(None)
        elif frame_type == "error":
            future.set_exception(
                RelayError(f"relay rejected message: {frame.get('message', 'unknown')}")
            )
        else:
            logger.debug("Ignoring relay frame of type %r", frame_type)

    async def _drop_connection(self, reason: str) -> None:
        async with self._lock:
            self._ws = None
            self._connected.clear()
            pending = list(self._pending.values())
        for future in pending:
            if not future.done():
                future.set_exception(RelayError(reason))
