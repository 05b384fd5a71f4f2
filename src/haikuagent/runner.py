"""Wires configuration, secrets and collaborators into the running agent.

Three tasks run concurrently: the relay connection loop, the event
ingestion actor, and the prompt processing actor (awaited directly).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

import aiohttp
from redis.asyncio import Redis  # type: ignore[import-untyped]

from haikuagent.actors import EventIngestionActor
from haikuagent.actors import PromptChannel
from haikuagent.actors import PromptProcessingActor
from haikuagent.audit import AuditLogger
from haikuagent.config import Config
from haikuagent.engine import build_provider
from haikuagent.engine import Provider
from haikuagent.memory import MemoryStore
from haikuagent.messaging import Credentials
from haikuagent.messaging import RelayClient
from haikuagent.messaging import ToriiSubscription
from haikuagent.secrets import Secrets

logger = logging.getLogger(__name__)


async def run_agent(config: Config, secrets: Secrets) -> None:
    """Run the agent until the event subscription ends.

    Credential and provider problems raise ``ConfigError`` before any
    connection is opened.
    """
    credentials = Credentials.from_hex(secrets.signer_address, secrets.signer_private_key)
    provider = build_provider(
        config.llm,
        api_key=secrets.llm_api_key,
        dimension=config.memory.embedding_dimension,
    )

    memory = MemoryStore(
        Redis.from_url(config.memory.redis_url),
        key_prefix=config.memory.key_prefix,
        dimension=config.memory.embedding_dimension,
    )
    try:
        await memory.initialize()
        async with aiohttp.ClientSession() as session:
            await _run_actors(config, session, memory, provider, credentials)
    finally:
        await memory.close()


async def _run_actors(
    config: Config,
    session: aiohttp.ClientSession,
    memory: MemoryStore,
    provider: Provider,
    credentials: Credentials,
) -> None:
    relay = RelayClient(
        session,
        config.torii.relay_url,
        publish_timeout=config.torii.publish_timeout_seconds,
        reconnect_delay=config.torii.reconnect_delay_seconds,
    )
    logger.info("Launching relay runner")
    relay_task = asyncio.create_task(relay.run(), name="relay")

    subscription = ToriiSubscription(
        session, config.torii.graphql_ws_url, config.events
    )
    channel: PromptChannel = asyncio.Queue(maxsize=config.agent.channel_buffer_size)
    ingestion = EventIngestionActor(channel, config)
    processing = PromptProcessingActor(
        channel,
        config=config,
        provider=provider,
        memory=memory,
        publisher=relay,
        credentials=credentials,
        audit_logger=AuditLogger(config.audit),
    )
    ingestion_task = asyncio.create_task(
        ingestion.run(subscription.stream()), name="ingestion"
    )

    try:
        await processing.run()
    finally:
        await relay.close()
        for task in (ingestion_task, relay_task):
            task.cancel()
        for task in (ingestion_task, relay_task):
            with contextlib.suppress(asyncio.CancelledError):
                await task
