"""Prompt processing actor.

Single consumer of the prompt channel.  Each ``PromptRequest`` goes
through resolve → embed → retrieve → compose → complete → embed →
store → construct → sign/publish, strictly one request at a time and in
channel order.  A failing request is logged and dropped; the loop moves
on to the next one.
"""

from __future__ import annotations

import asyncio
import logging

from haikuagent.actors.ingestion import PromptChannel
from haikuagent.audit import AuditEvent
from haikuagent.audit import AuditEventType
from haikuagent.audit import AuditLogger
from haikuagent.config import Config
from haikuagent.engine.prompt_builder import build_augmented_prompt
from haikuagent.engine.providers import Provider
from haikuagent.errors import EventNotFoundError
from haikuagent.errors import HaikuAgentError
from haikuagent.memory import MemoryStore
from haikuagent.messaging.relay import Publisher
from haikuagent.messaging.signing import Credentials
from haikuagent.messaging.signing import MessageDomain
from haikuagent.messaging.signing import sign_message
from haikuagent.models import OffchainMessage
from haikuagent.models import PromptRequest
from haikuagent.models import SignedMessage
from haikuagent.observability import measure

logger = logging.getLogger(__name__)


class PromptProcessingActor:
    """Turns each prompt request into a stored memory and a published message."""

    def __init__(
        self,
        channel: PromptChannel,
        *,
        config: Config,
        provider: Provider,
        memory: MemoryStore,
        publisher: Publisher,
        credentials: Credentials,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._channel = channel
        self._config = config
        self._provider = provider
        self._memory = memory
        self._publisher = publisher
        self._credentials = credentials
        self._audit = audit_logger
        self._domain = MessageDomain(
            name=config.torii.domain_name,
            version=config.torii.domain_version,
            chain_id=config.torii.chain_id,
            message_type=config.torii.message_type,
        )

    async def run(self) -> None:
        """Handle requests in channel order until the end-of-stream marker."""
        while True:
            request = await self._channel.get()
            try:
                if request is None:
                    logger.info("Prompt channel closed, processing stopped")
                    return
                await self._handle_safely(request)
            finally:
                self._channel.task_done()

    async def _handle_safely(self, request: PromptRequest) -> None:
        logger.debug("Handling prompt request id=%d", request.id)
        timeout = self._config.agent.request_timeout_seconds
        try:
            if timeout is None:
                await self.handle(request)
                return
            try:
                await asyncio.wait_for(self.handle(request), timeout)
            except asyncio.TimeoutError:
                logger.error(
                    "Prompt request id=%d event_tag=%s timed out after %.1fs",
                    request.id,
                    request.event_tag,
                    timeout,
                )
                await self._audit_failure(request, "timeout")
        except HaikuAgentError as exc:
            logger.error(
                "Error handling prompt request id=%d event_tag=%s: %s",
                request.id,
                request.event_tag,
                exc,
            )
            await self._audit_failure(request, str(exc))
        except Exception as exc:
            logger.exception(
                "Unexpected error handling prompt request id=%d event_tag=%s",
                request.id,
                request.event_tag,
            )
            await self._audit_failure(request, repr(exc))

    async def handle(self, request: PromptRequest) -> SignedMessage:
        """Run the full pipeline for one request and return what was published."""
        if self._config.find_event(request.event_tag) is None:
            raise EventNotFoundError(f"Event not found: {request.event_tag}")

        with measure("prompt.embed_query"):
            query_embedding = await self._provider.embed(request.prompt_text)

        with measure("prompt.retrieve"):
            memories = await self._memory.retrieve_similar(
                query_embedding,
                request.retrieval_tags,
                self._config.agent.number_memory_to_retrieve,
            )

        prompt = build_augmented_prompt(
            self._config.agent.persona, request.prompt_text, memories
        )
        logger.debug(
            "Prompt request id=%d retrieved=%d", request.id, len(memories)
        )

        with measure("prompt.complete"):
            response = await self._provider.complete(prompt)

        with measure("prompt.embed_response"):
            response_embedding = await self._provider.embed(response)

        with measure("prompt.store"):
            record = await self._memory.store(
                response, response_embedding, request.storage_tags
            )
        await self._audit_event(
            AuditEventType.MEMORY_STORED, request, {"memory_id": record.id}
        )

        message = OffchainMessage(
            agent_name=self._config.agent.name,
            request_id=request.id,
            event_tag=request.event_tag,
            response_text=response,
            timestamp=request.timestamp,
        )
        signed = sign_message(message, self._credentials, self._domain)

        with measure("prompt.publish"):
            await self._publisher.publish(signed)
        await self._audit_event(
            AuditEventType.MESSAGE_PUBLISHED,
            request,
            {"signature": list(signed.signature)},
        )
        logger.info(
            "Published response for request id=%d event_tag=%s",
            request.id,
            request.event_tag,
        )
        return signed

    async def _audit_event(
        self, event_type: AuditEventType, request: PromptRequest, payload: dict
    ) -> None:
        if self._audit is None:
            return
        try:
            await self._audit.log(
                AuditEvent(
                    event_type=event_type,
                    request_id=request.id,
                    event_tag=request.event_tag,
                    payload=payload,
                )
            )
        except OSError:
            logger.exception("Failed to write audit event for request id=%d", request.id)

    async def _audit_failure(self, request: PromptRequest, reason: str) -> None:
        await self._audit_event(AuditEventType.PROMPT_FAILED, request, {"reason": reason})
