"""Application configuration dataclasses.

Frozen dataclasses with sensible defaults for each subsystem, plus a
TOML loader for the agent's ``haiku.toml`` file.  Secrets are loaded
separately (see ``haikuagent.secrets``).
"""

from __future__ import annotations

import string
import tomllib
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

from haikuagent.errors import ConfigError

DEFAULT_CONFIG_PATH = "haiku.toml"


@dataclass(frozen=True)
class AgentConfig:
    """Identity and behaviour of the agent itself."""

    name: str = "haiku"
    persona: str = ""
    number_memory_to_retrieve: int = 3
    channel_buffer_size: int = 100
    # Disabled by default: a hung provider call stalls the processing actor.
    request_timeout_seconds: float | None = None


@dataclass(frozen=True)
class ToriiConfig:
    """Indexer, relay and signing-domain settings."""

    torii_url: str = "http://localhost:8080"
    relay_url: str = "ws://localhost:9090"
    world_address: str = "0x0"
    chain_id: str = "SN_SEPOLIA"
    domain_name: str = "haiku"
    domain_version: str = "1"
    message_type: str = "haiku-PromptMessage"
    publish_timeout_seconds: float = 10.0
    reconnect_delay_seconds: float = 5.0

    @property
    def graphql_ws_url(self) -> str:
        """Websocket URL of the Torii GraphQL endpoint."""
        base = self.torii_url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://") :]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://") :]
        return f"{base}/graphql"


@dataclass(frozen=True)
class MemoryConfig:
    """Memory store settings."""

    redis_url: str = "redis://localhost:6379"
    key_prefix: str = "haiku"
    embedding_dimension: int | None = None


@dataclass(frozen=True)
class LLMConfig:
    """LLM provider settings used for embeddings and chat completions."""

    provider: str = "openai"
    model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    base_url: str = "https://api.openai.com/v1"
    temperature: float = 0.7
    max_tokens: int = 1024
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class AuditConfig:
    """Settings for the JSONL audit logger."""

    file_path: str = "haiku_audit.jsonl"
    enabled: bool = True


@dataclass(frozen=True)
class EventConfig:
    """One subscribed on-chain event model.

    ``prompt`` is a ``str.format`` template over the event's fields.
    ``retrieval_keys`` and ``storage_keys`` name the fields that become
    memory tags when retrieving and storing memories.
    """

    tag: str
    prompt: str
    retrieval_keys: tuple[str, ...] = ()
    storage_keys: tuple[str, ...] = ()

    @property
    def template_fields(self) -> tuple[str, ...]:
        names: list[str] = []
        for _, field_name, _, _ in string.Formatter().parse(self.prompt):
            if field_name:
                root = field_name.split(".", 1)[0].split("[", 1)[0]
                if root and root not in names:
                    names.append(root)
        return tuple(names)

    @property
    def fields(self) -> tuple[str, ...]:
        """Every event field the agent reads, in first-seen order."""
        names = list(self.template_fields)
        for key in (*self.retrieval_keys, *self.storage_keys):
            if key not in names:
                names.append(key)
        return tuple(names)


@dataclass(frozen=True)
class Config:
    """Complete agent configuration, immutable once loaded."""

    agent: AgentConfig = field(default_factory=AgentConfig)
    torii: ToriiConfig = field(default_factory=ToriiConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    events: tuple[EventConfig, ...] = ()

    @property
    def event_tags(self) -> frozenset[str]:
        return frozenset(event.tag for event in self.events)

    def find_event(self, tag: str) -> EventConfig | None:
        """Return the event configuration with exactly this tag, if any."""
        for event in self.events:
            if event.tag == tag:
                return event
        return None


# ---------------------------------------------------------------------------
# TOML loading
# ---------------------------------------------------------------------------


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table")
    return section


def _str_tuple(value: Any, where: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{where} must be a list of strings")
    return tuple(value)


def _parse_agent_config(data: dict[str, Any]) -> AgentConfig:
    agent = _section(data, "agent")
    cfg = AgentConfig(
        name=agent.get("name", "haiku"),
        persona=agent.get("persona", ""),
        number_memory_to_retrieve=agent.get("number_memory_to_retrieve", 3),
        channel_buffer_size=agent.get("channel_buffer_size", 100),
        request_timeout_seconds=agent.get("request_timeout_seconds"),
    )
    if not isinstance(cfg.number_memory_to_retrieve, int) or cfg.number_memory_to_retrieve < 1:
        raise ConfigError("agent.number_memory_to_retrieve must be a positive integer")
    if not isinstance(cfg.channel_buffer_size, int) or cfg.channel_buffer_size < 1:
        raise ConfigError("agent.channel_buffer_size must be a positive integer")
    if cfg.request_timeout_seconds is not None and cfg.request_timeout_seconds <= 0:
        raise ConfigError("agent.request_timeout_seconds must be positive when set")
    return cfg


def _parse_torii_config(data: dict[str, Any]) -> ToriiConfig:
    torii = _section(data, "torii")
    defaults = ToriiConfig()
    cfg = ToriiConfig(
        torii_url=torii.get("torii_url", defaults.torii_url),
        relay_url=torii.get("relay_url", defaults.relay_url),
        world_address=torii.get("world_address", defaults.world_address),
        chain_id=torii.get("chain_id", defaults.chain_id),
        domain_name=torii.get("domain_name", defaults.domain_name),
        domain_version=torii.get("domain_version", defaults.domain_version),
        message_type=torii.get("message_type", defaults.message_type),
        publish_timeout_seconds=torii.get(
            "publish_timeout_seconds", defaults.publish_timeout_seconds
        ),
        reconnect_delay_seconds=torii.get(
            "reconnect_delay_seconds", defaults.reconnect_delay_seconds
        ),
    )
    try:
        int(cfg.world_address, 16)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid world address: {cfg.world_address!r}") from exc
    return cfg


def _parse_memory_config(data: dict[str, Any]) -> MemoryConfig:
    memory = _section(data, "memory")
    cfg = MemoryConfig(
        redis_url=memory.get("redis_url", "redis://localhost:6379"),
        key_prefix=memory.get("key_prefix", "haiku"),
        embedding_dimension=memory.get("embedding_dimension"),
    )
    if cfg.embedding_dimension is not None and (
        not isinstance(cfg.embedding_dimension, int) or cfg.embedding_dimension < 1
    ):
        raise ConfigError("memory.embedding_dimension must be a positive integer")
    return cfg


def _parse_llm_config(data: dict[str, Any]) -> LLMConfig:
    llm = _section(data, "llm")
    defaults = LLMConfig()
    return LLMConfig(
        provider=llm.get("provider", defaults.provider),
        model=llm.get("model", defaults.model),
        embedding_model=llm.get("embedding_model", defaults.embedding_model),
        base_url=llm.get("base_url", defaults.base_url),
        temperature=llm.get("temperature", defaults.temperature),
        max_tokens=llm.get("max_tokens", defaults.max_tokens),
        timeout_seconds=llm.get("timeout_seconds", defaults.timeout_seconds),
    )


def _parse_audit_config(data: dict[str, Any]) -> AuditConfig:
    audit = _section(data, "audit")
    return AuditConfig(
        file_path=audit.get("file_path", "haiku_audit.jsonl"),
        enabled=audit.get("enabled", True),
    )


def _parse_events(data: dict[str, Any]) -> tuple[EventConfig, ...]:
    raw_events = data.get("events", [])
    if not isinstance(raw_events, list) or not raw_events:
        raise ConfigError("At least one [[events]] entry is required")

    events: list[EventConfig] = []
    seen: set[str] = set()
    for idx, raw in enumerate(raw_events):
        if not isinstance(raw, dict):
            raise ConfigError(f"events[{idx}] must be a table")
        tag = raw.get("tag")
        prompt = raw.get("prompt")
        if not isinstance(tag, str) or not tag.strip():
            raise ConfigError(f"events[{idx}].tag is required")
        if not isinstance(prompt, str) or not prompt.strip():
            raise ConfigError(f"events[{idx}].prompt is required")
        if tag in seen:
            raise ConfigError(f"Duplicate event tag: {tag}")
        seen.add(tag)

        event = EventConfig(
            tag=tag,
            prompt=prompt,
            retrieval_keys=_str_tuple(
                raw.get("retrieval_keys", []), f"events[{idx}].retrieval_keys"
            ),
            storage_keys=_str_tuple(
                raw.get("storage_keys", []), f"events[{idx}].storage_keys"
            ),
        )
        try:
            event.template_fields
        except ValueError as exc:
            raise ConfigError(f"events[{idx}].prompt is not a valid template: {exc}") from exc
        events.append(event)
    return tuple(events)


def parse_config(data: dict[str, Any]) -> Config:
    """Build a ``Config`` from an already-decoded mapping."""
    return Config(
        agent=_parse_agent_config(data),
        torii=_parse_torii_config(data),
        memory=_parse_memory_config(data),
        llm=_parse_llm_config(data),
        audit=_parse_audit_config(data),
        events=_parse_events(data),
    )


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> Config:
    """Load and validate the TOML configuration file at *path*."""
    config_path = Path(path)
    try:
        with config_path.open("rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {config_path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Malformed config file {config_path}: {exc}") from exc
    return parse_config(data)
