"""Embedding/completion providers and factory helpers."""

from __future__ import annotations

import asyncio
import hashlib
import json
import math
from typing import Any
from typing import Protocol
from typing import runtime_checkable
from urllib.error import HTTPError
from urllib.error import URLError
from urllib.request import Request
from urllib.request import urlopen

from haikuagent.config import LLMConfig
from haikuagent.errors import ConfigError
from haikuagent.errors import ProviderError


@runtime_checkable
class Provider(Protocol):
    """Protocol for embedding + chat-completion providers."""

    async def embed(self, text: str) -> list[float]: ...

    async def complete(self, prompt: str) -> str: ...


class NoopProvider:
    """Deterministic offline provider.

    Embeddings are derived from a SHA-256 stream of the text, so equal
    texts embed identically.  Completions are a short digest of the prompt.
    """

    def __init__(self, *, dimension: int = 16) -> None:
        if dimension < 1:
            raise ValueError("dimension must be positive")
        self._dimension = dimension

    async def embed(self, text: str) -> list[float]:
        values: list[float] = []
        counter = 0
        while len(values) < self._dimension:
            digest = hashlib.sha256(f"{counter}:{text}".encode("utf-8")).digest()
            values.extend((byte - 127.5) / 127.5 for byte in digest)
            counter += 1
        vector = values[: self._dimension]
        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / norm for v in vector]

    async def complete(self, prompt: str) -> str:
        digest = hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:12]
        return f"Silent wind answers {digest}"


class OpenAICompatibleProvider:
    """OpenAI-compatible embeddings + chat-completions provider."""

    def __init__(
        self,
        *,
        model: str,
        embedding_model: str,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        temperature: float = 0.7,
        max_tokens: int = 1024,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._model = model
        self._embedding_model = embedding_model
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout_seconds = timeout_seconds

    async def embed(self, text: str) -> list[float]:
        data = await asyncio.to_thread(
            self._post_sync,
            "/embeddings",
            {"model": self._embedding_model, "input": text},
        )
        try:
            embedding = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError(
                "provider response missing data[0].embedding"
            ) from exc
        if not isinstance(embedding, list) or not embedding:
            raise ProviderError("provider embedding must be a non-empty list")
        try:
            return [float(v) for v in embedding]
        except (TypeError, ValueError) as exc:
            raise ProviderError("provider embedding must contain numbers") from exc

    async def complete(self, prompt: str) -> str:
        data = await asyncio.to_thread(
            self._post_sync,
            "/chat/completions",
            {
                "model": self._model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": self._temperature,
                "max_tokens": self._max_tokens,
            },
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError(
                "provider response missing choices[0].message.content"
            ) from exc

        if not isinstance(content, str):
            raise ProviderError("provider response content must be a string")
        if not content.strip():
            raise ProviderError("provider returned an empty completion")
        return content

    def _post_sync(self, path: str, payload: dict[str, Any]) -> Any:
        request = Request(
            url=f"{self._base_url}{path}",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=self._timeout_seconds) as response:
                raw = response.read().decode("utf-8")
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise ProviderError(f"provider HTTP {exc.code}: {detail[:200]}") from exc
        except URLError as exc:
            raise ProviderError(f"provider network error: {exc.reason}") from exc
        except OSError as exc:
            raise ProviderError(f"provider IO error: {exc}") from exc

        try:
            return json.loads(raw)
        except ValueError as exc:
            raise ProviderError("provider response is not valid JSON") from exc


def build_provider(
    config: LLMConfig,
    *,
    api_key: str | None = None,
    dimension: int | None = None,
) -> Provider:
    """Create a concrete provider from ``LLMConfig``."""

    provider = config.provider.strip().lower()
    if provider == "openai":
        if not api_key:
            raise ConfigError("LLM_API_KEY is required when llm.provider='openai'")
        return OpenAICompatibleProvider(
            model=config.model,
            embedding_model=config.embedding_model,
            api_key=api_key,
            base_url=config.base_url,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout_seconds=config.timeout_seconds,
        )
    if provider == "noop":
        return NoopProvider(dimension=dimension or 16)
    raise ConfigError(
        f"Unsupported llm.provider '{config.provider}'. "
        "Supported providers: openai, noop."
    )
