"""Secret loading from the environment and an optional ``.env`` file."""

from __future__ import annotations

import os
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from dotenv import load_dotenv

from haikuagent.errors import ConfigError


@dataclass(frozen=True)
class Secrets:
    """Hex-encoded signer credentials and the LLM API key."""

    signer_address: str
    signer_private_key: str = field(repr=False)
    llm_api_key: str | None = field(default=None, repr=False)

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> Secrets:
        """Read secrets from the process environment.

        A ``.env`` file is loaded first; variables already present in the
        environment stay authoritative.
        """
        load_dotenv(dotenv_path=dotenv_path, override=False)

        address = _get("SIGNER_ADDRESS")
        private_key = _get("SIGNER_PRIVATE_KEY")
        if address is None:
            raise ConfigError("SIGNER_ADDRESS is not set")
        if private_key is None:
            raise ConfigError("SIGNER_PRIVATE_KEY is not set")
        return cls(
            signer_address=address,
            signer_private_key=private_key,
            llm_api_key=_get("LLM_API_KEY"),
        )


def _get(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None
