"""Exception hierarchy shared across the agent.

Configuration errors are fatal before any processing starts.  Every other
error aborts at most one prompt request (or skips one upstream event).
"""

from __future__ import annotations


class HaikuAgentError(Exception):
    """Base class for all agent errors."""


class ConfigError(HaikuAgentError):
    """Raised when configuration or secrets are missing or malformed."""


class EventNotFoundError(HaikuAgentError):
    """Raised when a prompt request names an event tag that is not configured."""


class ProviderError(HaikuAgentError):
    """Raised by embedding/completion providers when a call fails."""


class MemoryStoreError(HaikuAgentError):
    """Raised when the memory store is unavailable or rejects a record."""


class SigningError(HaikuAgentError):
    """Raised when an off-chain message cannot be encoded or signed."""


class RelayError(HaikuAgentError):
    """Raised when a signed message cannot be delivered to the relay."""


class EventParseError(HaikuAgentError):
    """Raised when an upstream event cannot be turned into a prompt request."""


class SubscriptionError(HaikuAgentError):
    """Raised when the event subscription stream fails."""
