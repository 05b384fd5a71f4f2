"""Engine domain — language-model providers and prompt construction."""

from haikuagent.engine.prompt_builder import build_augmented_prompt
from haikuagent.engine.prompt_builder import render_event_prompt
from haikuagent.engine.providers import build_provider
from haikuagent.engine.providers import NoopProvider
from haikuagent.engine.providers import OpenAICompatibleProvider
from haikuagent.engine.providers import Provider

__all__ = [
    "NoopProvider",
    "OpenAICompatibleProvider",
    "Provider",
    "build_augmented_prompt",
    "build_provider",
    "render_event_prompt",
]
