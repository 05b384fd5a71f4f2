"""Prompt construction for event responses.

Two prompts exist: the event prompt, rendered from the configured template
and the event's field data, and the augmented prompt sent to the language
model, which wraps the event prompt with the persona and any retrieved
memories.
"""

from __future__ import annotations

from collections.abc import Mapping
from collections.abc import Sequence
from typing import Any

from haikuagent.config import EventConfig

EVENT_PREAMBLE = "An event happened in the world. "
MEMORY_INSTRUCTION = (
    " For context, here are some prompts generated from past events. "
    "You must use them in your answer"
)


def render_event_prompt(event: EventConfig, fields: Mapping[str, Any]) -> str:
    """Render *event*'s prompt template with *fields*.

    Raises ``KeyError`` when the template references a missing field.
    """
    return event.prompt.format_map(dict(fields))


def build_augmented_prompt(
    persona: str,
    prompt_text: str,
    memories: Sequence[str],
) -> str:
    """Build the retrieval-augmented prompt for one event.

    The memory instruction and block are omitted entirely when
    *memories* is empty.
    """
    parts = [persona, EVENT_PREAMBLE, prompt_text]
    if memories:
        parts.append(MEMORY_INSTRUCTION)
        parts.extend(f"\n{memory}." for memory in memories)
    return "".join(parts)
