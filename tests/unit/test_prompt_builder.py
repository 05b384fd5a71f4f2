"""Unit tests for event and augmented prompt construction."""

from __future__ import annotations

import pytest

from haikuagent.config import EventConfig
from haikuagent.engine import build_augmented_prompt
from haikuagent.engine import render_event_prompt
from haikuagent.engine.prompt_builder import MEMORY_INSTRUCTION

PERSONA = "You are the spirit of the mountain. "


class TestBuildAugmentedPrompt:
    def test_without_memories_has_no_memory_block(self):
        prompt = build_augmented_prompt(PERSONA, "A dragon attacks the village", [])

        assert prompt == (
            PERSONA + "An event happened in the world. " + "A dragon attacks the village"
        )
        assert "past events" not in prompt

    def test_memories_appended_in_ranked_order(self):
        prompt = build_augmented_prompt(
            PERSONA, "A dragon attacks the village", ["Smoke on the hill", "Bells ring"]
        )

        assert prompt == (
            PERSONA
            + "An event happened in the world. A dragon attacks the village"
            + " For context, here are some prompts generated from past events. "
            + "You must use them in your answer"
            + "\nSmoke on the hill."
            + "\nBells ring."
        )

    def test_instruction_appears_once(self):
        prompt = build_augmented_prompt("", "x", ["a", "b", "c"])
        assert prompt.count(MEMORY_INSTRUCTION) == 1


class TestRenderEventPrompt:
    def test_fills_template_fields(self):
        event = EventConfig(tag="combat", prompt="{attacker} attacks the {target}")
        assert (
            render_event_prompt(event, {"attacker": "A dragon", "target": "village"})
            == "A dragon attacks the village"
        )

    def test_missing_field_raises_key_error(self):
        event = EventConfig(tag="combat", prompt="{attacker} attacks the {target}")
        with pytest.raises(KeyError):
            render_event_prompt(event, {"attacker": "A dragon"})
