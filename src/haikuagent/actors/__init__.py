"""Actors — the two concurrent tasks of the event-to-response pipeline."""

from haikuagent.actors.ingestion import EventIngestionActor
from haikuagent.actors.ingestion import PromptChannel
from haikuagent.actors.processing import PromptProcessingActor

__all__ = ["EventIngestionActor", "PromptChannel", "PromptProcessingActor"]
