"""Models domain — pipeline data models."""

from haikuagent.models.schemas import EventUpdate
from haikuagent.models.schemas import ModelUpdate
from haikuagent.models.schemas import OffchainMessage
from haikuagent.models.schemas import PromptRequest
from haikuagent.models.schemas import SignedMessage
from haikuagent.models.schemas import Tag

__all__ = [
    "EventUpdate",
    "ModelUpdate",
    "OffchainMessage",
    "PromptRequest",
    "SignedMessage",
    "Tag",
]
