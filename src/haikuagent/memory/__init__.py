"""Memory domain — append-only vector memory of generated responses."""

from haikuagent.memory.schemas import MemoryRecord
from haikuagent.memory.store import cosine_similarities
from haikuagent.memory.store import MemoryStore

__all__ = ["MemoryRecord", "MemoryStore", "cosine_similarities"]
