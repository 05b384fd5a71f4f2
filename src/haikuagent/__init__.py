"""haikuagent — an on-chain event responder with retrieval-augmented memory."""

__version__ = "0.1.0"
