"""Chat model boundary and the Anthropic-backed implementation."""
from orchestrate.api.base import ChatModel

__all__ = ["ChatModel"]
