"""Chat model port and adapters."""

from .base import ChatCompletion, ChatMessage, ChatModel, ChatToolCallRequest

__all__ = [
    "ChatCompletion",
    "ChatMessage",
    "ChatModel",
    "ChatToolCallRequest",
]
