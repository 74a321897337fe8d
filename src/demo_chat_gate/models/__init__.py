"""Request models."""

from .chat import ChatMessage, ChatRequest, MessagePart, Role

__all__ = ["ChatMessage", "ChatRequest", "MessagePart", "Role"]
