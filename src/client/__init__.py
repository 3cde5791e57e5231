"""
Campus Gigs chat client: optimistic message list plus REST/socket wiring.
"""

from .chatClient import ChatClient, ChatClientError
from .reconciliation import ChatEntry, ConversationView, DeliveryStatus

__all__ = [
    "ChatClient",
    "ChatClientError",
    "ChatEntry",
    "ConversationView",
    "DeliveryStatus",
]
