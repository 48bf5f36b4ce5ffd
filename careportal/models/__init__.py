"""Database models for the messaging API."""

from .user import User, UserRole
from .assignment import PatientAssignment
from .conversation import Conversation, ConversationParticipant, make_pair_key
from .message import Message

__all__ = [
    "User",
    "UserRole",
    "PatientAssignment",
    "Conversation",
    "ConversationParticipant",
    "make_pair_key",
    "Message",
]
