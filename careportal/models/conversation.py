"""
Conversation Models

A conversation is the two-party thread that holds the message history between
a pair of users. Each side has a participant row carrying its own read state.

Invariants:
- pair_key is the canonical "<lower-id>:<higher-id>" string and is unique, so a
  pair of users can only ever own one conversation
- (conversation_id, user_id) is unique
- unread_count never goes below zero; it is a cache of the last_read_at predicate
"""

from datetime import datetime
from typing import List, Optional, TYPE_CHECKING
import uuid

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship

if TYPE_CHECKING:
    from .message import Message


def make_pair_key(user_a: str, user_b: str) -> str:
    """Canonical, order-independent key for a two-party conversation."""
    low, high = sorted([user_a, user_b])
    return f"{low}:{high}"


class Conversation(SQLModel, table=True):
    """Two-party conversation metadata."""
    __tablename__ = "conversations"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    subject: Optional[str] = Field(default=None, max_length=255)
    pair_key: Optional[str] = Field(default=None, unique=True, index=True, max_length=100)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    participants: List["ConversationParticipant"] = Relationship(
        back_populates="conversation",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "lazy": "select"}
    )
    messages: List["Message"] = Relationship(
        back_populates="conversation",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "lazy": "select",
            "order_by": "Message.created_at",
        }
    )

    def other_participant(self, user_id: str) -> Optional["ConversationParticipant"]:
        for participant in self.participants:
            if participant.user_id != user_id:
                return participant
        return None


class ConversationParticipant(SQLModel, table=True):
    """Membership of one user in one conversation, with per-user read state."""
    __tablename__ = "conversation_participants"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_participant_conversation_user"),
        CheckConstraint("unread_count >= 0", name="ck_participant_unread_non_negative"),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    conversation_id: str = Field(foreign_key="conversations.id", index=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    unread_count: int = Field(default=0)
    last_read_at: Optional[datetime] = Field(default=None)

    conversation: "Conversation" = Relationship(back_populates="participants")
