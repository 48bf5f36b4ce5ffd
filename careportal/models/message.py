"""
Message Model

Individual direct messages within a conversation.
Messages are append-only: only the admin moderation flag (is_read) may change
after insert, and only admins may delete a message.
"""

from datetime import datetime
from typing import Optional, TYPE_CHECKING
import uuid

from sqlalchemy import Column, Text
from sqlmodel import SQLModel, Field, Relationship

if TYPE_CHECKING:
    from .conversation import Conversation


class Message(SQLModel, table=True):
    """Direct message authored by one user."""
    __tablename__ = "messages"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    conversation_id: str = Field(foreign_key="conversations.id", index=True)
    sender_id: str = Field(foreign_key="users.id", index=True)
    # Stored as "**Subject:** <subject>\n\n<body>", see careportal.utils.envelope
    content: str = Field(sa_column=Column(Text, nullable=False))
    attachment_url: Optional[str] = Field(default=None, max_length=500)
    attachment_name: Optional[str] = Field(default=None, max_length=255)
    is_read: bool = Field(default=False)  # admin moderation flag, not recipient read state
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    conversation: "Conversation" = Relationship(back_populates="messages")
