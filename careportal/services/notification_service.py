"""
Notification Service

Aggregates unread state into one entry per conversation with unread messages,
plus the total across them. Counts use the watermark predicate, so the summary
agrees with the inbox unread flags.
"""

from typing import List
import logging

from sqlmodel import Session, select

from careportal.models.conversation import Conversation
from careportal.models.message import Message
from careportal.models.user import User
from careportal.schemas.message import NotificationItem, NotificationsResponse
from careportal.services.conversation_service import UNKNOWN_USER
from careportal.services.read_state import ReadStateTracker

logger = logging.getLogger(__name__)


class NotificationService:
    """Unread summaries for the notification badge"""

    def __init__(self, db: Session):
        self.db = db
        self.read_state = ReadStateTracker(db)

    def unread_summary(self, user_id: str) -> NotificationsResponse:
        """Conversations with unread messages, most recently active first."""
        counts = self.read_state.unread_counts(user_id)
        if not counts:
            return NotificationsResponse(notifications=[], total_unread=0)

        statement = (
            select(Conversation)
            .where(Conversation.id.in_(list(counts)))
            .order_by(Conversation.updated_at.desc())
        )
        items: List[NotificationItem] = []
        for conversation in self.db.exec(statement).all():
            last = self._last_incoming(conversation.id, user_id)
            if last is None:
                continue
            message, sender = last
            items.append(NotificationItem(
                conversation_id=conversation.id,
                subject=conversation.subject,
                unread_count=counts[conversation.id],
                last_sender_name=sender.username if sender else UNKNOWN_USER,
                last_message_time=message.created_at,
            ))

        return NotificationsResponse(
            notifications=items,
            total_unread=sum(item.unread_count for item in items),
        )

    def unread_count(self, user_id: str) -> int:
        return sum(self.read_state.unread_counts(user_id).values())

    def _last_incoming(self, conversation_id: str, user_id: str):
        statement = (
            select(Message, User)
            .outerjoin(User, User.id == Message.sender_id)
            .where(Message.conversation_id == conversation_id)
            .where(Message.sender_id != user_id)
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        return self.db.exec(statement).first()
