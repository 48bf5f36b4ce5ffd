"""
Mailbox projections

Inbox and Sent are message-level views over the message log, newest first.
The inbox lists messages others sent into the viewer's conversations; Sent
lists messages the viewer authored. Together they partition every message of
the viewer's conversations.
"""

from typing import List
import logging

from sqlalchemy.orm import aliased
from sqlmodel import Session, select

from careportal.models.conversation import ConversationParticipant
from careportal.models.message import Message
from careportal.models.user import User
from careportal.schemas.message import InboxRow, SentRow
from careportal.services.conversation_service import UNKNOWN_USER
from careportal.services.read_state import is_unread
from careportal.utils import envelope

logger = logging.getLogger(__name__)


class MailboxProjector:
    """Builds the Inbox and Sent views for a user"""

    def __init__(self, db: Session):
        self.db = db

    def inbox(self, user_id: str) -> List[InboxRow]:
        """Messages received by user_id with the per-viewer unread flag."""
        viewer = aliased(ConversationParticipant)
        statement = (
            select(Message, viewer.last_read_at, User)
            .join(viewer, viewer.conversation_id == Message.conversation_id)
            .outerjoin(User, User.id == Message.sender_id)
            .where(viewer.user_id == user_id)
            .where(Message.sender_id != user_id)
            .order_by(Message.created_at.desc())
        )

        rows = []
        for message, last_read_at, sender in self.db.exec(statement).all():
            parsed = envelope.decode(message.content)
            rows.append(InboxRow(
                id=message.id,
                conversation_id=message.conversation_id,
                subject=parsed.subject,
                sender_name=sender.username if sender else UNKNOWN_USER,
                sender_email=sender.email if sender else None,
                preview=parsed.preview,
                time=message.created_at,
                unread=is_unread(message.created_at, last_read_at),
            ))
        return rows

    def sent(self, user_id: str) -> List[SentRow]:
        """Messages authored by user_id, addressed to the other participant."""
        recipient = aliased(ConversationParticipant)
        statement = (
            select(Message, User)
            .join(recipient, recipient.conversation_id == Message.conversation_id)
            .outerjoin(User, User.id == recipient.user_id)
            .where(Message.sender_id == user_id)
            .where(recipient.user_id != user_id)
            .order_by(Message.created_at.desc())
        )

        rows = []
        for message, other in self.db.exec(statement).all():
            parsed = envelope.decode(message.content)
            rows.append(SentRow(
                id=message.id,
                conversation_id=message.conversation_id,
                subject=parsed.subject,
                recipient_name=other.username if other else UNKNOWN_USER,
                recipient_email=other.email if other else None,
                preview=parsed.preview,
                time=message.created_at,
            ))
        return rows
