"""
Read-State Tracker

Per (conversation, participant) read state. The authority for "is this message
unread for me" is the last_read_at watermark:

    unread = last_read_at is None or message.created_at > last_read_at

unread_count is a cached count of the same predicate. It is bumped with a
server-side increment on send and recomputed from the predicate whenever the
watermark moves or messages disappear, so it cannot drift or go negative.
"""

from datetime import datetime
from typing import Dict, Iterable, Optional
import logging

from sqlalchemy import and_, func, or_, update
from sqlmodel import Session, select

from careportal.models.conversation import Conversation, ConversationParticipant
from careportal.models.message import Message
from careportal.services.errors import Forbidden, NotFound

logger = logging.getLogger(__name__)


def is_unread(created_at: datetime, last_read_at: Optional[datetime]) -> bool:
    return last_read_at is None or created_at > last_read_at


def unread_message_clause(participant=ConversationParticipant):
    """Join condition matching messages unread by the given participant row."""
    return and_(
        Message.conversation_id == participant.conversation_id,
        Message.sender_id != participant.user_id,
        or_(participant.last_read_at.is_(None), Message.created_at > participant.last_read_at),
    )


class ReadStateTracker:
    """Transitions on participant read state"""

    def __init__(self, db: Session):
        self.db = db

    def get_participant(
        self,
        conversation_id: str,
        user_id: str,
        for_update: bool = False
    ) -> Optional[ConversationParticipant]:
        statement = select(ConversationParticipant).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id
        )
        if for_update:
            statement = statement.with_for_update()
        return self.db.exec(statement).first()

    def require_participant(
        self,
        conversation_id: str,
        user_id: str,
        for_update: bool = False
    ) -> ConversationParticipant:
        """Participant row of user_id, NotFound for unknown conversations, Forbidden for outsiders."""
        if self.db.get(Conversation, conversation_id) is None:
            raise NotFound("Conversation not found")
        participant = self.get_participant(conversation_id, user_id, for_update=for_update)
        if participant is None:
            raise Forbidden()
        return participant

    def record_send(self, conversation_id: str, sender_id: str) -> int:
        """
        Increment unread for every participant except the sender. Returns rows touched.

        The UPDATE locks the recipients' rows until commit; run it before the
        message insert.
        """
        statement = (
            update(ConversationParticipant)
            .where(ConversationParticipant.conversation_id == conversation_id)
            .where(ConversationParticipant.user_id != sender_id)
            .values(unread_count=ConversationParticipant.unread_count + 1)
            .execution_options(synchronize_session=False)
        )
        return self.db.exec(statement).rowcount

    def mark_read(
        self,
        conversation_id: str,
        user_id: str,
        message_ids: Iterable[str] = ()
    ) -> ConversationParticipant:
        """
        Advance the caller's watermark to now.

        Read state is a conversation-level watermark, so every message received
        up to now becomes read regardless of which message_ids were given; the
        ids only travel with the resulting event. Does not commit.

        Args:
            conversation_id: Conversation being read
            user_id: Reader, must be a participant
            message_ids: Messages the client reported as viewed

        Returns:
            The refreshed participant row
        """
        # Stamp the watermark only once the row lock is held; a send in flight
        # holds it from its unread increment until commit
        participant = self.require_participant(conversation_id, user_id, for_update=True)
        now = datetime.utcnow()

        # Anything that lands after the watermark stays unread
        remaining = (
            select(func.count(Message.id))
            .where(Message.conversation_id == conversation_id)
            .where(Message.sender_id != user_id)
            .where(Message.created_at > now)
            .scalar_subquery()
        )
        statement = (
            update(ConversationParticipant)
            .where(ConversationParticipant.id == participant.id)
            .values(last_read_at=now, unread_count=remaining)
            .execution_options(synchronize_session=False)
        )
        self.db.exec(statement)
        self.db.flush()
        self.db.refresh(participant)
        logger.debug(f"Conversation {conversation_id} read by {user_id} (ids={list(message_ids)})")
        return participant

    def mark_all_read(self, conversation_id: str, user_id: str) -> ConversationParticipant:
        return self.mark_read(conversation_id, user_id)

    def reconcile(self, conversation_id: str) -> None:
        """Rewrite cached unread counters of a conversation from the watermark predicate."""
        participant = ConversationParticipant
        derived = (
            select(func.count(Message.id))
            .where(unread_message_clause(participant))
            .scalar_subquery()
        )
        statement = (
            update(participant)
            .where(participant.conversation_id == conversation_id)
            .values(unread_count=derived)
            .execution_options(synchronize_session=False)
        )
        self.db.exec(statement)

    def unread_counts(self, user_id: str) -> Dict[str, int]:
        """Derived unread count per conversation for user_id; conversations with none are omitted."""
        statement = (
            select(ConversationParticipant.conversation_id, func.count(Message.id))
            .join(Message, unread_message_clause())
            .where(ConversationParticipant.user_id == user_id)
            .group_by(ConversationParticipant.conversation_id)
        )
        return {conversation_id: count for conversation_id, count in self.db.exec(statement).all()}
