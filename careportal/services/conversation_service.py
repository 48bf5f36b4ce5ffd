"""
Conversation Service

Resolves the unique two-party conversation for a pair of users and serves the
conversation list and full-thread views.

Invariants:
- At most one conversation per unordered pair of users (unique pair_key)
- Only participants can see a conversation
"""

from typing import Dict, List, Optional, Tuple
import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from careportal.models.conversation import Conversation, ConversationParticipant, make_pair_key
from careportal.models.message import Message
from careportal.models.user import User
from careportal.schemas.message import (
    ConversationDetail,
    ConversationSummary,
    MessageOut,
    ParticipantSummary,
    UserSummary,
)
from careportal.services.errors import InvalidRequest
from careportal.services.read_state import ReadStateTracker
from careportal.utils import envelope

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown"


def render_message(message: Message, sender: Optional[User]) -> MessageOut:
    """Message with its envelope decoded and sender identity embedded."""
    parsed = envelope.decode(message.content)
    return MessageOut(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        subject=parsed.subject,
        body=parsed.body,
        content=message.content,
        attachment_url=message.attachment_url,
        attachment_name=message.attachment_name,
        created_at=message.created_at,
        sender=UserSummary(id=sender.id, username=sender.username, email=sender.email) if sender else None,
    )


def render_participant(participant: ConversationParticipant, user: Optional[User]) -> ParticipantSummary:
    return ParticipantSummary(
        user_id=participant.user_id,
        username=user.username if user else UNKNOWN_USER,
        email=user.email if user else None,
        role=user.role.value if user else None,
    )


class ConversationService:
    """Service for resolving and reading conversations"""

    def __init__(self, db: Session, read_state: Optional[ReadStateTracker] = None):
        self.db = db
        self.read_state = read_state or ReadStateTracker(db)

    def find_by_pair(self, user_a: str, user_b: str) -> Optional[Conversation]:
        statement = select(Conversation).where(Conversation.pair_key == make_pair_key(user_a, user_b))
        return self.db.exec(statement).first()

    def resolve_or_create(
        self,
        user_a: str,
        user_b: str,
        subject_hint: Optional[str] = None
    ) -> Tuple[Conversation, bool]:
        """
        Find or create the conversation between two users.

        The lookup is order independent. A new conversation gets one participant
        row per user with nothing unread. The insert is flushed, not committed, so
        it joins the caller's transaction; it must be the first write of that
        transaction because losing the unique pair_key race rolls it back.

        Args:
            user_a: One participant id
            user_b: The other participant id
            subject_hint: Subject stored on a newly created conversation

        Returns:
            (conversation, created)

        Raises:
            InvalidRequest: user_a and user_b are the same user
        """
        if user_a == user_b:
            raise InvalidRequest("Cannot start a conversation with yourself")

        existing = self.find_by_pair(user_a, user_b)
        if existing:
            return existing, False

        conversation = Conversation(subject=subject_hint, pair_key=make_pair_key(user_a, user_b))
        conversation.participants = [
            ConversationParticipant(user_id=user_a),
            ConversationParticipant(user_id=user_b),
        ]
        self.db.add(conversation)
        try:
            self.db.flush()
        except IntegrityError:
            # A concurrent request created this pair first
            self.db.rollback()
            existing = self.find_by_pair(user_a, user_b)
            if existing is None:
                raise
            logger.info(f"Conversation for pair {existing.pair_key} created concurrently, reusing {existing.id}")
            return existing, False

        logger.info(f"Created conversation {conversation.id} for {user_a} and {user_b}")
        return conversation, True

    def get_user_conversations(self, user_id: str) -> List[ConversationSummary]:
        """Conversations of user_id, most recently active first."""
        statement = (
            select(Conversation)
            .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
            .where(ConversationParticipant.user_id == user_id)
            .order_by(Conversation.updated_at.desc())
        )
        conversations = list(self.db.exec(statement).all())
        unread = self.read_state.unread_counts(user_id)
        users = self._users_for(conversations)

        items = []
        for conversation in conversations:
            other = conversation.other_participant(user_id)
            last = conversation.messages[-1] if conversation.messages else None
            items.append(ConversationSummary(
                id=conversation.id,
                subject=conversation.subject,
                updated_at=conversation.updated_at,
                unread_count=unread.get(conversation.id, 0),
                other_participant=render_participant(other, users.get(other.user_id)) if other else None,
                last_message=render_message(last, users.get(last.sender_id)) if last else None,
            ))
        return items

    def get_detail(self, conversation_id: str, user_id: str) -> ConversationDetail:
        """
        Full thread of a conversation, oldest message first.

        Opening a conversation marks it read for the opener. Does not commit.
        """
        self.read_state.require_participant(conversation_id, user_id)
        conversation = self.db.get(Conversation, conversation_id)
        users = self._users_for([conversation])

        detail = ConversationDetail(
            id=conversation.id,
            subject=conversation.subject,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
            participants=[render_participant(p, users.get(p.user_id)) for p in conversation.participants],
            messages=[render_message(m, users.get(m.sender_id)) for m in conversation.messages],
        )
        self.read_state.mark_all_read(conversation_id, user_id)
        return detail

    def _users_for(self, conversations: List[Conversation]) -> Dict[str, User]:
        user_ids = {p.user_id for c in conversations for p in c.participants}
        user_ids |= {m.sender_id for c in conversations for m in c.messages}
        if not user_ids:
            return {}
        statement = select(User).where(User.id.in_(user_ids))
        return {user.id: user for user in self.db.exec(statement).all()}
