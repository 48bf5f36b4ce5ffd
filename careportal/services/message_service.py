"""
Message Service

Send, reply and admin moderation over the append-only message log.

A send is one transaction: resolve-or-create the conversation, increment the
recipient's unread counter, append the message and bump the conversation
timestamp. Any storage failure rolls the whole send back. Events are published
only once the transaction has committed.

The increment runs before the insert so the recipient's participant row is
locked before created_at is stamped. A concurrent mark-read either commits
first, leaving its watermark below the new message, or waits for the send to
commit.
"""

from datetime import datetime
from typing import Iterable, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from careportal.models.conversation import Conversation
from careportal.models.message import Message
from careportal.models.user import User, UserRole
from careportal.schemas.message import MessageOut
from careportal.services import events
from careportal.services.authorization import AuthorizationGate
from careportal.services.conversation_service import ConversationService, render_message
from careportal.services.errors import (
    Forbidden,
    InvalidRequest,
    MessagingError,
    NotFound,
    ServerError,
    Unauthenticated,
)
from careportal.services.events import EventBus, MessagingEvent
from careportal.services.read_state import ReadStateTracker
from careportal.utils import envelope
from careportal.utils.ids import parse_id
from careportal.utils.logger import audit_logger
from careportal.utils.metrics import MetricsCollector, metrics_collector

logger = logging.getLogger(__name__)


class MessageService:
    """Service for the message log"""

    def __init__(
        self,
        db: Session,
        event_bus: Optional[EventBus] = None,
        metrics: MetricsCollector = metrics_collector
    ):
        self.db = db
        self.event_bus = event_bus or EventBus()
        self.metrics = metrics
        self.read_state = ReadStateTracker(db)
        self.conversations = ConversationService(db, self.read_state)
        self.gate = AuthorizationGate(db)

    def append(
        self,
        conversation_id: str,
        sender_id: str,
        subject: str,
        body: str,
        attachment_url: Optional[str] = None,
        attachment_name: Optional[str] = None
    ) -> Message:
        """
        Append a message to a conversation the sender belongs to.

        Bumps conversation.updated_at. Flushes without committing.
        """
        self.read_state.require_participant(conversation_id, sender_id)

        now = datetime.utcnow()
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=envelope.encode(subject, body),
            attachment_url=attachment_url,
            attachment_name=attachment_name,
            created_at=now
        )
        self.db.add(message)

        conversation = self.db.get(Conversation, conversation_id)
        conversation.updated_at = now
        self.db.flush()
        return message

    def send(
        self,
        sender_id: str,
        sender_role: UserRole,
        recipient_id: str,
        subject: str,
        body: str
    ) -> MessageOut:
        """
        Send a direct message, opening the conversation on first contact.

        Args:
            sender_id: Authenticated principal id
            sender_role: Authenticated principal role
            recipient_id: Target user id
            subject: Subject line
            body: Message text

        Returns:
            The stored message with sender identity embedded

        Raises:
            InvalidRequest: Blank fields, malformed or self recipient
            Forbidden: Sender may not message recipient
            Unauthenticated: Sender has no user account
            NotFound: Recipient does not exist
            ServerError: Storage failure, nothing was written
        """
        recipient_id = parse_id(recipient_id, "recipientId")
        subject, body = (subject or "").strip(), (body or "").strip()
        if not subject or not body:
            raise InvalidRequest("recipientId, subject, and body are required")
        if recipient_id == sender_id:
            raise InvalidRequest("Cannot send a message to yourself")
        if self.db.get(User, sender_id) is None:
            logger.warning(f"Send rejected: token subject {sender_id} has no user account")
            raise Unauthenticated("Unknown user")

        try:
            self.gate.ensure_can_message(sender_id, sender_role, recipient_id)
        except Forbidden:
            self.metrics.send_forbidden()
            raise
        if self.db.get(User, recipient_id) is None:
            raise NotFound("Recipient not found")

        def write() -> Message:
            conversation, _ = self.conversations.resolve_or_create(sender_id, recipient_id, subject)
            self.read_state.record_send(conversation.id, sender_id)
            return self.append(conversation.id, sender_id, subject, body)

        message = self._in_transaction(write)
        return self._after_send(message, recipient_ids=[recipient_id])

    def reply(
        self,
        conversation_id: str,
        sender_id: str,
        body: str,
        attachment_url: Optional[str] = None,
        attachment_name: Optional[str] = None
    ) -> MessageOut:
        """
        Reply inside an existing conversation, reusing its subject.

        Being a participant is the only requirement, so a patient can answer a
        thread an admin or caregiver opened.
        """
        conversation_id = parse_id(conversation_id, "conversationId")
        body = (body or "").strip()
        if not body:
            raise InvalidRequest("body is required")

        self.read_state.require_participant(conversation_id, sender_id)
        conversation = self.db.get(Conversation, conversation_id)
        recipient_ids = [p.user_id for p in conversation.participants if p.user_id != sender_id]
        subject = conversation.subject or envelope.NO_SUBJECT

        def write() -> Message:
            self.read_state.record_send(conversation_id, sender_id)
            return self.append(conversation_id, sender_id, subject, body, attachment_url, attachment_name)

        message = self._in_transaction(write)
        return self._after_send(message, recipient_ids=recipient_ids)

    def mark_read(self, conversation_id: str, user_id: str, message_ids: Iterable[str] = ()) -> None:
        """Advance the caller's read watermark on a conversation and commit."""
        conversation_id = parse_id(conversation_id, "conversationId")
        message_ids = [parse_id(message_id, "messageIds") for message_id in message_ids]

        self._in_transaction(lambda: self.read_state.mark_read(conversation_id, user_id, message_ids))
        self.metrics.read_marked()
        self.event_bus.publish(MessagingEvent(
            type=events.CONVERSATION_READ,
            data={"conversation_id": conversation_id, "user_id": user_id, "message_ids": message_ids},
        ))

    def open_conversation(self, conversation_id: str, user_id: str):
        """Full thread for a participant; marks it read for them."""
        conversation_id = parse_id(conversation_id, "conversationId")
        detail = self._in_transaction(lambda: self.conversations.get_detail(conversation_id, user_id))
        self.event_bus.publish(MessagingEvent(
            type=events.CONVERSATION_READ,
            data={"conversation_id": conversation_id, "user_id": user_id, "message_ids": []},
        ))
        return detail

    # Admin moderation

    def set_read_flag(self, message_id: str, is_read: bool, admin_id: str) -> None:
        """Toggle the moderation flag on a message; participant read state is untouched."""
        message = self._get_message(message_id)

        def write() -> None:
            message.is_read = is_read
            self.db.flush()

        self._in_transaction(write)
        action = "mark_read" if is_read else "mark_unread"
        self._after_moderation(action, message.id, message.conversation_id, admin_id)

    def delete(self, message_id: str, admin_id: str) -> None:
        """Hard-delete a message and recompute the conversation's cached unread counters."""
        message = self._get_message(message_id)
        message_id, conversation_id = message.id, message.conversation_id

        def write() -> None:
            self.db.delete(message)
            self.db.flush()
            self.read_state.reconcile(conversation_id)

        self._in_transaction(write)
        self._after_moderation("delete", message_id, conversation_id, admin_id)

    def _get_message(self, message_id: str) -> Message:
        message = self.db.get(Message, parse_id(message_id, "messageId"))
        if message is None:
            raise NotFound("Message not found")
        return message

    def _in_transaction(self, work):
        """Run work and commit; roll back everything on any failure."""
        try:
            result = work()
            self.db.commit()
            return result
        except MessagingError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Messaging write failed: {str(e)}", exc_info=True)
            raise ServerError()

    def _after_send(self, message: Message, recipient_ids) -> MessageOut:
        self.db.refresh(message)
        rendered = render_message(message, self.db.get(User, message.sender_id))
        self.metrics.message_sent()
        logger.info(f"Message {message.id} sent in conversation {message.conversation_id}")
        self.event_bus.publish(MessagingEvent(
            type=events.MESSAGE_SENT,
            data={
                "message_id": message.id,
                "conversation_id": message.conversation_id,
                "sender_id": message.sender_id,
                "recipient_ids": list(recipient_ids),
            },
        ))
        return rendered

    def _after_moderation(self, action: str, message_id: str, conversation_id: str, admin_id: str) -> None:
        self.metrics.moderation_action()
        audit_logger.info(
            "Message moderated",
            action=action,
            message_id=message_id,
            conversation_id=conversation_id,
            admin_id=admin_id,
        )
        self.event_bus.publish(MessagingEvent(
            type=events.MESSAGE_MODERATED,
            data={"action": action, "message_id": message_id, "conversation_id": conversation_id},
        ))
