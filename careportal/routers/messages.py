"""Messaging router: send, reply, mailbox views, read state and moderation."""
import logging

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from careportal.db.config import get_session
from careportal.middleware.auth import CurrentUser, get_current_user, require_admin
from careportal.models.user import UserRole
from careportal.schemas.message import (
    AssignedCliniciansResponse,
    AssignedPatientsResponse,
    ConversationDetailResponse,
    ConversationListResponse,
    InboxResponse,
    MarkReadRequest,
    NotificationsResponse,
    ReplyRequest,
    SendMessageRequest,
    SendMessageResponse,
    SentResponse,
    SuccessResponse,
    UnreadCountResponse,
    UserSummary,
)
from careportal.services.authorization import AuthorizationGate
from careportal.services.conversation_service import ConversationService
from careportal.services.errors import Forbidden
from careportal.services.events import EventBus
from careportal.services.message_service import MessageService
from careportal.services.notification_service import NotificationService
from careportal.services.projections import MailboxProjector

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"])


def get_event_bus(request: Request) -> EventBus:
    """Dependency for the application-wide event bus."""
    return request.app.state.event_bus


def get_message_service(
    session: Session = Depends(get_session),
    event_bus: EventBus = Depends(get_event_bus)
) -> MessageService:
    """Dependency for getting MessageService instance."""
    return MessageService(session, event_bus)


def get_conversation_service(session: Session = Depends(get_session)) -> ConversationService:
    return ConversationService(session)


def get_mailbox_projector(session: Session = Depends(get_session)) -> MailboxProjector:
    return MailboxProjector(session)


def get_notification_service(session: Session = Depends(get_session)) -> NotificationService:
    return NotificationService(session)


def get_authorization_gate(session: Session = Depends(get_session)) -> AuthorizationGate:
    return AuthorizationGate(session)


@router.post("/send", response_model=SendMessageResponse)
async def send_message(
    request: SendMessageRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    """Send a message, opening a conversation with the recipient if none exists."""
    message = service.send(
        sender_id=current_user.user_id,
        sender_role=current_user.role,
        recipient_id=request.recipient_id,
        subject=request.subject,
        body=request.body
    )
    return SendMessageResponse(message=message)


@router.get("/inbox", response_model=InboxResponse)
async def get_inbox(
    current_user: CurrentUser = Depends(get_current_user),
    projector: MailboxProjector = Depends(get_mailbox_projector),
):
    """Messages received by the caller, newest first."""
    return InboxResponse(conversations=projector.inbox(current_user.user_id))


@router.get("/sent", response_model=SentResponse)
async def get_sent(
    current_user: CurrentUser = Depends(get_current_user),
    projector: MailboxProjector = Depends(get_mailbox_projector),
):
    """Messages sent by the caller, newest first."""
    return SentResponse(conversations=projector.sent(current_user.user_id))


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    current_user: CurrentUser = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    return ConversationListResponse(conversations=service.get_user_conversations(current_user.user_id))


@router.get("/notifications", response_model=NotificationsResponse)
async def get_notifications(
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Unread summary per conversation; polled by the web client."""
    return service.unread_summary(current_user.user_id)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    current_user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return UnreadCountResponse(unread_count=service.unread_count(current_user.user_id))


@router.get("/assigned-clinicians", response_model=AssignedCliniciansResponse)
async def get_assigned_clinicians(
    current_user: CurrentUser = Depends(get_current_user),
    gate: AuthorizationGate = Depends(get_authorization_gate),
):
    """Clinicians the calling patient may message."""
    if current_user.role != UserRole.PATIENT:
        raise Forbidden()
    clinicians = gate.assigned_counterparts(current_user.user_id, current_user.role)
    return AssignedCliniciansResponse(
        clinicians=[UserSummary(id=u.id, username=u.username, email=u.email) for u in clinicians]
    )


@router.get("/assigned-patients", response_model=AssignedPatientsResponse)
async def get_assigned_patients(
    current_user: CurrentUser = Depends(get_current_user),
    gate: AuthorizationGate = Depends(get_authorization_gate),
):
    """Patients the calling clinician may message."""
    if current_user.role != UserRole.CLINICIAN:
        raise Forbidden()
    patients = gate.assigned_counterparts(current_user.user_id, current_user.role)
    return AssignedPatientsResponse(
        patients=[UserSummary(id=u.id, username=u.username, email=u.email) for u in patients]
    )


@router.post("/mark-read", response_model=SuccessResponse)
async def mark_read(
    request: MarkReadRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    """Mark a conversation read for the caller."""
    service.mark_read(request.conversation_id, current_user.user_id, request.message_ids)
    return SuccessResponse()


@router.get("/conversation/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    conversation_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    """Full thread, oldest first. Opening it marks it read for the caller."""
    detail = service.open_conversation(conversation_id, current_user.user_id)
    return ConversationDetailResponse(conversation=detail)


@router.post("/conversation/{conversation_id}/reply", response_model=SendMessageResponse)
async def reply_to_conversation(
    conversation_id: str,
    request: ReplyRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: MessageService = Depends(get_message_service),
):
    message = service.reply(
        conversation_id=conversation_id,
        sender_id=current_user.user_id,
        body=request.body,
        attachment_url=request.attachment_url,
        attachment_name=request.attachment_name
    )
    return SendMessageResponse(message=message)


# Admin moderation

@router.put("/{message_id}/read", response_model=SuccessResponse)
async def admin_mark_read(
    message_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: MessageService = Depends(get_message_service),
):
    service.set_read_flag(message_id, True, admin.user_id)
    return SuccessResponse(message="Message marked as read")


@router.put("/{message_id}/unread", response_model=SuccessResponse)
async def admin_mark_unread(
    message_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: MessageService = Depends(get_message_service),
):
    service.set_read_flag(message_id, False, admin.user_id)
    return SuccessResponse(message="Message marked as unread")


@router.delete("/{message_id}", response_model=SuccessResponse)
async def admin_delete_message(
    message_id: str,
    admin: CurrentUser = Depends(require_admin),
    service: MessageService = Depends(get_message_service),
):
    service.delete(message_id, admin.user_id)
    return SuccessResponse(message="Message deleted successfully")
