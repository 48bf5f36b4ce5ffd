"""Messaging schemas. JSON on the wire is camelCase."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Requests

class SendMessageRequest(CamelModel):
    """Body of POST /messages/send."""
    recipient_id: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1, max_length=10000)


class ReplyRequest(CamelModel):
    """Body of POST /messages/conversation/{id}/reply."""
    body: str = Field(..., min_length=1, max_length=10000)
    attachment_url: Optional[str] = Field(None, max_length=500)
    attachment_name: Optional[str] = Field(None, max_length=255)


class MarkReadRequest(CamelModel):
    """Body of POST /messages/mark-read."""
    conversation_id: str = Field(..., min_length=1)
    message_ids: List[str] = Field(default_factory=list)


class AssignmentUpdateRequest(CamelModel):
    """Body of PUT /admin/assignments."""
    patient_id: str = Field(..., min_length=1)
    clinician_id: str = Field(..., min_length=1)
    is_active: bool = True


# Shared pieces

class UserSummary(CamelModel):
    id: str
    username: str
    email: Optional[str] = None


class ParticipantSummary(CamelModel):
    user_id: str
    username: str
    email: Optional[str] = None
    role: Optional[str] = None


class MessageOut(CamelModel):
    id: str
    conversation_id: str
    sender_id: str
    subject: str
    body: str
    content: str
    attachment_url: Optional[str] = None
    attachment_name: Optional[str] = None
    created_at: datetime
    sender: Optional[UserSummary] = None


# Projections

class InboxRow(CamelModel):
    """One received message; the inbox is not grouped by conversation."""
    id: str
    conversation_id: str
    subject: str
    sender_name: str = Field(alias="from")
    sender_email: Optional[str] = Field(None, alias="fromEmail")
    preview: str
    time: datetime
    unread: bool


class SentRow(CamelModel):
    """One message authored by the viewer."""
    id: str
    conversation_id: str
    subject: str
    recipient_name: str = Field(alias="to")
    recipient_email: Optional[str] = Field(None, alias="toEmail")
    preview: str
    time: datetime


class ConversationSummary(CamelModel):
    id: str
    subject: Optional[str] = None
    updated_at: datetime
    unread_count: int
    other_participant: Optional[ParticipantSummary] = None
    last_message: Optional[MessageOut] = None


class ConversationDetail(CamelModel):
    id: str
    subject: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    participants: List[ParticipantSummary]
    messages: List[MessageOut]


class NotificationItem(CamelModel):
    conversation_id: str
    subject: Optional[str] = None
    unread_count: int
    last_sender_name: str
    last_message_time: datetime


class AssignmentOut(CamelModel):
    id: str
    patient_id: str
    clinician_id: str
    is_active: bool
    updated_at: datetime


# Responses

class SendMessageResponse(CamelModel):
    success: bool = True
    message: MessageOut


class InboxResponse(CamelModel):
    conversations: List[InboxRow]


class SentResponse(CamelModel):
    conversations: List[SentRow]


class ConversationListResponse(CamelModel):
    conversations: List[ConversationSummary]


class ConversationDetailResponse(CamelModel):
    conversation: ConversationDetail


class NotificationsResponse(CamelModel):
    notifications: List[NotificationItem]
    total_unread: int


class UnreadCountResponse(CamelModel):
    unread_count: int


class SuccessResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None


class AssignmentResponse(CamelModel):
    success: bool = True
    assignment: AssignmentOut


class AssignedCliniciansResponse(CamelModel):
    clinicians: List[UserSummary]


class AssignedPatientsResponse(CamelModel):
    patients: List[UserSummary]
