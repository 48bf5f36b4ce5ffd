"""Tests for the Inbox/Sent projections and the notification summary."""

from sqlmodel import select

from careportal.models import Message, UserRole
from careportal.services.message_service import MessageService
from careportal.services.notification_service import NotificationService
from careportal.services.projections import MailboxProjector

from conftest import assign


def test_pain_update_scenario(session, patient, clinician, assignment):
    """Patient writes, clinician sees it unread, reads it, then sees it read."""
    service = MessageService(session)
    projector = MailboxProjector(session)
    notifications = NotificationService(session)

    sent = service.send(patient.id, UserRole.PATIENT, clinician.id, "Pain update", "Feeling worse today")

    inbox = projector.inbox(clinician.id)
    assert len(inbox) == 1
    row = inbox[0]
    assert row.subject == "Pain update"
    assert row.sender_name == "pat"
    assert row.sender_email == "pat@example.com"
    assert row.preview == "Feeling worse today"
    assert row.unread is True

    summary = notifications.unread_summary(clinician.id)
    assert summary.total_unread == 1
    assert summary.notifications[0].conversation_id == sent.conversation_id
    assert summary.notifications[0].last_sender_name == "pat"

    service.mark_read(sent.conversation_id, clinician.id, [sent.id])

    assert projector.inbox(clinician.id)[0].unread is False
    assert notifications.unread_summary(clinician.id).total_unread == 0
    assert notifications.unread_summary(clinician.id).notifications == []
    assert notifications.unread_count(clinician.id) == 0

    outbox = projector.sent(patient.id)
    assert len(outbox) == 1
    assert outbox[0].recipient_name == "drsmith"
    assert outbox[0].subject == "Pain update"


def test_inbox_and_sent_partition_the_conversation(session, patient, clinician, assignment):
    service = MessageService(session)
    projector = MailboxProjector(session)
    service.send(patient.id, UserRole.PATIENT, clinician.id, "a", "1")
    service.send(clinician.id, UserRole.CLINICIAN, patient.id, "b", "2")
    service.send(patient.id, UserRole.PATIENT, clinician.id, "c", "3")

    all_ids = {m.id for m in session.exec(select(Message)).all()}
    for user in (patient, clinician):
        inbox_ids = {row.id for row in projector.inbox(user.id)}
        sent_ids = {row.id for row in projector.sent(user.id)}
        assert inbox_ids.isdisjoint(sent_ids)
        assert inbox_ids | sent_ids == all_ids


def test_inbox_is_newest_first_and_not_grouped(session, patient, clinician, assignment):
    service = MessageService(session)
    for body in ("first", "second", "third"):
        service.send(patient.id, UserRole.PATIENT, clinician.id, "Thread", body)

    previews = [row.preview for row in MailboxProjector(session).inbox(clinician.id)]
    assert previews == ["third", "second", "first"]


def test_inbox_serializes_with_wire_names(session, patient, clinician, assignment):
    MessageService(session).send(patient.id, UserRole.PATIENT, clinician.id, "s", "b")

    row = MailboxProjector(session).inbox(clinician.id)[0].model_dump(by_alias=True)
    assert {"id", "conversationId", "subject", "from", "fromEmail", "preview", "time", "unread"} == set(row)


def test_legacy_content_without_subject(session, patient, clinician, assignment):
    sent = MessageService(session).send(patient.id, UserRole.PATIENT, clinician.id, "s", "b")
    session.add(Message(conversation_id=sent.conversation_id, sender_id=patient.id, content="old plain text"))
    session.commit()

    rows = MailboxProjector(session).inbox(clinician.id)
    legacy = [row for row in rows if row.preview == "old plain text"][0]
    assert legacy.subject == "No subject"


def test_notifications_only_list_unread_conversations(session, patient, clinician, other_clinician, assignment):
    assign(session, patient, other_clinician)
    service = MessageService(session)
    first = service.send(clinician.id, UserRole.CLINICIAN, patient.id, "From Smith", "hi")
    service.send(other_clinician.id, UserRole.CLINICIAN, patient.id, "From Jones", "hello")
    service.send(other_clinician.id, UserRole.CLINICIAN, patient.id, "From Jones", "again")
    service.mark_read(first.conversation_id, patient.id)

    summary = NotificationService(session).unread_summary(patient.id)

    assert summary.total_unread == 2
    assert len(summary.notifications) == 1
    assert summary.notifications[0].last_sender_name == "drjones"
    assert summary.notifications[0].unread_count == 2
