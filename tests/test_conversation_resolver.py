"""Tests for resolving the unique two-party conversation."""

import pytest
from sqlmodel import select

from careportal.models import Conversation, ConversationParticipant, make_pair_key
from careportal.services.conversation_service import ConversationService
from careportal.services.errors import InvalidRequest


def test_pair_key_is_order_independent():
    assert make_pair_key("b", "a") == make_pair_key("a", "b") == "a:b"


def test_creates_conversation_with_two_clean_participants(session, patient, clinician):
    service = ConversationService(session)

    conversation, created = service.resolve_or_create(patient.id, clinician.id, "Hello")
    session.commit()

    assert created is True
    assert conversation.subject == "Hello"
    participants = session.exec(
        select(ConversationParticipant).where(ConversationParticipant.conversation_id == conversation.id)
    ).all()
    assert {p.user_id for p in participants} == {patient.id, clinician.id}
    assert all(p.unread_count == 0 and p.last_read_at is None for p in participants)


def test_resolve_is_unique_and_order_independent(session, patient, clinician):
    service = ConversationService(session)

    first, _ = service.resolve_or_create(patient.id, clinician.id, "First")
    session.commit()
    second, created = service.resolve_or_create(clinician.id, patient.id, "Second")

    assert created is False
    assert second.id == first.id
    assert second.subject == "First"
    assert len(session.exec(select(Conversation)).all()) == 1


def test_distinct_pairs_get_distinct_conversations(session, patient, clinician, other_clinician):
    service = ConversationService(session)

    a, _ = service.resolve_or_create(patient.id, clinician.id)
    b, _ = service.resolve_or_create(patient.id, other_clinician.id)
    session.commit()

    assert a.id != b.id


def test_self_conversation_rejected(session, patient):
    with pytest.raises(InvalidRequest):
        ConversationService(session).resolve_or_create(patient.id, patient.id)


def test_concurrent_creator_wins(session, patient, clinician, monkeypatch):
    """Losing the insert race on pair_key returns the conversation that won."""
    service = ConversationService(session)
    winner, _ = service.resolve_or_create(patient.id, clinician.id, "Winner")
    session.commit()
    winner_id = winner.id

    real_find = ConversationService.find_by_pair
    calls = []

    def miss_first_lookup(self, user_a, user_b):
        calls.append((user_a, user_b))
        if len(calls) == 1:
            return None
        return real_find(self, user_a, user_b)

    monkeypatch.setattr(ConversationService, "find_by_pair", miss_first_lookup)

    conversation, created = service.resolve_or_create(clinician.id, patient.id, "Loser")

    assert created is False
    assert conversation.id == winner_id
    assert len(calls) == 2
    assert len(session.exec(select(Conversation)).all()) == 1
