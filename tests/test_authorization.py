"""Tests for assignment-gated messaging."""

import pytest

from careportal.models import UserRole
from careportal.services.authorization import AssignmentRegistry, AuthorizationGate
from careportal.services.errors import Forbidden, InvalidRequest, NotFound
from careportal.services.message_service import MessageService

from conftest import make_user


def test_assignment_gating_scenario(session, patient, clinician):
    """Denied without assignment, allowed once active, denied again once revoked."""
    registry = AssignmentRegistry(session)
    service = MessageService(session)

    with pytest.raises(Forbidden):
        service.send(patient.id, UserRole.PATIENT, clinician.id, "Hello", "Can we talk?")

    registry.set_active(patient.id, clinician.id, True)
    message = service.send(patient.id, UserRole.PATIENT, clinician.id, "Hello", "Can we talk?")
    assert message.sender_id == patient.id

    registry.set_active(patient.id, clinician.id, False)
    with pytest.raises(Forbidden):
        service.send(patient.id, UserRole.PATIENT, clinician.id, "Hello", "Still there?")
    with pytest.raises(Forbidden):
        service.send(clinician.id, UserRole.CLINICIAN, patient.id, "Re: Hello", "Sure")


def test_clinician_needs_assignment_in_the_other_direction(session, patient, clinician, assignment):
    gate = AuthorizationGate(session)

    gate.ensure_can_message(clinician.id, UserRole.CLINICIAN, patient.id)
    with pytest.raises(Forbidden):
        gate.ensure_can_message(clinician.id, UserRole.PATIENT, patient.id)


@pytest.mark.parametrize("role", [UserRole.ADMIN, UserRole.CAREGIVER])
def test_unrestricted_roles(session, role, patient):
    AuthorizationGate(session).ensure_can_message("6f1c1a9e-0000-4000-8000-000000000000", role, patient.id)


def test_patients_cannot_message_patients(session, patient):
    other = make_user(session, "pat2", UserRole.PATIENT)
    with pytest.raises(Forbidden):
        AuthorizationGate(session).ensure_can_message(patient.id, UserRole.PATIENT, other.id)


def test_assigned_counterparts(session, patient, clinician, other_clinician, assignment):
    gate = AuthorizationGate(session)
    AssignmentRegistry(session).set_active(patient.id, other_clinician.id, False)

    assert [u.id for u in gate.assigned_counterparts(patient.id, UserRole.PATIENT)] == [clinician.id]
    assert [u.id for u in gate.assigned_counterparts(clinician.id, UserRole.CLINICIAN)] == [patient.id]
    with pytest.raises(Forbidden):
        gate.assigned_counterparts(patient.id, UserRole.CAREGIVER)


def test_set_active_validates_roles(session, patient, clinician):
    registry = AssignmentRegistry(session)

    with pytest.raises(InvalidRequest):
        registry.set_active(clinician.id, patient.id, True)
    with pytest.raises(NotFound):
        registry.set_active(patient.id, "6f1c1a9e-0000-4000-8000-000000000000", True)


def test_set_active_updates_existing_assignment(session, patient, clinician, assignment):
    updated = AssignmentRegistry(session).set_active(patient.id, clinician.id, False)

    assert updated.id == assignment.id
    assert updated.is_active is False
    assert AssignmentRegistry(session).is_active(patient.id, clinician.id) is False
