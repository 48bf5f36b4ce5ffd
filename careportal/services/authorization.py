"""
Authorization Gate

Decides whether a sender may open or continue a conversation with a recipient.
Patients and clinicians may only message counterparts they hold an active
assignment with; admins and caregivers are not restricted.
"""

from datetime import datetime
from typing import List, Optional
import logging

from sqlmodel import Session, select

from careportal.models.assignment import PatientAssignment
from careportal.models.user import User, UserRole
from careportal.services.errors import Forbidden, InvalidRequest, NotFound

logger = logging.getLogger(__name__)


class AssignmentRegistry:
    """Read/write access to patient/clinician assignments."""

    def __init__(self, db: Session):
        self.db = db

    def is_active(self, patient_id: str, clinician_id: str) -> bool:
        statement = select(PatientAssignment.id).where(
            PatientAssignment.patient_id == patient_id,
            PatientAssignment.clinician_id == clinician_id,
            PatientAssignment.is_active == True  # noqa: E712
        )
        return self.db.exec(statement).first() is not None

    def get(self, patient_id: str, clinician_id: str) -> Optional[PatientAssignment]:
        statement = select(PatientAssignment).where(
            PatientAssignment.patient_id == patient_id,
            PatientAssignment.clinician_id == clinician_id
        )
        return self.db.exec(statement).first()

    def set_active(self, patient_id: str, clinician_id: str, is_active: bool) -> PatientAssignment:
        """Create the assignment if needed and set its active flag."""
        patient = self.db.get(User, patient_id)
        clinician = self.db.get(User, clinician_id)
        if patient is None or clinician is None:
            raise NotFound("User not found")
        if patient.role != UserRole.PATIENT or clinician.role != UserRole.CLINICIAN:
            raise InvalidRequest("Assignments pair a patient with a clinician")

        assignment = self.get(patient_id, clinician_id)
        if assignment is None:
            assignment = PatientAssignment(patient_id=patient_id, clinician_id=clinician_id)
            self.db.add(assignment)
        assignment.is_active = is_active
        assignment.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(assignment)
        return assignment

    def active_clinicians(self, patient_id: str) -> List[User]:
        statement = (
            select(User)
            .join(PatientAssignment, PatientAssignment.clinician_id == User.id)
            .where(PatientAssignment.patient_id == patient_id)
            .where(PatientAssignment.is_active == True)  # noqa: E712
            .order_by(User.username)
        )
        return list(self.db.exec(statement).all())

    def active_patients(self, clinician_id: str) -> List[User]:
        statement = (
            select(User)
            .join(PatientAssignment, PatientAssignment.patient_id == User.id)
            .where(PatientAssignment.clinician_id == clinician_id)
            .where(PatientAssignment.is_active == True)  # noqa: E712
            .order_by(User.username)
        )
        return list(self.db.exec(statement).all())


class AuthorizationGate:
    """Role-gated send authorization"""

    def __init__(self, db: Session, registry: Optional[AssignmentRegistry] = None):
        self.db = db
        self.registry = registry or AssignmentRegistry(db)

    def ensure_can_message(self, sender_id: str, sender_role: UserRole, recipient_id: str) -> None:
        """
        Raise Forbidden unless sender may message recipient.

        Args:
            sender_id: Authenticated principal id
            sender_role: Authenticated principal role
            recipient_id: Target user id

        Raises:
            Forbidden: No active assignment between the pair
        """
        if sender_role == UserRole.PATIENT:
            allowed = self.registry.is_active(patient_id=sender_id, clinician_id=recipient_id)
        elif sender_role == UserRole.CLINICIAN:
            allowed = self.registry.is_active(patient_id=recipient_id, clinician_id=sender_id)
        elif sender_role in (UserRole.ADMIN, UserRole.CAREGIVER):
            allowed = True
        else:
            raise ValueError(f"Unhandled role: {sender_role!r}")

        if not allowed:
            logger.warning(f"Send denied: {sender_role.value} {sender_id} -> {recipient_id}")
            raise Forbidden()

    def assigned_counterparts(self, user_id: str, role: UserRole) -> List[User]:
        """Active clinicians for a patient, or active patients for a clinician."""
        if role == UserRole.PATIENT:
            return self.registry.active_clinicians(user_id)
        if role == UserRole.CLINICIAN:
            return self.registry.active_patients(user_id)
        raise Forbidden()
