"""Patient/clinician assignment model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint
from datetime import datetime
import uuid


class PatientAssignment(SQLModel, table=True):
    """
    Care relationship between one patient and one clinician.

    Only active assignments allow the two users to message each other.
    """
    __tablename__ = "patient_assignments"
    __table_args__ = (
        UniqueConstraint("patient_id", "clinician_id", name="uq_assignment_pair"),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    patient_id: str = Field(foreign_key="users.id", index=True)
    clinician_id: str = Field(foreign_key="users.id", index=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
