"""User model for SQLModel.

Users are owned by the portal's account service; the messaging API only reads
them for identity, role checks and display names.
"""
from sqlmodel import SQLModel, Field
from datetime import datetime
from enum import Enum
import uuid


class UserRole(str, Enum):
    """Closed set of portal roles"""
    ADMIN = "ADMIN"
    PATIENT = "PATIENT"
    CAREGIVER = "CAREGIVER"
    CLINICIAN = "CLINICIAN"


class User(SQLModel, table=True):
    """Portal user referenced by conversations and messages."""
    __tablename__ = "users"

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        primary_key=True,
        index=True
    )
    username: str = Field(unique=True, index=True, max_length=100)
    email: str = Field(unique=True, index=True, max_length=255)
    role: UserRole = Field(default=UserRole.PATIENT)
    created_at: datetime = Field(default_factory=datetime.utcnow)
