"""Shared fixtures: in-memory database, portal users and an API client."""

from typing import Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import careportal.db.init  # noqa: F401  registers all tables
from careportal.db.config import configure_sqlite, get_session
from careportal.main import app
from careportal.middleware.auth import create_access_token
from careportal.models import PatientAssignment, User, UserRole
from careportal.services.events import EventBus


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


def make_user(session: Session, username: str, role: UserRole) -> User:
    user = User(username=username, email=f"{username}@example.com", role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def assign(session: Session, patient: User, clinician: User, is_active: bool = True) -> PatientAssignment:
    assignment = PatientAssignment(patient_id=patient.id, clinician_id=clinician.id, is_active=is_active)
    session.add(assignment)
    session.commit()
    session.refresh(assignment)
    return assignment


@pytest.fixture
def patient(session):
    return make_user(session, "pat", UserRole.PATIENT)


@pytest.fixture
def clinician(session):
    return make_user(session, "drsmith", UserRole.CLINICIAN)


@pytest.fixture
def other_clinician(session):
    return make_user(session, "drjones", UserRole.CLINICIAN)


@pytest.fixture
def admin(session):
    return make_user(session, "admin", UserRole.ADMIN)


@pytest.fixture
def caregiver(session):
    return make_user(session, "carol", UserRole.CAREGIVER)


@pytest.fixture
def assignment(session, patient, clinician):
    return assign(session, patient, clinician)


@pytest.fixture
def event_bus():
    bus = EventBus()
    previous = app.state.event_bus
    app.state.event_bus = bus
    yield bus
    app.state.event_bus = previous


@pytest.fixture
def client(session, event_bus):
    def get_session_override():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(user.id, user.role, user.email)
    return {"Authorization": f"Bearer {token}"}
