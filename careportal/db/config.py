"""Database configuration for the messaging API."""
from typing import Generator
import logging

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from careportal.config import DATABASE_URL, SQL_ECHO

logger = logging.getLogger(__name__)

IS_SQLITE = DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    logger.info("[DB CONFIG] Using SQLite database: %s", DATABASE_URL)
else:
    logger.info("[DB CONFIG] Using PostgreSQL database")


def configure_sqlite(engine: Engine) -> None:
    """Enable foreign keys on every new SQLite connection."""

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# SQLite needs check_same_thread disabled since FastAPI serves requests from a threadpool
connect_args = {"check_same_thread": False} if IS_SQLITE else {}

if IS_SQLITE:
    engine = create_engine(DATABASE_URL, echo=SQL_ECHO, connect_args=connect_args)
    configure_sqlite(engine)
else:
    engine = create_engine(DATABASE_URL, echo=SQL_ECHO, pool_pre_ping=True)


def get_session() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session
