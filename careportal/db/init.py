"""Initialize database tables."""
import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from careportal.db.config import engine as default_engine

# Imported for their side effect of registering tables on SQLModel.metadata
from careportal.models.user import User  # noqa: F401
from careportal.models.assignment import PatientAssignment  # noqa: F401
from careportal.models.conversation import Conversation, ConversationParticipant  # noqa: F401
from careportal.models.message import Message  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(engine: Engine = default_engine) -> None:
    """Create all tables in the database."""
    logger.info("[DB INIT] Creating all tables...")
    SQLModel.metadata.create_all(engine)
    logger.info("[DB INIT] Tables created successfully.")


def ping(engine: Engine = default_engine) -> bool:
    """Round-trip a trivial query to check the database is reachable."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return True


if __name__ == "__main__":
    init_db()
