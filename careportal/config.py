"""Environment configuration for the Care Portal messaging API."""
import os

from dotenv import load_dotenv

# Load environment variables from .env for local development
load_dotenv()

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")

# PostgreSQL in production, SQLite fallback for local dev
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./careportal_dev.db")
SQL_ECHO = os.environ.get("SQL_ECHO", "false").lower() in ("true", "1", "yes")

# Tokens are issued by the portal's auth service and verified here
JWT_SECRET = os.environ.get("JWT_SECRET", "dev_secret")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "auth")

FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5173")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

DAPR_ENABLED = os.environ.get("DAPR_ENABLED", "false").lower() in ("true", "1", "yes")
DAPR_PUBSUB_NAME = os.environ.get("DAPR_PUBSUB_NAME", "messaging-pubsub")
MESSAGE_EVENTS_TOPIC = os.environ.get("MESSAGE_EVENTS_TOPIC", "message-events")

API_VERSION = "1.0.0"
