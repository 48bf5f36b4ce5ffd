"""Identifier validation helpers."""
import uuid

from careportal.services.errors import InvalidRequest


def parse_id(value: str, field: str = "id") -> str:
    """Return the canonical string form of a UUID identifier or raise InvalidRequest."""
    try:
        return str(uuid.UUID(str(value)))
    except (ValueError, TypeError, AttributeError):
        raise InvalidRequest(f"Malformed {field}", details={"field": field})
