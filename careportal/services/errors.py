"""
Messaging error taxonomy.

Services raise these; the API layer renders them as JSON with the matching
HTTP status. Authorization failures always carry the same generic message so a
caller cannot tell a missing user from a missing assignment.
"""

from typing import Any, Dict, Optional

ACCESS_DENIED = "Access denied"


class MessagingError(Exception):
    """Base exception for messaging errors"""
    status_code = 500
    code = "SERVER_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class Unauthenticated(MessagingError):
    status_code = 401
    code = "UNAUTHENTICATED"


class Forbidden(MessagingError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = ACCESS_DENIED, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class InvalidRequest(MessagingError):
    status_code = 400
    code = "INVALID_REQUEST"


class NotFound(MessagingError):
    status_code = 404
    code = "NOT_FOUND"


class ServerError(MessagingError):
    status_code = 500
    code = "SERVER_ERROR"

    def __init__(self, message: str = "Server error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
