"""JWT authentication middleware for FastAPI."""
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Request
from jose import jwt, JWTError
from pydantic import BaseModel

from careportal.config import AUTH_COOKIE_NAME, JWT_ALGORITHM, JWT_SECRET
from careportal.models.user import UserRole
from careportal.services.errors import Forbidden, Unauthenticated


class CurrentUser(BaseModel):
    """Principal extracted from the JWT."""
    user_id: str
    role: UserRole
    email: Optional[str] = None


def create_access_token(
    user_id: str,
    role: UserRole,
    email: Optional[str] = None,
    expires_delta: timedelta = timedelta(days=7)
) -> str:
    """Create a signed JWT for a portal user."""
    payload = {
        "sub": user_id,
        "role": UserRole(role).value,
        "exp": datetime.utcnow() + expires_delta,
        "iat": datetime.utcnow(),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def _extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]  # Remove "Bearer " prefix
    # Browser clients send the token as an httpOnly cookie
    return request.cookies.get(AUTH_COOKIE_NAME)


async def get_current_user(request: Request) -> CurrentUser:
    """
    Validate the JWT and extract the principal.

    The token comes from the Authorization header or, failing that, the auth
    cookie. The subject is read from `sub`, or `uid` for tokens issued by the
    older portal login.

    Args:
        request: FastAPI request object

    Returns:
        CurrentUser with user_id, role and email from the token

    Raises:
        Unauthenticated: Token is missing, invalid, expired or incomplete
    """
    token = _extract_token(request)
    if not token:
        raise Unauthenticated("Missing or invalid Authorization header")

    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except JWTError as e:
        raise Unauthenticated(f"Invalid token: {str(e)}")

    user_id = payload.get("sub") or payload.get("uid")
    if not user_id:
        raise Unauthenticated("Invalid token: missing user ID")

    try:
        role = UserRole(str(payload.get("role", "")).upper())
    except ValueError:
        raise Unauthenticated("Invalid token: unknown role")

    return CurrentUser(user_id=str(user_id), role=role, email=payload.get("email"))


async def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Allow ADMIN principals only."""
    if current_user.role != UserRole.ADMIN:
        raise Forbidden()
    return current_user
