"""FastAPI dependencies for authentication, CSRF, gateway, and database access."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.security import decode_session_token
from app.core.websocket import NotificationGateway, gateway
from app.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "angel_eyes_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


class AuthenticationError(Exception):
    """Token missing, invalid, or no longer valid for its user."""

    pass


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_gateway() -> NotificationGateway:
    """Notification gateway used by services to publish real-time events."""
    return gateway


def extract_token(headers, cookies, query_params=None) -> str | None:
    """
    Find a session token: cookie first, then Bearer header, then ?token=.

    Works for both HTTP requests and websocket handshakes.
    """
    token = cookies.get(COOKIE_NAME)
    if token:
        return token
    auth = headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    if query_params is not None:
        return query_params.get("token") or None
    return None


def authenticate_token(db: Session, token: str | None):
    """
    Resolve a token to an active user.

    Validates:
    - JWT is valid and not expired
    - User exists and is active
    - Token version matches (for revocation support)

    Raises:
        AuthenticationError: with a client-safe message
    """
    # Import here to avoid circular imports
    from app.db.models import User

    if not token:
        raise AuthenticationError("Not authenticated")

    try:
        payload = decode_session_token(token)
        user_id = UUID(payload["sub"])
    except Exception:
        raise AuthenticationError("Invalid session")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("Account disabled")

    if user.token_version != payload.get("token_version"):
        raise AuthenticationError("Session revoked")

    return user


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Get the authenticated caller.

    This is the PRIMARY auth dependency for every endpoint. Per-baby access
    is decided by the services, not here.

    Raises:
        HTTPException 401: Authentication failed
    """
    from app.schemas.auth import CurrentUser

    token = extract_token(request.headers, request.cookies)
    try:
        user = authenticate_token(db, token)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))

    return CurrentUser(
        user_id=user.id,
        email=user.email,
        display_name=user.display_name,
    )


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PUT, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )
