"""FastAPI dependencies for authentication, authorization, and collaborators."""

from functools import lru_cache
from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from portal_api.core.config import settings
from portal_api.core.security import decode_session_token
from portal_api.core.task_queue import NotificationDispatcher
from portal_api.db.session import SessionLocal


# Cookie name for browser sessions; API clients send a Bearer token
COOKIE_NAME = "portal_session"


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


def _read_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.cookies.get(COOKIE_NAME)


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Authenticated user from the Bearer header or the session cookie.

    Raises:
        HTTPException 401: Missing/invalid token, unknown or deleted user
    """
    # Import here to avoid circular imports
    from portal_api.db.models import User

    token = _read_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
        user_id = UUID(payload["sub"])
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.is_deleted:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_roles(*allowed_roles):
    """
    Dependency factory for role-based authorization.

    Role membership is read from user_roles on every request.

    Usage:
        @router.get("/x", dependencies=[Depends(require_roles(RoleName.SUPERUSER))])
    """
    from portal_api.services import permission_service

    def dependency(request: Request, db: Session = Depends(get_db)):
        user = get_current_user(request, db)
        if not permission_service.has_any_role(db, user.id, allowed_roles):
            raise HTTPException(status_code=403, detail="Not authorized for this action")
        return user

    return dependency


# =============================================================================
# Collaborators (overridden in tests)
# =============================================================================

@lru_cache
def get_calendar_client():
    from portal_api.services.calendar_service import GoogleCalendarClient

    return GoogleCalendarClient.from_settings(settings)


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        workers=settings.NOTIFICATION_WORKERS,
        maxsize=settings.NOTIFICATION_QUEUE_SIZE,
    )


def get_email_sender():
    from portal_api.services.notification_service import get_email_sender as _sender

    return _sender()
