"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database (tables created/dropped per test)
- Users with roles and JWT minting for admin endpoints
- Fake calendar client, recording email sender, inline dispatcher
- HTTPX AsyncClient with dependency overrides
"""
import os

# Settings are read at import time; configure before importing the app
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GOOGLE_CALENDAR_TIMEZONE"] = "UTC"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASS"] = ""
os.environ["GOOGLE_SERVICE_ACCOUNT_EMAIL"] = ""
os.environ["GOOGLE_CLIENT_ID"] = ""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from portal_api.core.deps import get_calendar_client, get_db, get_dispatcher, get_email_sender
from portal_api.core.security import create_session_token
from portal_api.core.task_queue import InlineDispatcher
from portal_api.db.base import Base
from portal_api.db.enums import RoleName
from portal_api.db.models import Enquiry, User
from portal_api.db.session import SessionLocal, engine
from portal_api.main import app
from portal_api.services import permission_service
from portal_api.services.calendar_service import CalendarAccess, CalendarEventResult

FUTURE_DATE = date(2030, 6, 1)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def make_user(db: Session, name: str, roles: list[RoleName] | None = None, **kwargs) -> User:
    user = User(
        id=uuid.uuid4(),
        email=kwargs.pop("email", f"{name.lower().replace(' ', '.')}-{uuid.uuid4().hex[:6]}@test.com"),
        name=name,
        **kwargs,
    )
    db.add(user)
    db.flush()
    for role in roles or []:
        permission_service.grant_role(db, user, role.value)
    db.commit()
    return user


@pytest.fixture
def superuser(db: Session) -> User:
    return make_user(db, "Super User", [RoleName.SUPERUSER])


@pytest.fixture
def project_manager(db: Session) -> User:
    return make_user(db, "Priya Manager", [RoleName.PROJECT_MANAGER])


@pytest.fixture
def approver(db: Session) -> User:
    return make_user(db, "Harish Higher", [RoleName.HIGHER_MANAGEMENT])


@pytest.fixture
def enquiry(db: Session, project_manager: User) -> Enquiry:
    """Enquiry ready to become a project (assigned + call scheduled)."""
    row = Enquiry(
        id=uuid.uuid4(),
        name="Asha Client",
        email="asha@client.io",
        phone="+91 98765 43210",
        subject="Patent Filing",
        message="Need help filing a patent",
        assigned_to_id=project_manager.id,
        scheduled_call_at=datetime(2030, 5, 20, 10, 0, tzinfo=timezone.utc),
    )
    db.add(row)
    db.commit()
    return row


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_session_token(user.id)}"}


# =============================================================================
# Collaborator Fakes
# =============================================================================

@dataclass
class FakeCalendar:
    """Stands in for GoogleCalendarClient; records calls."""
    configured: bool = True
    meet_link: str | None = "https://meet.google.com/abc-defg-hij"
    fail_with: Exception | None = None
    created: list[dict] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    calendar_id: str = "primary"

    async def create_event(self, **kwargs) -> CalendarEventResult:
        if self.fail_with is not None:
            raise self.fail_with
        self.created.append(kwargs)
        event_id = f"evt-{len(self.created)}"
        return CalendarEventResult(
            event_id=event_id,
            meet_link=self.meet_link,
            html_link=f"https://calendar.google.com/event?eid={event_id}",
        )

    async def delete_event(self, event_id: str) -> bool:
        self.deleted.append(event_id)
        return True

    async def verify_access(self) -> CalendarAccess:
        return CalendarAccess(
            ok=True,
            calendar_id=self.calendar_id,
            summary="Consultations",
            time_zone="UTC",
            access_role="writer",
        )


@dataclass
class RecordingSender:
    """EmailSender that keeps messages in memory."""
    sent: list[dict] = field(default_factory=list)

    def send(self, *, to, subject: str, html: str, text: str | None = None) -> bool:
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return True


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def dispatcher() -> InlineDispatcher:
    return InlineDispatcher()


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(
    db: Session,
    calendar: FakeCalendar,
    sender: RecordingSender,
    dispatcher: InlineDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient with db, calendar, dispatcher and email sender overridden."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_calendar_client] = lambda: calendar
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_email_sender] = lambda: sender

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
