"""Tests for the Google Calendar adapter (HTTP mocked with httpx.MockTransport)."""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from portal_api.core.errors import CalendarError
from portal_api.services.calendar_service import (
    GoogleCalendarClient,
    classify_status,
    extract_meet_link,
)

MEET = "https://meet.google.com/xyz-abcd-efg"
START = datetime(2030, 6, 1, 10, 0, tzinfo=timezone.utc)


class FakeGoogle:
    """Routes token and calendar requests; records what was called."""

    def __init__(self, event: dict | None = None, status: int = 200, lazy_event: dict | None = None):
        self.event = event if event is not None else {"id": "evt-1", "hangoutLink": MEET}
        self.status = status
        self.lazy_event = lazy_event
        self.requests: list[httpx.Request] = []
        self.token_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "oauth2.googleapis.com":
            self.token_calls += 1
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        if self.status >= 400:
            return httpx.Response(self.status, json={"error": {"message": "Forbidden"}})
        if request.method == "POST":
            return httpx.Response(200, json=self.event)
        if request.method == "DELETE":
            return httpx.Response(204)
        if "/calendarList/" in request.url.path:
            return httpx.Response(200, json={"accessRole": "writer"})
        if "/events/" in request.url.path:
            return httpx.Response(200, json=self.lazy_event or self.event)
        return httpx.Response(200, json={"summary": "Consultations", "timeZone": "Asia/Kolkata"})


def _client(google: FakeGoogle) -> GoogleCalendarClient:
    return GoogleCalendarClient(
        calendar_id="consult@group.calendar.google.com",
        timezone_name="Asia/Kolkata",
        client_id="cid",
        client_secret="secret",
        refresh_token="refresh",
        transport=httpx.MockTransport(google),
    )


# =============================================================================
# Helpers
# =============================================================================

def test_extract_meet_link_prefers_video_entry_point():
    event = {
        "hangoutLink": "https://meet.google.com/fallback",
        "conferenceData": {
            "entryPoints": [
                {"entryPointType": "phone", "uri": "tel:+1-555"},
                {"entryPointType": "video", "uri": MEET},
            ]
        },
    }
    assert extract_meet_link(event) == MEET
    assert extract_meet_link({"hangoutLink": MEET}) == MEET
    assert extract_meet_link({}) is None


@pytest.mark.parametrize(
    "status,kind",
    [(401, "unauthorized"), (403, "forbidden"), (404, "not_found"), (500, "error")],
)
def test_classify_status(status, kind):
    assert classify_status(status) == kind


def test_auth_mode_detection():
    assert GoogleCalendarClient().configured is False
    assert _client(FakeGoogle()).auth_mode == "oauth"
    sa = GoogleCalendarClient(service_account_email="sa@x.iam", private_key="-----BEGIN")
    assert sa.auth_mode == "service_account"


# =============================================================================
# Events
# =============================================================================

@pytest.mark.asyncio
async def test_create_event_requests_meet_conference():
    google = FakeGoogle()
    client = _client(google)

    result = await client.create_event(
        start=START,
        end=START + timedelta(minutes=30),
        summary="Consultation with Asha",
        attendees=["a@x.io"],
    )

    assert result.event_id == "evt-1"
    assert result.meet_link == MEET
    post = next(r for r in google.requests if r.method == "POST" and "events" in r.url.path)
    assert post.url.params["conferenceDataVersion"] == "1"
    assert post.headers["Authorization"] == "Bearer tok"
    body = json.loads(post.content)
    assert body["conferenceData"]["createRequest"]["conferenceSolutionKey"] == {"type": "hangoutsMeet"}
    assert body["start"]["timeZone"] == "Asia/Kolkata"
    # No delegation, so attendees are not invited
    assert "attendees" not in body


@pytest.mark.asyncio
async def test_create_event_rereads_event_for_lazy_meet_link():
    google = FakeGoogle(event={"id": "evt-2"}, lazy_event={"id": "evt-2", "hangoutLink": MEET})

    result = await _client(google).create_event(
        start=START, end=START + timedelta(minutes=30), summary="Consultation"
    )

    assert result.meet_link == MEET
    assert [r.method for r in google.requests if r.url.host != "oauth2.googleapis.com"] == ["POST", "GET"]


@pytest.mark.asyncio
async def test_create_event_without_meet_link_returns_none():
    google = FakeGoogle(event={"id": "evt-3"})

    result = await _client(google).create_event(
        start=START, end=START + timedelta(minutes=30), summary="Consultation"
    )

    assert result.event_id == "evt-3"
    assert result.meet_link is None


@pytest.mark.asyncio
async def test_create_event_survives_failed_reread(caplog):
    class FlakyGoogle(FakeGoogle):
        def __call__(self, request: httpx.Request) -> httpx.Response:
            if request.method == "GET" and "/events/" in request.url.path:
                self.requests.append(request)
                return httpx.Response(500, json={"error": {"message": "backend"}})
            return super().__call__(request)

    google = FlakyGoogle(event={"id": "evt-4"})

    result = await _client(google).create_event(
        start=START, end=START + timedelta(minutes=30), summary="Consultation"
    )

    assert result.event_id == "evt-4"
    assert result.meet_link is None
    assert "Re-reading calendar event failed" in caplog.text
    assert "Google Meet link not found" in caplog.text


@pytest.mark.asyncio
async def test_forbidden_carries_sharing_hint():
    client = _client(FakeGoogle(status=403))

    with pytest.raises(CalendarError) as exc:
        await client.create_event(start=START, end=START + timedelta(minutes=30), summary="x")

    assert exc.value.kind == "forbidden"
    assert "Make changes to events" in exc.value.hint
    assert "Forbidden" in exc.value.message


@pytest.mark.asyncio
async def test_delete_missing_event_counts_as_success():
    assert await _client(FakeGoogle(status=404)).delete_event("gone") is True


@pytest.mark.asyncio
async def test_token_is_cached_between_requests():
    google = FakeGoogle()
    client = _client(google)

    await client.delete_event("evt-1")
    await client.delete_event("evt-2")

    assert google.token_calls == 1


# =============================================================================
# Diagnostics
# =============================================================================

@pytest.mark.asyncio
async def test_verify_access_reports_metadata():
    access = await _client(FakeGoogle()).verify_access()

    assert access.ok is True
    assert access.summary == "Consultations"
    assert access.time_zone == "Asia/Kolkata"
    assert access.access_role == "writer"


@pytest.mark.asyncio
async def test_verify_access_not_configured():
    access = await GoogleCalendarClient().verify_access()

    assert access.ok is False
    assert access.failure == "not_configured"


@pytest.mark.asyncio
async def test_verify_access_reports_failure_kind():
    access = await _client(FakeGoogle(status=404)).verify_access()

    assert access.ok is False
    assert access.failure == "not_found"
    assert "GOOGLE_CALENDAR_ID" in access.hint
