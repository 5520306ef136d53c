"""Calendar service - Google Calendar adapter for consultation meetings.

Handles:
- Access tokens (service account JWT grant, or OAuth refresh token)
- Event creation with a Google Meet conference request
- Event lookup/deletion
- Calendar access diagnostics

Note: Requires calendar and calendar.events scopes. With a service account the
target calendar must be shared with the service account email
("Make changes to events").
"""

import logging
import time
import uuid
from datetime import datetime
from typing import NamedTuple
from urllib.parse import quote

import httpx
from anyio import to_thread
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from portal_api.core.config import Settings, settings
from portal_api.core.errors import CalendarError
from portal_api.core.structured_logging import build_log_context

logger = logging.getLogger(__name__)

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"
TOKEN_URL = "https://oauth2.googleapis.com/token"
SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]

HINTS = {
    "forbidden": (
        "Share the calendar with the service account email and grant "
        "'Make changes to events' permission."
    ),
    "unauthorized": (
        "Check the service account credentials and make sure the Google Calendar "
        "API is enabled for the project."
    ),
    "not_found": (
        "Verify GOOGLE_CALENDAR_ID is correct and the calendar is shared with the "
        "service account."
    ),
    "missing_meet_link": (
        "The event was created without a Meet link. Share the calendar with the "
        "service account (or use domain-wide delegation) so conference data can be attached."
    ),
}


# =============================================================================
# Types
# =============================================================================

class CalendarEventResult(NamedTuple):
    event_id: str
    meet_link: str | None
    html_link: str | None


class CalendarAccess(NamedTuple):
    """Outcome of a calendar access check."""
    ok: bool
    calendar_id: str
    summary: str | None = None
    time_zone: str | None = None
    access_role: str | None = None
    failure: str | None = None
    hint: str | None = None


def classify_status(status_code: int) -> str:
    if status_code == 401:
        return "unauthorized"
    if status_code == 403:
        return "forbidden"
    if status_code == 404:
        return "not_found"
    return "error"


def extract_meet_link(event: dict) -> str | None:
    """Video entry point URI, falling back to hangoutLink."""
    conference = event.get("conferenceData") or {}
    for entry in conference.get("entryPoints") or []:
        if entry.get("entryPointType") == "video" and entry.get("uri"):
            return entry["uri"]
    return event.get("hangoutLink") or None


# =============================================================================
# Client
# =============================================================================

class GoogleCalendarClient:
    """
    Thin async client over the Calendar REST API.

    One instance per process; it caches the access token. Pass `transport`
    to route HTTP through a custom httpx transport.
    """

    def __init__(
        self,
        *,
        calendar_id: str = "primary",
        timezone_name: str = "UTC",
        service_account_email: str = "",
        private_key: str = "",
        delegate_user: str = "",
        client_id: str = "",
        client_secret: str = "",
        refresh_token: str = "",
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.calendar_id = calendar_id
        self.timezone_name = timezone_name
        self._service_account_email = service_account_email
        self._private_key = private_key
        self._delegate_user = delegate_user
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._timeout = timeout
        self._transport = transport
        self._credentials: service_account.Credentials | None = None
        self._token: str | None = None
        self._token_expires_at = 0.0

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "GoogleCalendarClient":
        return cls(
            calendar_id=config.GOOGLE_CALENDAR_ID,
            timezone_name=config.GOOGLE_CALENDAR_TIMEZONE,
            service_account_email=config.GOOGLE_SERVICE_ACCOUNT_EMAIL,
            private_key=config.google_private_key,
            delegate_user=config.GOOGLE_DELEGATE_USER,
            client_id=config.GOOGLE_CLIENT_ID,
            client_secret=config.GOOGLE_CLIENT_SECRET,
            refresh_token=config.GOOGLE_REFRESH_TOKEN,
            timeout=config.CALENDAR_TIMEOUT_SECONDS,
        )

    @property
    def auth_mode(self) -> str | None:
        if self._service_account_email and self._private_key:
            return "service_account"
        if self._client_id and self._client_secret and self._refresh_token:
            return "oauth"
        return None

    @property
    def configured(self) -> bool:
        return self.auth_mode is not None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _calendar_url(self, *parts: str) -> str:
        path = "/".join(quote(p, safe="") for p in parts)
        base = f"{CALENDAR_API_BASE}/calendars/{quote(self.calendar_id, safe='')}"
        return f"{base}/{path}" if path else base

    # -------------------------------------------------------------------------
    # Token Management
    # -------------------------------------------------------------------------

    async def _access_token(self) -> str:
        if self.auth_mode == "service_account":
            return await self._service_account_token()
        if self.auth_mode == "oauth":
            return await self._oauth_token()
        raise CalendarError("Google Calendar is not configured", kind="not_configured")

    async def _service_account_token(self) -> str:
        if self._credentials is None:
            info = {
                "type": "service_account",
                "client_email": self._service_account_email,
                "private_key": self._private_key,
                "token_uri": TOKEN_URL,
            }
            try:
                self._credentials = service_account.Credentials.from_service_account_info(
                    info,
                    scopes=SCOPES,
                    subject=self._delegate_user or None,
                )
            except ValueError as exc:
                raise CalendarError(
                    f"Invalid service account key: {exc}",
                    kind="unauthorized",
                    hint="Check GOOGLE_PRIVATE_KEY formatting (PEM with \\n line breaks).",
                ) from exc

        credentials = self._credentials
        if not credentials.valid:
            try:
                await to_thread.run_sync(credentials.refresh, GoogleAuthRequest())
            except Exception as exc:
                logger.error("Failed to authorize service account: %s", exc)
                raise CalendarError(
                    f"Failed to authorize service account: {exc}",
                    kind="unauthorized",
                    hint=HINTS["unauthorized"],
                ) from exc
        return credentials.token

    async def _oauth_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        try:
            async with self._client() as client:
                response = await client.post(
                    TOKEN_URL,
                    data={
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                        "refresh_token": self._refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
        except httpx.HTTPError as exc:
            raise CalendarError(f"Token refresh failed: {exc}", kind="unreachable") from exc
        if response.status_code != 200:
            raise CalendarError(
                f"Token refresh failed ({response.status_code})",
                kind="unauthorized",
                hint=HINTS["unauthorized"],
            )
        payload = response.json()
        self._token = payload["access_token"]
        # Refresh a minute early
        self._token_expires_at = time.monotonic() + max(int(payload.get("expires_in", 3600)) - 60, 0)
        return self._token

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        token = await self._access_token()
        headers = {"Authorization": f"Bearer {token}"}
        try:
            async with self._client() as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise CalendarError(f"Calendar request failed: {exc}", kind="unreachable") from exc

        if response.status_code >= 400:
            kind = classify_status(response.status_code)
            message = _error_message(response)
            raise CalendarError(
                f"Calendar API error ({response.status_code}): {message}",
                kind=kind,
                hint=HINTS.get(kind),
            )
        return response

    async def create_event(
        self,
        *,
        start: datetime,
        end: datetime,
        summary: str,
        description: str = "",
        location: str | None = None,
        attendees: list[str] | None = None,
        request_id: str | None = None,
    ) -> CalendarEventResult:
        """
        Create an event and ask Google to attach a Meet conference.

        Conference data is sometimes filled in lazily, so a missing link
        triggers one re-read of the event before giving up.
        """
        request_id = request_id or f"meet-{uuid.uuid4().hex}"
        body: dict = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": start.isoformat(), "timeZone": self.timezone_name},
            "end": {"dateTime": end.isoformat(), "timeZone": self.timezone_name},
            "conferenceData": {
                "createRequest": {
                    "requestId": request_id,
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 24 * 60},
                    {"method": "popup", "minutes": 15},
                ],
            },
        }
        if location:
            body["location"] = location
        # Service accounts cannot invite attendees without domain-wide delegation
        if attendees and self._delegate_user:
            body["attendees"] = [{"email": email} for email in attendees]

        response = await self._request(
            "POST",
            self._calendar_url("events"),
            params={"conferenceDataVersion": 1},
            json=body,
        )
        event = response.json()
        event_id = event.get("id", "")
        meet_link = extract_meet_link(event)

        if not meet_link and event_id:
            try:
                event = await self.get_event(event_id)
            except CalendarError as exc:
                logger.warning(
                    "Re-reading calendar event failed: %s",
                    exc.message,
                    extra=build_log_context(event_id=event_id),
                )
            else:
                meet_link = extract_meet_link(event)

        if not meet_link:
            logger.warning(
                "Google Meet link not found in created event. %s",
                HINTS["missing_meet_link"],
                extra={
                    **build_log_context(event_id=event_id),
                    "has_conference_data": bool(event.get("conferenceData")),
                    "has_hangout_link": bool(event.get("hangoutLink")),
                },
            )
        else:
            logger.info("Calendar event created", extra=build_log_context(event_id=event_id))

        return CalendarEventResult(
            event_id=event_id,
            meet_link=meet_link,
            html_link=event.get("htmlLink"),
        )

    async def get_event(self, event_id: str) -> dict:
        response = await self._request("GET", self._calendar_url("events", event_id))
        return response.json()

    async def delete_event(self, event_id: str) -> bool:
        """Delete an event. An already-deleted event counts as success."""
        try:
            await self._request(
                "DELETE", self._calendar_url("events", event_id), params={"sendUpdates": "none"}
            )
        except CalendarError as exc:
            if exc.kind == "not_found":
                return True
            raise
        return True

    async def verify_access(self) -> CalendarAccess:
        """
        Fetch calendar metadata and the caller's access role.

        Never raises; failures are reported in the result.
        """
        if not self.configured:
            return CalendarAccess(
                ok=False,
                calendar_id=self.calendar_id,
                failure="not_configured",
                hint=(
                    "Set GOOGLE_SERVICE_ACCOUNT_EMAIL and GOOGLE_PRIVATE_KEY, or the "
                    "GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET/GOOGLE_REFRESH_TOKEN trio."
                ),
            )
        try:
            metadata = (await self._request("GET", self._calendar_url())).json()
        except CalendarError as exc:
            logger.warning("Calendar access check failed: %s", exc.message)
            return CalendarAccess(
                ok=False,
                calendar_id=self.calendar_id,
                failure=exc.kind or "error",
                hint=exc.hint,
            )

        # The calendar list entry carries the access role; shared calendars a
        # service account never subscribed to are readable but not listed.
        access_role = None
        try:
            listing = await self._request(
                "GET",
                f"{CALENDAR_API_BASE}/users/me/calendarList/{quote(self.calendar_id, safe='')}",
            )
            access_role = listing.json().get("accessRole")
        except CalendarError as exc:
            logger.info("Calendar access role unavailable: %s", exc.message)

        return CalendarAccess(
            ok=True,
            calendar_id=self.calendar_id,
            summary=metadata.get("summary"),
            time_zone=metadata.get("timeZone"),
            access_role=access_role,
        )


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return error.get("message") or str(error)
    return str(error or payload)[:200]
