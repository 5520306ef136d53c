"""Logging setup and structured log context (PII-safe)."""

import logging
from typing import Any

from portal_api.core.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


def build_log_context(
    *,
    user_id: str | None = None,
    slot_id: str | None = None,
    booking_id: str | None = None,
    project_id: str | None = None,
    event_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (ids only, never emails or phones)."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if slot_id:
        context["slot_id"] = slot_id
    if booking_id:
        context["booking_id"] = booking_id
    if project_id:
        context["project_id"] = project_id
    if event_id:
        context["event_id"] = event_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
