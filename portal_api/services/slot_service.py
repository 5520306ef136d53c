"""Consultation slot store - persistence, queries, and slot invariants.

Invariants kept here:
- end_time == start_time + duration, never past 23:59.
- No two non-cancelled slots on one date overlap (half-open intervals).
- Date, start time and duration are frozen while active bookings exist.
- max_bookings never drops below the active booking count.
"""

import logging
from datetime import date
from typing import NamedTuple
from uuid import UUID

from sqlalchemy.orm import Session

from portal_api.core.errors import (
    CapacityBelowLoad,
    Conflict,
    ImmutableWhenBooked,
    InvalidTimeFormat,
    NotFound,
    PastDate,
    ValidationFailed,
)
from portal_api.core.structured_logging import build_log_context
from portal_api.db.enums import SlotStatus
from portal_api.db.models import ConsultationBooking, ConsultationSlot
from portal_api.services.booking_service import active_booking_count, active_booking_counts
from portal_api.utils.pagination import PaginationParams, paginate_query
from portal_api.utils.time_slots import (
    TimeRange,
    end_time as compute_end_time,
    format_hhmm,
    iter_dates,
    normalize_date,
    overlaps,
    parse_hhmm,
    time_range,
    utc_today,
)

logger = logging.getLogger(__name__)

MIN_DURATION = 15
MAX_DURATION = 480


# =============================================================================
# Types
# =============================================================================

class SlotAvailability(NamedTuple):
    """A slot with its live active-booking count."""
    slot: ConsultationSlot
    booking_count: int

    @property
    def available_spots(self) -> int:
        return max(self.slot.max_bookings - self.booking_count, 0)


class PlannedSlot(NamedTuple):
    """Slot about to be inserted (validated, not yet persisted)."""
    date: date
    start_time: str
    end_time: str
    duration: int
    max_bookings: int
    notes: str | None
    status: str

    @property
    def range(self) -> TimeRange:
        return time_range(self.start_time, self.end_time)


def _with_counts(db: Session, slots: list[ConsultationSlot]) -> list[SlotAvailability]:
    counts = active_booking_counts(db, [s.id for s in slots])
    return [SlotAvailability(slot=s, booking_count=counts.get(s.id, 0)) for s in slots]


# =============================================================================
# Queries
# =============================================================================

def list_available(
    db: Session,
    on_date: date | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[SlotAvailability]:
    """
    Open slots for the public booking page.

    Filters by a single date, a date range, or (default) today onward.
    Slots with no remaining capacity are dropped.
    """
    query = db.query(ConsultationSlot).filter(
        ConsultationSlot.status == SlotStatus.AVAILABLE.value,
        ConsultationSlot.is_available.is_(True),
    )
    if on_date is not None:
        query = query.filter(ConsultationSlot.date == normalize_date(on_date))
    elif start_date is not None or end_date is not None:
        if start_date is not None:
            query = query.filter(ConsultationSlot.date >= normalize_date(start_date))
        if end_date is not None:
            query = query.filter(ConsultationSlot.date <= normalize_date(end_date))
    else:
        query = query.filter(ConsultationSlot.date >= utc_today())

    slots = query.order_by(ConsultationSlot.date.asc(), ConsultationSlot.start_time.asc()).all()
    return [item for item in _with_counts(db, slots) if item.available_spots > 0]


def list_slots(
    db: Session,
    pagination: PaginationParams,
    status: str | None = None,
    is_available: bool | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> tuple[list[SlotAvailability], int]:
    """Admin listing with filters. Returns (items, total)."""
    query = db.query(ConsultationSlot)
    if status:
        query = query.filter(ConsultationSlot.status == status)
    if is_available is not None:
        query = query.filter(ConsultationSlot.is_available.is_(is_available))
    if start_date is not None:
        query = query.filter(ConsultationSlot.date >= normalize_date(start_date))
    if end_date is not None:
        query = query.filter(ConsultationSlot.date <= normalize_date(end_date))
    query = query.order_by(ConsultationSlot.date.asc(), ConsultationSlot.start_time.asc())
    slots, total = paginate_query(query, pagination)
    return _with_counts(db, slots), total


def get_slot(db: Session, slot_id: UUID) -> ConsultationSlot:
    slot = db.query(ConsultationSlot).filter(ConsultationSlot.id == slot_id).first()
    if not slot:
        raise NotFound("Slot not found")
    return slot


def get_slot_with_count(db: Session, slot_id: UUID) -> SlotAvailability:
    slot = get_slot(db, slot_id)
    return SlotAvailability(slot=slot, booking_count=active_booking_count(db, slot.id))


def find_conflict(
    db: Session,
    slot_date: date,
    rng: TimeRange,
    exclude_id: UUID | None = None,
) -> ConsultationSlot | None:
    """First non-cancelled slot on the date overlapping rng, if any."""
    query = db.query(ConsultationSlot).filter(
        ConsultationSlot.date == slot_date,
        ConsultationSlot.status != SlotStatus.CANCELLED.value,
    )
    if exclude_id is not None:
        query = query.filter(ConsultationSlot.id != exclude_id)
    for existing in query.all():
        if overlaps(rng, time_range(existing.start_time, existing.end_time)):
            return existing
    return None


# =============================================================================
# Create
# =============================================================================

def _check_not_past(slot_date: date) -> None:
    if slot_date < utc_today():
        raise PastDate()


def _plan(
    slot_date: date,
    start_time: str,
    duration: int,
    max_bookings: int,
    notes: str | None,
    status: str,
) -> PlannedSlot:
    start_time = start_time.strip()
    return PlannedSlot(
        date=slot_date,
        start_time=format_hhmm(parse_hhmm(start_time)),
        end_time=compute_end_time(start_time, duration),
        duration=int(duration),
        max_bookings=int(max_bookings),
        notes=(notes or "").strip() or None,
        status=status,
    )


def _conflicts_for(db: Session, planned: list[PlannedSlot]) -> list[str]:
    """Messages for every planned slot that overlaps an existing or sibling slot."""
    messages: list[str] = []
    existing_by_date: dict[date, list[ConsultationSlot]] = {}
    for p in planned:
        if p.date not in existing_by_date:
            existing_by_date[p.date] = db.query(ConsultationSlot).filter(
                ConsultationSlot.date == p.date,
                ConsultationSlot.status != SlotStatus.CANCELLED.value,
            ).all()
        for existing in existing_by_date[p.date]:
            if overlaps(p.range, time_range(existing.start_time, existing.end_time)):
                messages.append(
                    f"Slot on {p.date.isoformat()} at {p.start_time} conflicts with "
                    f"{existing.start_time} - {existing.end_time}"
                )
                break

    for i, a in enumerate(planned):
        for b in planned[i + 1:]:
            if a.date == b.date and overlaps(a.range, b.range):
                messages.append(
                    f"Slot on {a.date.isoformat()} at {a.start_time} conflicts with "
                    f"{b.start_time} - {b.end_time} (in your list)"
                )
    return messages


def _insert(db: Session, planned: list[PlannedSlot], created_by: UUID | None) -> list[ConsultationSlot]:
    slots = [
        ConsultationSlot(
            date=p.date,
            start_time=p.start_time,
            end_time=p.end_time,
            duration=p.duration,
            max_bookings=p.max_bookings,
            notes=p.notes,
            status=p.status,
            is_available=p.status == SlotStatus.AVAILABLE.value,
            created_by_id=created_by,
        )
        for p in planned
    ]
    db.add_all(slots)
    db.commit()
    for slot in slots:
        db.refresh(slot)
    return slots


def create_slot(
    db: Session,
    slot_date: date,
    start_time: str,
    duration: int = 30,
    max_bookings: int = 1,
    notes: str | None = None,
    status: str = SlotStatus.AVAILABLE.value,
    created_by: UUID | None = None,
) -> ConsultationSlot:
    """Create one slot for today or later."""
    slot_date = normalize_date(slot_date)
    _check_not_past(slot_date)
    planned = _plan(slot_date, start_time, duration, max_bookings, notes, status)

    conflict = find_conflict(db, slot_date, planned.range)
    if conflict:
        raise Conflict(
            f"Time slot conflicts with existing slot: {conflict.start_time} - {conflict.end_time}"
        )

    slot = _insert(db, [planned], created_by)[0]
    logger.info(
        "Consultation slot created for %s %s-%s",
        slot.date.isoformat(),
        slot.start_time,
        slot.end_time,
        extra=build_log_context(slot_id=str(slot.id), user_id=str(created_by) if created_by else None),
    )
    return slot


def create_bulk(
    db: Session,
    start_date: date,
    end_date: date,
    start_time: str,
    end_time: str,
    interval: int,
    duration: int = 30,
    max_bookings: int = 1,
    notes: str | None = None,
    created_by: UUID | None = None,
) -> list[ConsultationSlot]:
    """
    Generate slots every `interval` minutes within [start_time, end_time) on
    each day of [start_date, end_date].

    All-or-nothing: any conflict (with stored slots or among the generated
    ones) rejects the whole batch.
    """
    start_date = normalize_date(start_date)
    end_date = normalize_date(end_date)
    if start_date > end_date:
        raise ValidationFailed("Start date must be before or equal to end date")
    if start_date < utc_today():
        raise PastDate("Cannot create slots in the past")

    window_start = parse_hhmm(start_time)
    window_end = parse_hhmm(end_time)
    if window_start >= window_end:
        raise ValidationFailed("Start time must be before end time")
    if interval <= 0:
        raise ValidationFailed("Interval must be a positive number of minutes")

    planned: list[PlannedSlot] = []
    for day in iter_dates(start_date, end_date):
        cursor = window_start
        while cursor + duration <= window_end:
            planned.append(
                _plan(day, format_hhmm(cursor), duration, max_bookings, notes, SlotStatus.AVAILABLE.value)
            )
            cursor += interval

    if not planned:
        raise ValidationFailed("No slots fit in the given time window")

    conflicts = _conflicts_for(db, planned)
    if conflicts:
        raise Conflict(f"Time conflicts detected: {'; '.join(conflicts)}")

    slots = _insert(db, planned, created_by)
    logger.info(
        "Bulk created %d consultation slots from %s to %s",
        len(slots),
        start_date.isoformat(),
        end_date.isoformat(),
        extra=build_log_context(user_id=str(created_by) if created_by else None),
    )
    return slots


def create_multiple(
    db: Session,
    slot_date: date,
    slots: list[dict],
    created_by: UUID | None = None,
) -> list[ConsultationSlot]:
    """
    Create several explicitly-timed slots on one date.

    Each entry: {start_time, duration=30, max_bookings=1, notes, status}.
    Per-entry validation errors are collected and reported together.
    """
    slot_date = normalize_date(slot_date)
    if not slots:
        raise ValidationFailed("Date and slots array are required")
    _check_not_past(slot_date)

    planned: list[PlannedSlot] = []
    errors: list[dict] = []
    for i, spec in enumerate(slots):
        label = f"Slot {i + 1}"
        start = (spec.get("start_time") or "").strip()
        duration = spec.get("duration") or 30
        if not start:
            errors.append({"field": f"slots.{i}.startTime", "message": f"{label}: Start time is required"})
            continue
        if not (MIN_DURATION <= duration <= MAX_DURATION):
            errors.append({
                "field": f"slots.{i}.duration",
                "message": f"{label}: Duration must be between {MIN_DURATION} and {MAX_DURATION} minutes",
            })
            continue
        try:
            planned.append(
                _plan(
                    slot_date,
                    start,
                    duration,
                    spec.get("max_bookings") or 1,
                    spec.get("notes"),
                    spec.get("status") or SlotStatus.AVAILABLE.value,
                )
            )
        except InvalidTimeFormat as exc:
            errors.append({"field": f"slots.{i}.startTime", "message": f"{label}: {exc.message}"})

    if errors:
        raise ValidationFailed(
            "Validation errors: " + "; ".join(e["message"] for e in errors),
            errors=errors,
        )

    conflicts = _conflicts_for(db, planned)
    if conflicts:
        raise Conflict(f"Time conflicts detected: {'; '.join(conflicts)}")

    created = _insert(db, planned, created_by)
    logger.info(
        "Created %d consultation slots for %s",
        len(created),
        slot_date.isoformat(),
        extra=build_log_context(user_id=str(created_by) if created_by else None),
    )
    return created


# =============================================================================
# Update / Delete
# =============================================================================

def update_slot(db: Session, slot_id: UUID, patch: dict) -> SlotAvailability:
    """
    Apply an admin patch.

    Recognised keys: date, start_time, duration, max_bookings, notes, status,
    is_available. A status change sets is_available to (status == available)
    unless is_available is also in the patch.
    """
    slot = get_slot(db, slot_id)
    active = active_booking_count(db, slot.id)

    new_date = normalize_date(patch["date"]) if patch.get("date") is not None else slot.date
    new_start = patch["start_time"].strip() if patch.get("start_time") is not None else slot.start_time
    new_duration = patch["duration"] if patch.get("duration") is not None else slot.duration

    schedule_changed = (
        new_date != slot.date or new_start != slot.start_time or new_duration != slot.duration
    )
    if schedule_changed and active > 0:
        raise ImmutableWhenBooked()

    if patch.get("max_bookings") is not None and patch["max_bookings"] < active:
        raise CapacityBelowLoad(
            f"Max bookings cannot be lower than the current active bookings ({active})"
        )

    if schedule_changed:
        if new_date != slot.date:
            _check_not_past(new_date)
        new_end = compute_end_time(new_start, new_duration)
        conflict = find_conflict(db, new_date, time_range(new_start, new_end), exclude_id=slot.id)
        if conflict:
            raise Conflict(
                f"Time slot conflicts with existing slot: {conflict.start_time} - {conflict.end_time}"
            )
        slot.date = new_date
        slot.start_time = format_hhmm(parse_hhmm(new_start))
        slot.duration = new_duration
        slot.end_time = new_end

    if patch.get("max_bookings") is not None:
        slot.max_bookings = patch["max_bookings"]
    if "notes" in patch:
        slot.notes = (patch["notes"] or "").strip() or None
    if patch.get("status") is not None:
        slot.status = patch["status"]
        slot.is_available = slot.status == SlotStatus.AVAILABLE.value
    elif slot.status in (SlotStatus.AVAILABLE.value, SlotStatus.BOOKED.value):
        # booked iff full, against the new capacity
        derived = SlotStatus.BOOKED.value if active >= slot.max_bookings else SlotStatus.AVAILABLE.value
        if derived != slot.status:
            slot.status = derived
            slot.is_available = derived == SlotStatus.AVAILABLE.value
    if patch.get("is_available") is not None:
        slot.is_available = patch["is_available"]

    db.commit()
    db.refresh(slot)
    logger.info("Consultation slot updated", extra=build_log_context(slot_id=str(slot.id)))
    return SlotAvailability(slot=slot, booking_count=active)


def delete_slot(db: Session, slot_id: UUID) -> None:
    """Hard-delete a slot that has no active bookings (cancelled ones go with it)."""
    slot = get_slot(db, slot_id)
    active = active_booking_count(db, slot.id)
    if active > 0:
        raise Conflict(
            f"Cannot delete slot with {active} active booking(s). Cancel the bookings first."
        )
    db.query(ConsultationBooking).filter(ConsultationBooking.slot_id == slot.id).delete(
        synchronize_session=False
    )
    db.delete(slot)
    db.commit()
    logger.info("Consultation slot deleted", extra=build_log_context(slot_id=str(slot_id)))
