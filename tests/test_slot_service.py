"""Tests for the consultation slot store."""

from datetime import date, timedelta

import pytest

from portal_api.core.errors import (
    CapacityBelowLoad,
    Conflict,
    ImmutableWhenBooked,
    PastDate,
    ValidationFailed,
)
from portal_api.db.enums import BookingStatus, SlotStatus
from portal_api.db.models import ConsultationBooking, ConsultationSlot
from portal_api.services import booking_service, slot_service
from portal_api.utils.pagination import PaginationParams
from conftest import FUTURE_DATE


def _book(db, slot, n=1, status=BookingStatus.CONFIRMED.value):
    for i in range(n):
        booking_service.create_booking(
            db,
            slot_id=slot.id,
            user_name=f"Guest {i}",
            user_email=f"guest{i}@example.com",
            user_phone="+91 90000 00000",
            status=status,
        )
    db.commit()


# =============================================================================
# Create
# =============================================================================

def test_create_slot_derives_end_time(db):
    slot = slot_service.create_slot(db, FUTURE_DATE, "10:00", duration=45)

    assert slot.end_time == "10:45"
    assert slot.status == SlotStatus.AVAILABLE.value
    assert slot.is_available is True
    assert slot.max_bookings == 1


def test_create_slot_rejects_overlap(db):
    slot_service.create_slot(db, FUTURE_DATE, "10:00", duration=30)

    with pytest.raises(Conflict) as exc:
        slot_service.create_slot(db, FUTURE_DATE, "10:15", duration=30)
    assert "10:00 - 10:30" in exc.value.message

    # Touching intervals do not overlap
    adjacent = slot_service.create_slot(db, FUTURE_DATE, "10:30", duration=30)
    assert adjacent.start_time == "10:30"


def test_create_slot_ignores_cancelled_slots_for_conflicts(db):
    slot = slot_service.create_slot(db, FUTURE_DATE, "10:00")
    slot_service.update_slot(db, slot.id, {"status": SlotStatus.CANCELLED.value})

    replacement = slot_service.create_slot(db, FUTURE_DATE, "10:00")
    assert replacement.id != slot.id


def test_create_slot_rejects_past_date(db):
    with pytest.raises(PastDate):
        slot_service.create_slot(db, date.today() - timedelta(days=2), "10:00")


def test_create_slot_short_duration(db):
    slot = slot_service.create_slot(db, date.today() + timedelta(days=1), "00:00", duration=15)
    assert slot.end_time == "00:15"


# =============================================================================
# Bulk / Multiple
# =============================================================================

def test_bulk_generates_slots_per_day(db):
    slots = slot_service.create_bulk(
        db,
        start_date=FUTURE_DATE,
        end_date=FUTURE_DATE + timedelta(days=1),
        start_time="09:00",
        end_time="11:00",
        interval=30,
        duration=30,
    )

    assert len(slots) == 8
    first_day = sorted(s.start_time for s in slots if s.date == FUTURE_DATE)
    assert first_day == ["09:00", "09:30", "10:00", "10:30"]


def test_bulk_skips_slot_that_would_spill_past_window(db):
    slots = slot_service.create_bulk(
        db,
        start_date=FUTURE_DATE,
        end_date=FUTURE_DATE,
        start_time="09:00",
        end_time="10:00",
        interval=20,
        duration=30,
    )
    # 09:00, 09:20 fit; 09:40 + 30 would end at 10:10
    assert [s.start_time for s in slots] == ["09:00", "09:20"]


def test_bulk_is_all_or_nothing_on_conflict(db):
    slot_service.create_slot(db, FUTURE_DATE, "09:45", duration=15)

    with pytest.raises(Conflict):
        slot_service.create_bulk(
            db,
            start_date=FUTURE_DATE,
            end_date=FUTURE_DATE,
            start_time="09:00",
            end_time="11:00",
            interval=30,
        )
    assert db.query(ConsultationSlot).count() == 1


def test_bulk_rejects_inverted_ranges(db):
    with pytest.raises(ValidationFailed):
        slot_service.create_bulk(
            db,
            start_date=FUTURE_DATE + timedelta(days=1),
            end_date=FUTURE_DATE,
            start_time="09:00",
            end_time="10:00",
            interval=30,
        )
    with pytest.raises(ValidationFailed):
        slot_service.create_bulk(
            db,
            start_date=FUTURE_DATE,
            end_date=FUTURE_DATE,
            start_time="10:00",
            end_time="09:00",
            interval=30,
        )


def test_multiple_creates_explicit_slots(db):
    slots = slot_service.create_multiple(
        db,
        FUTURE_DATE,
        [
            {"start_time": "09:00", "duration": 30},
            {"start_time": "14:00", "duration": 60, "max_bookings": 3},
        ],
    )
    assert [(s.start_time, s.end_time, s.max_bookings) for s in slots] == [
        ("09:00", "09:30", 1),
        ("14:00", "15:00", 3),
    ]


def test_multiple_detects_conflicts_within_request(db):
    with pytest.raises(Conflict) as exc:
        slot_service.create_multiple(
            db,
            FUTURE_DATE,
            [{"start_time": "09:00", "duration": 60}, {"start_time": "09:30", "duration": 30}],
        )
    assert "in your list" in exc.value.message
    assert db.query(ConsultationSlot).count() == 0


def test_multiple_collects_per_slot_errors(db):
    with pytest.raises(ValidationFailed) as exc:
        slot_service.create_multiple(
            db,
            FUTURE_DATE,
            [
                {"start_time": "", "duration": 30},
                {"start_time": "10:00", "duration": 5},
                {"start_time": "25:00", "duration": 30},
            ],
        )
    fields = [e["field"] for e in exc.value.errors]
    assert fields == ["slots.0.startTime", "slots.1.duration", "slots.2.startTime"]


# =============================================================================
# Queries
# =============================================================================

def test_list_available_hides_full_and_closed_slots(db):
    open_slot = slot_service.create_slot(db, FUTURE_DATE, "09:00", max_bookings=2)
    full_slot = slot_service.create_slot(db, FUTURE_DATE, "10:00")
    slot_service.create_slot(db, FUTURE_DATE, "11:00", status=SlotStatus.CANCELLED.value)
    _book(db, open_slot, 1)
    _book(db, full_slot, 1)

    items = slot_service.list_available(db, on_date=FUTURE_DATE)

    assert [item.slot.id for item in items] == [open_slot.id]
    assert items[0].booking_count == 1
    assert items[0].available_spots == 1


def test_list_available_date_range(db):
    slot_service.create_slot(db, FUTURE_DATE, "09:00")
    slot_service.create_slot(db, FUTURE_DATE + timedelta(days=3), "09:00")

    items = slot_service.list_available(
        db, start_date=FUTURE_DATE, end_date=FUTURE_DATE + timedelta(days=1)
    )
    assert len(items) == 1


def test_list_slots_filters_and_paginates(db):
    for hour in range(9, 14):
        slot_service.create_slot(db, FUTURE_DATE, f"{hour:02d}:00")

    items, total = slot_service.list_slots(db, PaginationParams(page=2, limit=2))

    assert total == 5
    assert [item.slot.start_time for item in items] == ["11:00", "12:00"]


# =============================================================================
# Update / Delete
# =============================================================================

def test_update_slot_reschedules_when_unbooked(db):
    slot = slot_service.create_slot(db, FUTURE_DATE, "09:00")

    item = slot_service.update_slot(db, slot.id, {"start_time": "15:00", "duration": 60})

    assert item.slot.start_time == "15:00"
    assert item.slot.end_time == "16:00"


def test_update_slot_schedule_frozen_with_active_bookings(db):
    slot = slot_service.create_slot(db, FUTURE_DATE, "09:00", max_bookings=5)
    _book(db, slot, 3)

    with pytest.raises(ImmutableWhenBooked):
        slot_service.update_slot(db, slot.id, {"start_time": "10:00"})

    # Notes and capacity can still change
    item = slot_service.update_slot(db, slot.id, {"notes": "Bring documents", "max_bookings": 3})
    assert item.slot.max_bookings == 3
    assert item.slot.notes == "Bring documents"


def test_update_slot_capacity_cannot_drop_below_load(db):
    slot = slot_service.create_slot(db, FUTURE_DATE, "09:00", max_bookings=5)
    _book(db, slot, 3)

    with pytest.raises(CapacityBelowLoad):
        slot_service.update_slot(db, slot.id, {"max_bookings": 2})


def test_update_slot_raising_capacity_reopens_full_slot(db):
    slot = slot_service.create_slot(db, FUTURE_DATE, "09:00", max_bookings=1)
    _book(db, slot)
    slot.status = SlotStatus.BOOKED.value
    slot.is_available = False
    db.commit()

    item = slot_service.update_slot(db, slot.id, {"max_bookings": 2})

    assert item.slot.status == SlotStatus.AVAILABLE.value
    assert item.slot.is_available is True
    (listed,) = slot_service.list_available(db, on_date=FUTURE_DATE)
    assert listed.available_spots == 1


def test_update_slot_lowering_capacity_to_load_marks_booked(db):
    slot = slot_service.create_slot(db, FUTURE_DATE, "09:00", max_bookings=3)
    _book(db, slot, 2)

    item = slot_service.update_slot(db, slot.id, {"max_bookings": 2})

    assert item.slot.status == SlotStatus.BOOKED.value
    assert item.slot.is_available is False
    assert slot_service.list_available(db, on_date=FUTURE_DATE) == []


def test_update_slot_keeps_forced_status(db):
    slot = slot_service.create_slot(db, FUTURE_DATE, "09:00", max_bookings=1)
    slot_service.update_slot(db, slot.id, {"status": SlotStatus.CANCELLED.value})

    item = slot_service.update_slot(db, slot.id, {"max_bookings": 2})
    assert item.slot.status == SlotStatus.CANCELLED.value


def test_update_slot_cancelled_bookings_do_not_count(db):
    slot = slot_service.create_slot(db, FUTURE_DATE, "09:00", max_bookings=2)
    _book(db, slot, 2, status=BookingStatus.CANCELLED.value)

    item = slot_service.update_slot(db, slot.id, {"start_time": "12:00", "max_bookings": 1})
    assert item.booking_count == 0
    assert item.slot.start_time == "12:00"


def test_update_slot_status_sets_availability(db):
    slot = slot_service.create_slot(db, FUTURE_DATE, "09:00")

    item = slot_service.update_slot(db, slot.id, {"status": SlotStatus.COMPLETED.value})
    assert item.slot.is_available is False

    item = slot_service.update_slot(
        db, slot.id, {"status": SlotStatus.AVAILABLE.value, "is_available": False}
    )
    assert item.slot.status == SlotStatus.AVAILABLE.value
    assert item.slot.is_available is False


def test_update_slot_rejects_overlapping_reschedule(db):
    slot_service.create_slot(db, FUTURE_DATE, "09:00", duration=60)
    other = slot_service.create_slot(db, FUTURE_DATE, "11:00")

    with pytest.raises(Conflict):
        slot_service.update_slot(db, other.id, {"start_time": "09:30"})


def test_delete_slot_refuses_active_bookings(db):
    slot = slot_service.create_slot(db, FUTURE_DATE, "09:00")
    _book(db, slot, 1)

    with pytest.raises(Conflict):
        slot_service.delete_slot(db, slot.id)


def test_delete_slot_removes_cancelled_bookings(db):
    slot = slot_service.create_slot(db, FUTURE_DATE, "09:00")
    _book(db, slot, 1, status=BookingStatus.CANCELLED.value)

    slot_service.delete_slot(db, slot.id)

    assert db.query(ConsultationSlot).count() == 0
    assert db.query(ConsultationBooking).count() == 0
