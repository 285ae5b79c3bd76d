from datetime import datetime, timedelta, timezone

from scheduling.domain.conflicts import bookings_for, filter_conflicts
from scheduling.domain.entities import Booking, BookingStatus
from scheduling.domain.interval import TimeWindow

DAY = datetime(2024, 5, 6, tzinfo=timezone.utc)


def w(start_h: float, end_h: float) -> TimeWindow:
    return TimeWindow(DAY + timedelta(hours=start_h), DAY + timedelta(hours=end_h))


def booking(start_h: float, end_h: float, *hosts: int) -> Booking:
    return Booking(host_ids=frozenset(hosts or (1,)), window=w(start_h, end_h))


def test_booking_is_removed_from_availability() -> None:
    assert filter_conflicts([w(9, 17)], [booking(12, 13)]) == [w(9, 12), w(13, 17)]


def test_buffers_pad_both_sides_of_booking() -> None:
    result = filter_conflicts(
        [w(9, 17)],
        [booking(12, 13)],
        buffer_before=timedelta(minutes=15),
        buffer_after=timedelta(minutes=30),
    )
    assert result == [w(9, 11.75), w(13.5, 17)]


def test_overlapping_padded_bookings_are_merged_first() -> None:
    bookings = [booking(13.25, 14), booking(12, 13)]
    result = filter_conflicts([w(9, 17)], bookings, buffer_after=timedelta(minutes=15))
    assert result == [w(9, 12), w(14.25, 17)]


def test_result_does_not_depend_on_booking_order() -> None:
    bookings = [booking(10, 11), booking(10.5, 12), booking(15, 16)]
    forward = filter_conflicts([w(9, 17)], bookings, buffer_before=timedelta(minutes=10))
    backward = filter_conflicts([w(9, 17)], list(reversed(bookings)), buffer_before=timedelta(minutes=10))
    assert forward == backward


def test_booking_outside_availability_has_no_effect() -> None:
    assert filter_conflicts([w(9, 12)], [booking(13, 14)]) == [w(9, 12)]


def test_booking_covering_availability_removes_it() -> None:
    assert filter_conflicts([w(9, 10), w(11, 12)], [booking(8, 13)]) == []


def test_no_bookings_returns_availability() -> None:
    assert filter_conflicts([w(9, 10), w(11, 12)], []) == [w(9, 10), w(11, 12)]


def test_bookings_for_selects_host_bookings() -> None:
    mine = booking(9, 10, 1, 2)
    other = booking(11, 12, 3)
    cancelled = Booking(host_ids=frozenset({1}), window=w(13, 14), status=BookingStatus.CANCELLED)
    assert bookings_for(1, [mine, other, cancelled]) == [mine, cancelled]
    assert not cancelled.is_active
