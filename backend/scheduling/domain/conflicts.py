from __future__ import annotations

from datetime import timedelta
from typing import Iterable

from .entities import Booking
from .interval import TimeWindow, merge_overlapping, subtract_all


def bookings_for(host_id: int, bookings: Iterable[Booking]) -> list[Booking]:
    return [booking for booking in bookings if host_id in booking.host_ids]


def filter_conflicts(
    windows: Iterable[TimeWindow],
    bookings: Iterable[Booking],
    *,
    buffer_before: timedelta = timedelta(0),
    buffer_after: timedelta = timedelta(0),
) -> list[TimeWindow]:
    """
    Remove booked time, padded by the event buffers, from availability windows.
    Callers pass active bookings only; padded bookings are merged before subtraction.
    """
    busy = merge_overlapping(booking.window.padded(buffer_before, buffer_after) for booking in bookings)
    return subtract_all(windows, busy)
