from __future__ import annotations

from datetime import datetime
from typing import Collection, Optional

from ..domain.aggregator import aggregate_slots
from ..domain.availability import resolve_availability
from ..domain.conflicts import bookings_for, filter_conflicts
from ..domain.entities import Booking, Slot
from ..domain.errors import EventTypeNotFoundError
from ..domain.interval import TimeWindow
from ..domain.ledger import ReservationLedger
from ..domain.repositories import BookingRepository, EventTypeRepository
from ..domain.services import select_hosts, validate_event_type
from ..utils.logger import get_logger

logger = get_logger(__name__)


async def list_slots(
    event_types: EventTypeRepository,
    bookings: BookingRepository,
    ledger: ReservationLedger,
    *,
    event_type_id: int,
    start: datetime,
    end: datetime,
    now: datetime,
    round_robin_pool: Optional[Collection[int]] = None,
    holder_id: Optional[str] = None,
) -> list[Slot]:
    """
    Bookable slots of an event type inside ``[start, end)``.

    Slots overlapping a hold of another holder are left out; the caller's own
    holds stay visible so a refresh does not hide the slot being booked.
    """
    bounds = TimeWindow(start, end)
    config = await event_types.get(event_type_id)
    if config is None:
        raise EventTypeNotFoundError(f"event type {event_type_id} not found")
    validate_event_type(config)

    hosts = select_hosts(config, round_robin_pool)
    if not hosts:
        logger.info("event type %s has no eligible hosts", event_type_id)
        return []

    # Bookings just outside the range still block it through their buffers.
    search = bounds.padded(config.buffer_after, config.buffer_before)
    active: list[Booking] = [
        booking
        for booking in await bookings.list_active([host.id for host in hosts], search.start, search.end)
        if booking.is_active
    ]

    availability = {
        host.id: filter_conflicts(
            resolve_availability(host, bounds.start, bounds.end),
            bookings_for(host.id, active),
            buffer_before=config.buffer_before,
            buffer_after=config.buffer_after,
        )
        for host in hosts
    }
    slots = aggregate_slots(
        availability,
        hosts,
        config.policy,
        duration=config.length,
        step=config.step,
        earliest_start=now + config.minimum_notice,
    )

    # Holds are keyed by exact window; slots that merely overlap one are hidden as well.
    held = await ledger.held_windows(event_type_id, bounds.start, bounds.end, exclude_holder=holder_id)
    if held:
        slots = [slot for slot in slots if not any(slot.window.overlaps(window) for window in held)]
    logger.debug("event type %s: %d slots between %s and %s", event_type_id, len(slots), start, end)
    return slots
