from __future__ import annotations

from datetime import timedelta
from typing import Optional

from ..domain.errors import EventTypeNotFoundError, InvalidWindowError
from ..domain.interval import TimeWindow
from ..domain.ledger import ClaimResult, Reservation, ReservationLedger, SlotKey
from ..domain.repositories import EventTypeRepository


async def reserve_slot(
    event_types: EventTypeRepository,
    ledger: ReservationLedger,
    *,
    event_type_id: int,
    window: TimeWindow,
    holder_id: str,
    ttl: timedelta,
) -> ClaimResult:
    """Hold ``window`` for ``holder_id``; returns a Reservation or a Conflict."""
    config = await event_types.get(event_type_id)
    if config is None:
        raise EventTypeNotFoundError(f"event type {event_type_id} not found")
    if window.duration != config.length:
        raise InvalidWindowError("slot length does not match the event length")
    return await ledger.claim(SlotKey(event_type_id=event_type_id, window=window), holder_id, ttl)


async def release_reservation(ledger: ReservationLedger, *, token: str) -> None:
    await ledger.release(token)


async def confirm_reservation(ledger: ReservationLedger, *, token: str) -> Optional[Reservation]:
    """
    Promote a hold. The caller writes the durable booking only when a
    Reservation comes back; None means the hold was unknown or had expired.
    """
    return await ledger.confirm(token)


async def release_holder_reservations(ledger: ReservationLedger, *, holder_id: str) -> int:
    return await ledger.release_holder(holder_id)
