"""Short-lived slot holds.

A hold keyed by ``(event_type_id, window)`` goes FREE -> HELD on a successful
claim and back to FREE when it is confirmed, released or expires. Expired
holds are dropped lazily: a claim sweeps the stripe of its key, listing and
bulk release sweep every stripe.
"""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol, Union

from ..utils.logger import get_logger
from ..utils.time import utc_now
from .interval import TimeWindow

logger = get_logger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class SlotKey:
    event_type_id: int
    window: TimeWindow


@dataclass(frozen=True)
class Reservation:
    key: SlotKey
    holder_id: str
    expires_at: datetime
    token: str

    @property
    def event_type_id(self) -> int:
        return self.key.event_type_id

    @property
    def window(self) -> TimeWindow:
        return self.key.window

    def is_live(self, now: datetime) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class Conflict:
    """Claim result when the slot is already held by someone else."""

    key: SlotKey
    held_until: datetime


ClaimResult = Union[Reservation, Conflict]


def new_token() -> str:
    return secrets.token_urlsafe(24)


class ReservationLedger(Protocol):
    async def claim(self, key: SlotKey, holder_id: str, ttl: timedelta) -> ClaimResult: ...

    async def release(self, token: str) -> None: ...

    async def confirm(self, token: str) -> Optional[Reservation]: ...

    async def release_holder(self, holder_id: str) -> int: ...

    async def held_windows(
        self,
        event_type_id: int,
        start: datetime,
        end: datetime,
        exclude_holder: Optional[str] = None,
    ) -> list[TimeWindow]: ...


class _Stripe:
    __slots__ = ("lock", "holds")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holds: dict[SlotKey, Reservation] = {}


class InMemoryReservationLedger:
    """Process-local ledger split into lock stripes by key hash.

    Each stripe owns its holds, so claims on keys in different stripes never
    wait on each other. No awaits happen inside a critical section, so the
    ledger is safe to share between event-loop tasks and worker threads alike.
    """

    def __init__(self, *, stripes: int = 64, clock: Clock = utc_now) -> None:
        if stripes < 1:
            raise ValueError("stripes must be >= 1")
        self._stripes = [_Stripe() for _ in range(stripes)]
        self._clock = clock
        self._tokens: dict[str, SlotKey] = {}

    def __len__(self) -> int:
        return sum(len(stripe.holds) for stripe in self._stripes)

    def _stripe_for(self, key: SlotKey) -> _Stripe:
        return self._stripes[hash(key) % len(self._stripes)]

    def _sweep(self, stripe: _Stripe, now: datetime) -> None:
        # Caller holds stripe.lock.
        expired = [key for key, reservation in stripe.holds.items() if not reservation.is_live(now)]
        for key in expired:
            self._tokens.pop(stripe.holds.pop(key).token, None)
        if expired:
            logger.debug("dropped %d expired holds", len(expired))

    async def claim(self, key: SlotKey, holder_id: str, ttl: timedelta) -> ClaimResult:
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        stripe = self._stripe_for(key)
        with stripe.lock:
            now = self._clock()
            self._sweep(stripe, now)
            current = stripe.holds.get(key)
            if current is not None:
                return Conflict(key=key, held_until=current.expires_at)
            reservation = Reservation(key=key, holder_id=holder_id, expires_at=now + ttl, token=new_token())
            stripe.holds[key] = reservation
            self._tokens[reservation.token] = key
            return reservation

    def _take(self, token: str) -> Optional[Reservation]:
        key = self._tokens.get(token)
        if key is None:
            return None
        stripe = self._stripe_for(key)
        with stripe.lock:
            current = stripe.holds.get(key)
            if current is None or current.token != token:
                # Already replaced after expiry.
                self._tokens.pop(token, None)
                return None
            del stripe.holds[key]
            self._tokens.pop(token, None)
            return current if current.is_live(self._clock()) else None

    async def release(self, token: str) -> None:
        self._take(token)

    async def confirm(self, token: str) -> Optional[Reservation]:
        return self._take(token)

    async def release_holder(self, holder_id: str) -> int:
        released = 0
        for stripe in self._stripes:
            with stripe.lock:
                self._sweep(stripe, self._clock())
                owned = [key for key, reservation in stripe.holds.items() if reservation.holder_id == holder_id]
                for key in owned:
                    self._tokens.pop(stripe.holds.pop(key).token, None)
                released += len(owned)
        return released

    async def held_windows(
        self,
        event_type_id: int,
        start: datetime,
        end: datetime,
        exclude_holder: Optional[str] = None,
    ) -> list[TimeWindow]:
        windows: list[TimeWindow] = []
        for stripe in self._stripes:
            with stripe.lock:
                self._sweep(stripe, self._clock())
                windows.extend(
                    reservation.window
                    for reservation in stripe.holds.values()
                    if reservation.event_type_id == event_type_id
                    and reservation.holder_id != exclude_holder
                    and reservation.window.start < end
                    and start < reservation.window.end
                )
        return sorted(windows)
