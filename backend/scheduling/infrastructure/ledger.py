from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.interval import TimeWindow
from ..domain.ledger import ClaimResult, Clock, Conflict, Reservation, SlotKey, new_token
from ..models import SlotHold
from ..utils.logger import get_logger
from ..utils.time import to_utc_naive, utc_naive_to_aware, utc_now

logger = get_logger(__name__)


def _to_reservation(row: SlotHold) -> Reservation:
    window = TimeWindow(utc_naive_to_aware(row.starts_at), utc_naive_to_aware(row.ends_at))
    return Reservation(
        key=SlotKey(event_type_id=row.event_type_id, window=window),
        holder_id=row.holder_id,
        expires_at=utc_naive_to_aware(row.expires_at),
        token=row.token,
    )


class SqlAlchemyReservationLedger:
    """Ledger backed by the ``slot_holds`` table.

    The unique constraint on ``(event_type_id, starts_at, ends_at)`` is the
    compare-and-set: of two concurrent inserts for one key only one commits.
    Each operation runs in its own short transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, clock: Clock = utc_now) -> None:
        self._session_factory = session_factory
        self._clock = clock

    async def claim(self, key: SlotKey, holder_id: str, ttl: timedelta) -> ClaimResult:
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        now = self._clock()
        starts_at = to_utc_naive(key.window.start)
        ends_at = to_utc_naive(key.window.end)
        token = new_token()
        hold = SlotHold(
            event_type_id=key.event_type_id,
            starts_at=starts_at,
            ends_at=ends_at,
            holder_id=holder_id,
            token=token,
            expires_at=to_utc_naive(now + ttl),
            created_at=to_utc_naive(now),
        )
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    delete(SlotHold).where(
                        SlotHold.event_type_id == key.event_type_id,
                        SlotHold.starts_at == starts_at,
                        SlotHold.ends_at == ends_at,
                        SlotHold.expires_at <= to_utc_naive(now),
                    )
                )
                session.add(hold)
        except IntegrityError:
            held_until = await self._held_until(key)
            logger.debug("slot %s already held until %s", key, held_until)
            return Conflict(key=key, held_until=held_until or now)
        return Reservation(key=key, holder_id=holder_id, expires_at=now + ttl, token=token)

    async def _held_until(self, key: SlotKey) -> Optional[datetime]:
        async with self._session_factory() as session:
            expires_at = await session.scalar(
                select(SlotHold.expires_at).where(
                    SlotHold.event_type_id == key.event_type_id,
                    SlotHold.starts_at == to_utc_naive(key.window.start),
                    SlotHold.ends_at == to_utc_naive(key.window.end),
                )
            )
        return utc_naive_to_aware(expires_at) if expires_at is not None else None

    async def _take(self, token: str) -> Optional[Reservation]:
        async with self._session_factory() as session, session.begin():
            row = await session.scalar(select(SlotHold).where(SlotHold.token == token).with_for_update())
            if row is None:
                return None
            reservation = _to_reservation(row)
            await session.delete(row)
        return reservation if reservation.is_live(self._clock()) else None

    async def release(self, token: str) -> None:
        await self._take(token)

    async def confirm(self, token: str) -> Optional[Reservation]:
        return await self._take(token)

    async def release_holder(self, holder_id: str) -> int:
        now = to_utc_naive(self._clock())
        async with self._session_factory() as session, session.begin():
            live = await session.scalars(
                select(SlotHold.id).where(SlotHold.holder_id == holder_id, SlotHold.expires_at > now)
            )
            released = len(live.all())
            await session.execute(delete(SlotHold).where(SlotHold.holder_id == holder_id))
        return released

    async def held_windows(
        self,
        event_type_id: int,
        start: datetime,
        end: datetime,
        exclude_holder: Optional[str] = None,
    ) -> list[TimeWindow]:
        stmt = (
            select(SlotHold.starts_at, SlotHold.ends_at)
            .where(
                SlotHold.event_type_id == event_type_id,
                SlotHold.expires_at > to_utc_naive(self._clock()),
                SlotHold.starts_at < to_utc_naive(end),
                SlotHold.ends_at > to_utc_naive(start),
            )
            .order_by(SlotHold.starts_at, SlotHold.ends_at)
        )
        if exclude_holder is not None:
            stmt = stmt.where(SlotHold.holder_id != exclude_holder)
        async with self._session_factory() as session:
            rows = await session.execute(stmt)
            return [TimeWindow(utc_naive_to_aware(s), utc_naive_to_aware(e)) for s, e in rows.all()]
