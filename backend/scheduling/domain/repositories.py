from __future__ import annotations

from datetime import datetime
from typing import Collection, Protocol

from .entities import Booking, EventTypeConfig


class EventTypeRepository(Protocol):
    async def get(self, event_type_id: int) -> EventTypeConfig | None: ...


class BookingRepository(Protocol):
    async def list_active(
        self,
        host_ids: Collection[int],
        start: datetime,
        end: datetime,
    ) -> list[Booking]: ...
