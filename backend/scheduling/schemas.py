from datetime import datetime, tzinfo
from typing import List

from pydantic import BaseModel, Field, field_serializer

from .domain.entities import Slot
from .domain.ledger import Reservation
from .utils.time import UTC


class SlotRead(BaseModel):
    starts_at: datetime
    ends_at: datetime
    eligible_host_ids: List[int]

    @field_serializer("starts_at", "ends_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.isoformat()

    @classmethod
    def from_domain(cls, *, slot: Slot, zone: tzinfo = UTC) -> "SlotRead":
        return cls(
            starts_at=slot.window.start.astimezone(zone),
            ends_at=slot.window.end.astimezone(zone),
            eligible_host_ids=sorted(slot.eligible_host_ids),
        )


class ReservationCreate(BaseModel):
    starts_at: datetime
    ends_at: datetime


class ReservationRead(BaseModel):
    token: str
    event_type_id: int
    holder_id: str
    starts_at: datetime
    ends_at: datetime
    expires_at: datetime

    @field_serializer("starts_at", "ends_at", "expires_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(UTC).isoformat()

    @classmethod
    def from_domain(cls, *, reservation: Reservation) -> "ReservationRead":
        return cls(
            token=reservation.token,
            event_type_id=reservation.event_type_id,
            holder_id=reservation.holder_id,
            starts_at=reservation.window.start,
            ends_at=reservation.window.end,
            expires_at=reservation.expires_at,
        )


class ReservationConflictRead(BaseModel):
    detail: str = Field(default="slot already reserved")
    held_until: datetime
