from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Collection, Optional

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..domain import entities
from ..domain.interval import TimeWindow
from ..domain.repositories import BookingRepository, EventTypeRepository
from ..models import Booking, DateOverride, EventType, EventTypeHost, Host, booking_hosts
from ..utils.time import to_utc_naive, utc_naive_to_aware


def _minutes(value: Optional[int]) -> timedelta:
    return timedelta(minutes=value or 0)


def host_to_entity(
    host: Host,
    *,
    is_fixed: bool = False,
    priority: int = 2,
    weight: float = 100.0,
) -> entities.Host:
    rules: list[entities.AvailabilityRule] = [
        entities.WeeklyRule(
            weekday=row.weekday,
            start_time=row.start_time,
            end_time=row.end_time,
            timezone=row.timezone,
        )
        for row in host.working_hours
    ]
    rules.extend(_overrides_to_entities(host.date_overrides))
    return entities.Host(
        id=host.id,
        rules=tuple(rules),
        is_fixed=is_fixed,
        priority=priority,
        weight=weight,
        timezone=host.timezone,
    )


def _overrides_to_entities(rows: list[DateOverride]) -> list[entities.DateOverride]:
    windows_by_date: dict[date, list[TimeWindow]] = {}
    for row in rows:
        windows = windows_by_date.setdefault(row.on_date, [])
        if row.starts_at is not None and row.ends_at is not None:
            windows.append(TimeWindow(utc_naive_to_aware(row.starts_at), utc_naive_to_aware(row.ends_at)))
    return [
        entities.DateOverride(date=day, windows=tuple(sorted(windows)))
        for day, windows in sorted(windows_by_date.items())
    ]


def event_type_to_entity(event_type: EventType) -> entities.EventTypeConfig:
    hosts = tuple(
        host_to_entity(
            assignment.host,
            is_fixed=assignment.is_fixed,
            priority=assignment.priority,
            weight=assignment.weight,
        )
        for assignment in event_type.hosts
    )
    return entities.EventTypeConfig(
        id=event_type.id,
        length=_minutes(event_type.length_minutes),
        policy=event_type.scheduling_type,
        host_ids=tuple(assignment.host_id for assignment in event_type.hosts),
        hosts=hosts,
        members=tuple(host_to_entity(member) for member in event_type.members),
        slot_interval=_minutes(event_type.slot_interval_minutes) if event_type.slot_interval_minutes else None,
        buffer_before=_minutes(event_type.buffer_before_minutes),
        buffer_after=_minutes(event_type.buffer_after_minutes),
        minimum_notice=_minutes(event_type.minimum_notice_minutes),
        fall_back_to_members=event_type.fall_back_to_members,
    )


class SqlAlchemyEventTypeRepository(EventTypeRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, event_type_id: int) -> entities.EventTypeConfig | None:
        host_rules = (selectinload(Host.working_hours), selectinload(Host.date_overrides))
        stmt: Select[tuple[EventType]] = (
            select(EventType)
            .where(EventType.id == event_type_id)
            .options(
                selectinload(EventType.hosts).selectinload(EventTypeHost.host).options(*host_rules),
                selectinload(EventType.members).options(*host_rules),
            )
        )
        event_type = await self.session.scalar(stmt)
        if event_type is None:
            return None
        return event_type_to_entity(event_type)


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_active(
        self,
        host_ids: Collection[int],
        start: datetime,
        end: datetime,
    ) -> list[entities.Booking]:
        if not host_ids:
            return []
        booked_ids = select(booking_hosts.c.booking_id).where(booking_hosts.c.host_id.in_(list(host_ids)))
        stmt: Select[tuple[Booking]] = (
            select(Booking)
            .options(selectinload(Booking.hosts))
            .where(
                Booking.id.in_(booked_ids),
                Booking.status == entities.BookingStatus.CONFIRMED,
                Booking.starts_at < to_utc_naive(end),
                Booking.ends_at > to_utc_naive(start),
            )
            .order_by(Booking.starts_at)
        )
        rows = (await self.session.scalars(stmt)).all()
        return [
            entities.Booking(
                host_ids=frozenset(host.id for host in row.hosts),
                window=TimeWindow(utc_naive_to_aware(row.starts_at), utc_naive_to_aware(row.ends_at)),
                status=row.status,
            )
            for row in rows
        ]
