from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time, timedelta
from enum import StrEnum
from typing import Optional, Union

from .errors import InvalidWindowError
from .interval import TimeWindow


class HostSelectionPolicy(StrEnum):
    ANY_OF = "any_of"
    COLLECTIVE = "collective"
    ROUND_ROBIN = "round_robin"


class BookingStatus(StrEnum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class WeeklyRule:
    """Recurring working hours; ``weekday`` follows ``date.weekday()`` (0 = Monday).

    ``end_time <= start_time`` means the rule runs past local midnight.
    ``timezone`` of None defers to the owning host's timezone.
    """

    weekday: int
    start_time: time
    end_time: time
    timezone: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0 <= self.weekday <= 6:
            raise InvalidWindowError("weekday must be between 0 and 6")
        if self.start_time == self.end_time:
            raise InvalidWindowError("rule start and end must differ")

    @property
    def crosses_midnight(self) -> bool:
        return self.end_time <= self.start_time


@dataclass(frozen=True)
class DateOverride:
    """Replaces the weekly rules of one calendar day; no windows means unavailable."""

    date: date
    windows: tuple[TimeWindow, ...] = ()


AvailabilityRule = Union[WeeklyRule, DateOverride]


@dataclass(frozen=True)
class Host:
    id: int
    rules: tuple[AvailabilityRule, ...] = ()
    is_fixed: bool = False
    priority: int = 2
    weight: float = 100.0
    timezone: str = "UTC"

    @property
    def weekly_rules(self) -> tuple[WeeklyRule, ...]:
        return tuple(rule for rule in self.rules if isinstance(rule, WeeklyRule))

    @property
    def overrides(self) -> dict[date, DateOverride]:
        return {rule.date: rule for rule in self.rules if isinstance(rule, DateOverride)}


@dataclass(frozen=True)
class Booking:
    host_ids: frozenset[int]
    window: TimeWindow
    status: BookingStatus = BookingStatus.CONFIRMED

    @property
    def is_active(self) -> bool:
        return self.status == BookingStatus.CONFIRMED


@dataclass(frozen=True)
class EventTypeConfig:
    """Booking rules of one event type together with its host roster.

    ``host_ids`` are the hosts the event type is assigned to; ``hosts`` is the
    roster loaded for them. ``members`` are the event type's owners, used only
    when ``fall_back_to_members`` is set and host selection yields nobody.
    """

    id: int
    length: timedelta
    policy: HostSelectionPolicy
    host_ids: tuple[int, ...] = ()
    hosts: tuple[Host, ...] = ()
    members: tuple[Host, ...] = ()
    slot_interval: Optional[timedelta] = None
    buffer_before: timedelta = timedelta(0)
    buffer_after: timedelta = timedelta(0)
    minimum_notice: timedelta = timedelta(0)
    fall_back_to_members: bool = False

    @property
    def step(self) -> timedelta:
        return self.slot_interval or self.length


@dataclass(frozen=True)
class Slot:
    window: TimeWindow
    eligible_host_ids: frozenset[int] = field(default_factory=frozenset)
