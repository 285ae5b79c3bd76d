from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Iterator, Mapping, Optional, Sequence

from .entities import Host, HostSelectionPolicy, Slot
from .errors import InvalidConfigurationError
from .interval import TimeWindow, intersect_all, join_adjacent


def aggregate_slots(
    availability: Mapping[int, Sequence[TimeWindow]],
    hosts: Sequence[Host],
    policy: HostSelectionPolicy,
    *,
    duration: timedelta,
    step: timedelta,
    earliest_start: Optional[datetime] = None,
) -> list[Slot]:
    """
    Combine per-host availability into bookable slots.

    ANY_OF and ROUND_ROBIN list every slot at least one host can take; the
    actual round-robin pick happens at booking time. COLLECTIVE lists only the
    slots every fixed host can take together.
    """
    if duration <= timedelta(0) or step <= timedelta(0):
        raise InvalidConfigurationError("slot duration and step must be positive")

    match policy:
        case HostSelectionPolicy.ANY_OF | HostSelectionPolicy.ROUND_ROBIN:
            slots = _union_slots(availability, hosts, duration, step)
        case HostSelectionPolicy.COLLECTIVE:
            slots = _collective_slots(availability, hosts, duration, step)
        case _:
            raise InvalidConfigurationError(f"unsupported host selection policy: {policy!r}")

    if earliest_start is not None:
        slots = [slot for slot in slots if slot.window.start >= earliest_start]
    return sorted(slots, key=lambda slot: (slot.window.start, slot.window.end))


def slice_windows(windows: Iterable[TimeWindow], duration: timedelta, step: timedelta) -> Iterator[TimeWindow]:
    """Cut windows into ``duration``-long slots every ``step``, aligned to each window start."""
    for window in windows:
        starts_at = window.start
        while starts_at + duration <= window.end:
            yield TimeWindow(starts_at, starts_at + duration)
            starts_at += step


def _union_slots(
    availability: Mapping[int, Sequence[TimeWindow]],
    hosts: Sequence[Host],
    duration: timedelta,
    step: timedelta,
) -> list[Slot]:
    per_host = {host.id: join_adjacent(availability.get(host.id, ())) for host in hosts}
    union = join_adjacent(window for windows in per_host.values() for window in windows)
    slots: dict[TimeWindow, Slot] = {}
    for candidate in slice_windows(union, duration, step):
        eligible = frozenset(host_id for host_id, windows in per_host.items() if _fits(candidate, windows))
        if eligible and candidate not in slots:
            slots[candidate] = Slot(window=candidate, eligible_host_ids=eligible)
    return list(slots.values())


def _collective_slots(
    availability: Mapping[int, Sequence[TimeWindow]],
    hosts: Sequence[Host],
    duration: timedelta,
    step: timedelta,
) -> list[Slot]:
    fixed = [host for host in hosts if host.is_fixed]
    if not fixed:
        raise InvalidConfigurationError("collective event types need at least one fixed host")

    common = join_adjacent(availability.get(fixed[0].id, ()))
    for host in fixed[1:]:
        common = intersect_all(common, join_adjacent(availability.get(host.id, ())))
        if not common:
            return []

    fixed_ids = frozenset(host.id for host in fixed)
    optional = {
        host.id: join_adjacent(availability.get(host.id, ())) for host in hosts if not host.is_fixed
    }
    slots: list[Slot] = []
    for candidate in slice_windows(common, duration, step):
        extra = frozenset(host_id for host_id, windows in optional.items() if _fits(candidate, windows))
        slots.append(Slot(window=candidate, eligible_host_ids=fixed_ids | extra))
    return slots


def _fits(candidate: TimeWindow, windows: Sequence[TimeWindow]) -> bool:
    return any(window.contains(candidate) for window in windows)
