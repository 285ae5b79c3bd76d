"""Expansion of a host's working-hour rules into concrete UTC windows."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterator
from zoneinfo import ZoneInfo

from ..utils.time import UTC, load_zone
from .entities import Host, WeeklyRule
from .interval import TimeWindow, clip, merge_overlapping

_ONE_DAY = timedelta(days=1)


def resolve_availability(host: Host, start: datetime, end: datetime) -> Iterator[TimeWindow]:
    """Yield the host's available windows inside ``[start, end)``.

    Weekly rules are expanded per local calendar day in the rule's own
    timezone, so DST transitions move the UTC result rather than the wall
    clock. A date override replaces every weekly piece landing on its day.
    Each call recomputes from the host's rules.
    """
    bounds = TimeWindow(start, end)
    overrides = host.overrides
    pieces: list[TimeWindow] = []

    for rule in host.weekly_rules:
        zone = load_zone(rule.timezone or host.timezone)
        for day in _local_days(bounds, zone):
            if day.weekday() != rule.weekday:
                continue
            for label, window in _expand_rule(rule, day, zone):
                if label not in overrides:
                    pieces.append(window)

    host_zone = load_zone(host.timezone)
    for day in _local_days(bounds, host_zone):
        override = overrides.get(day)
        if override is not None:
            pieces.extend(override.windows)

    yield from clip(merge_overlapping(pieces), bounds)


def _local_days(bounds: TimeWindow, zone: ZoneInfo) -> Iterator[date]:
    # One day early so rules running past midnight on the previous day are seen.
    day = bounds.start.astimezone(zone).date() - _ONE_DAY
    last = bounds.end.astimezone(zone).date()
    while day <= last:
        yield day
        day += _ONE_DAY


def _expand_rule(rule: WeeklyRule, day: date, zone: ZoneInfo) -> Iterator[tuple[date, TimeWindow]]:
    """Yield ``(local_day, window)`` pieces of ``rule`` starting on ``day``.

    A rule crossing midnight is split at local midnight into a piece on
    ``day`` and a piece on the following day.
    """
    starts_at = datetime.combine(day, rule.start_time, tzinfo=zone)
    if not rule.crosses_midnight:
        window = _utc_window(starts_at, datetime.combine(day, rule.end_time, tzinfo=zone))
        if window is not None:
            yield day, window
        return

    next_day = day + _ONE_DAY
    midnight = datetime.combine(next_day, time(0), tzinfo=zone)
    first = _utc_window(starts_at, midnight)
    if first is not None:
        yield day, first
    if rule.end_time != time(0):
        second = _utc_window(midnight, datetime.combine(next_day, rule.end_time, tzinfo=zone))
        if second is not None:
            yield next_day, second


def _utc_window(local_start: datetime, local_end: datetime) -> TimeWindow | None:
    # Same-zone datetimes compare by wall clock, so compare in UTC; a piece
    # can collapse inside a DST gap.
    start_utc = local_start.astimezone(UTC)
    end_utc = local_end.astimezone(UTC)
    if start_utc >= end_utc:
        return None
    return TimeWindow(start_utc, end_utc)
