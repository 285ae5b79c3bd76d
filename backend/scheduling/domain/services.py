from __future__ import annotations

from datetime import timedelta
from typing import Collection, Optional

from .entities import EventTypeConfig, Host, HostSelectionPolicy
from .errors import InvalidConfigurationError


def validate_event_type(config: EventTypeConfig) -> None:
    """
    Pure validation: every assigned host is present in the roster, durations are
    usable, and collective event types have someone who must attend.
    Raises InvalidConfigurationError otherwise.
    """
    if config.length <= timedelta(0):
        raise InvalidConfigurationError("event length must be positive")
    if config.step <= timedelta(0):
        raise InvalidConfigurationError("slot interval must be positive")
    if config.buffer_before < timedelta(0) or config.buffer_after < timedelta(0):
        raise InvalidConfigurationError("buffers must not be negative")
    if config.minimum_notice < timedelta(0):
        raise InvalidConfigurationError("minimum notice must not be negative")

    roster = {host.id for host in config.hosts}
    missing = [host_id for host_id in config.host_ids if host_id not in roster]
    if missing:
        raise InvalidConfigurationError(f"event type {config.id} references unknown hosts: {missing}")

    if config.policy == HostSelectionPolicy.COLLECTIVE and not any(host.is_fixed for host in config.hosts):
        raise InvalidConfigurationError(f"collective event type {config.id} has no fixed host")


def select_hosts(config: EventTypeConfig, round_robin_pool: Optional[Collection[int]] = None) -> list[Host]:
    """
    Pick the hosts whose calendars are considered for this event type.

    A non-empty ``round_robin_pool`` restricts the non-fixed hosts to the ids
    it names; fixed hosts are always kept. When that leaves nobody and the
    event type has ``fall_back_to_members`` set, its members are used instead,
    still restricted by the pool.
    """
    pool = set(round_robin_pool or ())

    def _in_pool(host: Host) -> bool:
        return not pool or host.id in pool

    hosts = [host for host in config.hosts if host.is_fixed or _in_pool(host)]
    if hosts or not config.fall_back_to_members:
        return hosts
    return [member for member in config.members if _in_pool(member)]
