from datetime import timedelta

import pytest
from scheduling.domain.entities import EventTypeConfig, Host, HostSelectionPolicy
from scheduling.domain.errors import InvalidConfigurationError
from scheduling.domain.services import select_hosts, validate_event_type


def config(**overrides) -> EventTypeConfig:
    hosts = (Host(id=1, is_fixed=True), Host(id=2), Host(id=3))
    defaults = {
        "id": 7,
        "length": timedelta(minutes=30),
        "policy": HostSelectionPolicy.ROUND_ROBIN,
        "host_ids": tuple(host.id for host in hosts),
        "hosts": hosts,
        "members": (Host(id=10), Host(id=11)),
    }
    defaults.update(overrides)
    return EventTypeConfig(**defaults)


def test_valid_config_passes() -> None:
    validate_event_type(config())


def test_rejects_host_missing_from_roster() -> None:
    with pytest.raises(InvalidConfigurationError):
        validate_event_type(config(host_ids=(1, 2, 3, 99)))


def test_rejects_collective_without_fixed_host() -> None:
    with pytest.raises(InvalidConfigurationError):
        validate_event_type(
            config(policy=HostSelectionPolicy.COLLECTIVE, hosts=(Host(id=2),), host_ids=(2,))
        )


def test_accepts_collective_with_fixed_host() -> None:
    validate_event_type(config(policy=HostSelectionPolicy.COLLECTIVE))


@pytest.mark.parametrize(
    "overrides",
    [
        {"length": timedelta(0)},
        {"slot_interval": timedelta(minutes=-5)},
        {"buffer_before": timedelta(minutes=-1)},
        {"buffer_after": timedelta(minutes=-1)},
        {"minimum_notice": timedelta(minutes=-1)},
    ],
)
def test_rejects_unusable_durations(overrides: dict) -> None:
    with pytest.raises(InvalidConfigurationError):
        validate_event_type(config(**overrides))


def test_step_defaults_to_length() -> None:
    assert config().step == timedelta(minutes=30)
    assert config(slot_interval=timedelta(minutes=15)).step == timedelta(minutes=15)


def test_select_hosts_without_pool_returns_all_hosts() -> None:
    assert [host.id for host in select_hosts(config())] == [1, 2, 3]


def test_pool_filters_non_fixed_hosts_and_keeps_fixed_ones() -> None:
    assert [host.id for host in select_hosts(config(), round_robin_pool=[3])] == [1, 3]


def test_pool_matching_nobody_does_not_fall_back_by_default() -> None:
    cfg = config(hosts=(Host(id=2), Host(id=3)), host_ids=(2, 3))
    assert select_hosts(cfg, round_robin_pool=[10]) == []


def test_pool_matching_nobody_falls_back_to_members_when_enabled() -> None:
    cfg = config(hosts=(Host(id=2), Host(id=3)), host_ids=(2, 3), fall_back_to_members=True)
    assert [host.id for host in select_hosts(cfg, round_robin_pool=[10])] == [10]


def test_member_fallback_without_pool_uses_every_member() -> None:
    cfg = config(hosts=(), host_ids=(), fall_back_to_members=True)
    assert [host.id for host in select_hosts(cfg)] == [10, 11]
