from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from fastapi import HTTPException, Response
from scheduling.domain.entities import EventTypeConfig, HostSelectionPolicy
from scheduling.domain.ledger import InMemoryReservationLedger, Reservation
from scheduling.routers import reservations as router
from scheduling.schemas import ReservationCreate, ReservationRead

START = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=1)


class FakeEventTypeRepo:
    def __init__(self, config: Optional[EventTypeConfig]) -> None:
        self.config = config

    async def get(self, event_type_id: int) -> Optional[EventTypeConfig]:
        return self.config


def _repo() -> FakeEventTypeRepo:
    return FakeEventTypeRepo(
        EventTypeConfig(id=3, length=timedelta(minutes=30), policy=HostSelectionPolicy.ANY_OF, host_ids=(), hosts=())
    )


def _payload(minutes: int = 30) -> ReservationCreate:
    return ReservationCreate(starts_at=START, ends_at=START + timedelta(minutes=minutes))


@pytest.fixture
def audit_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def fake_emit(**kwargs: Any) -> None:
        calls.append(kwargs)

    monkeypatch.setattr(router, "emit_audit_log", fake_emit)
    monkeypatch.setattr(router, "audit_reservation", lambda action, reservation: calls.append({"action": action}))
    monkeypatch.setattr(
        router, "audit_conflict", lambda conflict, holder_id: calls.append({"action": "reservation.conflict"})
    )
    return calls


@pytest.mark.asyncio
async def test_reserve_slot_returns_hold_and_audits(audit_calls: list[dict[str, Any]]) -> None:
    result = await router.reserve_slot(
        payload=_payload(),
        event_type_id=3,
        event_types=_repo(),
        ledger=InMemoryReservationLedger(),
        holder_id="user:42",
    )
    assert isinstance(result, ReservationRead)
    assert result.event_type_id == 3
    assert result.holder_id == "user:42"
    assert result.token
    assert audit_calls == [{"action": "reservation.held"}]


@pytest.mark.asyncio
async def test_reserve_slot_conflict_returns_409(audit_calls: list[dict[str, Any]]) -> None:
    ledger = InMemoryReservationLedger()
    await router.reserve_slot(
        payload=_payload(), event_type_id=3, event_types=_repo(), ledger=ledger, holder_id="user:1"
    )
    with pytest.raises(HTTPException) as excinfo:
        await router.reserve_slot(
            payload=_payload(), event_type_id=3, event_types=_repo(), ledger=ledger, holder_id="anon:x"
        )
    assert excinfo.value.status_code == 409
    assert excinfo.value.detail["detail"] == "slot already reserved"
    assert "held_until" in excinfo.value.detail
    assert audit_calls[-1] == {"action": "reservation.conflict"}


@pytest.mark.asyncio
async def test_reserve_slot_rejects_naive_datetimes(audit_calls: list[dict[str, Any]]) -> None:
    naive = START.replace(tzinfo=None)
    payload = ReservationCreate(starts_at=naive, ends_at=naive + timedelta(minutes=30))
    with pytest.raises(HTTPException) as excinfo:
        await router.reserve_slot(
            payload=payload, event_type_id=3, event_types=_repo(), ledger=InMemoryReservationLedger(), holder_id="u"
        )
    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_reserve_slot_rejects_wrong_length(audit_calls: list[dict[str, Any]]) -> None:
    with pytest.raises(HTTPException) as excinfo:
        await router.reserve_slot(
            payload=_payload(45),
            event_type_id=3,
            event_types=_repo(),
            ledger=InMemoryReservationLedger(),
            holder_id="user:1",
        )
    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_reserve_slot_unknown_event_type(audit_calls: list[dict[str, Any]]) -> None:
    with pytest.raises(HTTPException) as excinfo:
        await router.reserve_slot(
            payload=_payload(),
            event_type_id=3,
            event_types=FakeEventTypeRepo(None),
            ledger=InMemoryReservationLedger(),
            holder_id="user:1",
        )
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_reserve_slot_audit_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_audit(action: str, reservation: Reservation) -> None:
        raise RuntimeError("audit down")

    monkeypatch.setattr(router, "audit_reservation", failing_audit)
    with pytest.raises(HTTPException) as excinfo:
        await router.reserve_slot(
            payload=_payload(),
            event_type_id=3,
            event_types=_repo(),
            ledger=InMemoryReservationLedger(),
            holder_id="user:1",
        )
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_confirm_reservation_returns_hold_once(audit_calls: list[dict[str, Any]]) -> None:
    ledger = InMemoryReservationLedger()
    held = await router.reserve_slot(
        payload=_payload(), event_type_id=3, event_types=_repo(), ledger=ledger, holder_id="user:1"
    )

    confirmed = await router.confirm_reservation(token=held.token, ledger=ledger)
    assert isinstance(confirmed, ReservationRead)
    assert confirmed.token == held.token
    assert audit_calls[-1] == {"action": "reservation.confirmed"}

    again = await router.confirm_reservation(token=held.token, ledger=ledger)
    assert isinstance(again, Response)
    assert again.status_code == 204


@pytest.mark.asyncio
async def test_release_reservation_is_idempotent(audit_calls: list[dict[str, Any]]) -> None:
    ledger = InMemoryReservationLedger()
    held = await router.reserve_slot(
        payload=_payload(), event_type_id=3, event_types=_repo(), ledger=ledger, holder_id="user:1"
    )

    first = await router.release_reservation(token=held.token, ledger=ledger)
    second = await router.release_reservation(token=held.token, ledger=ledger)
    assert first.status_code == second.status_code == 204
    assert audit_calls[-1]["action"] == "reservation.released"

    retaken = await router.reserve_slot(
        payload=_payload(), event_type_id=3, event_types=_repo(), ledger=ledger, holder_id="user:2"
    )
    assert retaken.holder_id == "user:2"


@pytest.mark.asyncio
async def test_release_my_reservations_reports_count(audit_calls: list[dict[str, Any]]) -> None:
    ledger = InMemoryReservationLedger()
    await router.reserve_slot(
        payload=_payload(), event_type_id=3, event_types=_repo(), ledger=ledger, holder_id="anon:abc"
    )

    response = await router.release_my_reservations(ledger=ledger, holder_id="anon:abc")
    assert response.status_code == 204
    assert audit_calls[-1]["action"] == "reservation.holder_released"
    assert audit_calls[-1]["holder_id"] == "anon:abc"
    assert audit_calls[-1]["extra"] == {"released": 1}
