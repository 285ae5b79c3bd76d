from datetime import timedelta
from typing import Union

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status

from ..config import get_settings
from ..deps import get_event_type_repo, get_holder_id, get_ledger
from ..domain.errors import EventTypeNotFoundError, InvalidWindowError
from ..domain.interval import TimeWindow
from ..domain.ledger import Conflict, ReservationLedger
from ..domain.repositories import EventTypeRepository
from ..schemas import ReservationConflictRead, ReservationCreate, ReservationRead
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import audit_conflict, audit_reservation, emit_audit_log

router = APIRouter(prefix="", tags=["reservations"])


def _audit_failed() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")


@router.post(
    "/event-types/{event_type_id}/reservations",
    response_model=ReservationRead,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_409_CONFLICT: {"model": ReservationConflictRead}},
)
async def reserve_slot(
    payload: ReservationCreate,
    event_type_id: int = Path(..., ge=1),
    event_types: EventTypeRepository = Depends(get_event_type_repo),
    ledger: ReservationLedger = Depends(get_ledger),
    holder_id: str = Depends(get_holder_id),
) -> ReservationRead:
    if payload.starts_at.tzinfo is None or payload.ends_at.tzinfo is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="starts_at/ends_at must have timezone")
    try:
        window = TimeWindow(payload.starts_at, payload.ends_at)
        result = await reservation_usecase.reserve_slot(
            event_types,
            ledger,
            event_type_id=event_type_id,
            window=window,
            holder_id=holder_id,
            ttl=timedelta(seconds=get_settings().reservation_ttl_seconds),
        )
    except EventTypeNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="event type not found")
    except InvalidWindowError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    if isinstance(result, Conflict):
        try:
            audit_conflict(result, holder_id)
        except RuntimeError as exc:
            raise _audit_failed() from exc
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=ReservationConflictRead(held_until=result.held_until).model_dump(mode="json"),
        )

    try:
        audit_reservation("reservation.held", result)
    except RuntimeError as exc:
        raise _audit_failed() from exc
    return ReservationRead.from_domain(reservation=result)


@router.post(
    "/reservations/{token}/confirm",
    response_model=ReservationRead,
    responses={status.HTTP_204_NO_CONTENT: {"description": "Nothing was held for this token"}},
)
async def confirm_reservation(
    token: str = Path(..., min_length=1),
    ledger: ReservationLedger = Depends(get_ledger),
) -> Union[ReservationRead, Response]:
    reservation = await reservation_usecase.confirm_reservation(ledger, token=token)
    if reservation is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    try:
        audit_reservation("reservation.confirmed", reservation)
    except RuntimeError as exc:
        raise _audit_failed() from exc
    return ReservationRead.from_domain(reservation=reservation)


@router.delete("/reservations/{token}", status_code=status.HTTP_204_NO_CONTENT)
async def release_reservation(
    token: str = Path(..., min_length=1),
    ledger: ReservationLedger = Depends(get_ledger),
) -> Response:
    await reservation_usecase.release_reservation(ledger, token=token)
    try:
        emit_audit_log(action="reservation.released", holder_id=None, extra={"token_prefix": token[:6]})
    except RuntimeError as exc:
        raise _audit_failed() from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/me/reservations", status_code=status.HTTP_204_NO_CONTENT)
async def release_my_reservations(
    ledger: ReservationLedger = Depends(get_ledger),
    holder_id: str = Depends(get_holder_id),
) -> Response:
    released = await reservation_usecase.release_holder_reservations(ledger, holder_id=holder_id)
    try:
        emit_audit_log(action="reservation.holder_released", holder_id=holder_id, extra={"released": released})
    except RuntimeError as exc:
        raise _audit_failed() from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
