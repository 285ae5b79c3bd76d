from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from ..deps import get_booking_repo, get_event_type_repo, get_ledger, get_optional_holder_id
from ..domain.errors import EventTypeNotFoundError, InvalidConfigurationError, InvalidWindowError
from ..domain.ledger import ReservationLedger
from ..domain.repositories import BookingRepository, EventTypeRepository
from ..schemas import SlotRead
from ..usecases import slots as slot_usecase
from ..utils.time import load_zone, utc_now

router = APIRouter(prefix="/event-types", tags=["slots"])


@router.get("/{event_type_id}/slots", response_model=List[SlotRead])
async def list_slots(
    event_type_id: int = Path(..., ge=1),
    start: datetime = Query(..., description="Range start, ISO 8601 with offset"),
    end: datetime = Query(..., description="Range end (exclusive), ISO 8601 with offset"),
    timezone: str = Query(default="UTC", description="IANA zone the slots are rendered in"),
    pool: Optional[List[int]] = Query(default=None, description="Round-robin host pool"),
    event_types: EventTypeRepository = Depends(get_event_type_repo),
    bookings: BookingRepository = Depends(get_booking_repo),
    ledger: ReservationLedger = Depends(get_ledger),
    holder_id: Optional[str] = Depends(get_optional_holder_id),
) -> list[SlotRead]:
    if start.tzinfo is None or end.tzinfo is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start/end must have timezone")
    try:
        zone = load_zone(timezone)
    except InvalidConfigurationError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="unknown timezone")

    try:
        slots = await slot_usecase.list_slots(
            event_types,
            bookings,
            ledger,
            event_type_id=event_type_id,
            start=start,
            end=end,
            now=utc_now(),
            round_robin_pool=pool,
            holder_id=holder_id,
        )
    except EventTypeNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="event type not found")
    except InvalidWindowError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except InvalidConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))

    return [SlotRead.from_domain(slot=slot, zone=zone) for slot in slots]
