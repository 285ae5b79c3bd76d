from typing import AsyncIterator, Optional

from fastapi import Cookie, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .domain.ledger import ReservationLedger
from .infrastructure.repositories import SqlAlchemyBookingRepository, SqlAlchemyEventTypeRepository
from .utils.auth import decode_access_token


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def get_ledger(request: Request) -> ReservationLedger:
    ledger = getattr(request.app.state, "ledger", None)
    if ledger is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="reservation ledger is not initialized")
    return ledger


async def get_event_type_repo(session: AsyncSession = Depends(get_session)) -> SqlAlchemyEventTypeRepository:
    return SqlAlchemyEventTypeRepository(session)


async def get_booking_repo(session: AsyncSession = Depends(get_session)) -> SqlAlchemyBookingRepository:
    return SqlAlchemyBookingRepository(session)


def _holder_from(authorization: Optional[str], uid: Optional[str]) -> Optional[str]:
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Bearer token required")
        settings = get_settings()
        try:
            subject = decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
        return f"user:{subject}"
    if uid:
        return f"anon:{uid}"
    return None


async def get_holder_id(
    authorization: Optional[str] = Header(default=None),
    uid: Optional[str] = Cookie(default=None),
) -> str:
    """Identify who holds a reservation: a signed-in user, or the anonymous ``uid`` cookie."""
    holder_id = _holder_from(authorization, uid)
    if holder_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="holder identification required")
    return holder_id


async def get_optional_holder_id(
    authorization: Optional[str] = Header(default=None),
    uid: Optional[str] = Cookie(default=None),
) -> Optional[str]:
    return _holder_from(authorization, uid)
