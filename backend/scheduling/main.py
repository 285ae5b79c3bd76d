from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .config import Settings, get_settings
from .domain.ledger import InMemoryReservationLedger, ReservationLedger
from .routers import reservations, slots
from .utils.logger import configure_logging, get_logger
from .utils.request_context import request_id_middleware

logger = get_logger(__name__)


def build_ledger(settings: Settings) -> ReservationLedger:
    if settings.ledger_backend == "sql":
        from .database import async_session
        from .infrastructure.ledger import SqlAlchemyReservationLedger

        return SqlAlchemyReservationLedger(async_session)
    return InMemoryReservationLedger(stripes=settings.ledger_stripes)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(settings.log_level)
    if getattr(app.state, "ledger", None) is None:
        app.state.ledger = build_ledger(settings)
    logger.info("reservation ledger ready (%s)", settings.ledger_backend)
    yield


app = FastAPI(title="Scheduling API", lifespan=lifespan)
app.middleware("http")(request_id_middleware)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(slots.router)
app.include_router(reservations.router)
