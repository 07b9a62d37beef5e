# backend/booking_backend/main.py

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .database import init_db
from .redis_client import redis_client
from .routers import blocked_periods, bookings, members, providers, schedules, slots
from .services.schedule_checker import schedule_checker_loop

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    checker = asyncio.create_task(schedule_checker_loop())
    yield
    checker.cancel()
    try:
        await checker
    except asyncio.CancelledError:
        pass


app = FastAPI(title="Booking Availability API (SQLite)", lifespan=lifespan)

app.include_router(slots.router)
app.include_router(blocked_periods.router)
app.include_router(schedules.router)
app.include_router(bookings.router)
app.include_router(members.router)
app.include_router(providers.router)


@app.get("/health")
def health():
    try:
        redis_ok = bool(redis_client.ping())
    except Exception as e:
        logger.warning(f"Redis ping failed: {e}")
        redis_ok = False
    return {"redis": redis_ok}
