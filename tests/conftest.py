import os
import sys
import uuid
from datetime import date, datetime, time
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

# Add the app directory to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.api.deps.clock import get_now
from app.api.deps.database import get_db
from app.main import app
from app.models.booking import Booking, BookingStatus, BookingType

BOGOTA = ZoneInfo("America/Bogota")


@pytest.fixture
def fixed_now():
    """Monday 2024-01-08 08:00 in the clinic's timezone."""
    return datetime(2024, 1, 8, 8, 0, tzinfo=BOGOTA)


@pytest.fixture
def mock_db():
    """AsyncSession stand-in: async methods are AsyncMocks, ``add`` is a plain mock."""
    return AsyncMock(spec=AsyncSession)


@pytest.fixture
async def client(mock_db, fixed_now):
    """HTTP client against the app with the database and clock replaced."""

    async def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: fixed_now

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def make_booking(
    start: time,
    end: time,
    booking_date: date = date(2024, 1, 10),
    room_id: str = "main-room",
    instructor_id: str = "nurse-1",
    patient_id: str = "patient-1",
    price: int = 100_000,
    status: BookingStatus = BookingStatus.CONFIRMED,
    booking_type: BookingType = BookingType.APPOINTMENT,
) -> Booking:
    """Build a detached Booking with every column a test reads."""
    return Booking(
        id=1,
        uuid=uuid.uuid4(),
        booking_type=booking_type.value,
        patient_id=patient_id,
        room_id=room_id,
        instructor_id=instructor_id,
        booking_date=booking_date,
        start_time=start,
        end_time=end,
        status=status.value,
        price=price,
    )


def scalars_result(items):
    """Mimic ``(await db.execute(...)).scalars().all()``."""
    result = MagicMock()
    result.scalars.return_value.all.return_value = list(items)
    result.scalar_one_or_none.return_value = items[0] if items else None
    return result
