"""Shared test fixtures."""

import sys
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from uuid import UUID

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from health.domain.models import (  # noqa: E402
    ActivityCategory,
    ActivityRecord,
    ChildInfo,
    DoseEvent,
    Measurement,
    Sex,
)

CHILD_ID = UUID("a1b2c3d4-5678-90ab-cdef-1234567890ab")
OTHER_CHILD_ID = UUID("0f0e0d0c-0b0a-0908-0706-050403020100")

# A fixed instant so day and hour bucketing never depends on the clock
T0 = datetime(2024, 3, 1, 0, 0, tzinfo=UTC)


def at(hours: float, start: datetime = T0) -> datetime:
    return start + timedelta(hours=hours)


def record(
    category: ActivityCategory | str,
    hours: float,
    *,
    duration_minutes: float | None = None,
    subtype: str | None = None,
    quantity: float | None = None,
    child_id: UUID = CHILD_ID,
) -> ActivityRecord:
    started = at(hours)
    ended = started + timedelta(minutes=duration_minutes) if duration_minutes is not None else None
    return ActivityRecord(
        child_id=child_id,
        category=category,
        started_at=started,
        ended_at=ended,
        subtype=subtype,
        quantity=quantity,
    )


def measurement(
    on: date,
    age_in_weeks: float,
    *,
    sex: Sex = Sex.MALE,
    **values,
) -> Measurement:
    return Measurement(
        child_id=CHILD_ID, measurement_date=on, age_in_weeks=age_in_weeks, sex=sex, **values
    )


def dose(
    hours: float, amount: float, *, medication_id: str = "ibuprofen", **kwargs
) -> DoseEvent:
    return DoseEvent(
        child_id=CHILD_ID,
        medication_id=medication_id,
        amount=amount,
        administered_at=at(hours),
        **kwargs,
    )


@pytest.fixture
def child_id():
    return CHILD_ID


@pytest.fixture
def child():
    return ChildInfo(
        child_id=CHILD_ID, name="Ada", sex=Sex.FEMALE, date_of_birth=date(2023, 9, 1)
    )


@pytest.fixture
def feeding_day():
    """Eight bottle feeds, three hours apart, across one UTC day."""
    return [
        record(ActivityCategory.FEEDING, h, duration_minutes=20, subtype="bottle", quantity=120)
        for h in range(0, 24, 3)
    ]
