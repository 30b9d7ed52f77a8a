"""API E2E integration tests: HTTP requests against real Postgres.

Tests the full stack: httpx → FastAPI middleware → route handler →
SqlStore → Postgres → analytics → response serialization.

Requires Docker to be running (testcontainers).
"""

from datetime import UTC, date, datetime, timedelta
from uuid import uuid4

import pytest

from health.domain.orm import (
    ActivityRecordModel,
    ChildModel,
    GrowthMeasurementModel,
    MedicationDoseModel,
)
from health.dosing import age_in_months

DAY = datetime(2024, 3, 1, tzinfo=UTC)


@pytest.fixture
async def child_id(db_session):
    """A six-month-old with a day of feeds, two weigh-ins and one ibuprofen dose."""
    cid = uuid4()
    db_session.add(ChildModel(id=cid, name="Ada", sex="female", date_of_birth=date(2023, 9, 1)))
    db_session.add_all(
        GrowthMeasurementModel(
            child_id=cid, measurement_date=on, age_in_weeks=weeks, weight_kg=weight
        )
        for on, weeks, weight in [(date(2024, 3, 1), 26, 5.0), (date(2024, 2, 1), 22, 5.2)]
    )
    db_session.add_all(
        ActivityRecordModel(
            child_id=cid,
            category="feeding",
            started_at=DAY + timedelta(hours=h),
            ended_at=DAY + timedelta(hours=h, minutes=20),
            subtype="bottle",
            quantity=120,
        )
        for h in range(0, 24, 3)
    )
    db_session.add(
        MedicationDoseModel(
            child_id=cid,
            medication_id="ibuprofen",
            amount=100,
            administered_at=DAY + timedelta(hours=10),
        )
    )
    await db_session.commit()
    return cid


# ── Reports ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_child_report(api_client, child_id):
    resp = await api_client.get(
        f"/api/v1/children/{child_id}/report",
        params={"start": "2024-03-01", "end": "2024-03-02"},
    )
    assert resp.status_code == 200
    body = resp.json()
    data = body["data"]
    assert data["child"]["name"] == "Ada"
    assert data["total_days"] == 1
    assert data["patterns"][0]["record_count"] == 8
    assert data["measurements"][0]["weight_percentile"] == 3
    assert "Low weight percentile (HIGH)" in data["concerns"]
    assert body["meta"]["api_version"] == "v1"


@pytest.mark.asyncio
async def test_child_report_text(api_client, child_id):
    resp = await api_client.get(
        f"/api/v1/children/{child_id}/report",
        params={"start": "2024-03-01", "end": "2024-03-02", "format": "text"},
    )
    assert resp.status_code == 200
    assert "Average Feedings per Day: 8" in resp.text
    assert "Preferred Feeding Times: 0:00, 3:00, 6:00" in resp.text


@pytest.mark.asyncio
async def test_unknown_child(api_client):
    resp = await api_client.get(f"/api/v1/children/{uuid4()}/report")
    assert resp.status_code == 404
    assert resp.headers["content-type"] == "application/problem+json"


# ── Medications ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_check_safety_reads_dose_log(api_client, child_id):
    resp = await api_client.post(
        f"/api/v1/children/{child_id}/medications/ibuprofen/check-safety",
        json={"amount": 100, "administered_at": "2024-03-01T12:00:00+00:00"},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["safe"] is False
    assert data["current_daily_total"] == 100
    assert data["last_dose_at"] == "2024-03-01T10:00:00Z"
    assert data["next_safe_time"] == "2024-03-01T16:00:00Z"


@pytest.mark.asyncio
async def test_recommended_dose_uses_latest_weight(api_client, child_id):
    resp = await api_client.get(f"/api/v1/children/{child_id}/medications/paracetamol/recommended-dose")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["weight_kg"] == 5.0
    assert data["age_months"] == age_in_months(date(2023, 9, 1), datetime.now(UTC).date())


@pytest.mark.asyncio
async def test_unknown_medication(api_client, child_id):
    resp = await api_client.get(f"/api/v1/children/{child_id}/medications/unobtainium/recommended-dose")
    assert resp.status_code == 404
    assert resp.json()["title"] == "Unknown Medication"
