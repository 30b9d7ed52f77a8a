"""FastAPI router for the child health analytics domain.

Stateless endpoints over request bodies:
- POST /api/v1/percentiles/classify
- POST /api/v1/patterns/analyze
- POST /api/v1/growth/alerts
- POST /api/v1/medications/recommended-dose
- POST /api/v1/medications/check-safety
- POST /api/v1/reports        (structured report)
- POST /api/v1/reports/text   (plain-text export)

Store-backed endpoints:
- GET  /api/v1/children/{id}/report
- GET  /api/v1/children/{id}/medications/{medication_id}/recommended-dose
- POST /api/v1/children/{id}/medications/{medication_id}/check-safety
"""

import asyncio
import time
from collections.abc import Sequence
from datetime import UTC, date, datetime, time as dt_time, timedelta, tzinfo
from typing import Any, Literal
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from shared.config import settings
from shared.exceptions import InvalidDateRangeError, InvalidInputError
from shared.metrics import api_requests_total, api_response_duration_seconds
from shared.middleware import request_id_var

from health.alerts import GrowthAlertEngine
from health.domain.models import (
    ActivityRecord,
    ChildInfo,
    DoseEvent,
    DoseUnit,
    Measurement,
    MeasurementType,
    NoData,
    Sex,
)
from health.dosing import MedicationDoseEngine, age_in_months, check_dose_safety, recommended_dose
from health.patterns import analyze_patterns, pattern_concerns, pattern_milestones
from health.percentiles import PercentileCalculator, default_calculator, percentile_description
from health.reference.medications import default_formulary
from health.report import Report, build_report, render_growth_text, render_text
from health.store.factory import get_store
from health.store.protocol import ChildHealthStore

router = APIRouter(prefix="/api/v1")

DEFAULT_REPORT_DAYS = 30


# --- Dependencies ---


def get_calculator(request: Request) -> PercentileCalculator:
    """Calculator over the curves loaded at startup, or the bundled WHO set."""
    return getattr(request.app.state, "calculator", None) or default_calculator()


def get_dose_engine(request: Request) -> MedicationDoseEngine:
    engine = getattr(request.app.state, "dose_engine", None)
    return engine or MedicationDoseEngine(default_formulary())


# --- Request models ---


class ClassifyRequest(BaseModel):
    sex: Sex
    age_in_weeks: float
    measurement_type: MeasurementType
    value: float


class AnalyzePatternsRequest(BaseModel):
    records: list[ActivityRecord]
    timezone: str | None = Field(None, description="IANA zone for day and hour bucketing")


class GrowthAlertsRequest(BaseModel):
    measurements: list[Measurement] = Field(..., description="Most recent first")
    resolve_percentiles: bool = Field(
        True, description="Classify each reading against the reference curves first"
    )


class RecommendedDoseRequest(BaseModel):
    medication_id: str
    age_months: float
    weight_kg: float | None = None


class SafetyCheckRequest(BaseModel):
    proposed: DoseEvent
    history: list[DoseEvent] = Field(default_factory=list)
    age_months: float | None = None
    weight_kg: float | None = None
    timezone: str | None = None


class ChildDoseRequest(BaseModel):
    amount: float
    unit: DoseUnit = DoseUnit.MG
    administered_at: datetime
    weight_kg: float | None = None


class ReportRequest(BaseModel):
    child: ChildInfo
    measurements: list[Measurement] = Field(default_factory=list)
    records: list[ActivityRecord] = Field(default_factory=list)
    period_start: date | None = None
    period_end: date | None = None
    generated_at: datetime | None = None
    timezone: str | None = None


# --- Response helpers ---


def _meta() -> dict[str, Any]:
    return {
        "request_id": request_id_var.get(""),
        "timestamp": datetime.now(UTC).isoformat(),
        "api_version": settings.api_version,
    }


def _record(endpoint: str, method: str, start_time: float, status_code: int = 200) -> None:
    api_requests_total.labels(endpoint=endpoint, method=method, status_code=str(status_code)).inc()
    api_response_duration_seconds.labels(endpoint=endpoint).observe(time.monotonic() - start_time)


def _resolve_tz(name: str | None) -> tzinfo:
    if name is None:
        return settings.tz
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidInputError(
            [{"field": "timezone", "rule": "timezone", "reason": "unknown_timezone", "value": name}]
        ) from None


def _local_midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, dt_time.min, tzinfo=tz)


def _assemble_report(
    calculator: PercentileCalculator,
    child: ChildInfo,
    measurements: Sequence[Measurement],
    records: Sequence[ActivityRecord],
    *,
    tz: tzinfo,
    period_start: date | None,
    period_end: date | None,
    generated_at: datetime | None,
) -> Report:
    """Run every component over already-fetched data and compose the report."""
    history = sorted(
        (calculator.resolve_percentiles(m) for m in measurements),
        key=lambda m: m.measurement_date,
        reverse=True,
    )
    patterns = analyze_patterns(records, tz=tz)
    alerts = GrowthAlertEngine().evaluate(history)
    return build_report(
        child,
        history,
        patterns,
        alerts,
        period_start=period_start,
        period_end=period_end,
        generated_at=generated_at,
    )


# --- Stateless endpoints ---


@router.post("/percentiles/classify")
async def classify(body: ClassifyRequest, calculator: PercentileCalculator = Depends(get_calculator)):
    """Classify one value onto the percentile ladder.

    Returns percentile=null with a no_data object when no reference curve
    exists for the sex and measurement type.
    """
    start_time = time.monotonic()
    result = calculator.classify(body.sex, body.age_in_weeks, body.measurement_type, body.value)

    if isinstance(result, NoData):
        data = {"percentile": None, "description": None, "no_data": result.model_dump()}
    else:
        data = {"percentile": result, "description": percentile_description(result), "no_data": None}

    _record("classify", "POST", start_time)
    return {"data": data, "meta": _meta()}


@router.post("/patterns/analyze")
async def analyze(body: AnalyzePatternsRequest):
    start_time = time.monotonic()
    summaries = analyze_patterns(body.records, tz=_resolve_tz(body.timezone))
    data = {
        "summaries": [s.model_dump(mode="json") for s in summaries],
        "concerns": pattern_concerns(summaries),
        "milestones": pattern_milestones(summaries),
    }
    _record("patterns", "POST", start_time)
    return {"data": data, "meta": _meta()}


@router.post("/growth/alerts")
async def growth_alerts(
    body: GrowthAlertsRequest, calculator: PercentileCalculator = Depends(get_calculator)
):
    start_time = time.monotonic()
    history = body.measurements
    if body.resolve_percentiles:
        history = [calculator.resolve_percentiles(m) for m in history]

    alerts = GrowthAlertEngine().evaluate(history)
    _record("growth_alerts", "POST", start_time)
    return {"data": [a.model_dump(mode="json") for a in alerts], "meta": _meta()}


@router.post("/medications/recommended-dose")
async def recommend_dose(
    body: RecommendedDoseRequest, engine: MedicationDoseEngine = Depends(get_dose_engine)
):
    """Recommended dose, or an age_restricted / no_data result (never a nearest-band guess)."""
    start_time = time.monotonic()
    result = engine.recommended_dose(body.medication_id, body.age_months, body.weight_kg)
    _record("recommended_dose", "POST", start_time)
    return {"data": result.model_dump(mode="json"), "meta": _meta()}


@router.post("/medications/check-safety")
async def check_safety(
    body: SafetyCheckRequest, engine: MedicationDoseEngine = Depends(get_dose_engine)
):
    """Safety verdict for a proposed dose. An unsafe dose is a 200 with safe=false."""
    start_time = time.monotonic()
    verdict = engine.check_dose_safety(
        body.proposed,
        body.history,
        tz=_resolve_tz(body.timezone),
        age_months=body.age_months,
        weight_kg=body.weight_kg,
    )
    _record("check_safety", "POST", start_time)
    return {"data": verdict.model_dump(mode="json"), "meta": _meta()}


@router.post("/reports")
async def create_report(
    body: ReportRequest, calculator: PercentileCalculator = Depends(get_calculator)
):
    start_time = time.monotonic()
    report = _assemble_report(
        calculator,
        body.child,
        body.measurements,
        body.records,
        tz=_resolve_tz(body.timezone),
        period_start=body.period_start,
        period_end=body.period_end,
        generated_at=body.generated_at,
    )
    _record("reports", "POST", start_time)
    return {"data": report.model_dump(mode="json"), "meta": _meta()}


@router.post("/reports/text", response_class=PlainTextResponse)
async def create_report_text(
    body: ReportRequest,
    calculator: PercentileCalculator = Depends(get_calculator),
    kind: Literal["tracker", "growth"] = Query("tracker"),
):
    """Plain-text export. Byte-identical for identical request bodies."""
    start_time = time.monotonic()
    report = _assemble_report(
        calculator,
        body.child,
        body.measurements,
        body.records,
        tz=_resolve_tz(body.timezone),
        period_start=body.period_start,
        period_end=body.period_end,
        generated_at=body.generated_at,
    )
    text = render_growth_text(report) if kind == "growth" else render_text(report)
    _record("reports_text", "POST", start_time)
    return PlainTextResponse(text)


# --- Store-backed endpoints ---


@router.get("/children/{child_id}/report")
async def child_report(
    child_id: UUID,
    store: ChildHealthStore = Depends(get_store),
    calculator: PercentileCalculator = Depends(get_calculator),
    start: date | None = Query(None),
    end: date | None = Query(None),
    output: Literal["json", "text", "growth_text"] = Query("json", alias="format"),
):
    """Fetch a child's data and assemble the report. Period is [start, end)."""
    start_time = time.monotonic()
    tz = settings.tz
    end = end or datetime.now(tz).date() + timedelta(days=1)
    start = start or end - timedelta(days=DEFAULT_REPORT_DAYS)
    if start >= end:
        raise InvalidDateRangeError(str(start), str(end))

    child, measurements, records = await asyncio.gather(
        store.child_for(child_id),
        store.measurements_for(child_id),
        store.activity_records_for(child_id, _local_midnight(start, tz), _local_midnight(end, tz)),
    )
    report = _assemble_report(
        calculator,
        child,
        measurements,
        records,
        tz=tz,
        period_start=start,
        period_end=end,
        generated_at=datetime.now(tz),
    )

    _record("child_report", "GET", start_time)
    if output == "text":
        return PlainTextResponse(render_text(report))
    if output == "growth_text":
        return PlainTextResponse(render_growth_text(report))
    return {"data": report.model_dump(mode="json"), "meta": _meta()}


@router.get("/children/{child_id}/medications/{medication_id}/recommended-dose")
async def child_recommended_dose(
    child_id: UUID,
    medication_id: str,
    store: ChildHealthStore = Depends(get_store),
):
    """Dose from the child's current age and latest recorded weight."""
    start_time = time.monotonic()
    child, profile, latest = await asyncio.gather(
        store.child_for(child_id),
        store.medication_profile(medication_id),
        store.measurements_for(child_id),
    )
    if child.date_of_birth is None:
        raise InvalidInputError(
            [{"field": "date_of_birth", "rule": "required", "reason": "date_of_birth_unknown", "value": None}]
        )

    age_months = age_in_months(child.date_of_birth, datetime.now(settings.tz).date())
    weight_kg = next((m.weight_kg for m in latest if m.weight_kg is not None), None)
    result = recommended_dose(profile, age_months, weight_kg)

    _record("child_recommended_dose", "GET", start_time)
    return {
        "data": {**result.model_dump(mode="json"), "age_months": age_months, "weight_kg": weight_kg},
        "meta": _meta(),
    }


@router.post("/children/{child_id}/medications/{medication_id}/check-safety")
async def child_check_safety(
    child_id: UUID,
    medication_id: str,
    body: ChildDoseRequest,
    store: ChildHealthStore = Depends(get_store),
):
    """Safety verdict against the child's logged doses for the proposed local day."""
    start_time = time.monotonic()
    tz = settings.tz
    profile = await store.medication_profile(medication_id)

    local_day = body.administered_at.astimezone(tz).date() if body.administered_at.tzinfo else None
    if local_day is None:
        raise InvalidInputError(
            [
                {
                    "field": "administered_at",
                    "rule": "timezone",
                    "reason": "missing_timezone",
                    "value": str(body.administered_at),
                }
            ]
        )
    # Same local day, plus far enough back to see the previous dose interval
    since = min(
        _local_midnight(local_day, tz),
        body.administered_at - timedelta(hours=profile.dosing_interval_hours),
    )
    child, history = await asyncio.gather(
        store.child_for(child_id),
        store.dose_history_for(child_id, medication_id, since),
    )

    age_months = (
        age_in_months(child.date_of_birth, local_day) if child.date_of_birth is not None else None
    )
    proposed = DoseEvent(
        child_id=child_id,
        medication_id=medication_id,
        amount=body.amount,
        unit=body.unit,
        administered_at=body.administered_at,
    )
    verdict = check_dose_safety(
        profile, proposed, history, tz=tz, age_months=age_months, weight_kg=body.weight_kg
    )

    _record("child_check_safety", "POST", start_time)
    return {"data": verdict.model_dump(mode="json"), "meta": _meta()}
