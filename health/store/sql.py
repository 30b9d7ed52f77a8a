"""SQL Store adapter: all database reads for the analytics service.

Opens a short-lived session per query so independent reads can be
awaited concurrently, and maps ORM rows to domain values. Read-only;
the host application owns writes and transactions.
"""

import time
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.exceptions import NotFoundError, UnknownMedicationError
from shared.metrics import store_fetch_duration_seconds

from health.domain.models import (
    ActivityRecord,
    ChildInfo,
    DoseEvent,
    DosingBand,
    Measurement,
    MeasurementType,
    MedicationProfile,
    ReferenceCurvePoint,
    Sex,
)
from health.domain.orm import (
    ActivityRecordModel,
    ChildModel,
    GrowthMeasurementModel,
    GrowthReferenceModel,
    MedicationDoseModel,
    MedicationProfileModel,
)


class SqlStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _execute(self, query, label: str) -> list:
        start = time.monotonic()
        async with self.session_factory() as session:
            result = await session.execute(query)
            rows = list(result.scalars().all())
        store_fetch_duration_seconds.labels(query=label).observe(time.monotonic() - start)
        return rows

    async def _get(self, model, key):
        async with self.session_factory() as session:
            return await session.get(model, key)

    async def _get_child_row(self, child_id: UUID) -> ChildModel:
        row = await self._get(ChildModel, child_id)
        if row is None:
            raise NotFoundError(f"Child {child_id} not found")
        return row

    async def child_for(self, child_id: UUID) -> ChildInfo:
        row = await self._get_child_row(child_id)
        return ChildInfo(
            child_id=row.id, name=row.name, sex=Sex(row.sex), date_of_birth=row.date_of_birth
        )

    async def measurements_for(self, child_id: UUID, limit: int | None = None) -> list[Measurement]:
        """Most recent first; sex comes from the child row."""
        child = await self._get_child_row(child_id)
        query = (
            select(GrowthMeasurementModel)
            .where(GrowthMeasurementModel.child_id == child_id)
            .order_by(GrowthMeasurementModel.measurement_date.desc())
        )
        if limit is not None:
            query = query.limit(limit)

        rows = await self._execute(query, "measurements")

        return [
            Measurement(
                id=row.id,
                child_id=row.child_id,
                measurement_date=row.measurement_date,
                age_in_weeks=row.age_in_weeks,
                sex=Sex(child.sex),
                height_cm=row.height_cm,
                weight_kg=row.weight_kg,
                head_circumference_cm=row.head_circumference_cm,
                height_percentile=row.height_percentile,
                weight_percentile=row.weight_percentile,
                head_circumference_percentile=row.head_circumference_percentile,
            )
            for row in rows
        ]

    async def activity_records_for(
        self, child_id: UUID, start: datetime, end: datetime
    ) -> list[ActivityRecord]:
        query = (
            select(ActivityRecordModel)
            .where(ActivityRecordModel.child_id == child_id)
            .where(ActivityRecordModel.started_at >= start)
            .where(ActivityRecordModel.started_at < end)
            .order_by(ActivityRecordModel.started_at.asc())
        )
        rows = await self._execute(query, "activity_records")

        return [
            ActivityRecord(
                id=row.id,
                child_id=row.child_id,
                category=row.category,
                started_at=row.started_at,
                ended_at=row.ended_at,
                subtype=row.subtype,
                quantity=row.quantity,
            )
            for row in rows
        ]

    async def dose_history_for(
        self, child_id: UUID, medication_id: str, since: datetime
    ) -> list[DoseEvent]:
        query = (
            select(MedicationDoseModel)
            .where(MedicationDoseModel.child_id == child_id)
            .where(MedicationDoseModel.medication_id == medication_id)
            .where(MedicationDoseModel.administered_at >= since)
            .order_by(MedicationDoseModel.administered_at.desc())
        )
        rows = await self._execute(query, "dose_history")

        return [
            DoseEvent(
                id=row.id,
                child_id=row.child_id,
                medication_id=row.medication_id,
                amount=row.amount,
                unit=row.unit,
                administered_at=row.administered_at,
            )
            for row in rows
        ]

    async def reference_curve_for(
        self, sex: Sex, measurement_type: MeasurementType
    ) -> list[ReferenceCurvePoint]:
        query = (
            select(GrowthReferenceModel)
            .where(GrowthReferenceModel.sex == sex.value)
            .where(GrowthReferenceModel.measurement_type == measurement_type.value)
            .order_by(GrowthReferenceModel.age_in_weeks.asc())
        )
        rows = await self._execute(query, "reference_curve")
        return [
            ReferenceCurvePoint(
                sex=sex,
                measurement_type=measurement_type,
                age_in_weeks=row.age_in_weeks,
                p3=row.p3,
                p5=row.p5,
                p10=row.p10,
                p25=row.p25,
                p50=row.p50,
                p75=row.p75,
                p90=row.p90,
                p95=row.p95,
                p97=row.p97,
            )
            for row in rows
        ]

    async def medication_profile(self, medication_id: str) -> MedicationProfile:
        row = await self._get(MedicationProfileModel, medication_id)
        if row is None:
            raise UnknownMedicationError(medication_id)
        return MedicationProfile(
            medication_id=row.medication_id,
            name=row.name,
            strength_mg=row.strength_mg,
            concentration_mg_per_ml=row.concentration_mg_per_ml,
            min_age_months=row.min_age_months,
            max_daily_dose_mg=row.max_daily_dose_mg,
            max_daily_mg_per_kg=row.max_daily_mg_per_kg,
            dosing_interval_hours=row.dosing_interval_hours,
            dosing_table=tuple(DosingBand.model_validate(band) for band in row.dosing_table or []),
        )
