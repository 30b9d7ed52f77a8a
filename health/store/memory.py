"""In-memory Store adapter.

Seeded from constructor arguments plus the bundled WHO curves and
formulary. Used for local runs (store_mode=memory) and for tests.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from uuid import UUID

from shared.exceptions import NotFoundError, UnknownMedicationError

from health.domain.models import (
    ActivityRecord,
    ChildInfo,
    DoseEvent,
    Measurement,
    MeasurementType,
    MedicationProfile,
    ReferenceCurvePoint,
    Sex,
)
from health.reference.curves import WHO_2006_POINTS
from health.reference.medications import default_formulary


class InMemoryStore:
    def __init__(
        self,
        children: Iterable[ChildInfo] = (),
        measurements: Iterable[Measurement] = (),
        activity_records: Iterable[ActivityRecord] = (),
        doses: Iterable[DoseEvent] = (),
        reference_points: Iterable[ReferenceCurvePoint] = WHO_2006_POINTS,
        formulary: Mapping[str, MedicationProfile] | None = None,
    ):
        self.children = {child.child_id: child for child in children}
        self.measurements = list(measurements)
        self.activity_records = list(activity_records)
        self.doses = list(doses)
        self.reference_points = list(reference_points)
        self.formulary = formulary if formulary is not None else default_formulary()

    async def child_for(self, child_id: UUID) -> ChildInfo:
        child = self.children.get(child_id)
        if child is None:
            raise NotFoundError(f"Child {child_id} not found")
        return child

    async def measurements_for(self, child_id: UUID, limit: int | None = None) -> list[Measurement]:
        rows = sorted(
            (m for m in self.measurements if m.child_id == child_id),
            key=lambda m: m.measurement_date,
            reverse=True,
        )
        return rows[:limit] if limit is not None else rows

    async def activity_records_for(
        self, child_id: UUID, start: datetime, end: datetime
    ) -> list[ActivityRecord]:
        return [
            r
            for r in self.activity_records
            if r.child_id == child_id and start <= r.started_at < end
        ]

    async def dose_history_for(
        self, child_id: UUID, medication_id: str, since: datetime
    ) -> list[DoseEvent]:
        return [
            d
            for d in self.doses
            if d.child_id == child_id
            and d.medication_id == medication_id
            and d.administered_at >= since
        ]

    async def reference_curve_for(
        self, sex: Sex, measurement_type: MeasurementType
    ) -> list[ReferenceCurvePoint]:
        points = [
            p for p in self.reference_points if p.sex == sex and p.measurement_type == measurement_type
        ]
        return sorted(points, key=lambda p: p.age_in_weeks)

    async def medication_profile(self, medication_id: str) -> MedicationProfile:
        try:
            return self.formulary[medication_id]
        except KeyError:
            raise UnknownMedicationError(medication_id) from None
