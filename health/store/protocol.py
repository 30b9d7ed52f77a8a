"""Store protocol: the read queries the analytics engine consumes.

Both the in-memory and the SQL adapter implement this interface. The
analytical components never see it; the API layer fetches through a
Store and hands plain values to the pure functions.
"""

from datetime import datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

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


@runtime_checkable
class ChildHealthStore(Protocol):
    """Read-only access to a child's records and the reference tables."""

    async def child_for(self, child_id: UUID) -> ChildInfo:
        """Raises NotFoundError for an unknown child."""
        ...

    async def measurements_for(self, child_id: UUID, limit: int | None = None) -> list[Measurement]:
        """Measurements for the child, most recent first."""
        ...

    async def activity_records_for(
        self, child_id: UUID, start: datetime, end: datetime
    ) -> list[ActivityRecord]:
        """Records with start <= started_at < end, in no guaranteed order."""
        ...

    async def dose_history_for(
        self, child_id: UUID, medication_id: str, since: datetime
    ) -> list[DoseEvent]:
        """Doses administered at or after `since`."""
        ...

    async def reference_curve_for(
        self, sex: Sex, measurement_type: MeasurementType
    ) -> list[ReferenceCurvePoint]:
        ...

    async def medication_profile(self, medication_id: str) -> MedicationProfile:
        """Raises UnknownMedicationError when the medication is not in the formulary."""
        ...
