"""Canonical domain model for child health analytics.

Inputs (measurements, activity records, dose events) arrive already
fetched from the Store. Reference data (curve points, medication
profiles) and every computed result are frozen.

Design principles:
- Closed enums for every category that drives branching logic
- Nullable measurement fields: None = "not measured", not "zero"
- Result values for "no data" and "unsafe", exceptions only for bad input
"""

from datetime import date, datetime, timedelta
from enum import StrEnum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Percentile ladder boundaries, in ascending order. A value above p97
# classifies as 99.
LADDER_PERCENTILES: tuple[int, ...] = (3, 5, 10, 25, 50, 75, 90, 95, 97)
ABOVE_LADDER_PERCENTILE = 99
PERCENTILE_BANDS: tuple[int, ...] = (*LADDER_PERCENTILES, ABOVE_LADDER_PERCENTILE)


class Sex(StrEnum):
    MALE = "male"
    FEMALE = "female"


class MeasurementType(StrEnum):
    HEIGHT = "height"
    WEIGHT = "weight"
    HEAD_CIRCUMFERENCE = "head_circumference"

    @property
    def value_field(self) -> str:
        return _VALUE_FIELDS[self]

    @property
    def percentile_field(self) -> str:
        return f"{self.value}_percentile"

    @property
    def unit(self) -> str:
        return "kg" if self is MeasurementType.WEIGHT else "cm"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


_VALUE_FIELDS = {
    MeasurementType.HEIGHT: "height_cm",
    MeasurementType.WEIGHT: "weight_kg",
    MeasurementType.HEAD_CIRCUMFERENCE: "head_circumference_cm",
}


class ActivityCategory(StrEnum):
    FEEDING = "feeding"
    SLEEP = "sleep"
    DIAPER = "diaper"


class Trend(StrEnum):
    IMPROVING = "improving"
    WORSENING = "worsening"
    STABLE = "stable"


class AlertSeverity(StrEnum):
    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class AlertType(StrEnum):
    LOW_PERCENTILE = "low_percentile"
    HIGH_PERCENTILE = "high_percentile"
    RAPID_CHANGE = "rapid_change"
    NO_GROWTH = "no_growth"


class DoseUnit(StrEnum):
    MG = "mg"
    ML = "ml"
    TABLET = "tablet"


# --- Inputs ---


class ChildInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    child_id: UUID
    name: str
    sex: Sex
    date_of_birth: date | None = None


class Measurement(BaseModel):
    """One anthropometric reading. Corrections produce a new instance."""

    model_config = ConfigDict(frozen=True)

    id: UUID | None = None
    child_id: UUID | None = None
    measurement_date: date
    age_in_weeks: float = Field(..., ge=0)
    sex: Sex

    height_cm: float | None = Field(None, gt=0)
    weight_kg: float | None = Field(None, gt=0)
    head_circumference_cm: float | None = Field(None, gt=0)

    # Resolved against the reference curves; None = not resolved / no data
    height_percentile: int | None = None
    weight_percentile: int | None = None
    head_circumference_percentile: int | None = None

    @model_validator(mode="after")
    def require_physical_value(self) -> "Measurement":
        if not self.measurement_types:
            raise ValueError(
                "at least one of height_cm, weight_kg, head_circumference_cm is required"
            )
        return self

    @field_validator("height_percentile", "weight_percentile", "head_circumference_percentile")
    @classmethod
    def percentile_on_ladder(cls, v: int | None) -> int | None:
        if v is not None and v not in PERCENTILE_BANDS:
            raise ValueError(f"percentile must be one of {PERCENTILE_BANDS}")
        return v

    @property
    def measurement_types(self) -> list[MeasurementType]:
        return [t for t in MeasurementType if getattr(self, t.value_field) is not None]

    def value_for(self, measurement_type: MeasurementType) -> float | None:
        return getattr(self, measurement_type.value_field)

    def percentile_for(self, measurement_type: MeasurementType) -> int | None:
        return getattr(self, measurement_type.percentile_field)


class ReferenceCurvePoint(BaseModel):
    """Population percentile ladder for one (sex, measurement type, age)."""

    model_config = ConfigDict(frozen=True)

    sex: Sex
    age_in_weeks: int = Field(..., ge=0)
    measurement_type: MeasurementType
    p3: float = Field(..., gt=0)
    p5: float = Field(..., gt=0)
    p10: float = Field(..., gt=0)
    p25: float = Field(..., gt=0)
    p50: float = Field(..., gt=0)
    p75: float = Field(..., gt=0)
    p90: float = Field(..., gt=0)
    p95: float = Field(..., gt=0)
    p97: float = Field(..., gt=0)

    @model_validator(mode="after")
    def ladder_is_monotonic(self) -> "ReferenceCurvePoint":
        values = [boundary for _, boundary in self.ladder]
        if any(lower > upper for lower, upper in zip(values, values[1:])):
            raise ValueError(
                f"non-monotonic percentile ladder for {self.sex}/"
                f"{self.measurement_type}/{self.age_in_weeks}w"
            )
        return self

    @property
    def ladder(self) -> tuple[tuple[int, float], ...]:
        return tuple((p, getattr(self, f"p{p}")) for p in LADDER_PERCENTILES)

    @property
    def key(self) -> tuple[Sex, MeasurementType, int]:
        return (self.sex, self.measurement_type, self.age_in_weeks)


class ActivityRecord(BaseModel):
    """A timestamped feeding, sleep or diaper entry. Open when ended_at is None."""

    model_config = ConfigDict(frozen=True)

    id: UUID | None = None
    child_id: UUID
    category: ActivityCategory
    started_at: datetime
    ended_at: datetime | None = None
    subtype: str | None = None
    quantity: float | None = None

    @field_validator("category", mode="before")
    @classmethod
    def normalize_nappy(cls, v: Any) -> Any:
        """Accept the 'nappy' spelling used by older clients."""
        if isinstance(v, str) and v.strip().lower() == "nappy":
            return ActivityCategory.DIAPER
        return v

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    @property
    def duration(self) -> timedelta | None:
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at


class DosingBand(BaseModel):
    """Age (and optionally weight) range mapped to a dose range. Ranges are [min, max)."""

    model_config = ConfigDict(frozen=True)

    min_age_months: float = Field(..., ge=0)
    max_age_months: float | None = None
    min_weight_kg: float | None = Field(None, ge=0)
    max_weight_kg: float | None = None
    min_dose_mg: float = Field(..., gt=0)
    max_dose_mg: float = Field(..., gt=0)

    @model_validator(mode="after")
    def ranges_are_ordered(self) -> "DosingBand":
        if self.max_age_months is not None and self.max_age_months <= self.min_age_months:
            raise ValueError("max_age_months must exceed min_age_months")
        if (
            self.min_weight_kg is not None
            and self.max_weight_kg is not None
            and self.max_weight_kg <= self.min_weight_kg
        ):
            raise ValueError("max_weight_kg must exceed min_weight_kg")
        if self.max_dose_mg < self.min_dose_mg:
            raise ValueError("max_dose_mg must not be below min_dose_mg")
        return self

    @property
    def is_weight_based(self) -> bool:
        return self.min_weight_kg is not None or self.max_weight_kg is not None

    def matches_age(self, age_months: float) -> bool:
        if age_months < self.min_age_months:
            return False
        return self.max_age_months is None or age_months < self.max_age_months

    def matches_weight(self, weight_kg: float) -> bool:
        if self.min_weight_kg is not None and weight_kg < self.min_weight_kg:
            return False
        return self.max_weight_kg is None or weight_kg < self.max_weight_kg


class MedicationProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    medication_id: str
    name: str
    strength_mg: float | None = Field(None, gt=0)
    concentration_mg_per_ml: float | None = Field(None, gt=0)
    min_age_months: float = Field(0, ge=0)
    max_daily_dose_mg: float | None = Field(None, gt=0)
    max_daily_mg_per_kg: float | None = Field(None, gt=0)
    dosing_interval_hours: float = Field(..., gt=0)
    dosing_table: tuple[DosingBand, ...] = ()

    @property
    def is_weight_based(self) -> bool:
        return any(band.is_weight_based for band in self.dosing_table)


class DoseEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID | None = None
    child_id: UUID
    medication_id: str
    amount: float
    unit: DoseUnit = DoseUnit.MG
    administered_at: datetime


# --- Results ---


class NoData(BaseModel):
    """Explicit "not enough data" result. Never raised."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["no_data"] = "no_data"
    reason: str
    detail: str | None = None


class PatternSummary(BaseModel):
    """Per-category statistics, recomputed on every analysis call."""

    model_config = ConfigDict(frozen=True)

    category: ActivityCategory
    record_count: int
    open_sessions: int = 0
    active_days: int
    records_per_day: float

    average_interval_minutes: float | None = None
    average_duration_minutes: float | None = None
    longest_duration_minutes: float | None = None
    total_duration_minutes: float = 0.0
    duration_per_day_minutes: float | None = None

    peak_hours: tuple[int, ...] = ()
    trend: Trend = Trend.STABLE
    trend_change: float | None = None

    # Category extras
    average_quantity: float | None = None
    subtype_counts: dict[str, int] = Field(default_factory=dict)
    night_start_hour: float | None = None
    morning_wake_hour: float | None = None
    longest_gap_hours: float | None = None


class GrowthAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: AlertType
    severity: AlertSeverity
    measurement_type: MeasurementType
    title: str
    message: str
    recommendation: str | None = None
    requires_consultation: bool = False
    current_percentile: int | None = None
    previous_percentile: int | None = None
    percentile_change: int | None = None


class DoseRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["dose_recommendation"] = "dose_recommendation"
    medication_id: str
    medication_name: str
    recommended_dose_mg: float
    dose_range_mg: tuple[float, float]
    max_daily_dose_mg: float | None
    dosing_interval_hours: float
    strength_mg: float | None = None
    basis: Literal["age", "weight"] = "age"


class AgeRestricted(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["age_restricted"] = "age_restricted"
    medication_id: str
    medication_name: str
    min_age_months: float
    age_months: float
    message: str


class SafetyVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    safe: bool
    warning: str | None = None
    warnings: tuple[str, ...] = ()
    current_daily_total: float
    proposed_dose_mg: float
    max_daily_dose: float | None = None
    last_dose_at: datetime | None = None
    minimum_interval_hours: float
    next_safe_time: datetime | None = None
