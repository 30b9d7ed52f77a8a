"""Percentile classification against reference growth curves.

A value is classified onto the fixed ladder {3,5,10,25,50,75,90,95,97,99}
by the first boundary it does not exceed. When no row exists for the
exact age, the row whose age is numerically closest is used instead
(ties go to the younger age); ladders are never interpolated across ages.
"""

from bisect import bisect_left
from collections.abc import Sequence
from dataclasses import dataclass
from functools import lru_cache

import structlog

from shared.exceptions import InvalidInputError
from shared.metrics import analyses_total

from health.domain.models import (
    ABOVE_LADDER_PERCENTILE,
    Measurement,
    MeasurementType,
    NoData,
    ReferenceCurvePoint,
    Sex,
)
from health.domain.validation import ensure_valid, validate_classification_input
from health.reference.curves import ReferenceCurveStore, who_2006_store

logger = structlog.get_logger()

WEEKS_PER_MONTH = 4.33


def classify_against(point: ReferenceCurvePoint, value: float) -> int:
    for percentile, boundary in point.ladder:
        if value <= boundary:
            return percentile
    return ABOVE_LADDER_PERCENTILE


class PercentileCalculator:
    """Maps measurements to ladder percentiles using an injected curve store."""

    def __init__(self, store: ReferenceCurveStore):
        self.store = store

    def reference_point(
        self, sex: Sex, measurement_type: MeasurementType, age_in_weeks: float
    ) -> ReferenceCurvePoint | None:
        """Exact-age row, else the nearest-age row; None when no curve exists."""
        ages = self.store.ages_for(sex, measurement_type)
        if not ages:
            return None

        i = bisect_left(ages, age_in_weeks)
        if i < len(ages) and ages[i] == age_in_weeks:
            return self.store.get(sex, measurement_type, ages[i])

        candidates = ages[max(i - 1, 0) : i + 1]
        # min() keeps the first of equal distances, and candidates are ascending
        nearest = min(candidates, key=lambda age: abs(age - age_in_weeks))
        return self.store.get(sex, measurement_type, nearest)

    def classify(
        self,
        sex: Sex,
        age_in_weeks: float,
        measurement_type: MeasurementType,
        value: float,
    ) -> int | NoData:
        try:
            ensure_valid(validate_classification_input(measurement_type, age_in_weeks, value))
        except InvalidInputError:
            analyses_total.labels(component="percentile", outcome="invalid_input").inc()
            raise

        point = self.reference_point(sex, measurement_type, age_in_weeks)
        if point is None:
            analyses_total.labels(component="percentile", outcome="no_data").inc()
            logger.info(
                "percentile_no_reference_curve",
                sex=sex.value,
                measurement_type=measurement_type.value,
            )
            return NoData(
                reason="no_reference_curve",
                detail=f"No reference curve for {sex.value} {measurement_type.value}",
            )

        if point.age_in_weeks != age_in_weeks:
            logger.debug(
                "percentile_nearest_age_fallback",
                requested_age_weeks=age_in_weeks,
                resolved_age_weeks=point.age_in_weeks,
            )

        analyses_total.labels(component="percentile", outcome="ok").inc()
        return classify_against(point, value)

    def resolve_percentiles(self, measurement: Measurement) -> Measurement:
        """Return a copy with every percentile field resolved (None = no data)."""
        update: dict[str, int | None] = {t.percentile_field: None for t in MeasurementType}
        for measurement_type in measurement.measurement_types:
            result = self.classify(
                measurement.sex,
                measurement.age_in_weeks,
                measurement_type,
                measurement.value_for(measurement_type),
            )
            update[measurement_type.percentile_field] = None if isinstance(result, NoData) else result
        return measurement.model_copy(update=update)


@lru_cache(maxsize=1)
def default_calculator() -> PercentileCalculator:
    return PercentileCalculator(who_2006_store())


def classify_percentile(
    sex: Sex, age_in_weeks: float, measurement_type: MeasurementType, value: float
) -> int | NoData:
    return default_calculator().classify(sex, age_in_weeks, measurement_type, value)


def resolve_percentiles(measurement: Measurement) -> Measurement:
    return default_calculator().resolve_percentiles(measurement)


@dataclass(frozen=True)
class GrowthVelocity:
    height_cm_per_month: float | None = None
    weight_kg_per_month: float | None = None


def growth_velocity(history: Sequence[Measurement]) -> GrowthVelocity:
    """Velocity between the two most recent measurements (history most-recent-first)."""
    if len(history) < 2:
        return GrowthVelocity()

    current, previous = history[0], history[1]
    months = (current.age_in_weeks - previous.age_in_weeks) / WEEKS_PER_MONTH
    if months <= 0:
        return GrowthVelocity()

    def per_month(measurement_type: MeasurementType) -> float | None:
        now = current.value_for(measurement_type)
        before = previous.value_for(measurement_type)
        if now is None or before is None:
            return None
        return (now - before) / months

    return GrowthVelocity(
        height_cm_per_month=per_month(MeasurementType.HEIGHT),
        weight_kg_per_month=per_month(MeasurementType.WEIGHT),
    )


def percentile_description(percentile: int) -> str:
    if percentile <= 3:
        return "Below normal range - consider GP consultation"
    if percentile < 10:
        return "Lower than average"
    if percentile <= 25:
        return "Below average"
    if percentile <= 75:
        return "Average range"
    if percentile <= 90:
        return "Above average"
    if percentile <= 97:
        return "Higher than average"
    return "Above normal range - consider GP consultation"
