"""Immutable reference curve lookup.

Built once from a sequence of ReferenceCurvePoint and handed to the
percentile calculator at construction. Keyed on
(sex, measurement_type, age_in_weeks); lookups never mutate.
"""

from collections.abc import Iterable
from types import MappingProxyType

from health.domain.models import MeasurementType, ReferenceCurvePoint, Sex


class ReferenceCurveStore:
    def __init__(self, points: Iterable[ReferenceCurvePoint]):
        table: dict[tuple[Sex, MeasurementType, int], ReferenceCurvePoint] = {}
        for point in points:
            if point.key in table:
                sex, measurement_type, age = point.key
                raise ValueError(
                    f"duplicate reference point for {sex}/{measurement_type}/{age}w"
                )
            table[point.key] = point

        ages: dict[tuple[Sex, MeasurementType], list[int]] = {}
        for sex, measurement_type, age in table:
            ages.setdefault((sex, measurement_type), []).append(age)

        self._points = MappingProxyType(table)
        self._ages = MappingProxyType({k: tuple(sorted(v)) for k, v in ages.items()})

    def get(
        self, sex: Sex, measurement_type: MeasurementType, age_in_weeks: int
    ) -> ReferenceCurvePoint | None:
        return self._points.get((sex, measurement_type, age_in_weeks))

    def ages_for(self, sex: Sex, measurement_type: MeasurementType) -> tuple[int, ...]:
        """Ages with a reference row, ascending."""
        return self._ages.get((sex, measurement_type), ())

    def points_for(
        self, sex: Sex, measurement_type: MeasurementType
    ) -> list[ReferenceCurvePoint]:
        return [self._points[(sex, measurement_type, age)] for age in self.ages_for(sex, measurement_type)]

    def has_curve(self, sex: Sex, measurement_type: MeasurementType) -> bool:
        return (sex, measurement_type) in self._ages

    def __len__(self) -> int:
        return len(self._points)


# WHO Child Growth Standards (2006) sample rows:
# (sex, age_in_weeks, type, p3, p5, p10, p25, p50, p75, p90, p95, p97)
_WHO_2006_ROWS = (
    ("male", 0, "height", 46.1, 46.8, 47.9, 49.0, 49.9, 50.8, 51.8, 52.3, 52.7),
    ("male", 0, "weight", 2.5, 2.6, 2.8, 3.0, 3.3, 3.6, 3.9, 4.1, 4.2),
    ("male", 0, "head_circumference", 32.6, 33.0, 33.6, 34.3, 34.9, 35.6, 36.2, 36.6, 36.9),
    ("male", 26, "height", 63.3, 64.1, 65.2, 66.4, 67.6, 68.9, 70.1, 70.9, 71.4),
    ("male", 26, "weight", 6.4, 6.7, 7.1, 7.5, 7.9, 8.4, 9.0, 9.4, 9.7),
    ("male", 26, "head_circumference", 41.5, 42.0, 42.6, 43.3, 43.9, 44.6, 45.2, 45.6, 45.9),
    ("male", 52, "height", 71.0, 71.9, 73.1, 74.5, 75.7, 77.1, 78.4, 79.2, 79.8),
    ("male", 52, "weight", 7.7, 8.1, 8.6, 9.2, 9.6, 10.2, 10.9, 11.3, 11.7),
    ("male", 52, "head_circumference", 44.6, 45.1, 45.7, 46.4, 47.0, 47.7, 48.3, 48.7, 49.0),
    ("male", 104, "height", 82.3, 83.5, 85.1, 86.9, 87.8, 89.2, 90.9, 92.2, 93.0),
    ("male", 104, "weight", 9.7, 10.2, 10.8, 11.5, 12.2, 13.0, 13.9, 14.5, 15.0),
    ("male", 104, "head_circumference", 46.0, 46.5, 47.1, 47.8, 48.4, 49.1, 49.7, 50.1, 50.4),
    ("female", 0, "height", 45.4, 46.1, 47.1, 48.2, 49.1, 50.0, 50.9, 51.4, 51.7),
    ("female", 0, "weight", 2.4, 2.5, 2.7, 2.8, 3.2, 3.4, 3.7, 3.9, 4.0),
    ("female", 0, "head_circumference", 32.0, 32.4, 33.0, 33.7, 34.3, 34.9, 35.5, 35.9, 36.2),
    ("female", 26, "height", 61.8, 62.6, 63.8, 65.0, 66.1, 67.3, 68.5, 69.2, 69.8),
    ("female", 26, "weight", 5.8, 6.1, 6.5, 6.9, 7.3, 7.8, 8.3, 8.7, 9.0),
    ("female", 26, "head_circumference", 40.2, 40.7, 41.3, 42.0, 42.6, 43.2, 43.8, 44.2, 44.5),
    ("female", 52, "height", 68.9, 69.8, 71.0, 72.4, 74.0, 75.3, 76.6, 77.5, 78.0),
    ("female", 52, "weight", 7.0, 7.4, 7.8, 8.4, 8.9, 9.5, 10.1, 10.5, 10.9),
    ("female", 52, "head_circumference", 43.2, 43.7, 44.3, 45.0, 45.6, 46.3, 46.9, 47.3, 47.6),
    ("female", 104, "height", 80.0, 81.2, 82.8, 84.6, 86.4, 88.1, 89.8, 91.0, 91.9),
    ("female", 104, "weight", 9.0, 9.4, 10.0, 10.7, 11.5, 12.3, 13.2, 13.8, 14.3),
    ("female", 104, "head_circumference", 44.7, 45.2, 45.8, 46.5, 47.1, 47.8, 48.4, 48.8, 49.1),
)

_LADDER_FIELDS = ("p3", "p5", "p10", "p25", "p50", "p75", "p90", "p95", "p97")

WHO_2006_POINTS: tuple[ReferenceCurvePoint, ...] = tuple(
    ReferenceCurvePoint(
        sex=Sex(sex),
        age_in_weeks=age,
        measurement_type=MeasurementType(measurement_type),
        **dict(zip(_LADDER_FIELDS, ladder)),
    )
    for sex, age, measurement_type, *ladder in _WHO_2006_ROWS
)


def who_2006_store() -> ReferenceCurveStore:
    return ReferenceCurveStore(WHO_2006_POINTS)
