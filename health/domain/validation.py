"""Boundary validation rules for the analytical core.

Each validator returns a list of RuleViolation; empty list means valid.
ensure_valid() turns a non-empty list into InvalidInputError so the pure
functions reject bad input with every reason at once, and never try to
repair it.
"""

from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from shared.exceptions import InvalidInputError

from health.domain.models import (
    ActivityRecord,
    DoseEvent,
    DoseUnit,
    Measurement,
    MeasurementType,
    MedicationProfile,
)


@dataclass
class RuleViolation:
    field: str
    rule: str
    reason: str
    value: Any


# Biologically plausible bounds, inclusive, birth to adolescence
PLAUSIBLE_BOUNDS: dict[MeasurementType, tuple[float, float]] = {
    MeasurementType.HEIGHT: (20.0, 200.0),
    MeasurementType.WEIGHT: (0.3, 150.0),
    MeasurementType.HEAD_CIRCUMFERENCE: (15.0, 70.0),
}
MAX_AGE_WEEKS = 1040


def ensure_valid(violations: list[RuleViolation]) -> None:
    if violations:
        raise InvalidInputError(
            [{**asdict(v), "value": _printable(v.value)} for v in violations]
        )


def _printable(value: Any) -> Any:
    if value is None or isinstance(value, (int, float, str, bool)):
        return value
    return str(value)


def validate_measurement_value(
    measurement_type: MeasurementType, value: Any, field: str | None = None
) -> list[RuleViolation]:
    field = field or measurement_type.value_field
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return [RuleViolation(field, "numeric", "value_not_numeric", value)]
    low, high = PLAUSIBLE_BOUNDS[measurement_type]
    if value <= 0 or value < low or value > high:
        return [RuleViolation(field, "plausible_range", "implausible_measurement", value)]
    return []


def validate_age_weeks(age_in_weeks: Any, field: str = "age_in_weeks") -> list[RuleViolation]:
    if not isinstance(age_in_weeks, (int, float)) or age_in_weeks < 0:
        return [RuleViolation(field, "non_negative", "negative_age", age_in_weeks)]
    if age_in_weeks > MAX_AGE_WEEKS:
        return [RuleViolation(field, "plausible_range", "implausible_age", age_in_weeks)]
    return []


def validate_classification_input(
    measurement_type: MeasurementType, age_in_weeks: Any, value: Any
) -> list[RuleViolation]:
    return validate_age_weeks(age_in_weeks) + validate_measurement_value(
        measurement_type, value, "value"
    )


def validate_measurement(measurement: Measurement, index: int | None = None) -> list[RuleViolation]:
    prefix = f"[{index}]." if index is not None else ""
    errors = validate_age_weeks(measurement.age_in_weeks, f"{prefix}age_in_weeks")
    for measurement_type in measurement.measurement_types:
        errors.extend(
            validate_measurement_value(
                measurement_type,
                measurement.value_for(measurement_type),
                f"{prefix}{measurement_type.value_field}",
            )
        )
    return errors


def validate_measurement_history(history: Sequence[Measurement]) -> list[RuleViolation]:
    """History must be most-recent-first with no duplicate dates and one sex."""
    errors: list[RuleViolation] = []
    for i, measurement in enumerate(history):
        errors.extend(validate_measurement(measurement, i))

    for i in range(1, len(history)):
        newer, older = history[i - 1], history[i]
        if newer.measurement_date == older.measurement_date:
            errors.append(
                RuleViolation(
                    f"[{i}].measurement_date",
                    "unique",
                    "duplicate_timestamp",
                    str(older.measurement_date),
                )
            )
        elif newer.measurement_date < older.measurement_date:
            errors.append(
                RuleViolation(
                    f"[{i}].measurement_date",
                    "ordering",
                    "history_not_most_recent_first",
                    {"previous": str(newer.measurement_date), "current": str(older.measurement_date)},
                )
            )

    sexes = {m.sex for m in history}
    if len(sexes) > 1:
        errors.append(
            RuleViolation("sex", "consistency", "mixed_sex_history", sorted(s.value for s in sexes))
        )
    return errors


def _require_timezone(ts: datetime | None, field: str) -> list[RuleViolation]:
    if ts is not None and ts.tzinfo is None:
        return [RuleViolation(field, "timezone", "missing_timezone", str(ts))]
    return []


def validate_activity_records(records: Iterable[ActivityRecord]) -> list[RuleViolation]:
    errors: list[RuleViolation] = []
    seen: set[tuple] = set()
    child_ids = set()

    for i, record in enumerate(records):
        child_ids.add(record.child_id)
        tz_errors = _require_timezone(record.started_at, f"[{i}].started_at")
        tz_errors += _require_timezone(record.ended_at, f"[{i}].ended_at")
        errors.extend(tz_errors)

        if not tz_errors and record.ended_at is not None and record.ended_at <= record.started_at:
            errors.append(
                RuleViolation(
                    f"[{i}].ended_at",
                    "ordering",
                    "ended_before_started",
                    {"started_at": str(record.started_at), "ended_at": str(record.ended_at)},
                )
            )

        if record.quantity is not None and record.quantity < 0:
            errors.append(
                RuleViolation(f"[{i}].quantity", "non_negative", "negative_quantity", record.quantity)
            )

        identity = (
            record.category,
            record.started_at,
            record.ended_at,
            record.subtype,
            record.quantity,
        )
        if identity in seen:
            errors.append(
                RuleViolation(
                    f"[{i}].started_at", "unique", "duplicate_timestamp", str(record.started_at)
                )
            )
        seen.add(identity)

    if len(child_ids) > 1:
        errors.append(
            RuleViolation("child_id", "consistency", "mixed_child_records", len(child_ids))
        )
    return errors


def validate_dosing_subject(age_months: Any, weight_kg: Any = None) -> list[RuleViolation]:
    errors = []
    if age_months is not None and (not isinstance(age_months, (int, float)) or age_months < 0):
        errors.append(RuleViolation("age_months", "non_negative", "negative_age", age_months))
    if weight_kg is not None:
        errors.extend(validate_measurement_value(MeasurementType.WEIGHT, weight_kg, "weight_kg"))
    return errors


def validate_dose_events(
    profile: MedicationProfile, proposed: DoseEvent, history: Sequence[DoseEvent]
) -> list[RuleViolation]:
    errors = _require_timezone(proposed.administered_at, "proposed.administered_at")
    errors += _validate_dose_amount(profile, proposed, "proposed")

    if proposed.medication_id != profile.medication_id:
        errors.append(
            RuleViolation(
                "proposed.medication_id",
                "consistency",
                "medication_mismatch",
                proposed.medication_id,
            )
        )

    for i, dose in enumerate(history):
        field = f"history[{i}]"
        errors += _require_timezone(dose.administered_at, f"{field}.administered_at")
        errors += _validate_dose_amount(profile, dose, field)
        if dose.child_id != proposed.child_id:
            errors.append(
                RuleViolation(f"{field}.child_id", "consistency", "child_mismatch", str(dose.child_id))
            )
        if dose.medication_id != proposed.medication_id:
            errors.append(
                RuleViolation(
                    f"{field}.medication_id", "consistency", "medication_mismatch", dose.medication_id
                )
            )
    return errors


def _validate_dose_amount(
    profile: MedicationProfile, dose: DoseEvent, field: str
) -> list[RuleViolation]:
    errors: list[RuleViolation] = []
    if dose.amount <= 0:
        errors.append(RuleViolation(f"{field}.amount", "positive", "non_positive_dose", dose.amount))
    if dose.unit is DoseUnit.ML and profile.concentration_mg_per_ml is None:
        errors.append(
            RuleViolation(f"{field}.unit", "convertible", "unit_not_convertible", dose.unit.value)
        )
    if dose.unit is DoseUnit.TABLET and profile.strength_mg is None:
        errors.append(
            RuleViolation(f"{field}.unit", "convertible", "unit_not_convertible", dose.unit.value)
        )
    return errors
