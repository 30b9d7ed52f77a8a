"""Growth alert rules over a child's measurement history.

Rules run independently per measurement type and the engine returns
every alert that fires; callers aggregate or rank as they need.

- extremity: current percentile below 3rd, or above p97 (99). The
  ladder never classifies below its lowest band of 3, so "below 3rd"
  is tested as ``<= LOWEST_BAND``
- rapid change: percentile moved by rapid_shift_points or more between
  the two most recent readings, in either direction
- stagnation: the most recent run of readings with no increase in value
  has at least stagnation_min_readings readings and spans at least
  stagnation_min_weeks
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import structlog

from shared.config import settings
from shared.exceptions import InvalidInputError
from shared.metrics import analyses_total, growth_alerts_total

from health.domain.models import (
    ABOVE_LADDER_PERCENTILE,
    LADDER_PERCENTILES,
    AlertSeverity,
    AlertType,
    GrowthAlert,
    Measurement,
    MeasurementType,
)
from health.domain.validation import ensure_valid, validate_measurement_history

logger = structlog.get_logger()

LOWEST_BAND = LADDER_PERCENTILES[0]


@dataclass(frozen=True)
class GrowthAlertThresholds:
    rapid_shift_points: int = field(default_factory=lambda: settings.rapid_shift_points)
    stagnation_min_readings: int = field(default_factory=lambda: settings.stagnation_min_readings)
    stagnation_min_weeks: int = field(default_factory=lambda: settings.stagnation_min_weeks)


class GrowthAlertEngine:
    def __init__(
        self,
        thresholds: GrowthAlertThresholds | None = None,
        overrides: Mapping[MeasurementType, GrowthAlertThresholds] | None = None,
    ):
        self.thresholds = thresholds or GrowthAlertThresholds()
        self.overrides = dict(overrides or {})

    def thresholds_for(self, measurement_type: MeasurementType) -> GrowthAlertThresholds:
        return self.overrides.get(measurement_type, self.thresholds)

    def evaluate(self, history: Sequence[Measurement]) -> list[GrowthAlert]:
        """Evaluate a most-recent-first history with resolved percentiles."""
        try:
            ensure_valid(validate_measurement_history(history))
        except InvalidInputError:
            analyses_total.labels(component="alerts", outcome="invalid_input").inc()
            raise

        if not history:
            analyses_total.labels(component="alerts", outcome="no_data").inc()
            return []

        alerts: list[GrowthAlert] = []
        for measurement_type in MeasurementType:
            readings = [m for m in history if m.value_for(measurement_type) is not None]
            if not readings:
                continue
            thresholds = self.thresholds_for(measurement_type)
            alerts.extend(_extremity(measurement_type, readings))
            alerts.extend(_rapid_change(measurement_type, readings, thresholds))
            alerts.extend(_stagnation(measurement_type, readings, thresholds))

        for alert in alerts:
            growth_alerts_total.labels(type=alert.type.value, severity=alert.severity.value).inc()
        analyses_total.labels(component="alerts", outcome="ok").inc()

        if alerts:
            logger.info(
                "growth_alerts_raised",
                alert_count=len(alerts),
                alerts=[f"{a.measurement_type.value}:{a.type.value}" for a in alerts],
            )
        return alerts


def growth_alerts(
    history: Sequence[Measurement], thresholds: GrowthAlertThresholds | None = None
) -> list[GrowthAlert]:
    return GrowthAlertEngine(thresholds).evaluate(history)


def _extremity(
    measurement_type: MeasurementType, readings: Sequence[Measurement]
) -> list[GrowthAlert]:
    current = readings[0].percentile_for(measurement_type)
    if current is None:
        return []

    label = measurement_type.label.lower()
    if current <= LOWEST_BAND:
        return [
            GrowthAlert(
                type=AlertType.LOW_PERCENTILE,
                severity=AlertSeverity.HIGH,
                measurement_type=measurement_type,
                title=f"Low {label} percentile",
                message=f"{measurement_type.label} is at or below the 3rd percentile",
                recommendation="Discuss growth with your GP or child health nurse",
                requires_consultation=True,
                current_percentile=current,
            )
        ]
    if current >= ABOVE_LADDER_PERCENTILE:
        return [
            GrowthAlert(
                type=AlertType.HIGH_PERCENTILE,
                severity=AlertSeverity.HIGH,
                measurement_type=measurement_type,
                title=f"High {label} percentile",
                message=f"{measurement_type.label} is above the 97th percentile",
                recommendation="Discuss growth with your GP or child health nurse",
                requires_consultation=True,
                current_percentile=current,
            )
        ]
    return []


def _rapid_change(
    measurement_type: MeasurementType,
    readings: Sequence[Measurement],
    thresholds: GrowthAlertThresholds,
) -> list[GrowthAlert]:
    resolved = [m.percentile_for(measurement_type) for m in readings]
    resolved = [p for p in resolved if p is not None]
    if len(resolved) < 2:
        return []

    current, previous = resolved[0], resolved[1]
    change = current - previous
    if abs(change) < thresholds.rapid_shift_points:
        return []

    direction = "increased" if change > 0 else "decreased"
    return [
        GrowthAlert(
            type=AlertType.RAPID_CHANGE,
            severity=AlertSeverity.MEDIUM,
            measurement_type=measurement_type,
            title=f"Rapid {measurement_type.label.lower()} percentile change",
            message=(
                f"{measurement_type.label} percentile {direction} from "
                f"{previous} to {current} since the previous measurement"
            ),
            recommendation="Re-measure at the next check-up to confirm the change",
            current_percentile=current,
            previous_percentile=previous,
            percentile_change=change,
        )
    ]


def _stagnation(
    measurement_type: MeasurementType,
    readings: Sequence[Measurement],
    thresholds: GrowthAlertThresholds,
) -> list[GrowthAlert]:
    # Walk back from the newest reading while values do not increase
    run_end = 0
    for i in range(1, len(readings)):
        if readings[i - 1].value_for(measurement_type) > readings[i].value_for(measurement_type):
            break
        run_end = i

    run_length = run_end + 1
    if run_length < thresholds.stagnation_min_readings:
        return []

    span_days = (readings[0].measurement_date - readings[run_end].measurement_date).days
    if span_days < thresholds.stagnation_min_weeks * 7:
        return []

    weeks = span_days // 7
    return [
        GrowthAlert(
            type=AlertType.NO_GROWTH,
            severity=AlertSeverity.MEDIUM,
            measurement_type=measurement_type,
            title=f"No {measurement_type.label.lower()} gain",
            message=(
                f"{measurement_type.label} has not increased across {run_length} "
                f"measurements over {weeks} weeks"
            ),
            recommendation="Book a growth review with your GP or child health nurse",
            current_percentile=readings[0].percentile_for(measurement_type),
        )
    ]
