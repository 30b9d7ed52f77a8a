"""Tests for growth alert rules: extremity, rapid change, stagnation."""

from datetime import date

import pytest

from shared.exceptions import InvalidInputError

from health.alerts import GrowthAlertEngine, GrowthAlertThresholds, growth_alerts
from health.domain.models import AlertSeverity, AlertType, MeasurementType
from tests.conftest import measurement

THRESHOLDS = GrowthAlertThresholds(rapid_shift_points=20, stagnation_min_readings=2, stagnation_min_weeks=4)


def alerts_for(history, thresholds=THRESHOLDS):
    return growth_alerts(history, thresholds)


def types(alerts):
    return [(a.measurement_type, a.type) for a in alerts]


class TestExtremity:
    def test_third_percentile_is_low(self):
        history = [measurement(date(2024, 3, 1), 8, weight_kg=3.0, weight_percentile=3)]
        [alert] = alerts_for(history)
        assert alert.type is AlertType.LOW_PERCENTILE
        assert alert.severity is AlertSeverity.HIGH
        assert alert.requires_consultation
        assert alert.current_percentile == 3

    def test_above_ladder_is_high(self):
        history = [measurement(date(2024, 3, 1), 8, height_cm=65.0, height_percentile=99)]
        [alert] = alerts_for(history)
        assert alert.type is AlertType.HIGH_PERCENTILE
        assert alert.measurement_type is MeasurementType.HEIGHT

    @pytest.mark.parametrize("percentile", [5, 50, 97])
    def test_within_range_no_alert(self, percentile):
        history = [measurement(date(2024, 3, 1), 8, weight_kg=5.0, weight_percentile=percentile)]
        assert alerts_for(history) == []

    def test_unresolved_percentile_skipped(self):
        history = [measurement(date(2024, 3, 1), 8, weight_kg=5.0)]
        assert alerts_for(history) == []


class TestRapidChange:
    def test_drop_of_threshold_points(self):
        history = [
            measurement(date(2024, 3, 1), 8, weight_kg=5.0, weight_percentile=50),
            measurement(date(2024, 2, 1), 4, weight_kg=4.5, weight_percentile=75),
        ]
        [alert] = alerts_for(history)
        assert alert.type is AlertType.RAPID_CHANGE
        assert alert.severity is AlertSeverity.MEDIUM
        assert alert.percentile_change == -25
        assert "decreased from 75 to 50" in alert.message

    def test_small_shift_ignored(self):
        history = [
            measurement(date(2024, 3, 1), 8, weight_kg=5.0, weight_percentile=50),
            measurement(date(2024, 2, 1), 4, weight_kg=4.5, weight_percentile=25),
        ]
        # 25 points is above the default, so use a stricter threshold
        strict = GrowthAlertThresholds(rapid_shift_points=30, stagnation_min_readings=2, stagnation_min_weeks=4)
        assert alerts_for(history, strict) == []

    def test_per_type_override(self):
        history = [
            measurement(date(2024, 3, 1), 8, height_cm=58.0, weight_kg=5.0, height_percentile=50, weight_percentile=50),
            measurement(date(2024, 2, 1), 4, height_cm=54.0, weight_kg=4.5, height_percentile=25, weight_percentile=25),
        ]
        engine = GrowthAlertEngine(
            THRESHOLDS,
            overrides={
                MeasurementType.HEIGHT: GrowthAlertThresholds(
                    rapid_shift_points=50, stagnation_min_readings=2, stagnation_min_weeks=4
                )
            },
        )
        assert types(engine.evaluate(history)) == [(MeasurementType.WEIGHT, AlertType.RAPID_CHANGE)]


class TestStagnation:
    def test_no_gain_over_four_weeks(self):
        history = [
            measurement(date(2024, 3, 1), 12, weight_kg=5.0),
            measurement(date(2024, 2, 1), 8, weight_kg=5.0),
        ]
        [alert] = alerts_for(history)
        assert alert.type is AlertType.NO_GROWTH
        assert alert.measurement_type is MeasurementType.WEIGHT
        assert "across 2 measurements over 4 weeks" in alert.message

    def test_short_span_ignored(self):
        history = [
            measurement(date(2024, 3, 1), 8, weight_kg=5.0),
            measurement(date(2024, 2, 20), 6, weight_kg=5.0),
        ]
        assert alerts_for(history) == []

    def test_recent_gain_ends_the_run(self):
        history = [
            measurement(date(2024, 4, 1), 16, weight_kg=5.4),
            measurement(date(2024, 3, 1), 12, weight_kg=5.0),
            measurement(date(2024, 2, 1), 8, weight_kg=5.0),
        ]
        assert alerts_for(history) == []

    def test_loss_counts_as_no_gain(self):
        history = [
            measurement(date(2024, 3, 1), 12, weight_kg=4.8),
            measurement(date(2024, 2, 1), 8, weight_kg=5.0),
        ]
        assert types(alerts_for(history)) == [(MeasurementType.WEIGHT, AlertType.NO_GROWTH)]


class TestEngine:
    def test_empty_history(self):
        assert alerts_for([]) == []

    def test_rules_combine_per_type(self):
        history = [
            measurement(date(2024, 3, 1), 12, weight_kg=4.0, weight_percentile=3),
            measurement(date(2024, 2, 1), 8, weight_kg=4.2, weight_percentile=25),
        ]
        assert types(alerts_for(history)) == [
            (MeasurementType.WEIGHT, AlertType.LOW_PERCENTILE),
            (MeasurementType.WEIGHT, AlertType.RAPID_CHANGE),
            (MeasurementType.WEIGHT, AlertType.NO_GROWTH),
        ]

    def test_oldest_first_history_rejected(self):
        history = [
            measurement(date(2024, 2, 1), 8, weight_kg=4.2),
            measurement(date(2024, 3, 1), 12, weight_kg=5.0),
        ]
        with pytest.raises(InvalidInputError) as exc_info:
            alerts_for(history)
        assert exc_info.value.reasons == ["history_not_most_recent_first"]

    def test_defaults_from_settings(self):
        engine = GrowthAlertEngine()
        assert engine.thresholds_for(MeasurementType.WEIGHT).rapid_shift_points == 20
