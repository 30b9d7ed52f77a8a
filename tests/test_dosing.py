"""Tests for dose recommendation and dose safety checks."""

from datetime import UTC, date, datetime
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from shared.exceptions import InvalidInputError, UnknownMedicationError

from health.domain.models import (
    AgeRestricted,
    DoseRecommendation,
    DoseUnit,
    DosingBand,
    MedicationProfile,
    NoData,
)
from health.dosing import (
    AGE_RESTRICTED,
    INTERVAL_NOT_MET,
    MAX_DOSE_EXCEEDED,
    MedicationDoseEngine,
    age_in_months,
    check_dose_safety,
    daily_cap_mg,
    dose_in_mg,
    recommended_dose,
)
from health.reference.medications import (
    AMOXICILLIN,
    IBUPROFEN,
    PARACETAMOL,
    VITAMIN_D3,
    default_formulary,
)
from tests.conftest import at, dose

UTC_ZONE = ZoneInfo("UTC")

WEIGHT_BASED = MedicationProfile(
    medication_id="weighted",
    name="Weighted Suspension",
    concentration_mg_per_ml=40,
    dosing_interval_hours=8,
    dosing_table=(
        DosingBand(min_age_months=0, min_weight_kg=0, max_weight_kg=10, min_dose_mg=75, max_dose_mg=150),
        DosingBand(min_age_months=0, min_weight_kg=10, max_weight_kg=20, min_dose_mg=150, max_dose_mg=300),
    ),
)


class TestRecommendedDose:
    @pytest.mark.parametrize(
        "age_months, expected_mg",
        [(3, 50), (5.9, 50), (6, 50), (12, 100), (30, 150), (60, 200)],
    )
    def test_ibuprofen_age_bands(self, age_months, expected_mg):
        result = recommended_dose(IBUPROFEN, age_months)
        assert isinstance(result, DoseRecommendation)
        assert result.recommended_dose_mg == expected_mg
        assert result.basis == "age"
        assert result.dosing_interval_hours == 6

    def test_range_and_cap_reported(self):
        result = recommended_dose(PARACETAMOL, 8)
        assert result.dose_range_mg == (80, 120)
        assert result.max_daily_dose_mg == 4000

    def test_per_kg_cap_applies_with_weight(self):
        result = recommended_dose(PARACETAMOL, 8, weight_kg=8.0)
        assert result.max_daily_dose_mg == 480

    def test_below_minimum_age_restricted(self):
        result = recommended_dose(IBUPROFEN, 2)
        assert isinstance(result, AgeRestricted)
        assert result.min_age_months == 3
        assert result.message == "Nurofen (Ibuprofen) is not recommended for children under 3 months"

    def test_no_band_is_no_data_not_nearest(self):
        result = recommended_dose(IBUPROFEN, 100)
        assert isinstance(result, NoData)
        assert result.reason == "no_matching_band"

    def test_prescription_only_has_no_band(self):
        result = recommended_dose(AMOXICILLIN, 24)
        assert isinstance(result, NoData)

    def test_open_ended_band(self):
        result = recommended_dose(VITAMIN_D3, 150)
        assert result.recommended_dose_mg == 0.01

    def test_weight_based_requires_weight(self):
        result = recommended_dose(WEIGHT_BASED, 12)
        assert isinstance(result, NoData)
        assert result.reason == "weight_required"

    def test_weight_based_band(self):
        result = recommended_dose(WEIGHT_BASED, 12, weight_kg=12.5)
        assert result.recommended_dose_mg == 150
        assert result.basis == "weight"

    def test_negative_age_rejected(self):
        with pytest.raises(InvalidInputError) as exc_info:
            recommended_dose(IBUPROFEN, -1)
        assert exc_info.value.reasons == ["negative_age"]


class TestConversions:
    def test_daily_cap_is_lower_of_caps(self):
        assert daily_cap_mg(IBUPROFEN) == 1200
        assert daily_cap_mg(IBUPROFEN, weight_kg=10) == 300
        assert daily_cap_mg(IBUPROFEN, weight_kg=60) == 1200
        assert daily_cap_mg(AMOXICILLIN) is None

    def test_ml_and_tablet_to_mg(self):
        assert dose_in_mg(IBUPROFEN, dose(0, 5, unit=DoseUnit.ML)) == 100
        assert dose_in_mg(IBUPROFEN, dose(0, 2, unit=DoseUnit.TABLET)) == 200
        assert dose_in_mg(IBUPROFEN, dose(0, 150)) == 150


class TestDoseSafety:
    def test_daily_cap_exceeded(self):
        history = [dose(0, 400), dose(6, 400), dose(12, 300)]
        verdict = check_dose_safety(IBUPROFEN, dose(18, 150), history, tz=UTC_ZONE)
        assert not verdict.safe
        assert verdict.warning == MAX_DOSE_EXCEEDED
        assert verdict.current_daily_total == 1100
        assert verdict.max_daily_dose == 1200
        assert verdict.next_safe_time is None

    def test_exactly_at_cap_is_safe(self):
        history = [dose(0, 400), dose(6, 400), dose(12, 300)]
        verdict = check_dose_safety(IBUPROFEN, dose(18, 100), history, tz=UTC_ZONE)
        assert verdict.safe
        assert verdict.warnings == ()

    def test_interval_not_met(self):
        verdict = check_dose_safety(IBUPROFEN, dose(12, 100), [dose(10, 100)], tz=UTC_ZONE)
        assert not verdict.safe
        assert verdict.warnings == (INTERVAL_NOT_MET,)
        assert verdict.last_dose_at == at(10)
        assert verdict.next_safe_time == at(16)

    def test_exact_interval_is_safe(self):
        verdict = check_dose_safety(IBUPROFEN, dose(16, 100), [dose(10, 100)], tz=UTC_ZONE)
        assert verdict.safe
        assert verdict.last_dose_at == at(10)

    def test_both_warnings_reported(self):
        history = [dose(0, 500), dose(6, 600)]
        verdict = check_dose_safety(IBUPROFEN, dose(8, 200), history, tz=UTC_ZONE)
        assert verdict.warnings == (MAX_DOSE_EXCEEDED, INTERVAL_NOT_MET)
        assert verdict.warning == MAX_DOSE_EXCEEDED

    def test_previous_day_not_counted_in_total(self):
        history = [dose(-2, 1000)]
        verdict = check_dose_safety(IBUPROFEN, dose(5, 100), history, tz=UTC_ZONE)
        assert verdict.current_daily_total == 0
        assert verdict.safe

    def test_local_day_boundary(self):
        # 22:00 UTC on 29 Feb is 09:00 on 1 March in Sydney
        history = [dose(-2, 1100)]
        verdict = check_dose_safety(IBUPROFEN, dose(12, 150), history, tz=ZoneInfo("Australia/Sydney"))
        assert verdict.current_daily_total == 1100
        assert MAX_DOSE_EXCEEDED in verdict.warnings

    def test_later_doses_do_not_set_interval(self):
        verdict = check_dose_safety(IBUPROFEN, dose(10, 100), [dose(12, 100)], tz=UTC_ZONE)
        assert verdict.last_dose_at is None
        assert INTERVAL_NOT_MET not in verdict.warnings

    def test_proposed_dose_in_history_not_double_counted(self):
        dose_id = uuid4()
        proposed = dose(12, 600, id=dose_id)
        history = [dose(0, 600), proposed]
        verdict = check_dose_safety(IBUPROFEN, proposed, history, tz=UTC_ZONE)
        assert verdict.current_daily_total == 600
        assert verdict.safe

    def test_ml_dose_converted(self):
        history = [dose(0, 55, unit=DoseUnit.ML)]
        verdict = check_dose_safety(IBUPROFEN, dose(12, 5, unit=DoseUnit.ML), history, tz=UTC_ZONE)
        assert verdict.current_daily_total == 1100
        assert verdict.proposed_dose_mg == 100
        assert verdict.safe

    def test_age_restriction_flagged(self):
        verdict = check_dose_safety(IBUPROFEN, dose(12, 50), [], tz=UTC_ZONE, age_months=2)
        assert verdict.warnings == (AGE_RESTRICTED,)

    def test_weight_lowers_cap(self):
        verdict = check_dose_safety(
            IBUPROFEN, dose(12, 100), [dose(0, 150), dose(6, 150)], tz=UTC_ZONE, weight_kg=10
        )
        assert verdict.max_daily_dose == 300
        assert verdict.warnings == (MAX_DOSE_EXCEEDED,)

    def test_no_cap_means_no_cap_warning(self):
        proposed = dose(12, 250, medication_id="amoxicillin")
        history = [dose(0, 5000, medication_id="amoxicillin")]
        verdict = check_dose_safety(AMOXICILLIN, proposed, history, tz=UTC_ZONE)
        assert verdict.safe
        assert verdict.max_daily_dose is None

    def test_naive_timestamp_rejected(self):
        proposed = dose(12, 100).model_copy(update={"administered_at": datetime(2024, 3, 1, 12)})
        with pytest.raises(InvalidInputError) as exc_info:
            check_dose_safety(IBUPROFEN, proposed, [], tz=UTC_ZONE)
        assert exc_info.value.reasons == ["missing_timezone"]


class TestMedicationDoseEngine:
    def test_unknown_medication(self):
        engine = MedicationDoseEngine(default_formulary())
        with pytest.raises(UnknownMedicationError) as exc_info:
            engine.recommended_dose("unobtainium", 12)
        assert exc_info.value.status == 404

    def test_delegates_by_medication_id(self):
        engine = MedicationDoseEngine(default_formulary())
        verdict = engine.check_dose_safety(
            dose(12, 100, medication_id="paracetamol"),
            [dose(10, 100, medication_id="paracetamol")],
            tz=UTC_ZONE,
        )
        assert verdict.warnings == (INTERVAL_NOT_MET,)
        assert verdict.next_safe_time == datetime(2024, 3, 1, 14, tzinfo=UTC)


@pytest.mark.parametrize(
    "born, on, expected",
    [
        (date(2024, 1, 15), date(2024, 4, 15), 3),
        (date(2024, 1, 15), date(2024, 4, 14), 2),
        (date(2023, 11, 30), date(2024, 2, 29), 2),
        (date(2024, 3, 1), date(2024, 3, 1), 0),
        (date(2024, 3, 1), date(2024, 2, 1), 0),
    ],
)
def test_age_in_months(born, on, expected):
    assert age_in_months(born, on) == expected