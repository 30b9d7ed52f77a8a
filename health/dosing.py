"""Medication dose recommendation and safety checks.

Both operations are pure functions of the profile and the dose rows
the caller supplies; nothing here reads storage. An unsafe proposed
dose is a SafetyVerdict with safe=False, never an exception.
"""

from collections.abc import Mapping, Sequence
from datetime import date, datetime, timedelta, tzinfo

import structlog

from shared.config import settings
from shared.exceptions import InvalidInputError, UnknownMedicationError
from shared.metrics import analyses_total, dose_safety_verdicts_total

from health.domain.models import (
    AgeRestricted,
    DoseEvent,
    DoseRecommendation,
    DoseUnit,
    MedicationProfile,
    NoData,
    SafetyVerdict,
)
from health.domain.validation import (
    ensure_valid,
    validate_dose_events,
    validate_dosing_subject,
)

logger = structlog.get_logger()

MAX_DOSE_EXCEEDED = "max dose exceeded"
INTERVAL_NOT_MET = "minimum interval not met"
AGE_RESTRICTED = "age restricted"


def age_in_months(date_of_birth: date, on: date) -> int:
    """Whole calendar months between birth and `on`."""
    months = (on.year - date_of_birth.year) * 12 + (on.month - date_of_birth.month)
    if on.day < date_of_birth.day:
        months -= 1
    return max(months, 0)


def daily_cap_mg(profile: MedicationProfile, weight_kg: float | None = None) -> float | None:
    """Lower of the absolute daily cap and the per-kg cap when weight is known."""
    caps = []
    if profile.max_daily_dose_mg is not None:
        caps.append(profile.max_daily_dose_mg)
    if profile.max_daily_mg_per_kg is not None and weight_kg is not None:
        caps.append(profile.max_daily_mg_per_kg * weight_kg)
    return min(caps) if caps else None


def dose_in_mg(profile: MedicationProfile, dose: DoseEvent) -> float:
    match dose.unit:
        case DoseUnit.MG:
            return dose.amount
        case DoseUnit.ML:
            return dose.amount * profile.concentration_mg_per_ml
        case DoseUnit.TABLET:
            return dose.amount * profile.strength_mg


def _age_restricted(profile: MedicationProfile, age_months: float) -> AgeRestricted:
    return AgeRestricted(
        medication_id=profile.medication_id,
        medication_name=profile.name,
        min_age_months=profile.min_age_months,
        age_months=age_months,
        message=(
            f"{profile.name} is not recommended for children under "
            f"{profile.min_age_months:g} months"
        ),
    )


def recommended_dose(
    profile: MedicationProfile, age_months: float, weight_kg: float | None = None
) -> DoseRecommendation | AgeRestricted | NoData:
    """Select the dosing band for the child's age (and weight, for weight-based tables).

    Below the medication's minimum age the result is AgeRestricted. When
    no band matches, NoData is returned; the nearest band is never used.
    """
    try:
        ensure_valid(validate_dosing_subject(age_months, weight_kg))
    except InvalidInputError:
        analyses_total.labels(component="dosing", outcome="invalid_input").inc()
        raise

    if age_months < profile.min_age_months:
        analyses_total.labels(component="dosing", outcome="age_restricted").inc()
        logger.info(
            "dose_age_restricted",
            medication_id=profile.medication_id,
            age_months=age_months,
            min_age_months=profile.min_age_months,
        )
        return _age_restricted(profile, age_months)

    if profile.is_weight_based and weight_kg is None:
        analyses_total.labels(component="dosing", outcome="no_data").inc()
        return NoData(
            reason="weight_required",
            detail=f"{profile.name} is dosed by weight; a current weight is required",
        )

    for band in profile.dosing_table:
        if not band.matches_age(age_months):
            continue
        if band.is_weight_based and not band.matches_weight(weight_kg):
            continue
        analyses_total.labels(component="dosing", outcome="ok").inc()
        return DoseRecommendation(
            medication_id=profile.medication_id,
            medication_name=profile.name,
            recommended_dose_mg=band.min_dose_mg,
            dose_range_mg=(band.min_dose_mg, band.max_dose_mg),
            max_daily_dose_mg=daily_cap_mg(profile, weight_kg),
            dosing_interval_hours=profile.dosing_interval_hours,
            strength_mg=profile.strength_mg,
            basis="weight" if band.is_weight_based else "age",
        )

    analyses_total.labels(component="dosing", outcome="no_data").inc()
    logger.info(
        "dose_no_matching_band",
        medication_id=profile.medication_id,
        age_months=age_months,
        weight_kg=weight_kg,
    )
    return NoData(
        reason="no_matching_band",
        detail=f"No dosing band of {profile.name} covers this child",
    )


def check_dose_safety(
    profile: MedicationProfile,
    proposed: DoseEvent,
    history: Sequence[DoseEvent],
    *,
    tz: tzinfo | None = None,
    age_months: float | None = None,
    weight_kg: float | None = None,
) -> SafetyVerdict:
    """Check a proposed dose against the daily ceiling and re-dosing interval.

    The daily total covers history rows on the proposed dose's local
    calendar day. The interval check uses the most recent prior dose at
    or before the proposed time. Every check runs and the verdict lists
    all warnings found.
    """
    violations = validate_dose_events(profile, proposed, history)
    violations += validate_dosing_subject(age_months, weight_kg)
    try:
        ensure_valid(violations)
    except InvalidInputError:
        analyses_total.labels(component="dose_safety", outcome="invalid_input").inc()
        raise

    tz = tz or settings.tz
    at = proposed.administered_at
    day = at.astimezone(tz).date()
    # A history row that is the proposed dose itself is not counted twice
    prior_rows = [d for d in history if proposed.id is None or d.id != proposed.id]

    proposed_mg = dose_in_mg(profile, proposed)
    current_daily_total = sum(
        dose_in_mg(profile, d) for d in prior_rows if d.administered_at.astimezone(tz).date() == day
    )
    max_daily = daily_cap_mg(profile, weight_kg)

    warnings: list[str] = []
    if max_daily is not None and current_daily_total + proposed_mg > max_daily:
        warnings.append(MAX_DOSE_EXCEEDED)

    last_dose_at: datetime | None = None
    next_safe_time: datetime | None = None
    earlier = [d.administered_at for d in prior_rows if d.administered_at <= at]
    if earlier:
        last_dose_at = max(earlier)
        interval = timedelta(hours=profile.dosing_interval_hours)
        if at - last_dose_at < interval:
            warnings.append(INTERVAL_NOT_MET)
            next_safe_time = last_dose_at + interval

    if age_months is not None and age_months < profile.min_age_months:
        warnings.append(AGE_RESTRICTED)

    verdict = SafetyVerdict(
        safe=not warnings,
        warning=warnings[0] if warnings else None,
        warnings=tuple(warnings),
        current_daily_total=current_daily_total,
        proposed_dose_mg=proposed_mg,
        max_daily_dose=max_daily,
        last_dose_at=last_dose_at,
        minimum_interval_hours=profile.dosing_interval_hours,
        next_safe_time=next_safe_time,
    )

    analyses_total.labels(component="dose_safety", outcome="ok").inc()
    dose_safety_verdicts_total.labels(safe=str(verdict.safe).lower()).inc()
    if not verdict.safe:
        logger.warning(
            "dose_safety_unsafe",
            medication_id=profile.medication_id,
            child_id=str(proposed.child_id),
            warnings=list(verdict.warnings),
            current_daily_total=current_daily_total,
            proposed_dose_mg=proposed_mg,
            max_daily_dose=max_daily,
        )
    return verdict


class MedicationDoseEngine:
    """Formulary-backed entry point used by the API layer."""

    def __init__(self, formulary: Mapping[str, MedicationProfile]):
        self.formulary = formulary

    def profile(self, medication_id: str) -> MedicationProfile:
        try:
            return self.formulary[medication_id]
        except KeyError:
            raise UnknownMedicationError(medication_id) from None

    def recommended_dose(
        self, medication_id: str, age_months: float, weight_kg: float | None = None
    ) -> DoseRecommendation | AgeRestricted | NoData:
        return recommended_dose(self.profile(medication_id), age_months, weight_kg)

    def check_dose_safety(
        self,
        proposed: DoseEvent,
        history: Sequence[DoseEvent],
        *,
        tz: tzinfo | None = None,
        age_months: float | None = None,
        weight_kg: float | None = None,
    ) -> SafetyVerdict:
        return check_dose_safety(
            self.profile(proposed.medication_id),
            proposed,
            history,
            tz=tz,
            age_months=age_months,
            weight_kg=weight_kg,
        )
