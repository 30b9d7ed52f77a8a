"""Bundled paediatric formulary (Australian over-the-counter guidelines).

Age bands are in months and half-open, so a child of exactly 3 months
falls in the 3-6 month band. Liquid strengths are the common infant
suspensions: paracetamol 160 mg/5 ml, ibuprofen 100 mg/5 ml,
amoxicillin 250 mg/5 ml.
"""

from collections.abc import Mapping
from types import MappingProxyType

from health.domain.models import DosingBand, MedicationProfile


def _age_band(min_months: float, max_months: float | None, low_mg: float, high_mg: float):
    return DosingBand(
        min_age_months=min_months,
        max_age_months=max_months,
        min_dose_mg=low_mg,
        max_dose_mg=high_mg,
    )


PARACETAMOL = MedicationProfile(
    medication_id="paracetamol",
    name="Panadol (Paracetamol)",
    strength_mg=160,
    concentration_mg_per_ml=32,
    min_age_months=1,
    max_daily_dose_mg=4000,
    max_daily_mg_per_kg=60,
    dosing_interval_hours=4,
    dosing_table=(
        _age_band(1, 3, 40, 80),
        _age_band(3, 6, 80, 80),
        _age_band(6, 12, 80, 120),
        _age_band(12, 24, 120, 180),
        _age_band(24, 48, 180, 240),
    ),
)

IBUPROFEN = MedicationProfile(
    medication_id="ibuprofen",
    name="Nurofen (Ibuprofen)",
    strength_mg=100,
    concentration_mg_per_ml=20,
    min_age_months=3,
    max_daily_dose_mg=1200,
    max_daily_mg_per_kg=30,
    dosing_interval_hours=6,
    dosing_table=(
        _age_band(3, 6, 50, 50),
        _age_band(6, 12, 50, 100),
        _age_band(12, 24, 100, 100),
        _age_band(24, 48, 150, 150),
        _age_band(48, 84, 200, 200),
    ),
)

# Prescription only: the dose is set by the prescriber, so no bands
AMOXICILLIN = MedicationProfile(
    medication_id="amoxicillin",
    name="Amoxicillin",
    strength_mg=250,
    concentration_mg_per_ml=50,
    min_age_months=0,
    dosing_interval_hours=8,
)

# 400 IU (10 micrograms) once daily; strength is one measured dose
VITAMIN_D3 = MedicationProfile(
    medication_id="vitamin_d3",
    name="Vitamin D3 Drops",
    strength_mg=0.01,
    min_age_months=0,
    dosing_interval_hours=24,
    dosing_table=(_age_band(0, None, 0.01, 0.01),),
)

FORMULARY: tuple[MedicationProfile, ...] = (PARACETAMOL, IBUPROFEN, AMOXICILLIN, VITAMIN_D3)


def default_formulary() -> Mapping[str, MedicationProfile]:
    return MappingProxyType({profile.medication_id: profile for profile in FORMULARY})
