"""Report assembly and plain-text export.

build_report() gathers already-computed results into one Report value.
render_text() produces the tracker export clinicians receive; its
section headers, ordering and dd/MM/yyyy dates are a compatibility
surface, so the output must stay byte-stable for identical input.
"""

import math
from collections.abc import Sequence
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict

from health.domain.models import (
    ActivityCategory,
    ChildInfo,
    GrowthAlert,
    Measurement,
    MeasurementType,
    PatternSummary,
)
from health.patterns import pattern_concerns, pattern_milestones
from health.percentiles import growth_velocity, percentile_description

HISTORY_ROWS = 10

REPORT_FOOTER = (
    "This report was generated using the PAM Tracker Analytics system.\n"
    "Please discuss any concerns with your healthcare provider."
)


class CurrentMeasurement(BaseModel):
    model_config = ConfigDict(frozen=True)

    measurement_type: MeasurementType
    value: float
    unit: str
    measured_on: date
    percentile: int | None = None
    description: str | None = None


class Report(BaseModel):
    model_config = ConfigDict(frozen=True)

    child: ChildInfo
    period_start: date | None = None
    period_end: date | None = None
    generated_at: datetime | None = None

    total_days: int = 0
    current_measurements: tuple[CurrentMeasurement, ...] = ()
    height_velocity_cm_per_month: float | None = None
    weight_velocity_kg_per_month: float | None = None
    measurements: tuple[Measurement, ...] = ()

    patterns: tuple[PatternSummary, ...] = ()
    alerts: tuple[GrowthAlert, ...] = ()

    growth_notes: tuple[str, ...] = ()
    milestones: tuple[str, ...] = ()
    concerns: tuple[str, ...] = ()

    def pattern(self, category: ActivityCategory) -> PatternSummary | None:
        return next((p for p in self.patterns if p.category is category), None)


def build_report(
    child: ChildInfo,
    measurements: Sequence[Measurement],
    patterns: Sequence[PatternSummary],
    alerts: Sequence[GrowthAlert],
    *,
    period_start: date | None = None,
    period_end: date | None = None,
    generated_at: datetime | None = None,
) -> Report:
    """Compose a report. Omit generated_at for reproducible output."""
    history = sorted(measurements, key=lambda m: m.measurement_date, reverse=True)
    velocity = growth_velocity(history)
    current = _current_measurements(history)

    growth_notes = _pattern_notes(patterns) + [_measurement_note(c) for c in current]
    concerns = pattern_concerns(patterns) + [
        f"{alert.title} ({alert.severity.value.upper()})" for alert in alerts
    ]

    return Report(
        child=child,
        period_start=period_start,
        period_end=period_end,
        generated_at=generated_at,
        total_days=max((p.active_days for p in patterns), default=0),
        current_measurements=tuple(current),
        height_velocity_cm_per_month=velocity.height_cm_per_month,
        weight_velocity_kg_per_month=velocity.weight_kg_per_month,
        measurements=tuple(history[:HISTORY_ROWS]),
        patterns=tuple(patterns),
        alerts=tuple(alerts),
        growth_notes=tuple(growth_notes),
        milestones=tuple(pattern_milestones(patterns)),
        concerns=tuple(concerns),
    )


def _current_measurements(history: Sequence[Measurement]) -> list[CurrentMeasurement]:
    current = []
    for measurement_type in MeasurementType:
        latest = next((m for m in history if m.value_for(measurement_type) is not None), None)
        if latest is None:
            continue
        percentile = latest.percentile_for(measurement_type)
        current.append(
            CurrentMeasurement(
                measurement_type=measurement_type,
                value=latest.value_for(measurement_type),
                unit=measurement_type.unit,
                measured_on=latest.measurement_date,
                percentile=percentile,
                description=percentile_description(percentile) if percentile is not None else None,
            )
        )
    return current


def _pattern_notes(patterns: Sequence[PatternSummary]) -> list[str]:
    found = {p.category: p for p in patterns}
    notes = []

    sleep = found.get(ActivityCategory.SLEEP)
    if sleep and sleep.night_start_hour is not None and sleep.morning_wake_hour is not None:
        notes.append(
            f"Typical sleep schedule: {format_clock(sleep.night_start_hour)} "
            f"to {format_clock(sleep.morning_wake_hour)}"
        )

    feeding = found.get(ActivityCategory.FEEDING)
    if feeding and feeding.peak_hours:
        notes.append(f"Preferred feeding times: {_hour_list(feeding.peak_hours)}")
    if feeding:
        breast = feeding.subtype_counts.get("breast", 0)
        bottle = feeding.subtype_counts.get("bottle", 0)
        if breast:
            notes.append(f"Feeding method: {round_half_up(breast / (breast + bottle) * 100):g}% breastfeeding")
    return notes


def _measurement_note(current: CurrentMeasurement) -> str:
    note = f"{current.measurement_type.label}: {js_number(current.value)}{current.unit}"
    if current.percentile is not None:
        note += f" ({current.percentile}th percentile, {current.description})"
    return note


# --- Formatting helpers ---


def round_half_up(value: float, digits: int = 0) -> float:
    scale = 10**digits
    return math.floor(value * scale + 0.5) / scale


def js_number(value: float) -> str:
    """Render like a JS number: no trailing '.0' on whole values."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def format_clock(hour: float) -> str:
    minutes = round(hour * 60)
    return f"{(minutes // 60) % 24}:{minutes % 60:02d}"


def _hour_list(hours: Sequence[int]) -> str:
    return ", ".join(f"{h}:00" for h in hours)


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"• {item}" for item in items)


def _ratio(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator > 0 else numerator


# --- Tracker export ---


def render_text(report: Report) -> str:
    """Render the tracker analytics export. Deterministic for identical reports."""
    sleep = report.pattern(ActivityCategory.SLEEP)
    feeding = report.pattern(ActivityCategory.FEEDING)
    diaper = report.pattern(ActivityCategory.DIAPER)

    lines = ["TRACKER ANALYTICS REPORT", f"Child: {report.child.name}"]
    if report.period_start is not None and report.period_end is not None:
        lines.append(f"Period: {format_date(report.period_start)} - {format_date(report.period_end)}")
    if report.generated_at is not None:
        lines.append(f"Generated: {report.generated_at.strftime('%d/%m/%Y %H:%M')}")

    feeds_per_day = round_half_up(feeding.records_per_day, 1) if feeding else 0
    nappies_per_day = round_half_up(diaper.records_per_day, 1) if diaper else 0
    sleep_per_day = (sleep.duration_per_day_minutes or 0) if sleep else 0

    lines += [
        "",
        "SUMMARY",
        "-------",
        f"Total Days Tracked: {report.total_days}",
        f"Average Feedings per Day: {js_number(feeds_per_day)}",
        f"Average Sleep Hours per Day: {round_half_up(sleep_per_day) / 60:.1f}",
        f"Average Nappies per Day: {js_number(nappies_per_day)}",
        "",
    ]
    lines += _sleep_section(sleep)
    lines += _feeding_section(feeding)
    lines += _nappy_section(diaper)
    lines += [
        "GROWTH NOTES",
        "------------",
        _bullets(report.growth_notes),
        "",
        "MILESTONES",
        "----------",
        _bullets(report.milestones),
        "",
        "CONCERNS TO DISCUSS WITH HEALTHCARE PROVIDER",
        "-------------------------------------------",
        _bullets(report.concerns) if report.concerns else "No concerns identified",
        "",
        REPORT_FOOTER,
    ]
    return "\n".join(lines)


def _minutes(value: float | None) -> str:
    return js_number(round_half_up(value or 0))


def _sleep_section(sleep: PatternSummary | None) -> list[str]:
    per_day = (sleep.duration_per_day_minutes or 0) if sleep else 0
    efficiency = round_half_up(round_half_up(per_day) / (24 * 60) * 100)
    night = format_clock(sleep.night_start_hour) if sleep and sleep.night_start_hour is not None else None
    wake = format_clock(sleep.morning_wake_hour) if sleep and sleep.morning_wake_hour is not None else None
    return [
        "SLEEP PATTERNS",
        "--------------",
        f"Average Sleep Duration: {_minutes(sleep.average_duration_minutes if sleep else None)} minutes",
        f"Average Naps per Day: {js_number(round_half_up(sleep.records_per_day, 1) if sleep else 0)}",
        f"Longest Sleep Stretch: {_minutes(sleep.longest_duration_minutes if sleep else None)} minutes",
        f"Total Sleep per Day: {_minutes(per_day)} minutes",
        f"Night Sleep Start: {night or 'Not established'}",
        f"Morning Wake Time: {wake or 'Not established'}",
        f"Sleep Efficiency: {js_number(efficiency)}%",
        "",
    ]


def _feeding_section(feeding: PatternSummary | None) -> list[str]:
    counts = feeding.subtype_counts if feeding else {}
    ratio = _ratio(counts.get("breast", 0), counts.get("bottle", 0))
    return [
        "FEEDING PATTERNS",
        "----------------",
        f"Average Feeding Interval: {_minutes(feeding.average_interval_minutes if feeding else None)} minutes",
        f"Average Feeding Duration: {_minutes(feeding.average_duration_minutes if feeding else None)} minutes",
        f"Average Bottle Amount: {_minutes(feeding.average_quantity if feeding else None)}ml",
        f"Feedings per Day: {js_number(round_half_up(feeding.records_per_day, 1) if feeding else 0)}",
        f"Preferred Feeding Times: {_hour_list(feeding.peak_hours) if feeding else ''}",
        f"Breast vs Bottle Ratio: {js_number(round_half_up(ratio, 2))}",
        "",
    ]


def _nappy_section(diaper: PatternSummary | None) -> list[str]:
    counts = diaper.subtype_counts if diaper else {}
    ratio = _ratio(counts.get("wet", 0), counts.get("dirty", 0))
    gap = (diaper.longest_gap_hours or 0) if diaper else 0
    return [
        "NAPPY PATTERNS",
        "--------------",
        f"Average Nappies per Day: {js_number(round_half_up(diaper.records_per_day, 1) if diaper else 0)}",
        f"Wet vs Dirty Ratio: {js_number(round_half_up(ratio, 1))}",
        f"Longest Dry Stretch: {js_number(round_half_up(gap, 1))} hours",
        f"Typical Change Hours: {_hour_list(diaper.peak_hours) if diaper else ''}",
        "",
    ]


# --- Growth export ---


def render_growth_text(report: Report) -> str:
    """Render the growth tracking report for a healthcare provider."""
    child = report.child
    dob = format_date(child.date_of_birth) if child.date_of_birth else "Unknown"
    lines = [
        "GROWTH TRACKING REPORT",
        "========================",
        "",
        f"Child: {child.name}",
        f"Date of Birth: {dob}",
    ]
    if report.generated_at is not None:
        lines.append(f"Report Generated: {report.generated_at.strftime('%d/%m/%Y %H:%M')}")

    lines += ["", "CURRENT MEASUREMENTS", "-------------------"]
    for current in report.current_measurements:
        percentile = (
            f"{current.percentile}th percentile" if current.percentile is not None else "percentile unavailable"
        )
        lines.append(
            f"{current.measurement_type.label}: {js_number(current.value)}{current.unit} ({percentile})"
        )

    lines += ["", "GROWTH VELOCITY", "--------------"]
    if report.height_velocity_cm_per_month:
        lines.append(f"Height: {report.height_velocity_cm_per_month:.1f}cm/month")
    if report.weight_velocity_kg_per_month:
        lines.append(f"Weight: {report.weight_velocity_kg_per_month:.2f}kg/month")

    if report.alerts:
        lines += ["", "CONCERNS/ALERTS", "--------------"]
        for alert in report.alerts:
            lines.append(f"• {alert.title} ({alert.severity.value.upper()})")
            lines.append(f"  {alert.message}")
            if alert.recommendation:
                lines.append(f"  Recommendation: {alert.recommendation}")

    lines += ["", "MEASUREMENT HISTORY", "------------------"]
    for measurement in report.measurements:
        row = f"{format_date(measurement.measurement_date)}: "
        if measurement.height_cm is not None:
            row += f"H: {js_number(measurement.height_cm)}cm "
        if measurement.weight_kg is not None:
            row += f"W: {js_number(measurement.weight_kg)}kg "
        if measurement.head_circumference_cm is not None:
            row += f"HC: {js_number(measurement.head_circumference_cm)}cm "
        lines.append(row)
    return "\n".join(lines) + "\n"
