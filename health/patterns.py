"""Activity pattern analysis over feeding, sleep and diaper records.

Each category has its own analyzer, selected by match on the enum. All
analyzers share the same base statistics (frequency, intervals,
durations, peak hours, trend) and add their category extras.

The trend is a symmetric-window comparison: the chronologically sorted
records are split at the middle of the list and the second half's record
count (total sleep for sleep) is compared with the first half's. This is
a deliberate simplification with no statistical model behind it.
"""

from collections import Counter, defaultdict
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from statistics import fmean

import structlog

from shared.config import settings
from shared.exceptions import InvalidInputError
from shared.metrics import analyses_total

from health.domain.models import ActivityCategory, ActivityRecord, PatternSummary, Trend
from health.domain.validation import ensure_valid, validate_activity_records

logger = structlog.get_logger()

PEAK_HOUR_COUNT = 3
NIGHT_START_HOUR = 18
NIGHT_END_HOUR = 6


@dataclass(frozen=True)
class PatternThresholds:
    interval_outlier_hours: float = field(default_factory=lambda: settings.interval_outlier_hours)
    trend_threshold: float = field(default_factory=lambda: settings.trend_threshold)
    min_trend_records: int = field(default_factory=lambda: settings.min_trend_records)


@dataclass(frozen=True)
class _Context:
    tz: tzinfo
    thresholds: PatternThresholds


def analyze_patterns(
    records: Iterable[ActivityRecord],
    *,
    tz: tzinfo | None = None,
    thresholds: PatternThresholds | None = None,
) -> list[PatternSummary]:
    """One PatternSummary per category present, in enum order.

    Records may arrive in any order. Categories with no records are
    omitted rather than summarised as zeros.
    """
    records = list(records)
    try:
        ensure_valid(validate_activity_records(records))
    except InvalidInputError:
        analyses_total.labels(component="patterns", outcome="invalid_input").inc()
        raise

    ctx = _Context(tz=tz or settings.tz, thresholds=thresholds or PatternThresholds())

    by_category: dict[ActivityCategory, list[ActivityRecord]] = defaultdict(list)
    for record in records:
        by_category[record.category].append(record)

    summaries = []
    for category in ActivityCategory:
        group = by_category.get(category)
        if not group:
            continue
        group.sort(key=lambda r: r.started_at)
        summaries.append(_analyzer_for(category)(group, ctx))

    outcome = "ok" if summaries else "no_data"
    analyses_total.labels(component="patterns", outcome=outcome).inc()
    logger.info(
        "patterns_analyzed",
        record_count=len(records),
        categories=[s.category.value for s in summaries],
        trends={s.category.value: s.trend.value for s in summaries},
    )
    return summaries


def _analyzer_for(
    category: ActivityCategory,
) -> Callable[[list[ActivityRecord], _Context], PatternSummary]:
    match category:
        case ActivityCategory.FEEDING:
            return _analyze_feeding
        case ActivityCategory.SLEEP:
            return _analyze_sleep
        case ActivityCategory.DIAPER:
            return _analyze_diaper


# --- Per-category analyzers ---


def _analyze_feeding(records: list[ActivityRecord], ctx: _Context) -> PatternSummary:
    quantities = [r.quantity for r in records if r.quantity is not None]
    return _summarize(
        ActivityCategory.FEEDING,
        records,
        ctx,
        average_quantity=fmean(quantities) if quantities else None,
        subtype_counts=_subtype_counts(records),
    )


def _analyze_sleep(records: list[ActivityRecord], ctx: _Context) -> PatternSummary:
    night_starts = []
    night_wakes = []
    for record in records:
        start = record.started_at.astimezone(ctx.tz)
        if not (start.hour >= NIGHT_START_HOUR or start.hour <= NIGHT_END_HOUR):
            continue
        hour = _fractional_hour(start)
        # Early-morning starts belong to the previous evening
        night_starts.append(hour + 24 if hour < 12 else hour)
        if record.ended_at is not None:
            night_wakes.append(_fractional_hour(record.ended_at.astimezone(ctx.tz)))

    return _summarize(
        ActivityCategory.SLEEP,
        records,
        ctx,
        trend_metric=_total_closed_minutes,
        night_start_hour=round(fmean(night_starts) % 24, 4) if night_starts else None,
        morning_wake_hour=round(fmean(night_wakes), 4) if night_wakes else None,
    )


def _analyze_diaper(records: list[ActivityRecord], ctx: _Context) -> PatternSummary:
    gaps = [
        (b.started_at - a.started_at).total_seconds() / 3600
        for a, b in zip(records, records[1:])
    ]
    return _summarize(
        ActivityCategory.DIAPER,
        records,
        ctx,
        subtype_counts=_subtype_counts(records),
        longest_gap_hours=round(max(gaps), 4) if gaps else None,
    )


# --- Shared statistics ---


def _summarize(
    category: ActivityCategory,
    records: Sequence[ActivityRecord],
    ctx: _Context,
    trend_metric: Callable[[Sequence[ActivityRecord]], float] = len,
    **extras,
) -> PatternSummary:
    active_days = len({r.started_at.astimezone(ctx.tz).date() for r in records})

    intervals = _interval_minutes(records, ctx.thresholds.interval_outlier_hours)
    durations = [r.duration.total_seconds() / 60 for r in records if r.duration is not None]
    total_duration = sum(durations)

    trend, change = _classify_trend(records, ctx, trend_metric)

    return PatternSummary(
        category=category,
        record_count=len(records),
        open_sessions=sum(1 for r in records if r.is_open),
        active_days=active_days,
        records_per_day=len(records) / active_days,
        average_interval_minutes=fmean(intervals) if intervals else None,
        average_duration_minutes=fmean(durations) if durations else None,
        longest_duration_minutes=max(durations) if durations else None,
        total_duration_minutes=total_duration,
        duration_per_day_minutes=total_duration / active_days if durations else None,
        peak_hours=_peak_hours(records, ctx.tz),
        trend=trend,
        trend_change=change,
        **extras,
    )


def _interval_minutes(records: Sequence[ActivityRecord], outlier_hours: float) -> list[float]:
    """Gaps between consecutive starts, keeping only (0, outlier_hours]."""
    limit = outlier_hours * 3600
    intervals = []
    for previous, current in zip(records, records[1:]):
        seconds = (current.started_at - previous.started_at).total_seconds()
        if 0 < seconds <= limit:
            intervals.append(seconds / 60)
    return intervals


def _peak_hours(records: Sequence[ActivityRecord], tz: tzinfo) -> tuple[int, ...]:
    counts = Counter(r.started_at.astimezone(tz).hour for r in records)
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return tuple(hour for hour, _ in ranked[:PEAK_HOUR_COUNT])


def _classify_trend(
    records: Sequence[ActivityRecord],
    ctx: _Context,
    metric: Callable[[Sequence[ActivityRecord]], float],
) -> tuple[Trend, float | None]:
    if len(records) < ctx.thresholds.min_trend_records:
        return Trend.STABLE, None

    mid = len(records) // 2
    first = metric(records[:mid])
    second = metric(records[mid:])

    if first == 0:
        return (Trend.IMPROVING, None) if second > 0 else (Trend.STABLE, None)

    change = (second - first) / first
    threshold = ctx.thresholds.trend_threshold
    if change >= threshold:
        return Trend.IMPROVING, round(change, 4)
    if change <= -threshold:
        return Trend.WORSENING, round(change, 4)
    return Trend.STABLE, round(change, 4)


def _total_closed_minutes(records: Sequence[ActivityRecord]) -> float:
    return sum(r.duration.total_seconds() / 60 for r in records if r.duration is not None)


def _subtype_counts(records: Sequence[ActivityRecord]) -> dict[str, int]:
    return dict(sorted(Counter(r.subtype for r in records if r.subtype).items()))


def _fractional_hour(ts: datetime) -> float:
    return ts.hour + ts.minute / 60


# --- Report rules ---


def _by_category(summaries: Iterable[PatternSummary]) -> dict[ActivityCategory, PatternSummary]:
    return {s.category: s for s in summaries}


def pattern_concerns(summaries: Iterable[PatternSummary]) -> list[str]:
    """Pattern-level concerns worth raising with a healthcare provider.

    Only categories that were actually tracked are evaluated.
    """
    found = _by_category(summaries)
    concerns = []

    sleep = found.get(ActivityCategory.SLEEP)
    if sleep and (sleep.duration_per_day_minutes or 0) / 60 < 10:
        concerns.append("Below average sleep duration")

    feeding = found.get(ActivityCategory.FEEDING)
    if feeding and feeding.records_per_day < 6:
        concerns.append("Lower than typical feeding frequency")

    diaper = found.get(ActivityCategory.DIAPER)
    if diaper and diaper.records_per_day < 4:
        concerns.append("Lower than typical nappy output")
    if diaper and diaper.longest_gap_hours is not None and diaper.longest_gap_hours > 6:
        concerns.append(
            f"Long dry stretches noted (up to {int(diaper.longest_gap_hours + 0.5)} hours)"
        )
    return concerns


def pattern_milestones(summaries: Iterable[PatternSummary]) -> list[str]:
    found = _by_category(summaries)
    milestones = []

    sleep = found.get(ActivityCategory.SLEEP)
    if sleep and (sleep.longest_duration_minutes or 0) > 360:
        milestones.append("Sleeping through the night (6+ hour stretches)")

    feeding = found.get(ActivityCategory.FEEDING)
    if feeding and (feeding.average_interval_minutes or 0) > 180:
        milestones.append("Extended feeding intervals (3+ hours)")
    return milestones
