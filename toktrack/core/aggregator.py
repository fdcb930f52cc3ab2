"""
Usage aggregation.

Folds usage events into per-day summaries, and re-buckets daily summaries
into weeks and months. Every fold is a plain sum, so results do not depend
on the order of the input.
"""

from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List

from toktrack.core.normalizer import normalize_model_name
from toktrack.storage.models import (
    UNKNOWN_MODEL,
    DailySummary,
    StatsData,
    TotalSummary,
    UsageEvent,
)


def model_key(event: UsageEvent) -> str:
    """Key under which an event's model is accumulated."""
    if not event.model:
        return UNKNOWN_MODEL
    return normalize_model_name(event.model)


def daily(events: Iterable[UsageEvent]) -> List[DailySummary]:
    """Group events by calendar date.

    Args:
        events: Usage events in any order

    Returns:
        One summary per distinct date, sorted ascending by date
    """
    by_date: Dict[date, DailySummary] = {}
    for event in events:
        day = event.date
        summary = by_date.get(day)
        if summary is None:
            summary = by_date[day] = DailySummary(date=day)
        summary.add_event(event, model_key(event))
    return [by_date[day] for day in sorted(by_date)]


def week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def month_start(day: date) -> date:
    return day.replace(day=1)


def _rebucket(summaries: Iterable[DailySummary], key: Callable[[date], date]) -> List[DailySummary]:
    buckets: Dict[date, DailySummary] = {}
    for summary in summaries:
        bucket_date = key(summary.date)
        bucket = buckets.get(bucket_date)
        if bucket is None:
            bucket = buckets[bucket_date] = DailySummary(date=bucket_date)
        bucket.merge(summary)
    return [buckets[day] for day in sorted(buckets)]


def weekly(summaries: Iterable[DailySummary]) -> List[DailySummary]:
    """Re-bucket daily summaries into ISO weeks keyed by their Monday."""
    return _rebucket(summaries, week_start)


def monthly(summaries: Iterable[DailySummary]) -> List[DailySummary]:
    """Re-bucket daily summaries into calendar months keyed by their first day."""
    return _rebucket(summaries, month_start)


def combine(summaries: Iterable[DailySummary]) -> List[DailySummary]:
    """Sum summaries that share a date, e.g. the same day from several sources.

    This is a plain sum; events are never deduplicated across sources.
    """
    return _rebucket(summaries, lambda day: day)


def total(events: Iterable[UsageEvent]) -> TotalSummary:
    """Compute a single aggregate over all events plus the distinct-day count."""
    input_tokens = output_tokens = cache_read = cache_creation = 0
    cost = 0.0
    count = 0
    days = set()
    for event in events:
        input_tokens += event.input_tokens
        output_tokens += event.output_tokens
        cache_read += event.cache_read_tokens
        cache_creation += event.cache_creation_tokens
        cost += event.cost_usd or 0.0
        count += 1
        days.add(event.date)

    return TotalSummary(
        total_input_tokens=input_tokens,
        total_output_tokens=output_tokens,
        total_cache_read_tokens=cache_read,
        total_cache_creation_tokens=cache_creation,
        total_cost_usd=cost,
        entry_count=count,
        day_count=len(days),
    )


def stats(summaries: List[DailySummary]) -> StatsData:
    """Headline statistics over a list of daily summaries."""
    if not summaries:
        return StatsData(
            total_tokens=0,
            total_cost_usd=0.0,
            active_days=0,
            average_tokens_per_day=0.0,
            average_cost_per_day=0.0,
        )

    total_tokens = sum(s.total_tokens for s in summaries)
    total_cost = sum(s.total_cost_usd for s in summaries)
    active_days = len({s.date for s in summaries})
    # Earliest date wins ties so the result is stable
    peak = max(summaries, key=lambda s: (s.total_tokens, -s.date.toordinal()))

    return StatsData(
        total_tokens=total_tokens,
        total_cost_usd=total_cost,
        active_days=active_days,
        average_tokens_per_day=total_tokens / active_days,
        average_cost_per_day=total_cost / active_days,
        peak_day=peak.date,
        peak_day_tokens=peak.total_tokens,
    )
