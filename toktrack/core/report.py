"""
Usage loading across sources.

Runs every configured source through parsing, pricing and the daily
summary cache, and collects the per-source warnings.

Each source takes one of two paths:
1. Warm - the source already has a cache file: only recently modified
   log files are parsed, history comes from the cache
2. Cold - no cache file yet, or the warm path found nothing: every log
   file of the source is parsed

A failing source never stops the others; its problem is recorded as a
warning under its name.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from toktrack.core import aggregator
from toktrack.core.errors import CacheWriteError, SourceReadError
from toktrack.core.pricing import PRICING_TABLE, PricingTable, apply_pricing
from toktrack.storage.cache import DailySummaryCache
from toktrack.storage.models import DailySummary, UsageEvent
from toktrack.storage.sources import JsonlSource

logger = logging.getLogger(__name__)

DEFAULT_RECENT_WINDOW = timedelta(hours=24)


@dataclass
class UsageReport:
    """Daily summaries of all sources plus what went wrong along the way."""
    daily: List[DailySummary] = field(default_factory=list)
    by_source: Dict[str, List[DailySummary]] = field(default_factory=dict)
    warnings: Dict[str, List[str]] = field(default_factory=dict)

    def warn(self, source: str, message: str) -> None:
        logger.warning("%s: %s", source, message)
        self.warnings.setdefault(source, []).append(message)


def load_usage(
    sources: Sequence[JsonlSource],
    cache: Optional[DailySummaryCache],
    pricing: PricingTable = PRICING_TABLE,
    now: Optional[datetime] = None,
    recent_window: timedelta = DEFAULT_RECENT_WINDOW,
    today: Optional[date] = None,
) -> UsageReport:
    """Load daily summaries for every source.

    Args:
        sources: Log sources to read
        cache: Summary cache, or None to aggregate without caching
        pricing: Pricing table used for events without a recorded cost
        now: Current time, used for the warm-path cutoff
        recent_window: How far back the warm path looks for modified files
        today: Current local date passed to the cache

    Returns:
        UsageReport with summaries combined by date across sources
    """
    if now is None:
        now = datetime.now(timezone.utc)
    since = now - recent_window

    report = UsageReport()
    for source in sources:
        summaries = _load_source(report, source, cache, pricing, since, today)
        if summaries is not None:
            report.by_source[source.name] = summaries

    report.daily = aggregator.combine(_all_summaries(report))
    return report


def _load_source(
    report: UsageReport,
    source: JsonlSource,
    cache: Optional[DailySummaryCache],
    pricing: PricingTable,
    since: datetime,
    today: Optional[date],
) -> Optional[List[DailySummary]]:
    """Summarize one source, warm if it has a cache file, cold otherwise.

    Returns None when the source could not be read or had no events.
    """
    if cache is not None and cache.exists(source.name):
        try:
            events = source.parse_recent_files(since)
        except SourceReadError as e:
            report.warn(source.name, str(e))
            return None
        summaries = _summarize(report, source.name, apply_pricing(events, pricing), cache, today)
        if summaries:
            return summaries
        logger.info("%s: warm path produced no data, parsing all files", source.name)

    try:
        events = source.parse_all()
    except SourceReadError as e:
        report.warn(source.name, str(e))
        return None
    if not events:
        return None
    return _summarize(report, source.name, apply_pricing(events, pricing), cache, today)


def _summarize(
    report: UsageReport,
    source: str,
    events: List[UsageEvent],
    cache: Optional[DailySummaryCache],
    today: Optional[date],
) -> List[DailySummary]:
    if cache is None:
        return aggregator.daily(events)

    try:
        return cache.load_or_compute(source, events, today=today)
    except CacheWriteError as e:
        report.warn(source, str(e))
        return e.summaries


def _all_summaries(report: UsageReport) -> List[DailySummary]:
    return [summary for summaries in report.by_source.values() for summary in summaries]
