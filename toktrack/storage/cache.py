"""
Daily summary cache.

Persists per-source daily summaries so repeated runs only aggregate the
events of today and of dates never seen before.
"""

import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from toktrack.core import aggregator
from toktrack.core.errors import CacheWriteError
from toktrack.storage.models import CacheRecord, DailySummary, UsageEvent

logger = logging.getLogger(__name__)


@dataclass
class Settled:
    """A past date whose cached summary is trusted as-is."""
    summary: DailySummary


@dataclass
class Recompute:
    """A date that must be aggregated from its raw events."""
    events: List[UsageEvent] = field(default_factory=list)


Bucket = Union[Settled, Recompute]


def partition(settled: Iterable[DailySummary], events: Iterable[UsageEvent], today: date) -> Dict[date, Bucket]:
    """Split work into trusted cache entries and dates to recompute.

    A date is recomputed when it is today or has no settled entry. Today is
    never trusted from the cache, even if an entry for it exists.
    """
    buckets: Dict[date, Bucket] = {
        summary.date: Settled(summary) for summary in settled if summary.date != today
    }
    for event in events:
        day = event.date
        bucket = buckets.get(day)
        if isinstance(bucket, Recompute):
            bucket.events.append(event)
        elif bucket is None:
            buckets[day] = Recompute([event])
    return buckets


class DailySummaryCache:
    """Store for the per-source daily summary cache files.

    Each source owns one JSON file in the cache directory. Files are always
    replaced as a whole.
    """

    def __init__(self, cache_dir: Union[str, Path]):
        """Initialize the store with a cache directory.

        Args:
            cache_dir: Directory holding the cache files; created on first write
        """
        self.cache_dir = Path(cache_dir)

    def cache_path(self, source: str) -> Path:
        """Path of the cache file for a source. Performs no I/O."""
        return self.cache_dir / f"{source}_daily.json"

    def exists(self, source: str) -> bool:
        return self.cache_path(source).is_file()

    def load_or_compute(
        self,
        source: str,
        events: List[UsageEvent],
        today: Optional[date] = None,
    ) -> List[DailySummary]:
        """Merge cached past summaries with freshly aggregated ones.

        Settled dates (before today) present in the cache are trusted without
        reprocessing their events. Today and dates missing from the cache are
        aggregated from ``events``. The merged result replaces the cache file.

        Args:
            source: Source identifier
            events: Usage events of the source
            today: Current local date; defaults to ``date.today()``

        Returns:
            Daily summaries sorted ascending by date

        Raises:
            CacheWriteError: If the cache file could not be written. The
                error carries the merged summaries.
        """
        if today is None:
            today = date.today()

        settled = self._load_settled(source, today)
        buckets = partition(settled, events, today)

        to_compute = [
            event
            for bucket in buckets.values()
            if isinstance(bucket, Recompute)
            for event in bucket.events
        ]
        fresh = aggregator.daily(to_compute) if to_compute else []
        kept = [bucket.summary for bucket in buckets.values() if isinstance(bucket, Settled)]

        merged = sorted(kept + fresh, key=lambda summary: summary.date)
        logger.debug(
            "%s: %d settled days from cache, %d days recomputed from %d events",
            source, len(kept), len(fresh), len(to_compute),
        )

        if merged:
            self._save(source, merged)
        return merged

    def load_record(self, source: str) -> Optional[CacheRecord]:
        """Read a source's cache record.

        Returns None when the file is missing, unreadable or corrupted.
        """
        path = self.cache_path(source)
        if not path.exists():
            return None

        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read cache for %s (%s), recomputing", source, e)
            return None

        try:
            return CacheRecord.from_dict(json.loads(content))
        except (ValueError, KeyError, TypeError, RecursionError) as e:
            logger.warning("Corrupted cache for %s (%s), recomputing", source, e)
            return None

    def clear(self, source: str) -> None:
        """Delete a source's cache file. No-op when there is none."""
        path = self.cache_path(source)
        if path.exists():
            path.unlink()
            logger.info("Cleared cache for %s", source)

    def _load_settled(self, source: str, today: date) -> List[DailySummary]:
        record = self.load_record(source)
        if record is None:
            return []
        return [summary for summary in record.summaries if summary.date < today]

    def _save(self, source: str, summaries: List[DailySummary]) -> None:
        """Replace the cache file atomically with the given summaries."""
        record = CacheRecord(source=source, updated_at=int(time.time()), summaries=summaries)
        content = json.dumps(record.to_dict(), indent=2)

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.cache_dir, prefix=f".{source}_", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                os.replace(tmp_path, self.cache_path(source))
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise CacheWriteError(source, summaries, str(e)) from e
