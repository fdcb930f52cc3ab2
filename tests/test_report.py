"""
Tests for loading usage across sources.

Covers the warm and cold paths, per-source warnings and graceful
degradation when the cache cannot be written.
"""

import json
import shutil
import tempfile
from datetime import date, datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from toktrack.core.errors import CacheWriteError, SourceReadError
from toktrack.core.report import load_usage
from toktrack.storage.cache import DailySummaryCache
from toktrack.storage.models import DailySummary, UsageEvent
from toktrack.storage.sources import JsonlSource


TODAY = date(2024, 3, 15)
NOW = datetime(2024, 3, 15, 18, 0, tzinfo=timezone.utc)


def create_event(day: date, input_tokens: int, model: str = "claude-sonnet-4", cost=0.01) -> UsageEvent:
    return UsageEvent(
        timestamp=datetime(day.year, day.month, day.day, 12, 0, tzinfo=timezone.utc),
        model=model,
        input_tokens=input_tokens,
        output_tokens=0,
        cost_usd=cost,
    )


def mock_source(name: str, all_events=None, recent_events=None, error=None) -> MagicMock:
    """Create a source double returning the given events."""
    source = MagicMock(spec=JsonlSource)
    source.name = name
    if error is not None:
        source.parse_all.side_effect = error
        source.parse_recent_files.side_effect = error
    else:
        source.parse_all.return_value = list(all_events or [])
        source.parse_recent_files.return_value = list(recent_events or [])
    return source


class TestLoadUsage:
    """Test the usage loading pipeline."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.cache = DailySummaryCache(Path(self.temp_dir) / "cache")

    def teardown_method(self):
        """Clean up test environment."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_cold_path_parses_all_files(self):
        source = mock_source("claude-code", all_events=[
            create_event(date(2024, 1, 10), 100),
            create_event(date(2024, 1, 11), 200),
        ])

        report = load_usage([source], self.cache, now=NOW, today=TODAY)

        source.parse_all.assert_called_once()
        source.parse_recent_files.assert_not_called()
        assert [s.total_input_tokens for s in report.daily] == [100, 200]
        assert self.cache.exists("claude-code")
        assert report.warnings == {}

    def test_warm_path_uses_recent_files_and_cache(self):
        """With a cache present only recent files are parsed; history comes from the cache."""
        self.cache.load_or_compute("claude-code", [create_event(date(2024, 1, 10), 100)], today=TODAY)
        source = mock_source("claude-code", recent_events=[create_event(TODAY, 5)])

        report = load_usage([source], self.cache, now=NOW, today=TODAY)

        source.parse_all.assert_not_called()
        args, _ = source.parse_recent_files.call_args
        assert args[0] == datetime(2024, 3, 14, 18, 0, tzinfo=timezone.utc)
        assert [(s.date, s.total_input_tokens) for s in report.daily] == [
            (date(2024, 1, 10), 100),
            (TODAY, 5),
        ]

    def test_warm_path_falls_back_to_cold_when_empty(self):
        """A cache holding only a stale today entry yields nothing warm, so everything is parsed."""
        path = self.cache.cache_path("claude-code")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"cli": "claude-code", "updated_at": 0, "summaries": []}), encoding="utf-8")
        source = mock_source("claude-code", all_events=[create_event(date(2024, 1, 10), 100)])

        report = load_usage([source], self.cache, now=NOW, today=TODAY)

        source.parse_recent_files.assert_called_once()
        source.parse_all.assert_called_once()
        assert report.daily[0].total_input_tokens == 100

    def test_uncached_source_parses_full_history_next_to_cached_one(self):
        """A newly configured source gets all its files even when others are warm."""
        self.cache.load_or_compute("claude-code", [create_event(date(2024, 1, 10), 100)], today=TODAY)
        cached = mock_source("claude-code", recent_events=[create_event(TODAY, 5)])
        added = mock_source(
            "cursor",
            all_events=[create_event(date(2024, 2, 1), 700), create_event(TODAY, 30)],
            recent_events=[create_event(TODAY, 30)],
        )

        report = load_usage([cached, added], self.cache, now=NOW, today=TODAY)

        cached.parse_all.assert_not_called()
        added.parse_recent_files.assert_not_called()
        added.parse_all.assert_called_once()
        assert [s.date for s in report.by_source["cursor"]] == [date(2024, 2, 1), TODAY]
        assert [s.date for s in self.cache.load_record("cursor").summaries] == [date(2024, 2, 1), TODAY]
        assert [(s.date, s.total_input_tokens) for s in report.daily] == [
            (date(2024, 1, 10), 100),
            (date(2024, 2, 1), 700),
            (TODAY, 35),
        ]

    def test_failing_source_does_not_stop_others(self):
        broken = mock_source("cursor", error=SourceReadError("cursor", "data directory not found"))
        working = mock_source("claude-code", all_events=[create_event(date(2024, 1, 10), 100)])

        report = load_usage([broken, working], self.cache, now=NOW, today=TODAY)

        assert [s.total_input_tokens for s in report.daily] == [100]
        assert list(report.warnings) == ["cursor"]
        assert "data directory not found" in report.warnings["cursor"][0]
        assert "cursor" not in report.by_source

    def test_sources_are_combined_by_date_without_dedup(self):
        claude = mock_source("claude-code", all_events=[create_event(date(2024, 1, 10), 100)])
        cursor = mock_source("cursor", all_events=[create_event(date(2024, 1, 10), 500, model="gpt-4o")])

        report = load_usage([claude, cursor], self.cache, now=NOW, today=TODAY)

        assert len(report.daily) == 1
        assert report.daily[0].total_input_tokens == 600
        assert report.by_source["claude-code"][0].total_input_tokens == 100
        assert report.by_source["cursor"][0].total_input_tokens == 500

    def test_missing_costs_are_priced(self):
        source = mock_source("claude-code", all_events=[
            create_event(date(2024, 1, 10), 1_000_000, model="claude-sonnet-4", cost=None),
        ])

        report = load_usage([source], self.cache, now=NOW, today=TODAY)

        assert report.daily[0].total_cost_usd == pytest.approx(3.0)

    def test_cache_write_failure_still_returns_summaries(self):
        source = mock_source("claude-code", all_events=[create_event(date(2024, 1, 10), 100)])
        cache = MagicMock(spec=DailySummaryCache)
        cache.exists.return_value = False
        cache.load_or_compute.side_effect = CacheWriteError(
            "claude-code", [DailySummary(date=date(2024, 1, 10), total_input_tokens=100)], "disk full"
        )

        report = load_usage([source], cache, now=NOW, today=TODAY)

        assert report.daily[0].total_input_tokens == 100
        assert "disk full" in report.warnings["claude-code"][0]

    def test_without_cache_aggregates_directly(self):
        source = mock_source("claude-code", all_events=[
            create_event(date(2024, 1, 10), 100),
            create_event(date(2024, 1, 10), 50),
        ])

        report = load_usage([source], None, now=NOW, today=TODAY)

        assert report.daily[0].total_input_tokens == 150

    def test_empty_sources_produce_empty_report(self):
        source = mock_source("claude-code", all_events=[])

        report = load_usage([source], self.cache, now=NOW, today=TODAY)

        assert report.daily == []
        assert not self.cache.exists("claude-code")

    def test_end_to_end_with_log_directory(self):
        """Real files through the real source and cache."""
        data_dir = Path(self.temp_dir) / "projects" / "demo"
        data_dir.mkdir(parents=True)
        lines = [
            {"timestamp": "2024-01-10T12:00:00Z", "requestId": "r1",
             "message": {"id": "m1", "model": "claude-opus-4-5-20251101",
                         "usage": {"input_tokens": 100, "output_tokens": 10}}},
            {"timestamp": "2024-01-10T12:00:00Z", "requestId": "r1",
             "message": {"id": "m1", "model": "claude-opus-4-5-20251101",
                         "usage": {"input_tokens": 100, "output_tokens": 10}}},
            {"timestamp": "2024-01-10T12:05:00Z", "type": "user", "message": {"content": "hi"}},
        ]
        (data_dir / "session.jsonl").write_text("\n".join(json.dumps(line) for line in lines), encoding="utf-8")
        source = JsonlSource("claude-code", Path(self.temp_dir) / "projects")

        report = load_usage([source], self.cache, now=NOW, today=TODAY)

        assert len(report.daily) == 1
        assert report.daily[0].total_input_tokens == 100
        assert "claude-opus-4-5" in report.daily[0].models
        assert report.daily[0].total_cost_usd == pytest.approx((100 * 5 + 10 * 25) / 1_000_000)
