"""
Error types raised by toktrack.

Only I/O problems are signalled with exceptions; malformed log lines are
skipped silently by the parser.
"""

from typing import List

from toktrack.storage.models import DailySummary


class ToktrackError(Exception):
    """Base class for toktrack errors."""


class SourceReadError(ToktrackError):
    """Raised when a source cannot produce usage events."""
    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class CacheWriteError(ToktrackError):
    """Raised when a source's cache file cannot be written.

    Carries the merged summaries so callers can still report them.
    """
    def __init__(self, source: str, summaries: List[DailySummary], message: str):
        super().__init__(f"cache for {source} failed: {message}")
        self.source = source
        self.summaries = summaries
