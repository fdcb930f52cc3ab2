"""
JSONL log sources.

Discovers the log files of one assistant CLI and parses them into usage
events.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Union

from toktrack.core.errors import SourceReadError
from toktrack.core.parser import deduplicate, parse_buffer
from toktrack.storage.models import UsageEvent

logger = logging.getLogger(__name__)

DEFAULT_PATTERN = "**/*.jsonl"


class JsonlSource:
    """A named directory of JSONL usage logs."""

    def __init__(self, name: str, data_dir: Union[str, Path], pattern: str = DEFAULT_PATTERN):
        self.name = name
        self.data_dir = Path(data_dir)
        self.pattern = pattern

    def __repr__(self) -> str:
        return f"JsonlSource(name={self.name!r}, data_dir={str(self.data_dir)!r})"

    def parse_file(self, path: Path) -> List[UsageEvent]:
        """Parse every usage event in one file.

        Raises:
            SourceReadError: If the file cannot be read
        """
        try:
            content = path.read_bytes()
        except OSError as e:
            raise SourceReadError(self.name, f"cannot read {path}: {e}") from e
        return parse_buffer(content)

    def parse_all(self) -> List[UsageEvent]:
        """Parse every log file of the source.

        Raises:
            SourceReadError: If the data directory is missing or a file
                cannot be read
        """
        return self._parse_files(self._find_files())

    def parse_recent_files(self, since: datetime) -> List[UsageEvent]:
        """Parse only the files modified at or after ``since``.

        Raises:
            SourceReadError: If the data directory is missing or a file
                cannot be read
        """
        cutoff = since.timestamp()
        recent = []
        for path in self._find_files():
            try:
                modified = path.stat().st_mtime
            except OSError as e:
                raise SourceReadError(self.name, f"cannot stat {path}: {e}") from e
            if modified >= cutoff:
                recent.append(path)
        return self._parse_files(recent)

    def _find_files(self) -> List[Path]:
        if not self.data_dir.is_dir():
            raise SourceReadError(self.name, f"data directory not found: {self.data_dir}")
        return sorted(path for path in self.data_dir.glob(self.pattern) if path.is_file())

    def _parse_files(self, paths: Iterable[Path]) -> List[UsageEvent]:
        events: List[UsageEvent] = []
        file_count = 0
        for path in paths:
            events.extend(self.parse_file(path))
            file_count += 1
        unique = deduplicate(events)
        logger.debug(
            "%s: parsed %d events (%d duplicates dropped) from %d files",
            self.name, len(unique), len(events) - len(unique), file_count,
        )
        return unique
