"""
Log line parsing.

Turns raw JSONL bytes into usage events. Parsing is tolerant: anything that
is not an assistant turn with usage data is skipped without an error.
"""

import json
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from toktrack.storage.models import UsageEvent


_RFC3339 = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[Tt ](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:([Zz])|([+-])(\d{2}):(\d{2}))$"
)


class _Reject(Exception):
    """Internal signal: the line does not describe a usage event."""


def split_lines(buffer: bytes) -> Iterator[bytes]:
    """Split a file's content into non-empty lines.

    A final line without a trailing newline is included; empty segments
    produced by consecutive newlines are skipped.
    """
    start = 0
    length = len(buffer)
    while start < length:
        end = buffer.find(b"\n", start)
        if end == -1:
            end = length
        if end > start:
            yield buffer[start:end]
        start = end + 1


def parse_buffer(buffer: bytes) -> List[UsageEvent]:
    """Parse every usage event contained in a JSONL buffer."""
    events = []
    for line in split_lines(buffer):
        event = parse_line(line)
        if event is not None:
            events.append(event)
    return events


def parse_line(line: Union[bytes, str]) -> Optional[UsageEvent]:
    """Decode one log record into a usage event.

    Only assistant turns carrying ``message.usage`` produce an event. Empty
    lines, invalid JSON and records with missing or mistyped required fields
    yield ``None``. An unparseable timestamp is replaced by the current time.

    Args:
        line: Raw line content without the newline

    Returns:
        The usage event, or None if the line should be skipped
    """
    if not line:
        return None

    try:
        data = json.loads(line)
    except (ValueError, RecursionError):
        return None

    try:
        return _build_event(data)
    except _Reject:
        return None


def _build_event(data: Any) -> Optional[UsageEvent]:
    if not isinstance(data, dict):
        raise _Reject()

    raw_timestamp = data.get("timestamp")
    if not isinstance(raw_timestamp, str):
        raise _Reject()
    request_id = _optional_str(data, "requestId")
    cost_usd = _optional_number(data, "costUSD")

    message = data.get("message")
    if message is None:
        return None
    if not isinstance(message, dict):
        raise _Reject()
    model = _optional_str(message, "model")
    message_id = _optional_str(message, "id")

    usage = message.get("usage")
    if usage is None:
        return None
    if not isinstance(usage, dict):
        raise _Reject()

    timestamp = _parse_timestamp(raw_timestamp) or datetime.now(timezone.utc)

    return UsageEvent(
        timestamp=timestamp,
        model=model,
        input_tokens=_required_count(usage, "input_tokens"),
        output_tokens=_required_count(usage, "output_tokens"),
        cache_read_tokens=_optional_count(usage, "cache_read_input_tokens"),
        cache_creation_tokens=_optional_count(usage, "cache_creation_input_tokens"),
        cost_usd=cost_usd,
        message_id=message_id,
        request_id=request_id,
    )


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _required_count(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if not _is_count(value):
        raise _Reject()
    return value


def _optional_count(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if not _is_count(value):
        raise _Reject()
    return value


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise _Reject()
    return value


def _optional_number(data: Dict[str, Any], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _Reject()
    return float(value)


def _parse_timestamp(value: str) -> Optional[datetime]:
    """Strict RFC 3339 parsing; returns None when the value does not conform."""
    match = _RFC3339.match(value)
    if match is None:
        return None

    year, month, day, hour, minute, second, fraction, zulu, sign, off_h, off_m = match.groups()
    microsecond = int((fraction or "0")[:6].ljust(6, "0"))
    if zulu:
        tz = timezone.utc
    else:
        if int(off_m) > 59:
            return None
        offset = timedelta(hours=int(off_h), minutes=int(off_m))
        if offset >= timedelta(hours=24):
            return None
        tz = timezone(offset if sign == "+" else -offset)

    try:
        parsed = datetime(int(year), int(month), int(day), int(hour), int(minute),
                          int(second), microsecond, tzinfo=tz)
        # Offsets can push the instant outside the supported year range
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def deduplicate(events: Iterable[UsageEvent]) -> List[UsageEvent]:
    """Drop repeated events that share a dedup key.

    The first occurrence wins. Events without a key are always kept.
    """
    seen = set()
    unique = []
    for event in events:
        key = event.dedup_key
        if key is not None:
            if key in seen:
                continue
            seen.add(key)
        unique.append(event)
    return unique
