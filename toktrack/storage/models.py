"""
Data models for storage layer.

Defines usage events, daily summaries and the persisted cache record.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


UNKNOWN_MODEL = "unknown"


def _count_field(data: Dict[str, Any], key: str, default: Optional[int] = None) -> int:
    """Read a non-negative integer field of a cached record."""
    value = data[key] if default is None else data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise TypeError(f"'{key}' must be a non-negative integer")
    return value


@dataclass(frozen=True)
class UsageEvent:
    """Token usage of a single assistant turn.

    Produced by the line parser and consumed immediately by the aggregator.
    Cost may be missing; the pricing module fills it in where it can.
    """
    timestamp: datetime
    model: Optional[str]
    input_tokens: int
    output_tokens: int
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0
    cost_usd: Optional[float] = None
    message_id: Optional[str] = None
    request_id: Optional[str] = None

    @property
    def date(self) -> date:
        """Calendar date of the event (timestamp truncated to a date)."""
        return self.timestamp.date()

    @property
    def total_tokens(self) -> int:
        """All tokens consumed by the turn."""
        return (self.input_tokens + self.output_tokens
                + self.cache_read_tokens + self.cache_creation_tokens)

    @property
    def dedup_key(self) -> Optional[str]:
        """Key identifying the same logical event across files.

        Only available when both message and request ids are known.
        """
        if self.message_id is None or self.request_id is None:
            return None
        return f"{self.message_id}:{self.request_id}"


@dataclass
class ModelUsage:
    """Per-model token and cost breakdown."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0
    cost_usd: float = 0.0
    count: int = 0

    def add_event(self, event: UsageEvent) -> None:
        self.input_tokens += event.input_tokens
        self.output_tokens += event.output_tokens
        self.cache_read_tokens += event.cache_read_tokens
        self.cache_creation_tokens += event.cache_creation_tokens
        self.cost_usd += event.cost_usd or 0.0
        self.count += 1

    def merge(self, other: "ModelUsage") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cache_read_tokens += other.cache_read_tokens
        self.cache_creation_tokens += other.cache_creation_tokens
        self.cost_usd += other.cost_usd
        self.count += other.count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_read_tokens": self.cache_read_tokens,
            "cache_creation_tokens": self.cache_creation_tokens,
            "cost_usd": self.cost_usd,
            "count": self.count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelUsage":
        return cls(
            input_tokens=_count_field(data, "input_tokens"),
            output_tokens=_count_field(data, "output_tokens"),
            cache_read_tokens=_count_field(data, "cache_read_tokens", 0),
            cache_creation_tokens=_count_field(data, "cache_creation_tokens", 0),
            cost_usd=float(data.get("cost_usd", 0.0)),
            count=_count_field(data, "count", 0),
        )


@dataclass
class DailySummary:
    """Usage totals for one calendar date.

    Weekly and monthly buckets reuse this type with ``date`` set to the
    first day of the bucket.
    """
    date: date
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cache_read_tokens: int = 0
    total_cache_creation_tokens: int = 0
    total_cost_usd: float = 0.0
    models: Dict[str, ModelUsage] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return (self.total_input_tokens + self.total_output_tokens
                + self.total_cache_read_tokens + self.total_cache_creation_tokens)

    def add_event(self, event: UsageEvent, model_key: str) -> None:
        """Fold a single event into the totals."""
        self.total_input_tokens += event.input_tokens
        self.total_output_tokens += event.output_tokens
        self.total_cache_read_tokens += event.cache_read_tokens
        self.total_cache_creation_tokens += event.cache_creation_tokens
        self.total_cost_usd += event.cost_usd or 0.0
        self.models.setdefault(model_key, ModelUsage()).add_event(event)

    def merge(self, other: "DailySummary") -> None:
        """Add another summary's totals and model breakdown into this one."""
        self.total_input_tokens += other.total_input_tokens
        self.total_output_tokens += other.total_output_tokens
        self.total_cache_read_tokens += other.total_cache_read_tokens
        self.total_cache_creation_tokens += other.total_cache_creation_tokens
        self.total_cost_usd += other.total_cost_usd
        for name, usage in other.models.items():
            self.models.setdefault(name, ModelUsage()).merge(usage)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_cache_read_tokens": self.total_cache_read_tokens,
            "total_cache_creation_tokens": self.total_cache_creation_tokens,
            "total_cost_usd": self.total_cost_usd,
            "models": {name: usage.to_dict() for name, usage in self.models.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DailySummary":
        """Build a summary from its JSON form.

        Raises:
            KeyError, TypeError, ValueError: If the data is malformed
        """
        models = data.get("models") or {}
        if not isinstance(models, dict):
            raise TypeError("'models' must be a mapping")
        return cls(
            date=date.fromisoformat(data["date"]),
            total_input_tokens=_count_field(data, "total_input_tokens"),
            total_output_tokens=_count_field(data, "total_output_tokens"),
            total_cache_read_tokens=_count_field(data, "total_cache_read_tokens"),
            total_cache_creation_tokens=_count_field(data, "total_cache_creation_tokens"),
            total_cost_usd=float(data["total_cost_usd"]),
            models={name: ModelUsage.from_dict(usage) for name, usage in models.items()},
        )


@dataclass(frozen=True)
class TotalSummary:
    """Running aggregate over every event of a run."""
    total_input_tokens: int
    total_output_tokens: int
    total_cache_read_tokens: int
    total_cache_creation_tokens: int
    total_cost_usd: float
    entry_count: int
    day_count: int

    @property
    def total_tokens(self) -> int:
        return (self.total_input_tokens + self.total_output_tokens
                + self.total_cache_read_tokens + self.total_cache_creation_tokens)


@dataclass(frozen=True)
class StatsData:
    """Headline statistics derived from daily summaries."""
    total_tokens: int
    total_cost_usd: float
    active_days: int
    average_tokens_per_day: float
    average_cost_per_day: float
    peak_day: Optional[date] = None
    peak_day_tokens: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tokens": self.total_tokens,
            "total_cost_usd": self.total_cost_usd,
            "active_days": self.active_days,
            "average_tokens_per_day": self.average_tokens_per_day,
            "average_cost_per_day": self.average_cost_per_day,
            "peak_day": self.peak_day.isoformat() if self.peak_day else None,
            "peak_day_tokens": self.peak_day_tokens,
        }


@dataclass
class CacheRecord:
    """Durable snapshot of one source's daily summaries.

    Always rewritten in full; never partially updated.
    """
    source: str
    updated_at: int
    summaries: List[DailySummary] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cli": self.source,
            "updated_at": self.updated_at,
            "summaries": [summary.to_dict() for summary in self.summaries],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheRecord":
        if not isinstance(data, dict):
            raise TypeError("cache record must be a JSON object")
        summaries = data["summaries"]
        if not isinstance(summaries, list):
            raise TypeError("'summaries' must be a list")
        return cls(
            source=str(data["cli"]),
            updated_at=int(data["updated_at"]),
            summaries=[DailySummary.from_dict(item) for item in summaries],
        )
