"""
Percentile-based intensity bucketing.

Classifies daily token volumes into intensity tiers for the usage heatmap.
"""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional


HEATMAP_WEEKS = 52


class Intensity(Enum):
    """Heatmap intensity tiers, from no usage to the top quartile."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    MAX = "max"

    @property
    def char(self) -> str:
        return _INTENSITY_CHARS[self]

    @property
    def color(self) -> str:
        """Rich color name used when rendering the tier."""
        return _INTENSITY_COLORS[self]


_INTENSITY_CHARS = {
    Intensity.NONE: " ",
    Intensity.LOW: "░",
    Intensity.MEDIUM: "▒",
    Intensity.HIGH: "▓",
    Intensity.MAX: "█",
}

_INTENSITY_COLORS = {
    Intensity.NONE: "bright_black",
    Intensity.LOW: "green",
    Intensity.MEDIUM: "yellow",
    Intensity.HIGH: "dark_orange",
    Intensity.MAX: "red",
}


@dataclass(frozen=True)
class Percentiles:
    """Quartile thresholds over non-zero daily values."""
    p25: int
    p50: int
    p75: int

    def intensity(self, value: int) -> Intensity:
        """Map a value onto an intensity tier."""
        if value == 0:
            return Intensity.NONE
        if value <= self.p25:
            return Intensity.LOW
        if value <= self.p50:
            return Intensity.MEDIUM
        if value <= self.p75:
            return Intensity.HIGH
        return Intensity.MAX


def calculate_percentiles(values: Iterable[int]) -> Optional[Percentiles]:
    """Compute nearest-rank quartiles, ignoring zero values.

    Zero usage is its own tier rather than a statistical sample. For each
    quantile q the threshold is the sorted value at index ``ceil(n * q) - 1``
    (clamped to the last index); no interpolation is done.

    Args:
        values: Daily totals

    Returns:
        Percentiles, or None when there is no non-zero value
    """
    non_zero = sorted(v for v in values if v > 0)
    if not non_zero:
        return None

    count = len(non_zero)

    def nearest_rank(q: float) -> int:
        index = min(max(math.ceil(count * q) - 1, 0), count - 1)
        return non_zero[index]

    return Percentiles(
        p25=nearest_rank(0.25),
        p50=nearest_rank(0.50),
        p75=nearest_rank(0.75),
    )


@dataclass(frozen=True)
class HeatmapCell:
    date: date
    tokens: int
    intensity: Intensity


def build_heatmap_grid(
    daily_tokens: Dict[date, int],
    today: date,
    weeks: int = HEATMAP_WEEKS,
) -> List[List[Optional[HeatmapCell]]]:
    """Lay out daily totals as a weekday-by-week grid.

    Rows are Monday..Sunday, columns are weeks with the last column holding
    the week that contains ``today``. Future dates are left as None. Tiers
    come from the percentiles over all supplied values.
    """
    percentiles = calculate_percentiles(daily_tokens.values())

    current_week = today - timedelta(days=today.weekday())
    grid_start = current_week - timedelta(weeks=weeks - 1)

    grid: List[List[Optional[HeatmapCell]]] = [[None] * weeks for _ in range(7)]
    for week_index in range(weeks):
        for day_index in range(7):
            day = grid_start + timedelta(weeks=week_index, days=day_index)
            if day > today:
                continue
            tokens = daily_tokens.get(day, 0)
            intensity = percentiles.intensity(tokens) if percentiles else Intensity.NONE
            grid[day_index][week_index] = HeatmapCell(date=day, tokens=tokens, intensity=intensity)
    return grid
