"""
Unit tests for pricing calculations.

Tests cost accuracy, model lookup, and filling in missing costs.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from toktrack.core.pricing import PRICING_TABLE, apply_pricing, calculate_cost
from toktrack.storage.models import UsageEvent


def create_event(model, input_tokens=0, output_tokens=0, cache_read=0, cache_creation=0, cost=None) -> UsageEvent:
    return UsageEvent(
        timestamp=datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc),
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_read_tokens=cache_read,
        cache_creation_tokens=cache_creation,
        cost_usd=cost,
    )


class TestPricingTable:
    """Test pricing table functionality."""

    def test_get_supported_model(self):
        """Verify pricing lookup by model family."""
        pricing = PRICING_TABLE.get_pricing("claude-sonnet-4-20250514")
        assert pricing.input_per_mtok == Decimal("3.00")
        assert pricing.output_per_mtok == Decimal("15.00")

    def test_dotted_model_name(self):
        pricing = PRICING_TABLE.get_pricing("claude-opus-4.5")
        assert pricing.output_per_mtok == Decimal("25.00")

    def test_unsupported_model_raises_error(self):
        """Verify error for unknown models."""
        with pytest.raises(ValueError, match="Unsupported model: unknown-model"):
            PRICING_TABLE.get_pricing("unknown-model")

    def test_find_pricing_without_model(self):
        assert PRICING_TABLE.find_pricing(None) is None
        assert PRICING_TABLE.find_pricing("") is None


class TestCostCalculation:
    """Test cost calculation accuracy."""

    def test_exact_cost_opus(self):
        """1M input at $5 + 1M output at $25."""
        event = create_event("claude-opus-4-5", input_tokens=1_000_000, output_tokens=1_000_000)
        assert calculate_cost(event) == 30.0

    def test_cache_tokens_are_priced(self):
        """Cache writes and reads use their own rates."""
        event = create_event("claude-haiku-4-5", cache_creation=1_000_000, cache_read=2_000_000)
        # 1M * $1.25 + 2M * $0.10
        assert calculate_cost(event) == pytest.approx(1.45)

    def test_small_usage(self):
        event = create_event("claude-sonnet-4", input_tokens=1000, output_tokens=500)
        # 1000 * 3 / 1M + 500 * 15 / 1M
        assert calculate_cost(event) == pytest.approx(0.0105)

    def test_unsupported_model(self):
        with pytest.raises(ValueError):
            calculate_cost(create_event("gpt-4o", input_tokens=10))


class TestApplyPricing:
    """Test filling in costs before aggregation."""

    def test_missing_cost_is_filled(self):
        events = apply_pricing([create_event("claude-sonnet-4", input_tokens=1_000_000)])
        assert events[0].cost_usd == pytest.approx(3.0)

    def test_recorded_cost_is_kept(self):
        events = apply_pricing([create_event("claude-sonnet-4", input_tokens=1_000_000, cost=0.5)])
        assert events[0].cost_usd == 0.5

    def test_unknown_model_keeps_missing_cost(self):
        events = apply_pricing([create_event("gpt-4o", input_tokens=10), create_event(None, input_tokens=10)])
        assert [e.cost_usd for e in events] == [None, None]

    def test_original_events_unchanged(self):
        original = create_event("claude-sonnet-4", input_tokens=10)
        apply_pricing([original])
        assert original.cost_usd is None
