"""
Pricing calculations and rate management.

Fills in the cost of usage events whose logs did not record one.
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from toktrack.core.normalizer import normalize_model_name
from toktrack.storage.models import UsageEvent


MILLION = Decimal("1000000")


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a model family, in USD per million tokens."""
    input_per_mtok: Decimal
    output_per_mtok: Decimal
    cache_write_per_mtok: Decimal
    cache_read_per_mtok: Decimal


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table keyed by model family."""
    prices: Dict[str, ModelPricing]

    def find_pricing(self, model: Optional[str]) -> Optional[ModelPricing]:
        """Return the pricing whose family name occurs in the model, if any."""
        if not model:
            return None
        normalized = normalize_model_name(model).lower()
        for family, pricing in self.prices.items():
            if family in normalized:
                return pricing
        return None

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a specific model.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model

        Raises:
            ValueError: If model is not supported
        """
        pricing = self.find_pricing(model)
        if pricing is None:
            raise ValueError(f"Unsupported model: {model}")
        return pricing


# Fixed pricing table - no dynamic fetching
PRICING_TABLE = PricingTable({
    "opus": ModelPricing(
        input_per_mtok=Decimal("5.00"),
        output_per_mtok=Decimal("25.00"),
        cache_write_per_mtok=Decimal("6.25"),
        cache_read_per_mtok=Decimal("0.50"),
    ),
    "sonnet": ModelPricing(
        input_per_mtok=Decimal("3.00"),
        output_per_mtok=Decimal("15.00"),
        cache_write_per_mtok=Decimal("3.75"),
        cache_read_per_mtok=Decimal("0.30"),
    ),
    "haiku": ModelPricing(
        input_per_mtok=Decimal("1.00"),
        output_per_mtok=Decimal("5.00"),
        cache_write_per_mtok=Decimal("1.25"),
        cache_read_per_mtok=Decimal("0.10"),
    ),
})


def calculate_cost(event: UsageEvent, table: PricingTable = PRICING_TABLE) -> float:
    """Calculate the cost of a usage event from its token counts.

    Args:
        event: Usage event with a model identifier
        table: Pricing table to use

    Returns:
        Cost in USD

    Raises:
        ValueError: If the event's model is not supported
    """
    pricing = table.get_pricing(event.model or "")

    cost = (
        Decimal(event.input_tokens) * pricing.input_per_mtok
        + Decimal(event.output_tokens) * pricing.output_per_mtok
        + Decimal(event.cache_creation_tokens) * pricing.cache_write_per_mtok
        + Decimal(event.cache_read_tokens) * pricing.cache_read_per_mtok
    ) / MILLION

    return float(cost)


def apply_pricing(events: Iterable[UsageEvent], table: PricingTable = PRICING_TABLE) -> List[UsageEvent]:
    """Fill in missing costs.

    Costs recorded by the source are kept. Events for unknown models keep a
    missing cost, which aggregates as zero.
    """
    priced = []
    for event in events:
        if event.cost_usd is None and table.find_pricing(event.model) is not None:
            event = replace(event, cost_usd=calculate_cost(event, table))
        priced.append(event)
    return priced
