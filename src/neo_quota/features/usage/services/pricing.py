"""Unit prices and cost functions."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, Optional

from ....config.constants import QuotaResources
from ....core.value_objects import GIB

# pricing(resource_name, billable_quantity, unit_price) -> cost
PricingFunction = Callable[[str, Decimal, Decimal], Decimal]

COST_QUANTUM = Decimal("0.000001")

# Usage resource name -> (price key, divisor turning base units into billing units).
# Only requests are priced; limits of the same resource carry no price so a
# quota setting both is billed once.
BILLING_UNITS: Dict[str, tuple] = {
    QuotaResources.LIMITS_CPU: (None, Decimal(1)),
    QuotaResources.REQUESTS_CPU: ("cpu", Decimal(1)),
    QuotaResources.LIMITS_MEMORY: (None, GIB),
    QuotaResources.REQUESTS_MEMORY: ("memory", GIB),
    QuotaResources.PODS: ("pods", Decimal(1)),
    "cpu": ("cpu", Decimal(1)),
    "memory": ("memory", GIB),
}


def linear_pricing(resource_name: str, quantity: Decimal, unit_price: Decimal) -> Decimal:
    """Cost proportional to the billable quantity."""
    return quantity * unit_price


@dataclass
class UnitPriceTable:
    """Prices per billing unit-hour (core-hour, GiB-hour, pod-hour)."""

    prices: Dict[str, Decimal] = field(default_factory=dict)
    pricing: PricingFunction = linear_pricing

    def __post_init__(self):
        self.prices = {key: Decimal(str(value)) for key, value in self.prices.items()}

    def price_key(self, resource_name: str) -> Optional[str]:
        entry = BILLING_UNITS.get(resource_name)
        return entry[0] if entry else None

    def unit_price(self, resource_name: str) -> Decimal:
        key = self.price_key(resource_name)
        if key is None:
            return Decimal(0)
        return self.prices.get(key, Decimal(0))

    def billable_quantity(self, resource_name: str, mean_used: Decimal, hours: Decimal) -> Decimal:
        """Mean usage over the window in billing units, times the window hours."""
        entry = BILLING_UNITS.get(resource_name)
        divisor = entry[1] if entry else Decimal(1)
        return (mean_used / divisor) * hours

    def cost(self, resource_name: str, mean_used: Decimal, hours: Decimal) -> Decimal:
        quantity = self.billable_quantity(resource_name, mean_used, hours)
        cost = self.pricing(resource_name, quantity, self.unit_price(resource_name))
        return Decimal(cost).quantize(COST_QUANTUM)
