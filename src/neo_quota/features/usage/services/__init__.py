from .pricing import UnitPriceTable, PricingFunction, linear_pricing
from .sample_buffer import SampleBuffer
from .aggregator_service import UsageAggregator

__all__ = [
    "UnitPriceTable",
    "PricingFunction",
    "linear_pricing",
    "SampleBuffer",
    "UsageAggregator",
]
