"""Sources of raw fare data."""

from .base import PricingProvider
from .chain import ProviderChain
from .pricing_service import HttpPricingProvider

__all__ = ["HttpPricingProvider", "PricingProvider", "ProviderChain"]
