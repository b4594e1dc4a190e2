"""Vehicle identity and pricing tier lookups."""

from .catalog import PricingTierCatalog
from .resolver import VehicleIdentityResolver, normalize_package_id

__all__ = ["PricingTierCatalog", "VehicleIdentityResolver", "normalize_package_id"]
