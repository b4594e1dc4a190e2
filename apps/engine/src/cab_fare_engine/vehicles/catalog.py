"""Static per-category rates and fare sanity bounds."""

from __future__ import annotations

import logging

from cab_fare_core.schemas import PricingTier, TripType

logger = logging.getLogger(__name__)

# (local minimum, airport minimum, outstation and tour minimum, maximum)
_CATEGORY_BOUNDS: dict[str, tuple[float, float, float, float]] = {
    "sedan": (1000, 800, 2000, 8000),
    "suv": (1500, 1000, 2500, 12000),
    "mpv": (2000, 1200, 3000, 15000),
    "premium_mpv": (2000, 1200, 3000, 15000),
    "luxury": (3000, 1500, 4000, 20000),
    "tempo": (4000, 2500, 5000, 25000),
}
_DEFAULT_BOUNDS = (500, 500, 500, 20000)


def _tier(
    base_price: float,
    price_per_km: float,
    driver_allowance: float,
    category: str,
    display_name: str,
) -> PricingTier:
    _, _, minimum, maximum = _CATEGORY_BOUNDS.get(category, _DEFAULT_BOUNDS)
    return PricingTier(
        base_price=base_price,
        price_per_km=price_per_km,
        driver_allowance=driver_allowance,
        category=category,
        display_name=display_name,
        min_fare=minimum,
        max_fare=maximum,
    )


# Insertion order matters for substring matching: more specific keys first.
_TIERS: dict[str, PricingTier] = {
    "innova_hycross": _tier(5730, 22, 300, "premium_mpv", "Innova Hycross"),
    "innova_crysta": _tier(5500, 20, 300, "mpv", "Innova Crysta"),
    "innova": _tier(5500, 20, 300, "mpv", "Innova"),
    "ertiga": _tier(5400, 18, 250, "suv", "Ertiga"),
    "xuv": _tier(5400, 18, 250, "suv", "XUV"),
    "sedan": _tier(3900, 13, 250, "sedan", "Sedan"),
    "dzire": _tier(3900, 13, 250, "sedan", "Dzire"),
    "etios": _tier(3900, 13, 250, "sedan", "Etios"),
    "tempo": _tier(9000, 22, 300, "tempo", "Tempo Traveller"),
    "traveller": _tier(9000, 22, 300, "tempo", "Tempo Traveller"),
    "urbania": _tier(9000, 22, 300, "tempo", "Urbania"),
    "luxury": _tier(5000, 16, 300, "luxury", "Luxury Sedan"),
}

_DEFAULT_TIER = _tier(3900, 13, 250, "sedan", "Standard Vehicle")


class PricingTierCatalog:
    """Bounds checker keyed by canonical vehicle id.

    Rates here are defaults for display and sanity checks only; live
    pricing always comes from the Pricing Service.
    """

    def __init__(self, tiers: dict[str, PricingTier] | None = None) -> None:
        self._tiers = dict(_TIERS if tiers is None else tiers)

    def tier_for(self, canonical_id: str) -> PricingTier:
        """Exact match, then substring match, then the sedan tier."""
        tier = self._tiers.get(canonical_id)
        if tier is not None:
            return tier

        for key, candidate in self._tiers.items():
            if key in canonical_id:
                logger.debug("Partial tier match for %s via %s", canonical_id, key)
                return candidate

        logger.debug("No tier match for %s, using default sedan tier", canonical_id)
        return _DEFAULT_TIER

    def valid_range(
        self, canonical_id: str, trip_type: TripType
    ) -> tuple[float, float]:
        """Return ``(min_fare, max_fare)`` for the vehicle's category and trip type."""
        category = self.tier_for(canonical_id).category
        local_min, airport_min, other_min, maximum = _CATEGORY_BOUNDS.get(
            category, _DEFAULT_BOUNDS
        )
        if trip_type == TripType.LOCAL:
            return local_min, maximum
        if trip_type == TripType.AIRPORT:
            return airport_min, maximum
        return other_min, maximum
