"""Core schemas for the cab fare engine."""

from .enums import FareEventName, FareSource, TripMode, TripType
from .events import FareEvent
from .fare import CacheEntry, FareDetails, FareParams, PricingTier, ValidatedFare

__all__ = [
    "CacheEntry",
    "FareDetails",
    "FareEvent",
    "FareEventName",
    "FareParams",
    "FareSource",
    "PricingTier",
    "TripMode",
    "TripType",
    "ValidatedFare",
]
