"""Pydantic-compatible enums for fare schemas (transport-independent)."""

from enum import StrEnum


class TripType(StrEnum):
    """Trip type; each one has its own pricing formula."""

    LOCAL = "local"
    OUTSTATION = "outstation"
    AIRPORT = "airport"
    TOUR = "tour"


class TripMode(StrEnum):
    """Direction of the trip."""

    ONE_WAY = "one-way"
    ROUND_TRIP = "round-trip"


class FareEventName(StrEnum):
    """Names of the events broadcast to fare observers."""

    FARE_CALCULATED = "fare-calculated"
    FARE_UPDATE = "fare-update"


class FareSource(StrEnum):
    """Where a fare handed to a caller came from."""

    PRICING_SERVICE = "pricing-service"
    CACHE = "cache"
    LAST_KNOWN = "last-known"
    VALIDATED = "validated"
    PLACEHOLDER = "placeholder"
