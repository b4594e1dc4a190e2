"""Fare query, fare result and cache envelope DTOs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .enums import FareSource, TripMode, TripType


class FareParams(BaseModel):
    """Identifies a single pricing query."""

    model_config = ConfigDict(frozen=True)

    vehicle_id: str
    trip_type: TripType
    distance_km: float = Field(default=0.0, ge=0)
    trip_mode: TripMode = TripMode.ONE_WAY
    package_id: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def request_key(self) -> str:
        """Key shared by every query with the same normalised fields."""
        return (
            f"{self.trip_type.value}:{self.vehicle_id}:{self.distance_km:g}:"
            f"{self.trip_mode.value}:{self.package_id or ''}"
        )


class FareDetails(BaseModel):
    """A computed fare. A ``total_price`` of 0 means "unpriced"."""

    base_price: float = Field(default=0.0, ge=0)
    total_price: float = Field(default=0.0, ge=0)
    extra_km_charge: float | None = None
    driver_allowance: float | None = None
    night_halt_charge: float | None = None
    package_price: float | None = None
    breakdown: dict[str, float | str] = Field(default_factory=dict)

    @classmethod
    def zero(cls) -> FareDetails:
        """Placeholder handed out when no usable fare exists."""
        return cls()

    @property
    def is_priced(self) -> bool:
        return self.total_price > 0


class CacheEntry(BaseModel):
    """Envelope persisted in both storage tiers."""

    timestamp: float
    fare: FareDetails
    checksum: str

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_expired(self, now: float, ttl: float) -> bool:
        return self.age(now) >= ttl


class ValidatedFare(CacheEntry):
    """A fare already shown to (or confirmed by) the user."""

    canonical_id: str
    trip_type: TripType
    source: FareSource = FareSource.PRICING_SERVICE


class PricingTier(BaseModel):
    """Per-category default rates and sanity bounds."""

    model_config = ConfigDict(frozen=True)

    base_price: float
    price_per_km: float
    driver_allowance: float
    category: str
    display_name: str
    min_fare: float = 500
    max_fare: float = 20000
