"""Cab fare engine: resolve, compute, cache and reconcile taxi fares."""

from cab_fare_engine.engine import FareEngine, build_engine
from cab_fare_engine.errors import (
    FareEngineError,
    InvalidVehicleId,
    MalformedResponse,
    PricingServiceError,
)

__all__ = [
    "FareEngine",
    "FareEngineError",
    "InvalidVehicleId",
    "MalformedResponse",
    "PricingServiceError",
    "build_engine",
]
