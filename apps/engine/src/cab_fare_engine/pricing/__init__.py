"""Fare computation from raw Pricing Service data."""

from .calculator import FareCalculator

__all__ = ["FareCalculator"]
