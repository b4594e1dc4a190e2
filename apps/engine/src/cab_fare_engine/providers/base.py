"""Abstract base class for all pricing providers."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cab_fare_core.schemas import FareParams

    from cab_fare_engine.cancellation import CancellationToken


class PricingProvider(abc.ABC):
    """Base class that every source of raw fare data must implement."""

    name: str = "provider"

    @abc.abstractmethod
    async def fetch_raw(self, params: FareParams, token: CancellationToken) -> dict:
        """Return the raw Pricing Service payload for *params*.

        Raises :class:`~cab_fare_engine.errors.Cancelled` once *token* is
        cancelled, :class:`~cab_fare_engine.errors.MalformedResponse` for
        non-JSON bodies and :class:`~cab_fare_engine.errors.PricingServiceError`
        for other transport failures.
        """

    @abc.abstractmethod
    async def health_check(self) -> bool:
        """Return True if the source is reachable."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release any held resources (HTTP clients, etc.)."""
