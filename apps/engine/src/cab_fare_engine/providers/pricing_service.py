"""Pricing provider backed by the Pricing Service HTTP endpoints."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from cab_fare_core.schemas import TripType

from cab_fare_engine.config import settings
from cab_fare_engine.errors import PricingServiceError

from .base import PricingProvider
from .client import PricingServiceClient

if TYPE_CHECKING:
    import httpx

    from cab_fare_core.schemas import FareParams

    from cab_fare_engine.cancellation import CancellationToken
    from cab_fare_engine.config import EngineSettings

logger = logging.getLogger(__name__)


def default_endpoints(config: EngineSettings | None = None) -> dict[TripType, str]:
    cfg = config or settings
    return {
        TripType.LOCAL: cfg.local_endpoint,
        TripType.OUTSTATION: cfg.outstation_endpoint,
        TripType.AIRPORT: cfg.airport_endpoint,
        TripType.TOUR: cfg.tour_endpoint,
    }


def build_query(params: FareParams, *, force_refresh: bool = True) -> dict[str, object]:
    """Query string for one fare request; ``_t`` defeats intermediary caches."""
    query: dict[str, object] = {
        "vehicle_id": params.vehicle_id,
        "forceRefresh": "true" if force_refresh else "false",
        "_t": int(time.time() * 1000),
    }
    if params.trip_type in (TripType.OUTSTATION, TripType.AIRPORT) and params.distance_km > 0:
        query["distance"] = f"{params.distance_km:g}"
    if params.trip_type == TripType.OUTSTATION:
        query["trip_mode"] = params.trip_mode.value
    if params.trip_type == TripType.LOCAL and params.package_id:
        query["package_id"] = params.package_id
    return query


class HttpPricingProvider(PricingProvider):
    """Fetches raw fares from one Pricing Service deployment."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        endpoints: dict[TripType, str] | None = None,
        timeout: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = PricingServiceClient(
            base_url=base_url, timeout=timeout, transport=transport
        )
        self._endpoints = endpoints or default_endpoints()
        self.name = f"http:{self._client.base_url}"

    # ------------------------------------------------------------------
    # PricingProvider interface
    # ------------------------------------------------------------------

    async def fetch_raw(self, params: FareParams, token: CancellationToken) -> dict:
        token.raise_if_cancelled()
        endpoint = self._endpoints[params.trip_type]
        raw = await self._client.get_json(endpoint, build_query(params))
        token.raise_if_cancelled()
        return raw

    async def health_check(self) -> bool:
        """Return True if the local fares endpoint answers with JSON."""
        try:
            await self._client.get_json(
                self._endpoints[TripType.LOCAL], {"_t": int(time.time() * 1000)}
            )
        except PricingServiceError:
            return False
        return True

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        await self._client.close()
