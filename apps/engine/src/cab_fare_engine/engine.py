"""Session-scoped facade wiring every fare component together."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from cab_fare_core.schemas import FareSource

from cab_fare_engine.cache.fare_cache import FareCache
from cab_fare_engine.cache.keys import VALIDATED_PREFIX
from cab_fare_engine.cache.stores import MemoryStore, RedisStore
from cab_fare_engine.cache.tiers import TieredStore
from cab_fare_engine.config import settings
from cab_fare_engine.coordinator import RequestCoordinator
from cab_fare_engine.events import FareEventBus
from cab_fare_engine.pricing import FareCalculator
from cab_fare_engine.providers import HttpPricingProvider, ProviderChain
from cab_fare_engine.providers.pricing_service import default_endpoints
from cab_fare_engine.reconciliation import ReconciliationValidator
from cab_fare_engine.vehicles import PricingTierCatalog, VehicleIdentityResolver

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    import httpx

    from cab_fare_core.schemas import FareDetails, FareParams, TripType, ValidatedFare

    from cab_fare_engine.cache.stores import KeyValueStore
    from cab_fare_engine.config import EngineSettings
    from cab_fare_engine.events import FareHandler
    from cab_fare_engine.providers import PricingProvider

logger = logging.getLogger(__name__)


class FareEngine:
    """Owns the resolver, catalog, calculator, stores, cache, validator,
    event bus and coordinator for one session.

    Use as an async context manager, or call :meth:`close` when done.
    """

    def __init__(
        self,
        provider: PricingProvider,
        *,
        short_store: KeyValueStore | None = None,
        durable_store: KeyValueStore | None = None,
        resolver: VehicleIdentityResolver | None = None,
        catalog: PricingTierCatalog | None = None,
        calculator: FareCalculator | None = None,
        config: EngineSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        cfg = config or settings
        self.provider = provider
        self.resolver = resolver or VehicleIdentityResolver(
            known_ids=cfg.known_vehicle_ids, aliases=cfg.vehicle_aliases
        )
        self.catalog = catalog or PricingTierCatalog()
        self.calculator = calculator or FareCalculator()
        self.store = TieredStore(
            short_store
            or MemoryStore(ttl=cfg.short_tier_ttl, name="session", clock=wall_clock),
            durable_store
            or MemoryStore(ttl=cfg.durable_retention, name="durable", clock=wall_clock),
        )
        self.cache = FareCache(
            self.store,
            ttl=cfg.cache_ttl,
            clear_cooldown=cfg.clear_cooldown,
            force_refresh_window=cfg.force_refresh_window,
            clock=clock,
            wall_clock=wall_clock,
        )
        self.validator = ReconciliationValidator(
            self.store,
            self.catalog,
            tolerance=cfg.reconcile_tolerance,
            sync_tolerance=cfg.sync_tolerance,
            wall_clock=wall_clock,
        )
        self.events = FareEventBus()
        self.coordinator = RequestCoordinator(
            provider,
            self.calculator,
            self.cache,
            self.validator,
            self.events,
            self.resolver,
            throttle=cfg.request_throttle,
            event_throttle=cfg.event_throttle,
            bulk_delay=cfg.bulk_fetch_delay,
            clock=clock,
            wall_clock=wall_clock,
        )
        self._closed = False

    async def __aenter__(self) -> FareEngine:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Fares
    # ------------------------------------------------------------------

    async def fetch(self, params: FareParams, force_refresh: bool = False) -> FareDetails:
        return await self.coordinator.fetch(params, force_refresh=force_refresh)

    async def fetch_many(
        self, params_list: Iterable[FareParams], force_refresh: bool = False
    ) -> dict[str, FareDetails]:
        return await self.coordinator.fetch_many(params_list, force_refresh=force_refresh)

    async def select_fare(
        self,
        params: FareParams,
        fare: FareDetails,
        source: FareSource = FareSource.VALIDATED,
    ) -> ValidatedFare:
        """Remember *fare* as the one shown to the user for this vehicle and trip type."""
        return await self.validator.record(
            self.resolver.normalize_params(params), fare, source
        )

    async def reconcile(self, params: FareParams, candidate: FareDetails) -> FareDetails:
        """Return *candidate*, or the validated fare if the two drifted apart."""
        normalized = self.resolver.normalize_params(params)
        return await self.validator.reconcile(
            candidate, normalized.vehicle_id, normalized.trip_type
        )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    async def clear_cache(self) -> bool:
        return await self.cache.clear()

    async def clear_cache_for(self, trip_type: TripType) -> int:
        return await self.cache.clear_for(trip_type)

    async def sync_storage(self) -> int:
        """Bring both tiers up to date with each other; returns keys visited."""
        fares = await self.cache.sync()
        validated = await self.store.sync(VALIDATED_PREFIX)
        return fares + validated

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_fare_updated(self, handler: FareHandler) -> Callable[[], None]:
        return self.events.on_fare_updated(handler)

    def on_fare_calculated(self, handler: FareHandler) -> Callable[[], None]:
        return self.events.on_fare_calculated(handler)

    async def close(self) -> None:
        """Cancel live requests and release the provider and stores."""
        if self._closed:
            return
        self._closed = True
        self.coordinator.cancel_all()
        await self.provider.close()
        await self.store.short_lived.close()
        await self.store.durable.close()
        logger.info("Fare engine closed")


def build_engine(
    config: EngineSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    use_redis: bool = True,
) -> FareEngine:
    """Build an engine talking to the configured Pricing Service deployments.

    The primary base URL is tried first, then each fallback URL in order.
    Without Redis the durable tier lives in process memory.
    """
    cfg = config or settings
    endpoints = default_endpoints(cfg)
    providers = [
        HttpPricingProvider(
            base_url=url, endpoints=endpoints, timeout=cfg.http_timeout, transport=transport
        )
        for url in [cfg.pricing_base_url, *cfg.pricing_fallback_urls]
    ]
    provider = providers[0] if len(providers) == 1 else ProviderChain(providers)

    durable: KeyValueStore | None = None
    if use_redis:
        durable = RedisStore.from_url(
            cfg.redis_url, namespace=cfg.redis_namespace, ttl=cfg.durable_retention
        )
    return FareEngine(provider, durable_store=durable, config=cfg)

