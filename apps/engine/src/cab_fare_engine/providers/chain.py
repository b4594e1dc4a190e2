"""Ordered fallback across several pricing providers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cab_fare_engine.errors import PricingServiceError

from .base import PricingProvider

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cab_fare_core.schemas import FareParams

    from cab_fare_engine.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class ProviderChain(PricingProvider):
    """Try each provider in order; the first success short-circuits."""

    name = "chain"

    def __init__(self, providers: Sequence[PricingProvider]) -> None:
        if not providers:
            msg = "ProviderChain needs at least one provider"
            raise ValueError(msg)
        self._providers = list(providers)

    @property
    def providers(self) -> list[PricingProvider]:
        return list(self._providers)

    async def fetch_raw(self, params: FareParams, token: CancellationToken) -> dict:
        last_exc: PricingServiceError | None = None
        for provider in self._providers:
            token.raise_if_cancelled()
            try:
                return await provider.fetch_raw(params, token)
            except PricingServiceError as exc:
                last_exc = exc
                logger.warning(
                    "Provider %s failed for %s: %s", provider.name, params.request_key, exc
                )
        raise last_exc  # type: ignore[misc]

    async def health_check(self) -> bool:
        for provider in self._providers:
            if await provider.health_check():
                return True
        return False

    async def close(self) -> None:
        for provider in self._providers:
            await provider.close()
