"""Mirror JSON records across the short-lived and durable tiers."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .stores import KeyValueStore

logger = logging.getLogger(__name__)


def _decode(key: str, raw: str | None, tier: str) -> dict[str, Any] | None:
    if raw is None:
        return None
    try:
        record = json.loads(raw)
    except ValueError:
        logger.warning("Unreadable %s record for %s, ignoring", tier, key)
        return None
    if not isinstance(record, dict):
        logger.warning("Unexpected %s record type for %s, ignoring", tier, key)
        return None
    return record


def _timestamp(record: dict[str, Any]) -> float:
    value = record.get("timestamp")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return float("-inf")
    return float(value)


class TieredStore:
    """Two independently-lived stores holding ``{timestamp, ...}`` records.

    The newer ``timestamp`` always wins: reads reconcile the two tiers
    first, writes never replace a newer record.
    """

    def __init__(self, short_lived: KeyValueStore, durable: KeyValueStore) -> None:
        self.short_lived = short_lived
        self.durable = durable

    async def reconcile(self, key: str) -> dict[str, Any] | None:
        """Copy the newer record of *key* over the older one and return it."""
        short_raw, durable_raw = await asyncio.gather(
            self.short_lived.get(key), self.durable.get(key)
        )
        short = _decode(key, short_raw, self.short_lived.name)
        durable = _decode(key, durable_raw, self.durable.name)

        if short is None and durable is None:
            return None
        if durable is None or (short is not None and _timestamp(short) > _timestamp(durable)):
            logger.debug("Promoting %s record of %s", self.short_lived.name, key)
            await self.durable.set(key, short_raw)  # type: ignore[arg-type]
            return short
        if short is None or _timestamp(durable) > _timestamp(short):
            logger.debug("Promoting %s record of %s", self.durable.name, key)
            await self.short_lived.set(key, durable_raw)  # type: ignore[arg-type]
        return durable

    async def read(self, key: str) -> dict[str, Any] | None:
        """Return the newest record of *key* after reconciling both tiers."""
        return await self.reconcile(key)

    async def write(self, key: str, record: dict[str, Any]) -> None:
        """Write *record* to both tiers unless a tier already holds a newer one."""
        encoded = json.dumps(record, default=str)
        incoming = _timestamp(record)
        for store in (self.short_lived, self.durable):
            existing = _decode(key, await store.get(key), store.name)
            if existing is not None and _timestamp(existing) > incoming:
                logger.debug("Kept newer %s record of %s", store.name, key)
                continue
            await store.set(key, encoded)

    async def delete(self, *keys: str) -> int:
        removed = await asyncio.gather(
            self.short_lived.delete(*keys), self.durable.delete(*keys)
        )
        return max(removed)

    async def keys(self, prefix: str = "") -> list[str]:
        short, durable = await asyncio.gather(
            self.short_lived.keys(prefix), self.durable.keys(prefix)
        )
        return sorted(set(short) | set(durable))

    async def sync(self, prefix: str = "") -> int:
        """Reconcile every key under *prefix*; returns how many were visited."""
        keys = await self.keys(prefix)
        for key in keys:
            await self.reconcile(key)
        logger.info("Synchronised %d %r records across tiers", len(keys), prefix)
        return len(keys)
