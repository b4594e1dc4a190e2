"""Explicit cancellation tokens handed to pricing providers."""

from __future__ import annotations

import asyncio

from cab_fare_engine.errors import Cancelled


class CancellationToken:
    """Cooperative cancellation flag.

    Task cancellation interrupts whatever the provider is awaiting; the
    token lets a provider notice the request was superseded between awaits
    and lets the coordinator tell superseded requests apart from its own
    caller being cancelled.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "superseded") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled(self.reason or "cancelled")
