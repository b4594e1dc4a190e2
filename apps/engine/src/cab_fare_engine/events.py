"""In-process publish/subscribe for fare events."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from cab_fare_core.schemas import FareEventName

if TYPE_CHECKING:
    from collections.abc import Callable

    from cab_fare_core.schemas import FareEvent

    FareHandler = Callable[[FareEvent], object]

logger = logging.getLogger(__name__)


class FareEventBus:
    """Synchronous event bus; a failing handler never affects the others."""

    def __init__(self) -> None:
        self._handlers: dict[FareEventName, list[FareHandler]] = defaultdict(list)

    def on(self, name: FareEventName, handler: FareHandler) -> Callable[[], None]:
        """Subscribe *handler* to *name*; returns a callable that unsubscribes it."""
        handlers = self._handlers[FareEventName(name)]
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def on_fare_updated(self, handler: FareHandler) -> Callable[[], None]:
        return self.on(FareEventName.FARE_UPDATE, handler)

    def on_fare_calculated(self, handler: FareHandler) -> Callable[[], None]:
        return self.on(FareEventName.FARE_CALCULATED, handler)

    def handler_count(self, name: FareEventName) -> int:
        return len(self._handlers.get(name, ()))

    def emit(self, event: FareEvent) -> int:
        """Deliver *event*; returns how many handlers completed."""
        delivered = 0
        for handler in list(self._handlers.get(event.name, ())):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %r failed for %s (%s)", handler, event.name, event.canonical_id
                )
                continue
            delivered += 1
        return delivered
