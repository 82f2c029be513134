"""
notifications/events.py -- In-process navigation event sink.

The presentation layer subscribes; DeepLinkRouter publishes. Delivery is
synchronous and in subscription order. A subscriber that raises is logged and
skipped so one broken screen cannot swallow the event for the others.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from core.models import NavigationTarget

logger = logging.getLogger("payslip.events")

NavigationHandler = Callable[[NavigationTarget], None]


class NavigationBus:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[NavigationHandler] = []

    def subscribe(self, handler: NavigationHandler) -> None:
        with self._lock:
            self._subscribers.append(handler)

    def unsubscribe(self, handler: NavigationHandler) -> None:
        with self._lock:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

    def publish(self, target: NavigationTarget) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        logger.info("Navigate to receipt %s", target)
        for handler in subscribers:
            try:
                handler(target)
            except Exception:
                logger.exception("Navigation subscriber %r failed", handler)
