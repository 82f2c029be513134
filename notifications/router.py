"""
notifications/router.py -- Route a tapped push notification to a receipt.

The one real branch in the client:

  authenticated            publish the target now
  stored session, locked   stage it on the session, publish nothing
  no stored session        publish now anyway; the presentation layer must
                           ignore it until a manual login completes

The staged target is published later by _on_authenticated(), which the router
registers as a session listener at construction. consume_pending_navigation()
clears the slot, so a target staged once is delivered at most once.
The locked check and the staging are one atomic session call, so an unlock
that lands mid-route makes the target publish now instead of going stale.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any, Optional

from auth.session import SessionManager
from core.errors import ValidationError
from core.models import NavigationTarget
from notifications.events import NavigationBus

logger = logging.getLogger("payslip.router")

PAYLOAD_KEYS = frozenset({"employeeId", "period", "type"})

_INT_RE = re.compile(r"[+-]?\d+")


def _parse_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INT_RE.fullmatch(value):
        return int(value)
    raise ValidationError(f"{key} must be an integer, got {value!r}")


def parse_payload(payload: Any) -> NavigationTarget:
    """Turn a notification's data dict into a NavigationTarget.

    The payload must be a flat mapping with exactly employeeId, period and
    type. Values may be ints or integer strings (push data arrives as strings).

    Raises ValidationError for any other shape.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("notification payload must be a mapping")
    keys = set(payload.keys())
    if keys != PAYLOAD_KEYS:
        missing = sorted(PAYLOAD_KEYS - keys)
        extra = sorted(str(k) for k in keys - PAYLOAD_KEYS)
        raise ValidationError(f"notification payload keys mismatch (missing={missing}, unexpected={extra})")
    return NavigationTarget(
        employee_id=_parse_int("employeeId", payload["employeeId"]),
        period=_parse_int("period", payload["period"]),
        receipt_type=_parse_int("type", payload["type"]),
    )


class DeepLinkRouter:
    """Decides whether a notification navigates now or after unlock.

    Usage:
        bus = NavigationBus()
        router = DeepLinkRouter(session, bus)
        router.handle_notification({"employeeId": "123", "period": "202501", "type": "1"})
    """

    def __init__(self, session: SessionManager, bus: NavigationBus) -> None:
        self._session = session
        self._bus = bus
        session.add_authenticated_listener(self._on_authenticated)

    def handle_notification(self, payload: Any) -> Optional[NavigationTarget]:
        """Route one tapped notification. Never raises on bad input.

        Returns the parsed target, or None when the payload was rejected.
        """
        try:
            target = parse_payload(payload)
        except ValidationError as e:
            logger.warning("Ignoring notification with invalid data: %s", e)
            return None

        if self._session.stage_navigation_if_locked(target):
            logger.info("Session locked; deferring navigation until unlock")
        elif self._session.is_authenticated:
            logger.info("Session authenticated; navigating directly")
            self._bus.publish(target)
        else:
            logger.info("No stored session; navigation applies after login")
            self._bus.publish(target)
        return target

    def _on_authenticated(self, session: SessionManager) -> None:
        target = session.consume_pending_navigation()
        if target is not None:
            logger.info("Delivering pending navigation after unlock")
            self._bus.publish(target)
