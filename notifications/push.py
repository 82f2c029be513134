"""
notifications/push.py -- The device push token and its backend registration.

The platform messaging SDK hands the client a push token at startup and again
whenever it rotates. The backend needs it tied to an employee, which requires
a bearer token, so registration happens whenever both are known:

  - on token arrival/refresh, if a bearer token is already stored
  - right after a successful login (SessionManager calls register())

Registration is best effort everywhere. A failure never reaches the user.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.store import CredentialStore
from core.client import PayrollClient
from core.errors import PayslipError

logger = logging.getLogger("payslip.push")


def _prefix(token: str) -> str:
    return f"{token[:20]}..." if len(token) > 20 else token


class PushTokenRegistry:
    def __init__(self, client: PayrollClient, credentials: CredentialStore, push_token: str = "") -> None:
        self._client = client
        self._credentials = credentials
        self._push_token: Optional[str] = push_token or None

    @property
    def push_token(self) -> Optional[str]:
        return self._push_token

    def register(self, auth_token: str) -> bool:
        """Send the push token to the backend. Returns False if there is none yet.

        Raises PayslipError on failure; callers decide whether to log or drop.
        """
        if not self._push_token:
            return False
        self._client.register_push_token(self._push_token, auth_token)
        logger.info("Push token %s registered with backend", _prefix(self._push_token))
        return True

    def update_token(self, push_token: str) -> None:
        """Record a new or rotated push token and register it if possible."""
        self._push_token = push_token or None
        if not self._push_token:
            return
        logger.info("Push token updated: %s", _prefix(self._push_token))
        auth_token = self._credentials.get()
        if not auth_token:
            logger.info("No bearer token yet; push token will be sent after login")
            return
        try:
            self.register(auth_token)
        except PayslipError as e:
            logger.warning("Error sending push token to backend: %s", e)
