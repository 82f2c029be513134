"""
core/client.py -- All calls to the payroll backend.

PayrollClient is the remote auth client the session manager depends on, plus
the receipt list and PDF fetches used by receipts/. Every failure is
translated into the classified exceptions from core/errors.py at this
boundary:

  requests.RequestException       -> NetworkError
  non-2xx status                  -> ServerError(status_code)
  body not JSON / wrong shape     -> DecodingError

Nothing above this module ever sees a requests exception.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from core.errors import DecodingError, NetworkError, ServerError, ValidationError
from core.models import LoginResult, Receipt

logger = logging.getLogger("payslip.client")

LOGIN_PATH = "/api/backend/auth/loginMobile"
PUSH_TOKEN_PATH = "/api/backend/notificaciones/guardarToken"
RECEIPTS_PATH = "/api/backend/nomina/recibos/{employee}/{category}"
PDF_PATH = "/api/backend/pdf/{employee}/{period}/{receipt_type}"


class PayrollClient:
    """Thin HTTP client over one pooled requests.Session.

    Usage:
        client = PayrollClient("https://example.test")
        result = client.login("a@x.com", "secret")
        client.register_push_token("device-token", result.token)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        # Known host, no reason to follow long redirect chains.
        self._session.max_redirects = 3

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise NetworkError(str(e)) from e
        if not 200 <= resp.status_code <= 299:
            logger.warning("%s %s returned HTTP %d", method, path, resp.status_code)
            raise ServerError(resp.status_code)
        return resp

    @staticmethod
    def _json(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise DecodingError(f"response is not JSON: {e}") from e

    @staticmethod
    def _bearer(auth_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {auth_token}"}

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def login(self, email: str, password: str, push_token: Optional[str] = None) -> LoginResult:
        """Exchange email/password for a bearer token and the employee profile.

        Raises ValidationError before touching the network if either credential
        is blank.
        """
        if not email.strip() or not password:
            raise ValidationError("Email and password are required")
        body = {"email": email.strip(), "password": password, "fcmToken": push_token}
        resp = self._request("POST", LOGIN_PATH, json=body)
        try:
            return LoginResult.from_api(self._json(resp))
        except DecodingError as e:
            logger.warning("Login response did not match schema: %s", e)
            raise

    def register_push_token(self, push_token: str, auth_token: str) -> None:
        """Associate this device's push token with the authenticated employee."""
        self._request(
            "POST",
            PUSH_TOKEN_PATH,
            json={"fcmToken": push_token},
            headers=self._bearer(auth_token),
        )

    # ------------------------------------------------------------------
    # Receipts
    # ------------------------------------------------------------------

    def fetch_receipts(self, employee_id: int, category: int, auth_token: str) -> list[Receipt]:
        """Return every receipt the backend has for the employee, unfiltered."""
        path = RECEIPTS_PATH.format(employee=employee_id, category=category)
        data = self._json(self._request("GET", path, headers=self._bearer(auth_token)))
        if not isinstance(data, list):
            raise DecodingError(f"receipt list must be a JSON array, got {type(data).__name__}")
        try:
            return [Receipt.from_api(item) for item in data]
        except DecodingError as e:
            logger.warning("Receipt list did not match schema: %s", e)
            raise

    def fetch_receipt_pdf(self, employee_id: int, period: int, receipt_type: int, auth_token: str) -> bytes:
        """Return the raw PDF bytes for one receipt."""
        path = PDF_PATH.format(employee=employee_id, period=period, receipt_type=receipt_type)
        resp = self._request("GET", path, headers=self._bearer(auth_token))
        if not resp.content:
            raise DecodingError("empty PDF body")
        return resp.content
