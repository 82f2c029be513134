"""
core/errors.py -- Classified failures shared by every layer.

Each exception carries a user_message suitable for display. The str() of the
exception may hold diagnostic detail for logs; user_message never does.

Taxonomy:
  ValidationError  malformed caller input (empty credentials, bad payload)
  NetworkError     transport failure (DNS, refused connection, timeout)
  ServerError      non-2xx HTTP response, keeps the status code
  DecodingError    response body did not match the expected schema

Layer rule: core/ is the kernel. This module imports nothing from the project.
"""

from __future__ import annotations


class PayslipError(Exception):
    """Base class for all classified failures."""

    user_message: str = "Unexpected error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.user_message)


class ValidationError(PayslipError):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.user_message = message


class NetworkError(PayslipError):
    user_message = "Network connection error. Check your connection and try again."


class ServerError(PayslipError):
    def __init__(self, status_code: int, detail: str | None = None) -> None:
        super().__init__(detail or f"HTTP {status_code}")
        self.status_code = status_code
        self.user_message = f"Server error (code {status_code})"


class DecodingError(PayslipError):
    # Parse diagnostics stay in str(exc) for the logs.
    user_message = "Could not process server data"
