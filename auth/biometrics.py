"""
auth/biometrics.py -- Device owner verification used to unlock a stored session.

BiometricCapability is the interface SessionManager depends on. A phone would
back it with the platform's fingerprint/face prompt; on a desktop terminal the
stand-in is PinBiometrics, which asks for a device PIN and checks it against a
bcrypt hash (DEVICE_PIN_HASH).

Outcomes are values, not exceptions: failure and cancellation are routine and
the caller simply stays locked.
"""

from __future__ import annotations

import getpass
import logging
from dataclasses import dataclass
from typing import Callable, Protocol

import bcrypt

logger = logging.getLogger("payslip.biometrics")

UNLOCK_REASON = "Please authenticate to access your payroll receipts"


@dataclass(frozen=True)
class BiometricResult:
    success: bool
    reason: str = ""  # "cancelled", "mismatch", "unavailable", ...


class BiometricCapability(Protocol):
    def is_available(self) -> bool: ...

    def evaluate(self, reason: str) -> BiometricResult: ...


def hash_pin(pin: str) -> str:
    """Return a bcrypt hash suitable for DEVICE_PIN_HASH."""
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_pin(pin: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(pin.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in settings.
        return False


class PinBiometrics:
    """Terminal stand-in for a fingerprint prompt.

    One evaluate() call is one prompt: no retry loop here, the caller decides
    whether to ask again. Ctrl-C / Ctrl-D at the prompt is a cancellation.
    """

    def __init__(self, pin_hash: str, prompt: Callable[[str], str] = getpass.getpass) -> None:
        self._pin_hash = pin_hash
        self._prompt = prompt

    def is_available(self) -> bool:
        return bool(self._pin_hash)

    def evaluate(self, reason: str) -> BiometricResult:
        if not self.is_available():
            return BiometricResult(False, "unavailable")
        try:
            pin = self._prompt(f"{reason}\nDevice PIN: ")
        except (EOFError, KeyboardInterrupt):
            return BiometricResult(False, "cancelled")
        if verify_pin(pin, self._pin_hash):
            return BiometricResult(True)
        return BiometricResult(False, "mismatch")
