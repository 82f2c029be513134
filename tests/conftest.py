"""
tests/conftest.py -- Shared fixtures for the payslip client tests.

This module provides:
  - engine / credentials / profiles: isolated in-memory device storage
  - client: MagicMock standing in for PayrollClient (no network, ever)
  - biometrics: FakeBiometrics with a scripted outcome and a call counter
  - make_session: factory building a SessionManager over the fixtures, with
    push registration run synchronously by ImmediateExecutor

Design: the session's push registration normally runs on a worker thread.
ImmediateExecutor runs the submitted call inline and returns an already
completed Future, so tests can assert on registration outcomes without
sleeping or joining threads. Exceptions still travel through the Future
exactly as they would from a real executor.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future
from unittest.mock import MagicMock

import pytest
from cryptography.fernet import Fernet

from auth.biometrics import BiometricResult
from auth.session import SessionManager
from auth.store import CredentialStore, ProfileStore, make_engine
from core.models import Employee, LoginResult, NavigationTarget

# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

EMPLOYEE = Employee(
    id=123,
    first_name="ORALIA",
    paternal_surname="URIBE",
    maternal_surname="GONZALEZ",
    rfc="UIGO630717VC2",
    curp="UIGO630717MJCRNR05",
    category=1,
    email="oralia.uribe@example.com",
)

EMPLOYEE_WIRE = {
    "EMPLEADO": 123,
    "NOMBRE": "ORALIA",
    "APPAT": "URIBE",
    "APMAT": "GONZALEZ",
    "RFC": "UIGO630717VC2",
    "CURP": "UIGO630717MJCRNR05",
    "TIPO": 1,
    "EMAIL": "oralia.uribe@example.com",
}

TOKEN = "eyJhbGciOiJIUzI1NiJ9.test-token"

TARGET = NavigationTarget(employee_id=123, period=202501, receipt_type=1)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class ImmediateExecutor(Executor):
    """Executor that runs work inline on submit()."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn, /, *args, **kwargs) -> Future:
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class FakeBiometrics:
    """Scripted biometric capability: returns `outcome` and counts prompts."""

    def __init__(self, available: bool = True, outcome: BiometricResult = BiometricResult(True)) -> None:
        self.available = available
        self.outcome = outcome
        self.calls = 0

    def is_available(self) -> bool:
        return self.available

    def evaluate(self, reason: str) -> BiometricResult:
        self.calls += 1
        return self.outcome


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def key() -> str:
    return Fernet.generate_key().decode("ascii")


@pytest.fixture
def engine():
    e = make_engine("sqlite:///:memory:")
    yield e
    e.dispose()


@pytest.fixture
def credentials(engine, key) -> CredentialStore:
    return CredentialStore(engine, key)


@pytest.fixture
def profiles(engine) -> ProfileStore:
    return ProfileStore(engine)


@pytest.fixture
def client() -> MagicMock:
    c = MagicMock()
    c.login.return_value = LoginResult(token=TOKEN, user=EMPLOYEE)
    return c


@pytest.fixture
def biometrics() -> FakeBiometrics:
    return FakeBiometrics()


@pytest.fixture
def registrar() -> MagicMock:
    r = MagicMock()
    r.push_token = "device-push-token"
    r.register.return_value = True
    return r


@pytest.fixture
def executor() -> ImmediateExecutor:
    return ImmediateExecutor()


@pytest.fixture
def make_session(client, credentials, profiles, biometrics, registrar, executor):
    """Return a factory so tests can build a session after seeding storage."""

    def _make() -> SessionManager:
        return SessionManager(
            client,
            credentials,
            profiles,
            biometrics,
            push_registrar=registrar,
            executor=executor,
        )

    return _make


@pytest.fixture
def stored(credentials, profiles) -> None:
    """Seed durable storage as a previous run's successful login would."""
    credentials.save(TOKEN)
    profiles.save(EMPLOYEE)
