"""
auth/session.py -- The authentication state machine.

SessionManager owns the in-memory session and is the only writer of the
credential and profile stores. States are derived, never stored:

  State           is_authenticated   token   user
  LOGGED_OUT      False              no      no
  STORED_LOCKED   False              yes     yes
  UNLOCKING       False              yes     yes   (biometric prompt open)
  AUTHENTICATED   True               yes     yes

Central rule: durable presence of token + user is necessary but NOT
sufficient for AUTHENTICATED. Hydration at construction only ever produces
STORED_LOCKED; an unlock (fresh login or biometric success) is mandatory.

Threading: every read-modify-write of session fields happens under one
RLock. The lock is released around the login network call and the biometric
prompt so a notification arriving meanwhile can still query the state.
Push token registration after login runs on an executor and cannot change
login's outcome.

Layer rule: no imports from notifications/ or receipts/. The push registrar
and authenticated listeners are injected.
"""

from __future__ import annotations

import enum
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional, Protocol

from auth.biometrics import UNLOCK_REASON, BiometricCapability
from auth.store import CredentialStore, ProfileStore
from core.errors import PayslipError, ValidationError
from core.models import Employee, LoginResult, NavigationTarget

logger = logging.getLogger("payslip.session")


class SessionState(enum.Enum):
    LOGGED_OUT = "logged_out"
    STORED_LOCKED = "stored_locked"
    UNLOCKING = "unlocking"
    AUTHENTICATED = "authenticated"


class AuthClient(Protocol):
    def login(self, email: str, password: str, push_token: Optional[str] = None) -> LoginResult: ...


class PushRegistrar(Protocol):
    @property
    def push_token(self) -> Optional[str]: ...

    def register(self, auth_token: str) -> bool: ...


AuthenticatedListener = Callable[["SessionManager"], None]


class SessionManager:
    """Login, biometric unlock, logout and the pending-navigation slot.

    Usage:
        session = SessionManager(client, credentials, profiles, biometrics)
        if session.has_stored_session():
            session.unlock_with_biometrics()
        else:
            session.login("a@x.com", "secret")
    """

    def __init__(
        self,
        client: AuthClient,
        credentials: CredentialStore,
        profiles: ProfileStore,
        biometrics: BiometricCapability,
        push_registrar: Optional[PushRegistrar] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self._profiles = profiles
        self._biometrics = biometrics
        self._push_registrar = push_registrar
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="push-register")

        self._lock = threading.RLock()
        self._listeners: list[AuthenticatedListener] = []

        self._user: Optional[Employee] = None
        self._is_authenticated = False
        self._unlocking = False
        self._pending: Optional[NavigationTarget] = None
        self.is_loading = False
        self.last_error: Optional[str] = None

        self._hydrate()

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    def _hydrate(self) -> None:
        """Load user + token from durable storage without authenticating."""
        token = self._credentials.get()
        if not token:
            return
        user = self._profiles.load()
        if user is not None:
            self._user = user
            logger.info("Stored session loaded for %s", user.full_name)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def token(self) -> Optional[str]:
        """The bearer token. The credential store is the only source of truth."""
        return self._credentials.get()

    @property
    def user(self) -> Optional[Employee]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._is_authenticated

    @property
    def state(self) -> SessionState:
        with self._lock:
            if self._is_authenticated:
                return SessionState.AUTHENTICATED
            if not self.has_stored_session():
                return SessionState.LOGGED_OUT
            if self._unlocking:
                return SessionState.UNLOCKING
            return SessionState.STORED_LOCKED

    def has_stored_session(self) -> bool:
        """True iff a token AND a user profile are present, authenticated or not."""
        with self._lock:
            return self._user is not None and bool(self.token)

    def can_use_biometrics(self) -> bool:
        available = self._biometrics.is_available()
        if not available:
            logger.info("Biometrics not available on this device")
        return available and self.has_stored_session()

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> bool:
        """Authenticate against the backend. Returns True on success.

        On failure the previous state is left exactly as it was and
        last_error holds the classified, human-readable reason. is_loading is
        always False again when this returns.

        Raises ValidationError for blank credentials (nothing else is
        touched in that case).
        """
        if not email.strip() or not password:
            raise ValidationError("Email and password are required")

        with self._lock:
            if self.is_loading:
                logger.warning("Login already in progress; ignoring concurrent attempt")
                return False
            self.is_loading = True
            self.last_error = None

        try:
            push_token = self._push_registrar.push_token if self._push_registrar else None
            try:
                result = self._client.login(email, password, push_token=push_token)
            except PayslipError as e:
                logger.warning("Login failed for %s: %s", email, e)
                with self._lock:
                    self.last_error = e.user_message
                return False

            with self._lock:
                previous_token = self._credentials.get()
                self._credentials.save(result.token)
                try:
                    self._profiles.save(result.user)
                except Exception:
                    # Token and profile are written together or not at all.
                    if previous_token:
                        self._credentials.save(previous_token)
                    else:
                        self._credentials.delete()
                    raise
                self._user = result.user
                self._is_authenticated = True
            logger.info("Login successful for %s", result.user.full_name)

            self._register_push_token(result.token)
        finally:
            with self._lock:
                self.is_loading = False

        self._notify_authenticated()
        return True

    def _register_push_token(self, auth_token: str) -> None:
        """Fire-and-forget push registration. Never raises."""
        registrar = self._push_registrar
        if registrar is None:
            return
        if not registrar.push_token:
            logger.info("Push token not available yet; it will be sent when ready")
            return
        try:
            future = self._executor.submit(registrar.register, auth_token)
        except Exception:
            logger.exception("Could not schedule push token registration")
            return
        future.add_done_callback(_log_registration_outcome)

    # ------------------------------------------------------------------
    # Biometric unlock
    # ------------------------------------------------------------------

    def unlock_with_biometrics(self) -> bool:
        """Run one biometric prompt and unlock the stored session on success.

        Returns False without prompting when there is no stored session or the
        device has no biometric capability. Failure and cancellation leave
        the session STORED_LOCKED and do not touch last_error; the user may
        retry or fall back to the password. Never retries on its own.

        An already AUTHENTICATED session returns True without prompting;
        there is nothing left to unlock.
        """
        with self._lock:
            if self._is_authenticated:
                return True
            if not self.has_stored_session():
                logger.info("No stored session for biometric unlock")
                return False
            if self._unlocking:
                logger.warning("Biometric prompt already open")
                return False
            if not self._biometrics.is_available():
                logger.info("Biometrics not available on this device")
                return False
            self._unlocking = True

        try:
            result = self._biometrics.evaluate(UNLOCK_REASON)
        finally:
            with self._lock:
                self._unlocking = False

        if not result.success:
            logger.info("Biometric authentication failed: %s", result.reason or "unknown")
            return False

        with self._lock:
            # logout() may have run while the prompt was open.
            if not self.has_stored_session():
                logger.info("Stored session vanished during biometric prompt")
                return False
            self._is_authenticated = True
        logger.info("Session unlocked")
        self._notify_authenticated()
        return True

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    def logout(self) -> None:
        """Forget the session everywhere. Safe to call when already logged out."""
        with self._lock:
            was_signed_in = self._user is not None or self._is_authenticated
            self._credentials.delete()
            self._profiles.delete()
            self._user = None
            self._is_authenticated = False
            self.last_error = None
        if was_signed_in:
            logger.info("Session closed")

    # ------------------------------------------------------------------
    # Pending navigation
    # ------------------------------------------------------------------

    def set_pending_navigation(self, target: NavigationTarget) -> None:
        """Stage a deep-link target. Last write wins; there is no queue."""
        with self._lock:
            if self._pending is not None and self._pending != target:
                logger.info("Replacing pending navigation %s with %s", self._pending, target)
            self._pending = target

    def stage_navigation_if_locked(self, target: NavigationTarget) -> bool:
        """Stage target only if the session is stored but not yet unlocked.

        Check and stage happen under one lock acquisition, so an unlock cannot
        complete in between and leave the target stranded. Returns False when
        the session is authenticated or absent; nothing is staged then.
        """
        with self._lock:
            if self._is_authenticated or not self.has_stored_session():
                return False
            self.set_pending_navigation(target)
            return True

    def consume_pending_navigation(self) -> Optional[NavigationTarget]:
        """Return the staged target and clear it. At most once per target."""
        with self._lock:
            target, self._pending = self._pending, None
            return target

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_authenticated_listener(self, listener: AuthenticatedListener) -> None:
        """Call listener(session) after every transition into AUTHENTICATED."""
        with self._lock:
            self._listeners.append(listener)

    def _notify_authenticated(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(self)
            except Exception:
                logger.exception("Authenticated listener %r failed", listener)

    def close(self) -> None:
        """Wait for in-flight push registration and release the executor."""
        self._executor.shutdown(wait=True)


def _log_registration_outcome(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.warning("Push token registration failed: %s", exc)
    elif future.result():
        logger.info("Push token sent to backend after login")
