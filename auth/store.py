"""
auth/store.py -- SQLAlchemy Core persistence for the device-local session.

Pattern: Repository + Data Mapper.
CredentialStore owns the bearer token; ProfileStore owns the serialized
employee snapshot. SessionManager never touches SQL directly.

Security:
  The token is encrypted with Fernet (CREDENTIAL_KEY) before it is written.
  A ciphertext that no longer decrypts (key rotated, dev key regenerated) is
  treated as "no token" and deleted, which drops the device back to the
  logged-out state instead of crashing at startup.

  All queries use bound parameters. No f-strings in SQL.

Both tables hold at most one row (id=1). save() is delete-then-insert in one
transaction, so a reader never sees two tokens.

Layer rule: no imports from notifications/ or receipts/.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

from core.errors import DecodingError
from core.models import Employee

logger = logging.getLogger("payslip.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_credentials = Table(
    "credentials",
    _metadata,
    Column("id", Integer, primary_key=True),  # always 1
    Column("token_ciphertext", Text, nullable=False),
    Column("saved_at", String(32), nullable=False),
)

_preferences = Table(
    "preferences",
    _metadata,
    Column("key", String(64), primary_key=True),
    Column("value", Text, nullable=False),
)

_CURRENT_USER_KEY = "current_user"


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode. Set per-connection because SQLite PRAGMAs are
    not inherited by new connections from the pool."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create the device DB engine and make sure both tables exist."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    _metadata.create_all(engine)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class CredentialStore:
    """Secure store for the single opaque bearer token.

    Usage:
        store = CredentialStore(engine, key)
        store.save("eyJ...")
        token = store.get()   # "eyJ..." or None
        store.delete()
    """

    def __init__(self, engine: Engine, key: str) -> None:
        self.engine = engine
        self._fernet = Fernet(key.encode("ascii"))

    def save(self, token: str) -> None:
        ciphertext = self._fernet.encrypt(token.encode("utf-8")).decode("ascii")
        with self.engine.begin() as conn:
            conn.execute(_credentials.delete())
            conn.execute(_credentials.insert().values(id=1, token_ciphertext=ciphertext, saved_at=_now_iso()))
        logger.info("Token saved to credential store")

    def get(self) -> Optional[str]:
        with self.engine.connect() as conn:
            row = conn.execute(select(_credentials.c.token_ciphertext).where(_credentials.c.id == 1)).fetchone()
        if row is None:
            return None
        try:
            return self._fernet.decrypt(row[0].encode("ascii")).decode("utf-8")
        except InvalidToken:
            logger.warning("Stored token could not be decrypted; discarding it")
            self.delete()
            return None

    def delete(self) -> None:
        with self.engine.begin() as conn:
            result = conn.execute(_credentials.delete())
        if result.rowcount:
            logger.info("Token removed from credential store")
        else:
            logger.debug("No token in credential store to remove")


class ProfileStore:
    """Durable snapshot of the signed-in employee's profile.

    The snapshot has no identity of its own: it is the same JSON shape the
    login endpoint returns under "empleado", so load() reuses the API mapper.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def save(self, user: Employee) -> None:
        value = json.dumps(user.to_api())
        with self.engine.begin() as conn:
            conn.execute(_preferences.delete().where(_preferences.c.key == _CURRENT_USER_KEY))
            conn.execute(_preferences.insert().values(key=_CURRENT_USER_KEY, value=value))

    def load(self) -> Optional[Employee]:
        """Return the stored profile, or None if absent or unreadable."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_preferences.c.value).where(_preferences.c.key == _CURRENT_USER_KEY)
            ).fetchone()
        if row is None:
            return None
        try:
            return Employee.from_api(json.loads(row[0]))
        except (ValueError, DecodingError) as e:
            # json.JSONDecodeError is a ValueError subclass.
            logger.warning("Stored profile snapshot is corrupt, ignoring it: %s", e)
            return None

    def delete(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(_preferences.delete().where(_preferences.c.key == _CURRENT_USER_KEY))
