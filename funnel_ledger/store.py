"""
store.py — Durable storage facade for the Ledger document.

The whole Ledger lives in ONE key-value slot (settings.analytics_key) as JSON text.
FunnelLedger never touches SQLAlchemy directly — it talks to a LedgerStore.

Design principles:
  - Back-ends only move text; (de)serialization happens in load_ledger / save_ledger
  - Every back-end failure surfaces as StorageError, whatever the driver raised
  - Missing, unreadable or malformed documents load as Ledger.default() — never raised
  - Logs only the slot key, never document contents
"""
import logging
from typing import Optional, Protocol

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from funnel_ledger.database import create_db_engine, init_db, make_session_factory
from funnel_ledger.models.analytics_slot import AnalyticsSlotORM
from funnel_ledger.schemas import Ledger

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """The durable store could not be read from or written to."""


class LedgerStore(Protocol):
    def load(self, key: str) -> Optional[str]: ...

    def save(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# In-memory back-end
# ---------------------------------------------------------------------------

class MemoryLedgerStore:
    """Dict-backed store. Used by tests and by hosts that persist elsewhere."""

    def __init__(self, slots: Optional[dict[str, str]] = None) -> None:
        self.slots: dict[str, str] = dict(slots or {})

    def load(self, key: str) -> Optional[str]:
        return self.slots.get(key)

    def save(self, key: str, value: str) -> None:
        self.slots[key] = value

    def delete(self, key: str) -> None:
        self.slots.pop(key, None)


# ---------------------------------------------------------------------------
# SQL back-end
# ---------------------------------------------------------------------------

class SqlLedgerStore:
    """
    Slots stored as rows of analytics_slots.

    The table is created on first use. Each save is one transaction: the row is
    either fully replaced or left as it was.
    """

    def __init__(self, engine: Optional[Engine] = None) -> None:
        self.engine = engine if engine is not None else create_db_engine()
        self._session_factory = make_session_factory(self.engine)
        self._schema_ready = False

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            init_db(self.engine)
            self._schema_ready = True

    def load(self, key: str) -> Optional[str]:
        try:
            self._ensure_schema()
            with self._session_factory() as session:
                orm = session.get(AnalyticsSlotORM, key)
                return None if orm is None else orm.value
        except SQLAlchemyError as exc:
            raise StorageError(f"read of slot {key!r} failed") from exc

    def save(self, key: str, value: str) -> None:
        try:
            self._ensure_schema()
            with self._session_factory() as session, session.begin():
                orm = session.get(AnalyticsSlotORM, key)
                if orm is None:
                    session.add(AnalyticsSlotORM(key=key, value=value))
                else:
                    orm.value = value  # SQLAlchemy detects mutation and marks dirty
        except SQLAlchemyError as exc:
            raise StorageError(f"write of slot {key!r} failed") from exc

    def delete(self, key: str) -> None:
        try:
            self._ensure_schema()
            with self._session_factory() as session, session.begin():
                orm = session.get(AnalyticsSlotORM, key)
                if orm is not None:
                    session.delete(orm)
        except SQLAlchemyError as exc:
            raise StorageError(f"delete of slot {key!r} failed") from exc


# ---------------------------------------------------------------------------
# Ledger document operations
# ---------------------------------------------------------------------------

def load_ledger(store: LedgerStore, key: str) -> Ledger:
    """
    Read and parse the Ledger document.
    Absent, unreadable or corrupt → Ledger.default(); this never raises.
    """
    try:
        raw = store.load(key)
    except StorageError as exc:
        logger.warning("Could not read analytics slot key=%s, starting fresh: %s", key, exc)
        return Ledger.default()

    if raw is None:
        logger.info("No analytics document at key=%s, starting fresh", key)
        return Ledger.default()

    try:
        ledger = Ledger.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning(
            "Corrupt analytics document at key=%s (%d errors), starting fresh",
            key,
            exc.error_count(),
        )
        return Ledger.default()

    logger.info(
        "Loaded analytics document key=%s events=%d sessions=%d",
        key,
        len(ledger.events),
        ledger.total_sessions,
    )
    return ledger


def save_ledger(store: LedgerStore, key: str, ledger: Ledger) -> None:
    """Serialize and write the whole document in one call. Raises StorageError."""
    try:
        text = ledger.to_json()
    except PydanticSerializationError as exc:
        raise StorageError(f"document for slot {key!r} is not serializable") from exc
    store.save(key, text)
