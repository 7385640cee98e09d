"""
ledger.py — the Funnel Ledger.

Owns the persisted analytics document and is its only writer. Interaction sources
call record_event(); dashboards read get_snapshot() and call reset(confirmed).

Recording an event is one logical transaction:
  1. build the Event (timestamp, page, session id, environment descriptors, payload)
  2. apply it to a working copy of the document — log, funnel counters, day bucket,
     session upsert, conversion rates recomputed from scratch
  3. swap the working copy in as the current document
  4. persist the whole document (best-effort)
  5. forward to sinks (best-effort, after everything else)
Readers only ever see the document before step 3 or after it. If step 2 raises,
the current document is untouched.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic_core import PydanticSerializationError, to_jsonable_python

from funnel_ledger.cache import create_session_scope
from funnel_ledger.config import settings
from funnel_ledger.environment import PageContext
from funnel_ledger.metrics import compute_conversion_rates, summarize_session
from funnel_ledger.schemas import (
    DayBucket,
    Event,
    FunnelSession,
    Ledger,
    Page,
    SinkNotification,
    is_funnel_stage,
)
from funnel_ledger.session import SessionManager
from funnel_ledger.sinks import Sink, dispatch
from funnel_ledger.store import LedgerStore, SqlLedgerStore, StorageError, load_ledger, save_ledger

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def day_key(timestamp: datetime) -> str:
    """Calendar day of an instant, always in UTC: YYYY-MM-DD."""
    return timestamp.astimezone(timezone.utc).date().isoformat()


class LedgerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"


# ---------------------------------------------------------------------------
# Aggregation — applies one event to a document in place
# ---------------------------------------------------------------------------

def jsonable_payload(payload: Any) -> Any:
    """
    The payload as JSON-compatible data, so one odd value can never block later
    writes. Non-str keys become strings; values JSON can't hold become their repr.
    """
    try:
        return to_jsonable_python(payload, fallback=repr)
    except (PydanticSerializationError, ValueError):
        # e.g. circular references
        return repr(payload)


def working_copy(ledger: Ledger, event: Event) -> Ledger:
    """
    Copy of the document in which everything apply_event(event) mutates is
    private: counters, the event's day bucket and the event's session. The event
    log is append-only and its entries are frozen, so it stays shared.
    """
    day = day_key(event.timestamp)
    daily_stats = dict(ledger.daily_stats)
    if day in daily_stats:
        daily_stats[day] = daily_stats[day].model_copy(deep=True)

    sessions = list(ledger.sessions)
    for index, session in enumerate(sessions):
        if session.id == event.session_id:
            sessions[index] = session.model_copy(deep=True)
            break

    return ledger.model_copy(
        update={
            "funnel_metrics": dict(ledger.funnel_metrics),
            "daily_stats": daily_stats,
            "conversion_rates": dict(ledger.conversion_rates),
            "sessions": sessions,
        }
    )


def apply_event(ledger: Ledger, event: Event) -> None:
    """
    Fold one event into the document.

    Funnel counters count every occurrence (no per-session dedup); only the
    session's funnel_flags are idempotent. Rates depend only on the counters, so
    they are rebuilt before the event is appended. The append comes last: it is
    the one mutation a working_copy shares with the current document.
    """
    if is_funnel_stage(event.name):
        ledger.funnel_metrics[event.name] += 1

    bucket = ledger.daily_stats.setdefault(day_key(event.timestamp), DayBucket())
    bucket.events[event.name] = bucket.events.get(event.name, 0) + 1

    session = ledger.find_session(event.session_id)
    if session is None:
        session = FunnelSession(id=event.session_id, start_time=event.timestamp)
        ledger.sessions.append(session)
        ledger.total_sessions += 1
        bucket.sessions += 1

    session.events.append(event.name)
    session.last_activity = event.timestamp
    session.funnel_flags.add(event.name)

    ledger.conversion_rates = compute_conversion_rates(ledger.funnel_metrics)
    bucket.conversions = compute_conversion_rates(bucket.events)

    ledger.events.append(event)


# ---------------------------------------------------------------------------
# FunnelLedger
# ---------------------------------------------------------------------------

class FunnelLedger:
    """
    Explicitly constructed ledger — storage, session source, page context and
    sinks are all passed in. The document is loaded on first use (or by an explicit
    load()) and the ledger stays active from then on.
    """

    def __init__(
        self,
        store: LedgerStore,
        session_manager: Optional[SessionManager] = None,
        context: Optional[PageContext] = None,
        sinks: Iterable[Sink] = (),
        key: str = settings.analytics_key,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.session_manager = session_manager if session_manager is not None else SessionManager()
        self.context = context if context is not None else PageContext()
        self.sinks: list[Sink] = list(sinks)
        self.key = key
        self.clock = clock

        self._lock = threading.RLock()
        self._ledger: Optional[Ledger] = None

    # -- lifecycle ----------------------------------------------------------

    @property
    def state(self) -> LedgerState:
        return LedgerState.UNINITIALIZED if self._ledger is None else LedgerState.ACTIVE

    @property
    def page(self) -> Page:
        return self.context.page

    def load(self) -> None:
        """Load the stored document (or the default). No-op once active."""
        with self._lock:
            self._current()

    def _current(self) -> Ledger:
        # Caller holds self._lock
        if self._ledger is None:
            self._ledger = load_ledger(self.store, self.key)
        return self._ledger

    def _persist(self, ledger: Ledger) -> None:
        try:
            save_ledger(self.store, self.key, ledger)
        except StorageError as exc:
            # In-memory document stays authoritative for the rest of the process
            logger.error("Could not persist analytics document key=%s: %s", self.key, exc)

    # -- public operations --------------------------------------------------

    def record_event(
        self,
        name: str,
        payload: Any = None,
        *,
        session_id: Optional[str] = None,
    ) -> None:
        """
        Record one interaction. Never raises to the interaction source: storage
        and sink failures are logged and the event stays recorded in memory.
        Any payload is accepted; it is stored as JSON-compatible data.

        session_id overrides the current context's session — hosts relaying events
        for several contexts pass it explicitly.
        """
        data = jsonable_payload({} if payload is None else payload)

        with self._lock:
            current = self._current()
            event = Event(
                name=name,
                session_id=(
                    session_id if session_id is not None else self.session_manager.get_or_create_session_id()
                ),
                timestamp=self.clock(),
                page=self.page,
                url=self.context.url,
                referrer=self.context.referrer,
                user_agent=self.context.user_agent,
                screen_resolution=self.context.screen_resolution,
                data=data,
            )
            draft = working_copy(current, event)
            apply_event(draft, event)
            self._ledger = draft
            self._persist(draft)

        logger.debug("Recorded event=%s session_id=%s page=%s", name, event.session_id, event.page)

        if self.sinks:
            dispatch(self.sinks, SinkNotification(event_name=name, label=self.page, value=data))

    def get_snapshot(self) -> Ledger:
        """A private copy of the current document — mutating it changes nothing here."""
        with self._lock:
            return self._current().model_copy(deep=True)

    def reset(self, confirmed: bool) -> bool:
        """
        Replace the document with the default one and persist it.
        The caller resolves confirmation beforehand; False leaves everything as is.
        """
        if not confirmed:
            logger.info("Analytics reset not confirmed — nothing cleared")
            return False

        with self._lock:
            try:
                self.store.delete(self.key)
            except StorageError as exc:
                logger.error("Could not clear analytics slot key=%s: %s", self.key, exc)
            fresh = Ledger.default()
            self._ledger = fresh
            self._persist(fresh)

        logger.info("Analytics reset key=%s", self.key)
        return True

    def summarize_session(self, session_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            return summarize_session(self._current(), session_id)


# ---------------------------------------------------------------------------
# Factory — wires the configured back-ends
# ---------------------------------------------------------------------------

def create_ledger(
    context: Optional[PageContext] = None,
    sinks: Iterable[Sink] = (),
) -> FunnelLedger:
    """
    Build a ledger on the configured durable store and session scope, and load it.

    Usage:
        ledger = create_ledger(PageContext(url="https://example.com/quiz.html"))
        ledger.record_event("quiz_started")
    """
    ledger = FunnelLedger(
        store=SqlLedgerStore(),
        session_manager=SessionManager(create_session_scope()),
        context=context,
        sinks=sinks,
    )
    ledger.load()
    return ledger
