"""
Shared fixtures for funnel_ledger tests.

Ledgers are built on MemoryLedgerStore + MemorySessionScope with a hand-driven
clock, so no database, Redis or wall-clock time is involved unless a test asks.
"""
from datetime import datetime, timedelta, timezone

import pytest

from funnel_ledger.cache import MemorySessionScope
from funnel_ledger.environment import PageContext
from funnel_ledger.ledger import FunnelLedger
from funnel_ledger.session import SessionManager
from funnel_ledger.store import MemoryLedgerStore

QUIZ_URL = "https://cronograma.example.com/quiz.html?utm_source=instagram&utm_campaign=launch"
SALES_URL = "https://cronograma.example.com/vendas.html"
KEY = "test_analytics"


class ManualClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> MemoryLedgerStore:
    return MemoryLedgerStore()


@pytest.fixture
def session_manager() -> SessionManager:
    return SessionManager(MemorySessionScope())


@pytest.fixture
def ledger(store, session_manager, clock) -> FunnelLedger:
    return FunnelLedger(
        store=store,
        session_manager=session_manager,
        context=PageContext(url=QUIZ_URL, referrer="https://instagram.com/", user_agent="pytest", screen_resolution="390x844"),
        key=KEY,
        clock=clock,
    )
