"""
Durable store tests — SQL back-end on SQLite under tmp_path, document load/save.

Groups:
  1. SqlLedgerStore slot semantics
  2. load_ledger recovery (absent, corrupt, wrong shape, unreadable)
  3. Wire format
"""
from __future__ import annotations

import json

import pytest

from funnel_ledger.database import create_db_engine
from funnel_ledger.schemas import Ledger
from funnel_ledger.store import (
    MemoryLedgerStore,
    SqlLedgerStore,
    StorageError,
    load_ledger,
    save_ledger,
)

KEY = "cronograma_analytics"


@pytest.fixture
def sql_store(tmp_path) -> SqlLedgerStore:
    return SqlLedgerStore(create_db_engine(f"sqlite:///{tmp_path / 'analytics.db'}"))


# ===========================================================================
# TEST GROUP 1: SqlLedgerStore
# ===========================================================================

def test_missing_slot_loads_none(sql_store: SqlLedgerStore) -> None:
    assert sql_store.load(KEY) is None


def test_save_then_overwrite(sql_store: SqlLedgerStore) -> None:
    sql_store.save(KEY, '{"totalSessions": 1}')
    sql_store.save(KEY, '{"totalSessions": 2}')
    assert sql_store.load(KEY) == '{"totalSessions": 2}'


def test_slots_are_independent(sql_store: SqlLedgerStore) -> None:
    sql_store.save("a", "1")
    sql_store.save("b", "2")
    sql_store.delete("a")
    assert sql_store.load("a") is None
    assert sql_store.load("b") == "2"


def test_delete_missing_slot_is_noop(sql_store: SqlLedgerStore) -> None:
    sql_store.delete(KEY)
    assert sql_store.load(KEY) is None


def test_slot_survives_new_store_instance(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'analytics.db'}"
    SqlLedgerStore(create_db_engine(url)).save(KEY, "kept")
    assert SqlLedgerStore(create_db_engine(url)).load(KEY) == "kept"


def test_unreachable_database_raises_storage_error(tmp_path) -> None:
    store = SqlLedgerStore(create_db_engine(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}"))
    with pytest.raises(StorageError):
        store.load(KEY)
    with pytest.raises(StorageError):
        store.save(KEY, "{}")


# ===========================================================================
# TEST GROUP 2: load_ledger recovery
# ===========================================================================

def test_absent_document_is_default() -> None:
    assert load_ledger(MemoryLedgerStore(), KEY) == Ledger.default()


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "{\"totalSessions\": ",
        "[]",
        "null",
        '{"totalSessions": "many"}',
        '{"events": [{"event": "quiz_loaded"}]}',
    ],
)
def test_corrupt_document_is_default(raw: str) -> None:
    ledger = load_ledger(MemoryLedgerStore({KEY: raw}), KEY)
    assert ledger.total_sessions == 0
    assert ledger.events == []


def test_unreadable_store_is_default(tmp_path) -> None:
    store = SqlLedgerStore(create_db_engine(f"sqlite:///{tmp_path / 'missing' / 'x.db'}"))
    assert load_ledger(store, KEY) == Ledger.default()


def test_partial_document_gets_missing_stages() -> None:
    raw = json.dumps({"totalSessions": 3, "funnelMetrics": {"quiz_loaded": 7}})
    ledger = load_ledger(MemoryLedgerStore({KEY: raw}), KEY)
    assert ledger.total_sessions == 3
    assert ledger.funnel_metrics["quiz_loaded"] == 7
    assert ledger.funnel_metrics["checkout_clicked"] == 0


# ===========================================================================
# TEST GROUP 3: Wire format
# ===========================================================================

BROWSER_DOCUMENT = {
    "totalSessions": 1,
    "events": [
        {
            "event": "quiz_loaded",
            "sessionId": "session_1773489600000_k2j4h5g6f",
            "timestamp": "2026-03-14T12:00:00.000Z",
            "page": "quiz",
            "url": "https://cronograma.example.com/quiz.html",
            "referrer": "",
            "userAgent": "Mozilla/5.0",
            "screenResolution": "390x844",
            "data": {},
        }
    ],
    "funnelMetrics": {
        "quiz_loaded": 1,
        "quiz_started": 0,
        "quiz_completed": 0,
        "sales_page_loaded": 0,
        "sales_page_scrolled": 0,
        "checkout_clicked": 0,
    },
    "dailyStats": {"2026-03-14": {"sessions": 0, "events": {"quiz_loaded": 1}, "conversions": {}}},
    "conversionRates": {"quizStartRate": "0.00", "overallConversionRate": "0.00"},
    "sessions": [
        {
            "id": "session_1773489600000_k2j4h5g6f",
            "startTime": "2026-03-14T12:00:00.000Z",
            "events": ["quiz_loaded"],
            "funnel": {"quiz_loaded": True},
            "lastActivity": "2026-03-14T12:00:00.000Z",
        }
    ],
}


def test_browser_document_loads() -> None:
    ledger = load_ledger(MemoryLedgerStore({KEY: json.dumps(BROWSER_DOCUMENT)}), KEY)
    assert ledger.total_sessions == 1
    assert ledger.events[0].session_id == "session_1773489600000_k2j4h5g6f"
    assert ledger.events[0].user_agent == "Mozilla/5.0"
    assert ledger.sessions[0].funnel_flags == {"quiz_loaded"}
    assert ledger.conversion_rates["quizStartRate"] == "0.00"


def test_saved_document_uses_camel_case_keys() -> None:
    store = MemoryLedgerStore()
    ledger = load_ledger(MemoryLedgerStore({KEY: json.dumps(BROWSER_DOCUMENT)}), KEY)
    save_ledger(store, KEY, ledger)

    saved = json.loads(store.slots[KEY])
    assert set(saved) == {"totalSessions", "events", "funnelMetrics", "dailyStats", "conversionRates", "sessions"}
    assert saved["events"][0]["sessionId"] == "session_1773489600000_k2j4h5g6f"
    assert saved["sessions"][0]["funnel"] == ["quiz_loaded"]
    assert saved["sessions"][0]["startTime"].startswith("2026-03-14T12:00:00")
