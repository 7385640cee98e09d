"""
Conversion-rate and session-summary tests.

Groups:
  1. Rate table — exact string values, zero-denominator omission
  2. Partial counters (day buckets) and formatting
  3. summarize_session
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from funnel_ledger.metrics import CONVERSION_RATES, compute_conversion_rates, format_rate, summarize_session
from funnel_ledger.schemas import FUNNEL_STAGES, FunnelSession, Ledger, zeroed_funnel_metrics


# ===========================================================================
# TEST GROUP 1: Rate table
# ===========================================================================

def test_reference_funnel_rates() -> None:
    metrics = {
        "quiz_loaded": 100,
        "quiz_started": 40,
        "quiz_completed": 10,
        "sales_page_loaded": 8,
        "sales_page_scrolled": 4,
        "checkout_clicked": 1,
    }
    assert compute_conversion_rates(metrics) == {
        "quizStartRate": "40.00",
        "quizCompletionRate": "25.00",
        "salesPageViewRate": "80.00",
        "scrollRate": "50.00",
        "checkoutClickRate": "25.00",
        "overallConversionRate": "1.00",
    }


def test_all_zero_metrics_yield_no_rates() -> None:
    assert compute_conversion_rates(zeroed_funnel_metrics()) == {}


def test_rate_present_only_when_denominator_positive() -> None:
    metrics = zeroed_funnel_metrics()
    metrics["quiz_loaded"] = 3
    rates = compute_conversion_rates(metrics)
    # quiz_loaded is the denominator of exactly two rates
    assert rates == {"quizStartRate": "0.00", "overallConversionRate": "0.00"}


def test_rate_table_covers_six_rates_over_canonical_stages() -> None:
    assert len(CONVERSION_RATES) == 6
    for _name, numerator, denominator in CONVERSION_RATES:
        assert numerator.value in FUNNEL_STAGES
        assert denominator.value in FUNNEL_STAGES


# ===========================================================================
# TEST GROUP 2: Partial counters and formatting
# ===========================================================================

def test_partial_mapping_treats_missing_stages_as_zero() -> None:
    day_events = {"quiz_loaded": 4, "quiz_started": 1, "utm_parameters": 4}
    assert compute_conversion_rates(day_events) == {
        "quizStartRate": "25.00",
        "quizCompletionRate": "0.00",
        "overallConversionRate": "0.00",
    }


@pytest.mark.parametrize(
    "numerator,denominator,expected",
    [
        (1, 3, "33.33"),
        (2, 3, "66.67"),
        (5, 4, "125.00"),
        (0, 7, "0.00"),
        (1, 800, "0.13"),
        (5, 800, "0.63"),
        (1, 8, "12.50"),
    ],
)
def test_format_rate_two_decimals(numerator: int, denominator: int, expected: str) -> None:
    assert format_rate(numerator, denominator) == expected


def test_rates_are_strings() -> None:
    rates = compute_conversion_rates({"quiz_loaded": 3, "quiz_started": 1})
    assert all(isinstance(v, str) for v in rates.values())


# ===========================================================================
# TEST GROUP 3: summarize_session
# ===========================================================================

def _ledger_with_session(flags: set[str], events: list[str]) -> Ledger:
    start = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)
    session = FunnelSession(
        id="s1",
        start_time=start,
        last_activity=start + timedelta(minutes=5),
        events=events,
        funnel_flags=flags,
    )
    return Ledger(sessions=[session], total_sessions=1)


def test_summary_of_unknown_session_is_none() -> None:
    assert summarize_session(Ledger.default(), "nope") is None


def test_summary_orders_stages_canonically() -> None:
    ledger = _ledger_with_session(
        flags={"sales_page_loaded", "quiz_loaded", "video_played", "quiz_completed"},
        events=["quiz_loaded", "quiz_completed", "sales_page_loaded", "video_played"],
    )
    summary = summarize_session(ledger, "s1")
    assert summary["stages_reached"] == ["quiz_loaded", "quiz_completed", "sales_page_loaded"]
    assert summary["furthest_stage"] == "sales_page_loaded"
    assert summary["converted"] is False
    assert summary["event_count"] == 4
    assert summary["duration_seconds"] == 300


def test_summary_marks_conversion() -> None:
    ledger = _ledger_with_session(flags={"checkout_clicked"}, events=["checkout_clicked"])
    summary = summarize_session(ledger, "s1")
    assert summary["converted"] is True
    assert summary["furthest_stage"] == "checkout_clicked"


def test_summary_without_stages() -> None:
    ledger = _ledger_with_session(flags={"page_exit"}, events=["page_exit"])
    summary = summarize_session(ledger, "s1")
    assert summary["stages_reached"] == []
    assert summary["furthest_stage"] is None


def test_tie_rates_round_up_like_the_dashboard() -> None:
    rates = compute_conversion_rates({"quiz_loaded": 800, "quiz_started": 5, "checkout_clicked": 1})
    assert rates["quizStartRate"] == "0.63"
    assert rates["overallConversionRate"] == "0.13"
