"""
metrics.py — conversion-rate derivation and derived summaries.

Everything here is a pure function of a Ledger (or of a counter mapping): nothing
is mutated, nothing is persisted.

Conversion rates:
  Each rate is 100 * numerator / denominator, formatted with exactly two decimals
  ("40.00"). The value is a string, not a float: dashboards compare and display it
  as-is. A rate whose denominator is zero is omitted entirely.
"""
from __future__ import annotations

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from funnel_ledger.schemas import FUNNEL_STAGES, FunnelStage, Ledger

CENT = Decimal("0.01")

# ---------------------------------------------------------------------------
# Rate table — (rate name, numerator stage, denominator stage)
# ---------------------------------------------------------------------------
CONVERSION_RATES: tuple[tuple[str, FunnelStage, FunnelStage], ...] = (
    ("quizStartRate", FunnelStage.QUIZ_STARTED, FunnelStage.QUIZ_LOADED),
    ("quizCompletionRate", FunnelStage.QUIZ_COMPLETED, FunnelStage.QUIZ_STARTED),
    ("salesPageViewRate", FunnelStage.SALES_PAGE_LOADED, FunnelStage.QUIZ_COMPLETED),
    ("scrollRate", FunnelStage.SALES_PAGE_SCROLLED, FunnelStage.SALES_PAGE_LOADED),
    ("checkoutClickRate", FunnelStage.CHECKOUT_CLICKED, FunnelStage.SALES_PAGE_SCROLLED),
    ("overallConversionRate", FunnelStage.CHECKOUT_CLICKED, FunnelStage.QUIZ_LOADED),
)


def format_rate(numerator: int, denominator: int) -> str:
    """
    Percentage with exactly two decimals. Caller guarantees denominator > 0.
    Ties round up on the exact float value (1/800 → "0.13"), as the browser dashboard does.
    """
    percent = Decimal(numerator / denominator * 100)
    return str(percent.quantize(CENT, rounding=ROUND_HALF_UP))


def compute_conversion_rates(funnel_metrics: Mapping[str, int]) -> dict[str, str]:
    """
    Derive every conversion rate from stage counters.

    Missing stages count as zero, so a partial mapping (e.g. one day's event
    counts) works too. Keys appear only when their denominator is > 0.
    """
    rates: dict[str, str] = {}
    for rate_name, numerator, denominator in CONVERSION_RATES:
        den = funnel_metrics.get(denominator.value, 0)
        if den > 0:
            rates[rate_name] = format_rate(funnel_metrics.get(numerator.value, 0), den)
    return rates


# ---------------------------------------------------------------------------
# Session summary
# ---------------------------------------------------------------------------

def summarize_session(ledger: Ledger, session_id: str) -> Optional[dict[str, Any]]:
    """
    Derive a structured summary for one session.

    Computed metrics:
      - event_count, duration_seconds (start → last activity)
      - stages_reached (canonical order), furthest_stage
      - converted (reached checkout_clicked)
    Returns None if the session was never seen.
    """
    session = ledger.find_session(session_id)
    if session is None:
        return None

    stages_reached = [stage for stage in FUNNEL_STAGES if stage in session.funnel_flags]
    last_active_at = session.last_activity or session.start_time
    duration_s = max(0, int((last_active_at - session.start_time).total_seconds()))

    return {
        "session_id": session.id,
        "started_at": session.start_time.isoformat(),
        "last_active_at": last_active_at.isoformat(),
        "duration_seconds": duration_s,
        "event_count": len(session.events),
        "stages_reached": stages_reached,
        "furthest_stage": stages_reached[-1] if stages_reached else None,
        "converted": FunnelStage.CHECKOUT_CLICKED.value in session.funnel_flags,
    }
