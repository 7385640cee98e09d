"""
funnel_ledger — local event ledger and funnel-metrics aggregator.

Observes quiz → sales page → checkout interaction events, keeps them in a single
persisted document and derives per-day and all-time funnel conversion statistics.
"""
from funnel_ledger.ledger import FunnelLedger, LedgerState, create_ledger
from funnel_ledger.metrics import compute_conversion_rates
from funnel_ledger.schemas import FUNNEL_STAGES, FunnelStage, Ledger
from funnel_ledger.session import SessionManager

__all__ = [
    "FUNNEL_STAGES",
    "FunnelLedger",
    "FunnelStage",
    "Ledger",
    "LedgerState",
    "SessionManager",
    "compute_conversion_rates",
    "create_ledger",
]
