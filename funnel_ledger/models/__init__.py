"""
models/__init__.py — imports all ORM models so Base.metadata sees them
before init_db() creates the tables.
"""
from funnel_ledger.models.analytics_slot import AnalyticsSlotORM

__all__ = ["AnalyticsSlotORM"]
