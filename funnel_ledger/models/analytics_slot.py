"""
models/analytics_slot.py — SQLAlchemy ORM model for one durable key-value slot.

Table: analytics_slots
One row per storage key. The Ledger document lives in a single row keyed by
settings.analytics_key; the value is the whole document as JSON text so it stays
human-inspectable and a corrupt value can be detected on load.
"""
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from funnel_ledger.database import Base


class AnalyticsSlotORM(Base):
    __tablename__ = "analytics_slots"

    key: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Fixed slot key, e.g. 'cronograma_analytics'",
    )
    value: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Serialized Ledger document (JSON text)",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
