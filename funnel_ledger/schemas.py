"""
schemas.py — funnel_ledger Pydantic v2 data contracts.

Defines:
  - FunnelStage      (the six canonical checkpoints of the quiz → sales → checkout path)
  - Event            (one observed interaction — immutable once created)
  - FunnelSession    (one browsing context's worth of interaction)
  - DayBucket        (per-calendar-day aggregation inside dailyStats)
  - Ledger           (the aggregate root — the single persisted document)
  - SinkNotification (what external reporting integrations receive)

WIRE FORMAT NOTE:
  Python attributes are snake_case; the persisted JSON keeps the camelCase keys of
  the browser document (totalSessions, funnelMetrics, sessionId, ...). Always dump
  with by_alias=True — Ledger.to_json() does this.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

Page = Literal["quiz", "sales", "dashboard", "unknown"]


# ---------------------------------------------------------------------------
# FunnelStage — canonical stage vocabulary
# ---------------------------------------------------------------------------

class FunnelStage(str, Enum):
    """Canonical funnel checkpoints, in funnel order."""
    QUIZ_LOADED = "quiz_loaded"
    QUIZ_STARTED = "quiz_started"
    QUIZ_COMPLETED = "quiz_completed"
    SALES_PAGE_LOADED = "sales_page_loaded"
    SALES_PAGE_SCROLLED = "sales_page_scrolled"
    CHECKOUT_CLICKED = "checkout_clicked"


FUNNEL_STAGES: tuple[str, ...] = tuple(stage.value for stage in FunnelStage)
_STAGE_NAMES = frozenset(FUNNEL_STAGES)


def is_funnel_stage(name: str) -> bool:
    """True for the six canonical stage names; custom event names are logged but not counted."""
    return name in _STAGE_NAMES


def zeroed_funnel_metrics() -> dict[str, int]:
    return {stage: 0 for stage in FUNNEL_STAGES}


# ---------------------------------------------------------------------------
# Event — one observed interaction
# ---------------------------------------------------------------------------

class Event(BaseModel):
    """
    A single interaction event, appended to the global log and never edited.

    url / referrer / user_agent / screen_resolution are environment descriptors
    gathered by the host; data is the caller's payload in JSON-compatible form (any
    shape — object, list, scalar). None of them are validated.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(alias="event")
    session_id: str = Field(alias="sessionId")
    timestamp: datetime
    page: Page = "unknown"

    url: Optional[str] = None
    referrer: Optional[str] = None
    user_agent: Optional[str] = Field(default=None, alias="userAgent")
    screen_resolution: Optional[str] = Field(default=None, alias="screenResolution")

    data: Any = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# FunnelSession — per-session event sequence and stage flags
# ---------------------------------------------------------------------------

class FunnelSession(BaseModel):
    """
    events:       every event name in arrival order, duplicates kept.
    funnel_flags: names reached at least once — set membership, so idempotent.
                  Persisted under "funnel" as a sorted list; the legacy
                  {"quiz_loaded": true, ...} mapping is accepted on load.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    start_time: datetime = Field(alias="startTime")
    last_activity: Optional[datetime] = Field(default=None, alias="lastActivity")
    events: list[str] = Field(default_factory=list)
    funnel_flags: set[str] = Field(default_factory=set, alias="funnel")

    @field_validator("funnel_flags", mode="before")
    @classmethod
    def _accept_legacy_mapping(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {name for name, reached in value.items() if reached}
        return value

    @field_serializer("funnel_flags")
    def _sorted_flags(self, flags: set[str]) -> list[str]:
        return sorted(flags)


# ---------------------------------------------------------------------------
# DayBucket — one entry of dailyStats
# ---------------------------------------------------------------------------

class DayBucket(BaseModel):
    sessions: int = 0                                            # sessions first seen this day
    events: dict[str, int] = Field(default_factory=dict)         # event name → occurrences
    conversions: dict[str, str] = Field(default_factory=dict)    # rate name → "NN.NN"


# ---------------------------------------------------------------------------
# Ledger — the aggregate root
# ---------------------------------------------------------------------------

class Ledger(BaseModel):
    """
    The single persisted analytics document.

    Invariants kept by FunnelLedger (never by callers):
      - funnel_metrics holds exactly the six canonical stages
      - total_sessions == number of distinct ids ever appended to sessions
      - conversion_rates is derived from funnel_metrics, never patched directly
    """
    model_config = ConfigDict(populate_by_name=True)

    total_sessions: int = Field(default=0, alias="totalSessions")
    events: list[Event] = Field(default_factory=list)
    funnel_metrics: dict[str, int] = Field(default_factory=zeroed_funnel_metrics, alias="funnelMetrics")
    daily_stats: dict[str, DayBucket] = Field(default_factory=dict, alias="dailyStats")
    conversion_rates: dict[str, str] = Field(default_factory=dict, alias="conversionRates")
    sessions: list[FunnelSession] = Field(default_factory=list)

    @model_validator(mode="after")
    def _fill_missing_stages(self) -> "Ledger":
        for stage in FUNNEL_STAGES:
            self.funnel_metrics.setdefault(stage, 0)
        return self

    @classmethod
    def default(cls) -> "Ledger":
        """Fresh document: all counters zero, all sequences and mappings empty."""
        return cls()

    def find_session(self, session_id: str) -> Optional[FunnelSession]:
        return next((s for s in self.sessions if s.id == session_id), None)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


# ---------------------------------------------------------------------------
# SinkNotification — payload handed to external reporting integrations
# ---------------------------------------------------------------------------

class SinkNotification(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_name: str
    category: str = "Funnel"
    label: str                                    # page that emitted the event
    value: Any = Field(default_factory=dict)
