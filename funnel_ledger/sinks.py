"""
sinks.py — best-effort forwarding of recorded events to reporting integrations.

A sink is any callable taking a SinkNotification. Sinks run after the event is
recorded and persisted; each one runs inside its own error boundary, so a missing
or broken integration can never touch the ledger or the other sinks.
"""
import logging
from collections.abc import Callable, Iterable
from typing import Any

from funnel_ledger.schemas import SinkNotification

logger = logging.getLogger(__name__)

Sink = Callable[[SinkNotification], None]


def dispatch(sinks: Iterable[Sink], notification: SinkNotification) -> int:
    """Invoke every sink; returns how many completed without raising."""
    delivered = 0
    for sink in sinks:
        try:
            sink(notification)
        except Exception:
            # Third-party code may raise anything; isolate it and keep going
            logger.exception(
                "Sink %r failed for event=%s",
                getattr(sink, "__name__", sink),
                notification.event_name,
            )
            continue
        delivered += 1
    return delivered


# ---------------------------------------------------------------------------
# Adapters for tag-manager style call signatures
# ---------------------------------------------------------------------------

def gtag_sink(gtag: Callable[..., Any]) -> Sink:
    """Forward as gtag("event", name, {event_category, event_label, value})."""

    def _send(notification: SinkNotification) -> None:
        gtag(
            "event",
            notification.event_name,
            {
                "event_category": notification.category,
                "event_label": notification.label,
                "value": notification.value,
            },
        )

    _send.__name__ = "gtag_sink"
    return _send


def pixel_sink(fbq: Callable[..., Any]) -> Sink:
    """Forward as fbq("trackCustom", name, payload)."""

    def _send(notification: SinkNotification) -> None:
        fbq("trackCustom", notification.event_name, notification.value)

    _send.__name__ = "pixel_sink"
    return _send


def logging_sink(notification: SinkNotification) -> None:
    """Writes each notification to the log — handy when no integration is wired up."""
    logger.info(
        "Funnel event event=%s category=%s label=%s",
        notification.event_name,
        notification.category,
        notification.label,
    )
