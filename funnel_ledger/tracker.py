"""
tracker.py — page-lifecycle helpers that decide WHEN to record funnel events.

The host forwards raw interactions (page shown, click, scroll position, exit) and
the tracker turns them into ledger events with the right stage name and payload.
Elapsed times are milliseconds since the tracker was created (page load).
"""
import logging
from typing import Any, Optional

from funnel_ledger.environment import extract_utm_params
from funnel_ledger.ledger import Clock, FunnelLedger, utc_now
from funnel_ledger.schemas import FunnelStage

logger = logging.getLogger(__name__)

SCROLL_THRESHOLD_PCT = 70   # checkout area sits in the bottom 30% of the sales page

CHECKOUT_TEXT_MARKERS = ("checkout", "comprar", "garantir")
CHECKOUT_HREF_MARKERS = ("hotmart", "monetizze", "pay")
QUIZ_CTA_MARKERS = ("vendas", "sales", "goToOffer", "checkout")


def is_checkout_target(text: str, href: str = "") -> bool:
    lowered = text.lower()
    return any(m in lowered for m in CHECKOUT_TEXT_MARKERS) or any(m in href for m in CHECKOUT_HREF_MARKERS)


def is_quiz_cta_target(href: str) -> bool:
    return any(m in href for m in QUIZ_CTA_MARKERS)


class FunnelTracker:
    def __init__(self, ledger: FunnelLedger, clock: Optional[Clock] = None) -> None:
        self.ledger = ledger
        self.clock = clock or ledger.clock
        self.started_at = self.clock()
        self.max_scroll = 0.0
        self._scroll_tracked = False
        self._quiz_completed = False

    def elapsed_ms(self) -> int:
        return int((self.clock() - self.started_at).total_seconds() * 1000)

    def _record(self, name: str, payload: Optional[dict[str, Any]] = None) -> None:
        self.ledger.record_event(name, payload)

    # -- page lifecycle -----------------------------------------------------

    def start(self) -> None:
        """Page shown: stage load event, then UTM attribution if the URL carries any."""
        self.track_page_load()
        self.track_utm_params()

    def track_page_load(self) -> None:
        page = self.ledger.page
        if page == "quiz":
            self._record(FunnelStage.QUIZ_LOADED.value)
        elif page == "sales":
            self._record(FunnelStage.SALES_PAGE_LOADED.value)
        else:
            logger.debug("No load stage for page=%s", page)

    def track_utm_params(self, url: Optional[str] = None) -> None:
        utm = extract_utm_params(url if url is not None else self.ledger.context.url)
        if utm:
            self._record("utm_parameters", utm)

    def track_page_exit(self, scroll_depth: Optional[float] = None) -> None:
        depth = self.max_scroll if scroll_depth is None else scroll_depth
        self._record(
            "page_exit",
            {
                "page": self.ledger.page,
                "timeOnPage": self.elapsed_ms(),
                "scrollDepth": f"{depth:.2f}%",
            },
        )

    # -- quiz page ----------------------------------------------------------

    def track_quiz_started(self) -> None:
        self._record(FunnelStage.QUIZ_STARTED.value, {"timestamp": int(self.clock().timestamp() * 1000)})

    def track_quiz_completed(self, score: Optional[str] = None) -> None:
        """Result screen shown. Only the first call per page records anything."""
        if self._quiz_completed:
            return
        self._quiz_completed = True
        self._record(
            FunnelStage.QUIZ_COMPLETED.value,
            {"score": score or "N/A", "timeToComplete": self.elapsed_ms()},
        )

    # -- sales page ---------------------------------------------------------

    def track_scroll(self, percentage: float) -> None:
        """Scroll position as % of page height; the stage fires once past the threshold."""
        self.max_scroll = max(self.max_scroll, percentage)
        if not self._scroll_tracked and percentage > SCROLL_THRESHOLD_PCT:
            self._scroll_tracked = True
            self._record(
                FunnelStage.SALES_PAGE_SCROLLED.value,
                {"scrollDepth": f"{round(percentage)}%", "timeToScroll": self.elapsed_ms()},
            )

    def track_click(self, text: str, href: str = "") -> None:
        """A link or button was clicked; records a stage only for funnel-relevant targets."""
        page = self.ledger.page
        if page == "sales" and is_checkout_target(text, href):
            self._record(
                FunnelStage.CHECKOUT_CLICKED.value,
                {
                    "buttonText": text.strip(),
                    "scrollDepth": f"{self.max_scroll}%",
                    "timeOnPage": self.elapsed_ms(),
                },
            )
        elif page == "quiz" and is_quiz_cta_target(href):
            self._record("quiz_cta_clicked", {"buttonText": text.strip(), "destination": href})

    def track_video_played(self, duration: float, current_time: float) -> None:
        self._record("video_played", {"duration": duration, "currentTime": current_time})
