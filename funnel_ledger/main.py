"""
main.py — funnel-ledger command-line entry point.

Usage:
    funnel-ledger show
    funnel-ledger summary SESSION_ID
    funnel-ledger record quiz_started --url https://example.com/quiz.html --data '{"step": 1}'
    funnel-ledger reset --yes
"""
import argparse
import json
import logging
import sys
from typing import Optional

from funnel_ledger.config import settings
from funnel_ledger.environment import PageContext
from funnel_ledger.ledger import create_ledger
from funnel_ledger.sinks import logging_sink

# ---------------------------------------------------------------------------
# Logging — configured before anything else
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="funnel-ledger", description="Local funnel analytics ledger")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="print the analytics document as JSON")

    summary = sub.add_parser("summary", help="print the summary of one session")
    summary.add_argument("session_id")

    record = sub.add_parser("record", help="record one event")
    record.add_argument("name")
    record.add_argument("--data", default="{}", help="JSON object payload")
    record.add_argument("--url", default=None, help="page URL the event came from")
    record.add_argument("--referrer", default=None)

    reset = sub.add_parser("reset", help="clear all metrics")
    reset.add_argument("--yes", action="store_true", help="confirm the reset")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "record":
        try:
            payload = json.loads(args.data)
        except json.JSONDecodeError as exc:
            logger.error("--data is not valid JSON: %s", exc)
            return 2
        if not isinstance(payload, dict):
            logger.error("--data must be a JSON object")
            return 2
        ledger = create_ledger(PageContext(url=args.url, referrer=args.referrer), sinks=[logging_sink])
        ledger.record_event(args.name, payload)
        return 0

    ledger = create_ledger()

    if args.command == "show":
        print(json.dumps(ledger.get_snapshot().model_dump(mode="json", by_alias=True), indent=2))
        return 0

    if args.command == "summary":
        summary = ledger.summarize_session(args.session_id)
        if summary is None:
            logger.error("Unknown session session_id=%s", args.session_id)
            return 1
        print(json.dumps(summary, indent=2))
        return 0

    if not ledger.reset(confirmed=args.yes):
        print("Nothing cleared — re-run with --yes to reset all metrics.", file=sys.stderr)
        return 1
    print("Analytics reset.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
