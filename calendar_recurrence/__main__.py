"""Command-line entry for calendar_recurrence.

Inspect persisted rule text from a shell: describe it, decode it to JSON, or
expand it over a window.
"""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from datetime import datetime, timedelta

from dateutil.parser import isoparse

from . import _init_logging
from .config_loader import load_config
from .occurrence_expander import ExpanderConfig, OccurrenceExpander
from .recurrence_logging import configure_logging
from .rrule_codec import decode_rule, describe_rule

logger = logging.getLogger(__name__)


def _rule_text(raw: str) -> str:
    """Accept rule text with literal ``\\n`` or a space before ``RRULE:``."""
    text = raw.replace("\\n", "\n")
    return re.sub(r"[ \t]+(?=RRULE:)", "\n", text)


def _datetime_arg(value: str) -> datetime:
    try:
        return isoparse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO 8601 date-time: {value!r}") from exc


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the calendar_recurrence CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="calendar_recurrence",
        description="Inspect and expand persisted recurrence rules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m calendar_recurrence describe 'DTSTART:20250106T090000Z\\nRRULE:FREQ=WEEKLY;BYDAY=MO,WE,FR'
  python -m calendar_recurrence expand 'DTSTART:20250131T100000Z RRULE:FREQ=MONTHLY;COUNT=3' \\
      --end 2025-01-31T11:00:00Z --from 2025-01-01T00:00:00Z --to 2025-06-01T00:00:00Z
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="YAML/JSON config file")
    parser.add_argument("--log-level", metavar="LEVEL", help="Override the configured log level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    describe = subparsers.add_parser("describe", help="Print a readable summary of a rule")
    describe.add_argument("rule", help="Rule text (DTSTART and RRULE lines)")

    decode = subparsers.add_parser("decode", help="Print the decoded rule as JSON")
    decode.add_argument("rule", help="Rule text (DTSTART and RRULE lines)")

    expand = subparsers.add_parser("expand", help="List occurrences inside a window")
    expand.add_argument("rule", help="Rule text (DTSTART and RRULE lines)")
    expand.add_argument(
        "--end",
        type=_datetime_arg,
        help="End of the first occurrence (default: one hour after DTSTART)",
    )
    expand.add_argument(
        "--from", dest="window_start", type=_datetime_arg, required=True, help="Window start"
    )
    expand.add_argument(
        "--to",
        dest="window_end",
        type=_datetime_arg,
        help="Window end (default: window start plus default_window_days)",
    )
    expand.add_argument("--json", action="store_true", help="Print occurrences as JSON")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the calendar_recurrence CLI.

    Returns:
        Process exit code; 1 when the rule text cannot be decoded
    """
    parser = _create_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    log_level = args.log_level or config.log_level
    if log_level.upper() == "DEBUG":
        configure_logging(debug_mode=True)
    _init_logging(log_level)
    expander_config = ExpanderConfig.from_settings(config)

    result = decode_rule(_rule_text(args.rule), expander_config.fallback_frequency)
    if result.rule is None:
        print(f"Invalid recurrence rule: {result.error_message}", file=sys.stderr)
        return 1
    rule = result.rule
    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)

    if args.command == "describe":
        print(describe_rule(rule))
        return 0

    if args.command == "decode":
        print(json.dumps(rule.model_dump(mode="json"), indent=2))
        return 0

    anchor_end = args.end or rule.anchor_start + timedelta(hours=1)
    if anchor_end.tzinfo is None and rule.anchor_start.tzinfo is not None:
        anchor_end = anchor_end.replace(tzinfo=rule.anchor_start.tzinfo)
    elif anchor_end.tzinfo is not None and rule.anchor_start.tzinfo is None:
        anchor_end = anchor_end.replace(tzinfo=None)
    window_end = args.window_end or args.window_start + timedelta(days=config.default_window_days)
    occurrences = OccurrenceExpander(expander_config).expand(
        rule, rule.anchor_start, anchor_end, args.window_start, window_end
    )
    logger.debug("Expanded %d occurrences", len(occurrences))

    if args.json:
        print(json.dumps([occ.model_dump(mode="json") for occ in occurrences], indent=2))
    else:
        for occurrence in occurrences:
            print(f"{occurrence.start.isoformat()}  {occurrence.end.isoformat()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
