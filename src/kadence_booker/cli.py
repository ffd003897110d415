"""`kadence-booker`: create Kadence bookings in bulk from a CSV file."""
from __future__ import annotations

import argparse
import pathlib
import sys

import httpx

from .auth import token_provider_from_settings
from .booking import BookingSubmitter
from .client import KadenceClient
from .config import DEFAULT_FAILURE_LOG, load_settings
from .errors import AuthError, ValidationError
from .failure_log import FailureLog
from .logging_setup import configure_logging
from .models import RowOutcome
from .pipeline import PipelineOptions, RowPipeline, run_rows, summarize
from .resolver import EntityResolver
from .rows import DEFAULT_COLUMNS, STRICT_COLUMNS, read_csv
from .timewindow import parse_date


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kadence-booker",
        description="Create space bookings in Kadence from a CSV file.",
    )
    parser.add_argument(
        "-f",
        "--file",
        required=True,
        help="CSV with columns: email address, building name, floor name, space name, "
        "[space type], date, [start time], [end time].",
    )
    parser.add_argument("-d", "--date", help="Booking date (YYYY-MM-DD) applied to every row.")
    parser.add_argument("--dry-run", action="store_true", help="Resolve lookups and times but create nothing.")
    parser.add_argument("--concurrency", type=int, default=1, help="Rows processed concurrently (default 1).")
    parser.add_argument("--base-url", help="Override the Kadence API base URL.")
    parser.add_argument("--log", default=DEFAULT_FAILURE_LOG, help="CSV file that collects failed rows.")
    parser.add_argument(
        "--strict-headers",
        action="store_true",
        help="Require the exact header names instead of case-insensitive aliases.",
    )
    parser.add_argument("--log-level", default="WARNING", help="Diagnostic logging level.")
    parser.add_argument("--log-file", help="Also write diagnostic logging to this file.")
    return parser


def _report(outcome: RowOutcome) -> None:
    if outcome.result is not None:
        print(outcome.result.describe(), flush=True)
    else:
        print(f"Row {outcome.row} failed: {outcome.error}", file=sys.stderr, flush=True)


def run(args: argparse.Namespace, *, transport: httpx.BaseTransport | None = None) -> int:
    csv_path = pathlib.Path(args.file).expanduser().resolve()
    if not csv_path.exists():
        print(f"File not found: {csv_path}", file=sys.stderr)
        return 1

    if args.date:
        try:
            parse_date(args.date)
        except ValidationError as e:
            print(str(e), file=sys.stderr)
            return 1

    settings = load_settings(base_url=args.base_url)
    try:
        token_provider = token_provider_from_settings(settings, transport=transport)
    except AuthError as e:
        print(str(e), file=sys.stderr)
        return 1

    records = read_csv(csv_path, STRICT_COLUMNS if args.strict_headers else DEFAULT_COLUMNS)
    if not records:
        print("No rows found in CSV. Nothing to do.")
        return 0

    print(f"Processing {len(records)} row(s)...")

    client = KadenceClient(base_url=settings.api_base_url, token_provider=token_provider, transport=transport)
    pipeline = RowPipeline(
        client=client,
        resolver=EntityResolver(client),
        submitter=BookingSubmitter(client),
        options=PipelineOptions(dry_run=args.dry_run, date_override=args.date),
    )
    failure_log = None if args.dry_run else FailureLog(args.log)

    outcomes = run_rows(
        records,
        pipeline,
        concurrency=max(1, args.concurrency or 1),
        failure_log=failure_log,
        on_outcome=_report,
    )

    succeeded, failed = summarize(outcomes)
    print(f"Done. Success: {succeeded}, Failed: {failed}")
    if failed and failure_log is not None:
        print(f"Failed rows logged to {failure_log.path}")
    return 1 if failed else 0


def main(argv: list[str] | None = None, *, transport: httpx.BaseTransport | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, log_file=args.log_file)
    try:
        return run(args, transport=transport)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
