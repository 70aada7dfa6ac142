"""CLI entrypoint for exporting Bugsnag project events to CSV."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from bugsnag_client import BugsnagClient, BugsnagClientError, events_path, find_project
from bugsnag_csv import ExportConfig, MalformedRecordError, export_csv, write_csv, write_csv_filelike
from bugsnag_pagination import PageFetchError, fetch_all
from bugsnag_query import DEFAULT_PER_PAGE, EventQuery, parse_time
from bugsnag_schema import DEFAULT_SCHEMA_POLICY, SCHEMA_POLICIES

logger = logging.getLogger("bugsnag_export")


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid integer '{value}'") from exc
    if number < 1:
        raise argparse.ArgumentTypeError(f"Expected a positive integer, got {number}")
    return number


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export Bugsnag project events to CSV")
    parser.add_argument("--account", required=True, help="Bugsnag account name")
    parser.add_argument("--project", required=True, help="Bugsnag project name")
    parser.add_argument("--token", help="Authorization token (or BUGSNAG_TOKEN)")
    parser.add_argument("--username", help="Authorization user (or BUGSNAG_USERNAME)")
    parser.add_argument("--password", help="Authorization password (or BUGSNAG_PASSWORD)")
    parser.add_argument("--from", dest="start", help="Start time for the query, e.g. 2024-01-31 or '2 days ago'")
    parser.add_argument("--until", dest="end", help="End time for the query")
    parser.add_argument("--save", help="Save output to the specified file instead of stdout (.gz compresses)")
    parser.add_argument(
        "--timezone",
        default=os.getenv("TZ") or "UTC",
        help="Interpret --from and --until using this timezone (default: $TZ or UTC)",
    )
    parser.add_argument("--limit", type=_positive_int, help="Maximum number of events to export (default: $BUGSNAG_EXPORT_LIMIT)")
    parser.add_argument(
        "--schema-policy",
        choices=SCHEMA_POLICIES,
        help=(
            "frequency: every column seen, most common first; intersection: only columns in every event "
            f"(default: $BUGSNAG_SCHEMA_POLICY or {DEFAULT_SCHEMA_POLICY})"
        ),
    )
    parser.add_argument("--base-url", help="Override the Bugsnag API base URL")
    parser.add_argument("--timeout", type=int, default=30, help="HTTP timeout in seconds")
    parser.add_argument("--per-page", type=_positive_int, default=DEFAULT_PER_PAGE, help="Events per page request")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _build_export_config(args: argparse.Namespace) -> ExportConfig:
    config = ExportConfig.from_env()
    if args.limit is not None:
        config.limit = args.limit
    if args.schema_policy is not None:
        config.schema_policy = args.schema_policy
    config.validate()
    return config


def _build_query(args: argparse.Namespace) -> EventQuery:
    try:
        tz = ZoneInfo(args.timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone '{args.timezone}'") from exc

    query = EventQuery(
        start_time=parse_time(args.start, tz) if args.start else None,
        end_time=parse_time(args.end, tz) if args.end else None,
        per_page=args.per_page,
    )
    query.validate()
    return query


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = _build_export_config(args)
        query = _build_query(args)
    except ValueError as exc:
        print(f"Invalid arguments: {exc}", file=sys.stderr)
        return 2

    try:
        client = BugsnagClient(
            token=args.token,
            username=args.username,
            password=args.password,
            base_url=args.base_url,
            timeout=args.timeout,
        )
    except BugsnagClientError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    try:
        project_id = find_project(client, args.account, args.project)
    except PageFetchError as exc:
        print(
            f"Error looking up project {args.account}/{args.project}: {exc} "
            f"(fetched {exc.pages_fetched} pages, {exc.records_fetched} records before failure)",
            file=sys.stderr,
        )
        return 1
    except BugsnagClientError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    try:
        events = fetch_all(client, events_path(project_id, query), limit=config.limit, base_url=client.base_url)
    except PageFetchError as exc:
        print(
            f"Error fetching events: {exc} "
            f"(fetched {exc.pages_fetched} pages, {exc.records_fetched} records before failure)",
            file=sys.stderr,
        )
        return 1

    try:
        lines = export_csv(events, config.schema_policy)
    except MalformedRecordError as exc:
        print(f"Cannot export events: {exc}", file=sys.stderr)
        return 1

    if args.save:
        write_csv(lines, args.save)
    else:
        write_csv_filelike(lines, sys.stdout)

    message_parts = [f"Exported {len(events)} events"]
    if config.limit is not None and len(events) >= config.limit:
        message_parts.append("(truncated by --limit)")
    if args.save:
        message_parts.append(f"to {args.save}")
    logger.info(" ".join(message_parts))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
