"""CLI entry point for gpmeta."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import datetime

from gpmeta import __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gpmeta",
        description="Extract dependency-ordered object metadata from a Greenplum or PostgreSQL cluster.",
    )
    parser.add_argument("--version", action="version", version=f"gpmeta {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands (default: extract)")

    # -- extract --
    extract_parser = subparsers.add_parser(
        "extract", help="Read the catalog and write a JSON metadata snapshot"
    )
    _add_connection_args(extract_parser)
    _add_extraction_args(extract_parser)
    extract_parser.add_argument(
        "--output", "-o", help="Output file path (default: ./snapshots/<dbname>_<timestamp>.json, '-' for stdout)"
    )
    extract_parser.add_argument("--verbose", "-v", action="store_true", help="Print progress")

    # -- list-readers --
    subparsers.add_parser("list-readers", help="List all available catalog readers")

    return parser


def _add_connection_args(parser: argparse.ArgumentParser):
    grp = parser.add_argument_group("connection")
    grp.add_argument("--dsn", help="PostgreSQL connection URI (postgres://...)")
    grp.add_argument("--host", "-H", default=None, help="Database host")
    grp.add_argument("--port", "-p", type=int, default=5432, help="Database port (default: 5432)")
    grp.add_argument("--dbname", "-d", default=None, help="Database name")
    grp.add_argument("--user", "-U", default=None, help="Database user")
    grp.add_argument("--password", "-W", default=None, help="Database password")


def _add_extraction_args(parser: argparse.ArgumentParser):
    grp = parser.add_argument_group("extraction")
    grp.add_argument("--config", "-c", help="Path to gpmeta.yaml (default: ./gpmeta.yaml, then ~/gpmeta.yaml)")
    grp.add_argument("--workers", "-j", type=int, default=None, help="Parallel catalog connections")
    grp.add_argument("--timeout", type=float, default=None, help="Abort the extraction after this many seconds")
    grp.add_argument(
        "--statement-timeout", type=float, default=None, help="Cancel any single catalog query after this many seconds"
    )
    grp.add_argument("--exclude", help="Comma-separated reader names to skip")
    grp.add_argument("--include-only", help="Comma-separated reader names to run (all others skipped)")


def main(argv: list[str] | None = None):
    parser = build_parser()

    # Default to "extract" when no subcommand is given but arguments are present
    raw_args = argv if argv is not None else sys.argv[1:]
    known_commands = {"extract", "list-readers"}
    if raw_args and raw_args[0] not in known_commands and raw_args[0] not in ("--version", "--help", "-h"):
        raw_args = ["extract"] + list(raw_args)
    elif not raw_args:
        parser.print_help()
        sys.exit(1)

    args = parser.parse_args(raw_args)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "list-readers":
        _cmd_list_readers(args)
    elif args.command == "extract":
        _cmd_extract(args)


def _cmd_list_readers(args):
    from gpmeta.registry import discover_readers

    readers = discover_readers()

    if not readers:
        print("No readers found.")
        return

    for reader in readers:
        kind = getattr(reader.kind, "value", reader.kind)
        print(f"  {reader.name:20s} {kind:16s} {reader.description}")


def _split(value: str | None) -> set[str] | None:
    if value is None:
        return None
    return {part.strip() for part in value.split(",") if part.strip()}


def _cmd_extract(args):
    from gpmeta.config import load_config, merge_cli_with_config
    from gpmeta.errors import CatalogConnectionError, ExtractionCancelled, ExtractionError
    from gpmeta.extraction import run_extraction
    from gpmeta.reporters.json_reporter import render

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    config = merge_cli_with_config(
        config,
        cli_exclude=_split(args.exclude),
        cli_include_only=_split(args.include_only),
        cli_workers=args.workers,
        cli_timeout=args.timeout,
        cli_statement_timeout=args.statement_timeout,
    )

    connect_kwargs = {
        "host": args.host,
        "port": args.port,
        "dbname": args.dbname,
        "user": args.user,
        "password": args.password,
        "dsn": args.dsn,
    }

    try:
        snapshot = run_extraction(connect_kwargs, config=config, verbose=args.verbose)
    except CatalogConnectionError as e:
        cause = str(e.__cause__ or e).strip()
        print("Error: Could not read from database.", file=sys.stderr)
        print(f"       {cause}", file=sys.stderr)
        if "no password supplied" in cause:
            print("\nHint: Use --password to provide a password, or set PGPASSWORD environment variable.", file=sys.stderr)
        elif "does not exist" in cause:
            print("\nHint: Check that the database name is correct.", file=sys.stderr)
        elif "Connection refused" in cause or "could not connect" in cause.lower():
            print(f"\nHint: Check that the server is running on {args.host or 'localhost'}:{args.port or 5432}.", file=sys.stderr)
        sys.exit(1)
    except ExtractionCancelled as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ExtractionError as e:
        print(f"Error: Extraction failed: {e}", file=sys.stderr)
        sys.exit(1)

    for warning in snapshot.warnings:
        print(f"Warning: {warning}", file=sys.stderr)

    _write_output(render(snapshot), args, dbname=args.dbname or "")


def _write_output(output: str, args, dbname: str = ""):
    """Write the snapshot to a file (with timestamped name) or stdout."""
    if args.output == "-":
        sys.stdout.write(output + "\n")
        return

    if args.output:
        path = _make_output_path(args.output, dbname)
    else:
        path = _make_default_output_path(dbname)

    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w") as f:
        f.write(output)
    print(f"Snapshot written to {path}", file=sys.stderr)


def _make_default_output_path(dbname: str) -> str:
    """Generate a default output path: ./snapshots/<dbname>_<timestamp>.json."""
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    name = dbname or "gpmeta"
    return os.path.join("snapshots", f"{name}_{ts}.json")


def _make_output_path(user_path: str, dbname: str = "") -> str:
    """Insert a timestamp into the output filename.

    If the user provides a path like ``snapshot.json``, the result is
    ``snapshot_20260127_131504.json``.  If they provide a bare directory,
    the file is placed there with an auto-generated name.
    """
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    name = dbname or "gpmeta"

    if os.path.isdir(user_path):
        return os.path.join(user_path, f"{name}_{ts}.json")

    base, existing_ext = os.path.splitext(user_path)
    return f"{base}_{ts}{existing_ext or '.json'}"
