#!/usr/bin/env python3
"""Command line shell for issuing single operations through a binding.

Usage:
    python run.py -p host=127.0.0.1 -p port=6379 ping
    python run.py -P workload.properties insert user1 field0=a field1=b
    python run.py read user1 field0
    python run.py -p scan-enabled=true scan user1 10
    python run.py delete user1
"""

from __future__ import annotations

import argparse
import logging
import sys

from bindings import get_bindings
from bindings.base import DB, DBError
from lib.properties import load_properties, parse_override

DEFAULT_TABLE = "usertable"


def _print_record(record: dict) -> None:
    for name in sorted(record):
        print(f"  {name}={record[name]}")


def _field_values(items: list[str]) -> dict[str, str]:
    values = {}
    for item in items:
        name, value = parse_override(item)
        values[name] = value
    return values


def _register_commands(subparsers) -> None:
    read = subparsers.add_parser("read", help="Read a record")
    read.add_argument("key")
    read.add_argument("fields", nargs="*", help="Fields to return (default: all)")

    scan = subparsers.add_parser("scan", help="Read a range of records")
    scan.add_argument("key", help="First key of the range")
    scan.add_argument("count", type=int, help="Maximum number of records")
    scan.add_argument("fields", nargs="*", help="Fields to return (default: all)")

    for name in ("insert", "update"):
        sub = subparsers.add_parser(name, help=f"{name.capitalize()} a record")
        sub.add_argument("key")
        sub.add_argument("values", nargs="+", metavar="FIELD=VALUE")

    delete = subparsers.add_parser("delete", help="Delete a record")
    delete.add_argument("key")

    subparsers.add_parser("ping", help="Connect and disconnect")


def execute(db: DB, parsed: argparse.Namespace) -> int:
    """Run one operation against an initialized binding and print the outcome."""
    table = parsed.table
    command = parsed.command

    if command == "ping":
        print("OK")
        return 0

    if command == "read":
        fields = set(parsed.fields) if parsed.fields else None
        status, record = db.read(table, parsed.key, fields)
        print(f"Return code: {status}")
        if record:
            _print_record(record)
    elif command == "scan":
        fields = set(parsed.fields) if parsed.fields else None
        status, records = db.scan(table, parsed.key, parsed.count, fields)
        print(f"Return code: {status}")
        for i, record in enumerate(records):
            print(f"Record {i}")
            _print_record(record)
        if not records:
            print("0 records")
    elif command in ("insert", "update"):
        values = _field_values(parsed.values)
        op = db.insert if command == "insert" else db.update
        status = op(table, parsed.key, values)
        print(f"Return code: {status}")
    elif command == "delete":
        status = db.delete(table, parsed.key)
        print(f"Return code: {status}")
    else:
        raise ValueError(f"Unknown command: {command}")
    return status


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="kv-ycsb",
        description="Issue YCSB operations through a database binding",
    )
    parser.add_argument(
        "-P", dest="property_files", action="append", default=[],
        metavar="FILE", help="Load properties from FILE (repeatable)",
    )
    parser.add_argument(
        "-p", dest="overrides", action="append", default=[],
        metavar="KEY=VALUE", help="Set a property (repeatable, wins over -P)",
    )
    parser.add_argument(
        "--binding", default="kv",
        help="Binding to use (default: kv)",
    )
    parser.add_argument(
        "--table", default=DEFAULT_TABLE,
        help=f"Table name (default: {DEFAULT_TABLE})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command")
    _register_commands(subparsers)

    parsed = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if parsed.command is None:
        parser.print_help()
        return

    bindings = get_bindings()
    cls = bindings.get(parsed.binding)
    if cls is None:
        print(f"Unknown binding {parsed.binding!r}. Available: {', '.join(sorted(bindings)) or 'none'}",
              file=sys.stderr)
        sys.exit(1)

    try:
        props = load_properties(parsed.property_files, parsed.overrides)
        if parsed.command in ("insert", "update"):
            _field_values(parsed.values)
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    db = cls(props)
    try:
        db.init()
        try:
            status = execute(db, parsed)
        finally:
            db.cleanup()
    except DBError as e:
        print(f"\nERROR running {parsed.command}: {e}", file=sys.stderr)
        sys.exit(1)

    if status != 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
