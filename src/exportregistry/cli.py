"""Command-line interface for the exporter registry."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from .config import RegistrySettings
from .errors import ConfigurationError, HeightError, JournalError, StoreError
from .height import BlockHeight
from .journal.jsonl import JSONLJournal
from .registry import ExporterRegistry
from .store import SQLiteRegistryStore
from .types import Response


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="exportregistry", add_help=True)
    parser.add_argument("--db", type=Path, help="Path to the registry SQLite database")
    parser.add_argument("--journal", type=Path, help="Path to the JSONL call journal")
    parser.add_argument("--log-level", dest="log_level", help="Logging level (default WARNING)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Create a registry owned by a deployer")
    init_parser.add_argument("--admin", required=True, help="Deployer principal")

    verify_parser = subparsers.add_parser("verify", help="Verify an exporter")
    verify_parser.add_argument("exporter", help="Exporter principal")
    verify_parser.add_argument("--caller", required=True, help="Calling principal")
    verify_parser.add_argument("--company-name", dest="company_name", required=True)
    verify_parser.add_argument("--country", required=True)
    verify_parser.add_argument("--height", type=int, required=True, help="Current ledger height")

    deactivate_parser = subparsers.add_parser("deactivate", help="Deactivate an exporter")
    deactivate_parser.add_argument("exporter", help="Exporter principal")
    deactivate_parser.add_argument("--caller", required=True, help="Calling principal")
    deactivate_parser.add_argument("--height", type=int, required=True, help="Current ledger height")

    transfer_parser = subparsers.add_parser("transfer-admin", help="Transfer the admin role")
    transfer_parser.add_argument("new_admin", help="New admin principal")
    transfer_parser.add_argument("--caller", required=True, help="Calling principal")
    transfer_parser.add_argument("--height", type=int, required=True, help="Current ledger height")

    status_parser = subparsers.add_parser("status", help="Check whether an exporter is verified")
    status_parser.add_argument("exporter", help="Exporter principal")

    show_parser = subparsers.add_parser("show", help="Show an exporter record")
    show_parser.add_argument("exporter", help="Exporter principal")

    list_parser = subparsers.add_parser("list", help="List exporter records")
    list_parser.add_argument("--json", action="store_true", help="Output JSON")

    journal_parser = subparsers.add_parser("journal-verify", help="Verify a JSONL call journal")
    journal_parser.add_argument("journal_path", type=Path, help="Path to journal JSONL file")
    journal_parser.add_argument("--json", action="store_true", help="Output JSON")

    return parser.parse_args(argv)


_PRINCIPAL_ARGS = (
    ("caller", "--caller"),
    ("exporter", "EXPORTER"),
    ("new_admin", "NEW_ADMIN"),
)


def _print_response(response: Response[Any]) -> int:
    print(json.dumps(response.to_wire()))
    return 0 if response.is_ok else 1


def _open_registry(settings: RegistrySettings, *, height: int = 0) -> ExporterRegistry:
    if not settings.db_path.exists():
        raise StoreError("registry database not found (run 'init' first)")
    journal = JSONLJournal(settings.journal_path) if settings.journal_path is not None else None
    return ExporterRegistry(
        SQLiteRegistryStore(settings.db_path),
        height=BlockHeight(height),
        journal=journal,
    )


def _cmd_init(settings: RegistrySettings, admin: str) -> int:
    if settings.db_path.exists():
        print("registry database already exists", file=sys.stderr)
        return 1
    if not admin.strip():
        print("--admin must be a non-empty principal", file=sys.stderr)
        return 2
    SQLiteRegistryStore(settings.db_path, admin=admin)
    print(json.dumps({"status": "ok", "admin": admin}))
    return 0


def _cmd_list(registry: ExporterRegistry, json_output: bool) -> int:
    rows = list(registry.list_exporters())
    if json_output:
        print(json.dumps({exporter: record.to_wire() for exporter, record in rows}))
        return 0
    table = Table(title=f"Exporters (admin: {registry.admin})")
    table.add_column("Exporter")
    table.add_column("Company")
    table.add_column("Country")
    table.add_column("Verified at", justify="right")
    table.add_column("Active")
    for exporter, record in rows:
        table.add_row(
            exporter,
            record.company_name,
            record.country,
            str(record.verification_date),
            "yes" if record.is_active else "no",
        )
    Console().print(table)
    return 0


def _cmd_journal_verify(journal_path: Path, json_output: bool) -> int:
    if not journal_path.exists():
        print("journal file not found", file=sys.stderr)
        return 1
    try:
        count = JSONLJournal(journal_path).verify()
    except JournalError as exc:
        if json_output:
            print(json.dumps({"status": "failed", "error": str(exc)}))
        else:
            print(f"verify failed: {exc}", file=sys.stderr)
        return 1
    if json_output:
        print(json.dumps({"status": "ok", "entries": count}))
    else:
        print(f"journal ok ({count} entries)")
    return 0


def _run(args: argparse.Namespace, settings: RegistrySettings) -> int:
    if args.command == "init":
        return _cmd_init(settings, args.admin)
    if args.command == "journal-verify":
        return _cmd_journal_verify(args.journal_path, args.json)

    for attr, flag in _PRINCIPAL_ARGS:
        value = getattr(args, attr, None)
        if value is not None and not value.strip():
            print(f"{flag} must be a non-empty principal", file=sys.stderr)
            return 2
    height = getattr(args, "height", 0)
    if height < 0:
        print("--height must be non-negative", file=sys.stderr)
        return 2
    registry = _open_registry(settings, height=height)
    if args.command == "verify":
        return _print_response(
            registry.verify_exporter(args.caller, args.exporter, args.company_name, args.country)
        )
    if args.command == "deactivate":
        return _print_response(registry.deactivate_exporter(args.caller, args.exporter))
    if args.command == "transfer-admin":
        return _print_response(registry.transfer_admin(args.caller, args.new_admin))
    if args.command == "status":
        return _print_response(registry.is_verified_exporter(args.exporter))
    if args.command == "show":
        return _print_response(registry.get_exporter(args.exporter))
    if args.command == "list":
        return _cmd_list(registry, args.json)
    print("unknown command", file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv if argv is not None else sys.argv[1:])
    try:
        settings = RegistrySettings.from_env()
        overrides: dict[str, object] = {}
        if args.db is not None:
            overrides["db_path"] = args.db
        if args.journal is not None:
            overrides["journal_path"] = args.journal
        if args.log_level is not None:
            overrides["log_level"] = args.log_level
        if overrides:
            settings = RegistrySettings(**{**settings.model_dump(), **overrides})
    except (ConfigurationError, ValueError) as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2
    settings.configure_logging()
    try:
        return _run(args, settings)
    except (StoreError, JournalError, HeightError) as exc:
        print(f"{args.command} failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
