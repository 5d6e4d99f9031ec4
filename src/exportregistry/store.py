"""Registry state stores: protocol, in-memory and SQLite implementations.

Design notes:
- A store owns exactly two pieces of state: the admin principal and the
  exporter map. It performs no authorization; that is the registry's job.
- Records are never deleted, so neither backend exposes a delete.
- The SQLite backend seeds the admin only when the database is first
  created; reopening an existing database keeps the stored admin.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Protocol

from pydantic import ValidationError

from .errors import StoreError
from .types import ExporterRecord, Principal

_ADMIN_KEY = "admin"
_HEIGHT_KEY = "last-height"


class RegistryStore(Protocol):
    """Key/value state backing an ``ExporterRegistry``."""

    def get_admin(self) -> Principal:
        ...

    def set_admin(self, admin: Principal) -> None:
        ...

    def get(self, exporter: Principal) -> ExporterRecord | None:
        ...

    def put(self, exporter: Principal, record: ExporterRecord) -> None:
        ...

    def get_height(self) -> int | None:
        """Return the height of the last committed call, if any."""
        ...

    def set_height(self, height: int) -> None:
        ...

    def items(self) -> Iterator[tuple[Principal, ExporterRecord]]:
        """Yield ``(exporter, record)`` pairs ordered by exporter."""
        ...


def _validate_principal(name: str, value: object) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")


@dataclass
class InMemoryRegistryStore:
    """Dict-backed store, the default for embedding and tests."""

    admin: Principal
    _records: dict[Principal, ExporterRecord] = field(default_factory=dict, init=False, repr=False)
    _height: int | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        _validate_principal("admin", self.admin)

    def get_admin(self) -> Principal:
        return self.admin

    def set_admin(self, admin: Principal) -> None:
        _validate_principal("admin", admin)
        self.admin = admin

    def get(self, exporter: Principal) -> ExporterRecord | None:
        return self._records.get(exporter)

    def put(self, exporter: Principal, record: ExporterRecord) -> None:
        self._records[exporter] = record

    def get_height(self) -> int | None:
        return self._height

    def set_height(self, height: int) -> None:
        self._height = height

    def items(self) -> Iterator[tuple[Principal, ExporterRecord]]:
        for exporter in sorted(self._records):
            yield exporter, self._records[exporter]

    def __len__(self) -> int:
        return len(self._records)


_WAL_INITIALIZED: set[Path] = set()
_WAL_LOCK = threading.Lock()


def _ensure_wal_mode(path: Path) -> None:
    with _WAL_LOCK:
        if path in _WAL_INITIALIZED:
            return
        conn = sqlite3.connect(path)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=FULL")
            _WAL_INITIALIZED.add(path)
        finally:
            conn.close()


@dataclass
class SQLiteRegistryStore:
    """SQLite-backed store.

    Records are kept in their wire form as JSON so fields added to
    ``ExporterRecord`` later round-trip without a schema migration.
    """

    path: Path
    admin: Principal | None = None

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        if self.admin is not None:
            _validate_principal("admin", self.admin)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            _ensure_wal_mode(self.path)
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS registry_vars (
                        name TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS verified_exporters (
                        exporter TEXT PRIMARY KEY,
                        record_json TEXT NOT NULL
                    )
                    """
                )
                if self.admin is not None:
                    conn.execute(
                        "INSERT OR IGNORE INTO registry_vars (name, value) VALUES (?, ?)",
                        (_ADMIN_KEY, self.admin),
                    )
                conn.commit()
                row = conn.execute(
                    "SELECT value FROM registry_vars WHERE name = ?", (_ADMIN_KEY,)
                ).fetchone()
        except (sqlite3.Error, OSError) as exc:
            raise StoreError(f"failed to open registry store: {exc}") from exc
        if row is None:
            raise StoreError("registry store has no admin; initialize it with an admin principal")

    def get_admin(self) -> Principal:
        with self._connect() as conn:
            row = self._execute(
                conn, "SELECT value FROM registry_vars WHERE name = ?", (_ADMIN_KEY,)
            ).fetchone()
        if row is None:
            raise StoreError("admin missing from registry store")
        return str(row[0])

    def set_admin(self, admin: Principal) -> None:
        _validate_principal("admin", admin)
        with self._connect() as conn:
            self._execute(
                conn,
                """
                INSERT INTO registry_vars (name, value) VALUES (?, ?)
                ON CONFLICT(name) DO UPDATE SET value = excluded.value
                """,
                (_ADMIN_KEY, admin),
            )
            conn.commit()

    def get(self, exporter: Principal) -> ExporterRecord | None:
        with self._connect() as conn:
            row = self._execute(
                conn,
                "SELECT record_json FROM verified_exporters WHERE exporter = ?",
                (exporter,),
            ).fetchone()
        if row is None:
            return None
        return _decode_record(exporter, row[0])

    def put(self, exporter: Principal, record: ExporterRecord) -> None:
        payload = json.dumps(record.to_wire(), sort_keys=True, separators=(",", ":"))
        with self._connect() as conn:
            self._execute(
                conn,
                """
                INSERT INTO verified_exporters (exporter, record_json) VALUES (?, ?)
                ON CONFLICT(exporter) DO UPDATE SET record_json = excluded.record_json
                """,
                (exporter, payload),
            )
            conn.commit()

    def get_height(self) -> int | None:
        with self._connect() as conn:
            row = self._execute(
                conn, "SELECT value FROM registry_vars WHERE name = ?", (_HEIGHT_KEY,)
            ).fetchone()
        if row is None:
            return None
        try:
            return int(row[0])
        except ValueError as exc:
            raise StoreError("corrupt last-height in registry store") from exc

    def set_height(self, height: int) -> None:
        with self._connect() as conn:
            self._execute(
                conn,
                """
                INSERT INTO registry_vars (name, value) VALUES (?, ?)
                ON CONFLICT(name) DO UPDATE SET value = excluded.value
                """,
                (_HEIGHT_KEY, str(height)),
            )
            conn.commit()

    def items(self) -> Iterator[tuple[Principal, ExporterRecord]]:
        with self._connect() as conn:
            rows = self._execute(
                conn, "SELECT exporter, record_json FROM verified_exporters ORDER BY exporter ASC"
            ).fetchall()
        for exporter, record_json in rows:
            yield exporter, _decode_record(exporter, record_json)

    @staticmethod
    def _execute(
        conn: sqlite3.Connection, sql: str, params: tuple[object, ...] = ()
    ) -> sqlite3.Cursor:
        try:
            return conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Get connection. WAL already initialized in __post_init__. Always closes."""
        try:
            conn = sqlite3.connect(self.path)
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc
        try:
            yield conn
        finally:
            conn.close()


def _decode_record(exporter: Principal, record_json: str) -> ExporterRecord:
    try:
        return ExporterRecord.from_wire(json.loads(record_json))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise StoreError(f"corrupt record for exporter {exporter!r}") from exc
