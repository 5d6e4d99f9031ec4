from __future__ import annotations

from pathlib import Path

import pytest

from exportregistry import (
    BlockHeight,
    ExporterRecord,
    ExporterRegistry,
    InMemoryRegistryStore,
    JournalVerificationError,
    JournalWriteError,
    JSONLJournal,
    StoreError,
)
from exportregistry.journal import CanonicalizationError, canonical_dumps
from exportregistry.journal.jsonl import TAIL_READ_CHUNK_SIZE
from exportregistry.registry import STORE_FAILURE
from exportregistry.types import JournalEntry

ADMIN = "admin:deployer"
EXPORTER = "exporter:acme"
OUTSIDER = "someone:else"


def _write_sample_journal(path: Path) -> JSONLJournal:
    journal = JSONLJournal(path)
    registry = ExporterRegistry.deploy(ADMIN, height=BlockHeight(100), journal=journal)
    registry.verify_exporter(ADMIN, EXPORTER, "Acme Exports", "USA")
    registry.deactivate_exporter(OUTSIDER, EXPORTER)
    registry.deactivate_exporter(ADMIN, EXPORTER)
    return journal


def test_every_mutating_call_is_journaled(tmp_path: Path) -> None:
    journal = _write_sample_journal(tmp_path / "journal.jsonl")

    entries = list(journal.entries())

    assert [entry["operation"] for entry in entries] == [
        "verify-exporter",
        "deactivate-exporter",
        "deactivate-exporter",
    ]
    assert [entry["result"] for entry in entries] == [
        {"type": "ok", "value": True},
        {"type": "err", "value": 1},
        {"type": "ok", "value": True},
    ]
    assert entries[0]["height"] == 100
    assert entries[0]["arguments"]["company-name"] == "Acme Exports"
    assert entries[0]["prev_entry_hash"] is None
    assert entries[1]["prev_entry_hash"] == entries[0]["entry_hash"]


def test_read_only_calls_are_not_journaled(tmp_path: Path) -> None:
    journal = JSONLJournal(tmp_path / "journal.jsonl")
    registry = ExporterRegistry.deploy(ADMIN, journal=journal)

    registry.is_verified_exporter(EXPORTER)
    registry.get_exporter(EXPORTER)

    assert list(journal.entries()) == []


def test_verify_happy_path(tmp_path: Path) -> None:
    journal = _write_sample_journal(tmp_path / "journal.jsonl")

    assert journal.verify() == 3


def test_verify_missing_file_is_empty(tmp_path: Path) -> None:
    assert JSONLJournal(tmp_path / "missing.jsonl").verify() == 0


def test_tamper_detection_on_modified_line(tmp_path: Path) -> None:
    journal = _write_sample_journal(tmp_path / "journal.jsonl")
    lines = journal.path.read_text(encoding="utf-8").splitlines()
    lines[0] = lines[0].replace("Acme Exports", "Evil Exports")
    journal.path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    with pytest.raises(JournalVerificationError):
        journal.verify()


def test_deletion_breaks_chain(tmp_path: Path) -> None:
    journal = _write_sample_journal(tmp_path / "journal.jsonl")
    lines = journal.path.read_text(encoding="utf-8").splitlines()
    journal.path.write_text("\n".join(lines[1:]) + "\n", encoding="utf-8")

    with pytest.raises(JournalVerificationError):
        journal.verify()


def test_reordering_is_rejected(tmp_path: Path) -> None:
    journal = _write_sample_journal(tmp_path / "journal.jsonl")
    lines = journal.path.read_text(encoding="utf-8").splitlines()
    lines[0], lines[1] = lines[1], lines[0]
    journal.path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    with pytest.raises(JournalVerificationError):
        journal.verify()


def test_partial_line_fails_verification(tmp_path: Path) -> None:
    journal = _write_sample_journal(tmp_path / "journal.jsonl")
    with journal.path.open("a", encoding="utf-8") as handle:
        handle.write('{"schema_version":"1.0"')

    with pytest.raises(JournalVerificationError):
        journal.verify()


def test_append_after_partial_line_fails_closed(tmp_path: Path) -> None:
    journal = _write_sample_journal(tmp_path / "journal.jsonl")
    with journal.path.open("a", encoding="utf-8") as handle:
        handle.write('{"schema_version":"1.0"')
    registry = ExporterRegistry.deploy(ADMIN, journal=journal)

    with pytest.raises(JournalWriteError):
        registry.verify_exporter(ADMIN, "exporter:new", "New Co", "USA")
    assert registry.store.get("exporter:new") is None


class _FailingJournal:
    def append(self, entry: JournalEntry) -> str:
        raise JournalWriteError("disk full")


def test_journal_failure_leaves_state_unchanged() -> None:
    registry = ExporterRegistry.deploy(ADMIN, journal=_FailingJournal())

    with pytest.raises(JournalWriteError):
        registry.verify_exporter(ADMIN, EXPORTER, "Acme Exports", "USA")
    with pytest.raises(JournalWriteError):
        registry.transfer_admin(ADMIN, OUTSIDER)

    assert registry.store.get(EXPORTER) is None
    assert registry.admin == ADMIN


def test_canonical_dumps_sorts_keys_and_rejects_floats() -> None:
    assert canonical_dumps({"b": 1, "a": [True, None, "x"]}) == '{"a":[true,null,"x"],"b":1}'
    with pytest.raises(CanonicalizationError):
        canonical_dumps({"a": 1.5})


class _FailingPutStore(InMemoryRegistryStore):
    def put(self, exporter: str, record: ExporterRecord) -> None:
        raise StoreError("database is locked")

    def set_admin(self, admin: str) -> None:
        raise StoreError("attempt to write a readonly database")


def test_store_failure_appends_compensating_entry(tmp_path: Path) -> None:
    journal = JSONLJournal(tmp_path / "journal.jsonl")
    registry = ExporterRegistry(_FailingPutStore(admin=ADMIN), journal=journal)

    with pytest.raises(StoreError):
        registry.verify_exporter(ADMIN, EXPORTER, "Acme Exports", "USA")

    entries = list(journal.entries())
    assert [entry["result"] for entry in entries] == [
        {"type": "ok", "value": True},
        {"type": "err", "value": STORE_FAILURE},
    ]
    assert entries[1]["reverts"] == entries[0]["entry_hash"]
    assert "reverts" not in entries[0]
    assert registry.store.get(EXPORTER) is None
    assert journal.verify() == 2


def test_failed_admin_transfer_is_compensated(tmp_path: Path) -> None:
    journal = JSONLJournal(tmp_path / "journal.jsonl")
    registry = ExporterRegistry(_FailingPutStore(admin=ADMIN), journal=journal)

    with pytest.raises(StoreError):
        registry.transfer_admin(ADMIN, OUTSIDER)

    entries = list(journal.entries())
    assert entries[-1]["operation"] == "transfer-admin"
    assert entries[-1]["result"] == {"type": "err", "value": STORE_FAILURE}
    assert registry.admin == ADMIN


def test_append_after_entry_longer_than_read_chunk(tmp_path: Path) -> None:
    journal = JSONLJournal(tmp_path / "journal.jsonl")
    registry = ExporterRegistry.deploy(ADMIN, journal=journal)
    long_name = "Acme " * (TAIL_READ_CHUNK_SIZE // 2)

    registry.verify_exporter(ADMIN, EXPORTER, long_name, "USA")
    registry.verify_exporter(ADMIN, "exporter:other", "Other Co", "USA")
    registry.deactivate_exporter(ADMIN, EXPORTER)

    entries = list(journal.entries())
    assert entries[1]["prev_entry_hash"] == entries[0]["entry_hash"]
    assert entries[2]["prev_entry_hash"] == entries[1]["entry_hash"]
    assert journal.verify() == 3
