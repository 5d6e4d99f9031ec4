"""Append-only, hash-chained JSONL journal of registry calls."""

from __future__ import annotations

import copy
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, TextIO, cast

from ..errors import (
    JournalError,
    JournalVerificationError,
    JournalWriteError,
    sanitize_exception,
)
from ..types import JournalEntry
from .canonical import CanonicalizationError, canonical_dumps, sha256_hex
from .filelock import locked_file

SCHEMA_VERSION = "1.0"
TAIL_READ_CHUNK_SIZE = 4096


def chain_entry(entry: dict[str, Any], prev_hash: str | None) -> dict[str, Any]:
    """Return a copy of ``entry`` linked to ``prev_hash`` with its own hash set."""
    candidate = copy.deepcopy(entry)
    candidate["prev_entry_hash"] = prev_hash
    candidate["entry_hash"] = None
    candidate["entry_hash"] = sha256_hex(candidate)
    return candidate


@dataclass(frozen=True)
class JSONLJournal:
    path: Path

    def append(self, entry: JournalEntry) -> str:
        """Append an entry, computing chain hashes under the file lock."""
        try:
            with locked_file(self.path) as handle:
                prev_hash = _last_entry_hash(handle)
                prepared = chain_entry(cast(dict[str, Any], entry), prev_hash)
                line = canonical_dumps(prepared)
                handle.seek(0, os.SEEK_END)
                handle.write(line + "\n")
                handle.flush()
                os.fsync(handle.fileno())
                return cast(str, prepared["entry_hash"])
        except (OSError, JournalError, CanonicalizationError, json.JSONDecodeError) as exc:
            raise JournalWriteError(sanitize_exception(exc)) from exc

    def verify(self) -> int:
        """Verify the whole journal and return the number of entries.

        Fails on tampered, deleted, reordered, non-canonical or partial lines.
        """
        if not self.path.exists():
            return 0
        try:
            with locked_file(self.path) as handle:
                handle.seek(0)
                return _verify_lines(handle)
        except (OSError, CanonicalizationError, json.JSONDecodeError) as exc:
            raise JournalVerificationError(sanitize_exception(exc)) from exc

    def entries(self) -> Iterator[JournalEntry]:
        """Yield parsed entries in append order without verifying them."""
        if not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if line:
                    yield cast(JournalEntry, json.loads(line))


def _last_entry_hash(handle: TextIO) -> str | None:
    """Return the entry_hash of the last line, reading the file tail in chunks."""
    raw = handle.buffer  # type: ignore[attr-defined]
    raw.seek(0, os.SEEK_END)
    pos = raw.tell()
    if pos == 0:
        return None

    tail = b""
    while pos > 0:
        read_size = min(TAIL_READ_CHUNK_SIZE, pos)
        pos -= read_size
        raw.seek(pos)
        tail = raw.read(read_size) + tail
        # Stop once the start of the last line is in the buffer.
        if b"\n" in tail.rstrip(b"\n"):
            break

    if not tail.endswith(b"\n"):
        raise JournalVerificationError("journal ends with a partial line")
    last_line = tail.rstrip(b"\n").rsplit(b"\n", 1)[-1].strip()
    if not last_line:
        return None
    entry = json.loads(last_line.decode("utf-8"))
    if not isinstance(entry, dict):
        raise JournalVerificationError("journal line is not an object")
    entry_hash = entry.get("entry_hash")
    if not isinstance(entry_hash, str):
        raise JournalVerificationError("entry_hash missing or invalid")
    return entry_hash


def _verify_lines(handle: TextIO) -> int:
    expected_prev: str | None = None
    count = 0
    for line_number, raw_line in enumerate(handle, start=1):
        if not raw_line.endswith("\n"):
            raise JournalVerificationError(f"partial line at {line_number}")
        line = raw_line[:-1]
        if not line:
            raise JournalVerificationError(f"empty line at {line_number}")
        entry = json.loads(line)
        if not isinstance(entry, dict):
            raise JournalVerificationError(f"line {line_number} is not an object")
        if canonical_dumps(entry) != line:
            raise JournalVerificationError(f"line {line_number} is not canonical")
        if entry.get("schema_version") != SCHEMA_VERSION:
            raise JournalVerificationError(f"schema_version mismatch at line {line_number}")
        if entry.get("prev_entry_hash") != expected_prev:
            raise JournalVerificationError(f"prev_entry_hash mismatch at line {line_number}")
        actual_hash = entry.get("entry_hash")
        if not isinstance(actual_hash, str):
            raise JournalVerificationError(f"entry_hash missing at line {line_number}")
        unhashed = dict(entry)
        unhashed["entry_hash"] = None
        if sha256_hex(unhashed) != actual_hash:
            raise JournalVerificationError(f"entry_hash mismatch at line {line_number}")
        expected_prev = actual_hash
        count += 1
    return count
