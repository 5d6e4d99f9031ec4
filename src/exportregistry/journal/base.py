from __future__ import annotations

from typing import Protocol

from ..types import JournalEntry


class Journal(Protocol):
    """Minimal journal interface used by ExporterRegistry.

    Implementations should provide append-only writes that fail closed:
    if ``append`` raises, the registry leaves its state unchanged.
    """

    def append(self, entry: JournalEntry) -> str:
        """Append a single entry and return its chain hash."""
