"""Exporter registry public API."""

from .config import RegistrySettings
from .errors import (
    ConfigurationError,
    HeightError,
    JournalError,
    JournalVerificationError,
    JournalWriteError,
    RegistryCallError,
    RegistryError,
    StoreError,
)
from .height import BlockHeight, HeightSource
from .journal import Journal, JSONLJournal
from .registry import ExporterRegistry
from .store import InMemoryRegistryStore, RegistryStore, SQLiteRegistryStore
from .types import ErrorCode, ExporterRecord, Principal, Response

__all__ = (
    # Registry
    "ExporterRegistry",
    # Types
    "ErrorCode",
    "ExporterRecord",
    "Principal",
    "Response",
    # Stores
    "RegistryStore",
    "InMemoryRegistryStore",
    "SQLiteRegistryStore",
    # Height
    "BlockHeight",
    "HeightSource",
    # Journal
    "Journal",
    "JSONLJournal",
    # Settings
    "RegistrySettings",
    # Errors
    "RegistryError",
    "RegistryCallError",
    "HeightError",
    "StoreError",
    "ConfigurationError",
    "JournalError",
    "JournalWriteError",
    "JournalVerificationError",
)
