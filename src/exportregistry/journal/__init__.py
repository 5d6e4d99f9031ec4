"""Call journal: an append-only audit trail of registry calls."""

from ..errors import JournalError, JournalVerificationError, JournalWriteError
from .base import Journal
from .canonical import CanonicalizationError, canonical_dumps, sha256_hex
from .jsonl import SCHEMA_VERSION, JSONLJournal

__all__ = (
    "Journal",
    "JSONLJournal",
    "SCHEMA_VERSION",
    "JournalError",
    "JournalWriteError",
    "JournalVerificationError",
    "CanonicalizationError",
    "canonical_dumps",
    "sha256_hex",
)
