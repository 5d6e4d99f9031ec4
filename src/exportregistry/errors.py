"""Exception types for the exporter registry.

Registry operations report domain failures (not authorized, already
verified, not found) as ``Response`` values. The exceptions below cover
infrastructure failures and misuse only.
"""

from __future__ import annotations


class RegistryError(Exception):
    """Base exception for all exporter registry errors."""


class RegistryCallError(RegistryError):
    """Raised by ``Response.unwrap()`` when the response is an error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code


class HeightError(RegistryError, ValueError):
    """Raised when a height source is negative or moves backwards."""


class StoreError(RegistryError):
    """Raised when the backing store cannot be read or written."""


class ConfigurationError(RegistryError):
    """Raised when settings are missing or malformed."""


class JournalError(RuntimeError):
    """Base class for call journal errors."""


class JournalWriteError(JournalError):
    """Raised when an append to the call journal fails."""


class JournalVerificationError(JournalError):
    """Raised when call journal verification fails."""


def sanitize_exception(exc: Exception) -> str:
    """Return a safe error message without filesystem paths."""
    if isinstance(exc, OSError):
        parts: list[str] = [exc.__class__.__name__]
        if exc.errno is not None:
            parts.append(f"errno={exc.errno}")
        if exc.strerror:
            parts.append(exc.strerror)
        return " ".join(parts).strip()
    return str(exc)
