"""Canonical JSON for journal hashing.

Rules:
- object keys sorted, NFC-normalized, duplicates after normalization rejected
- strings NFC-normalized
- compact separators, UTF-8 output
- floats, NaN and non-JSON types rejected
"""

from __future__ import annotations

import hashlib
import json
import unicodedata
from typing import Any

_SEPARATORS = (",", ":")


class CanonicalizationError(ValueError):
    """Raised when a value has no canonical JSON form."""


def canonical_dumps(value: Any) -> str:
    return _encode(value)


def canonical_bytes(value: Any) -> bytes:
    return _encode(value).encode("utf-8")


def sha256_hex(value: Any) -> str:
    """Return SHA-256 hex digest of the canonical bytes."""
    return hashlib.sha256(canonical_bytes(value)).hexdigest()


def _encode(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return json.dumps(value)
    # NOTE: bool is a subclass of int, so it is handled above.
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, float):
        raise CanonicalizationError("floats are not allowed in journal entries")
    if isinstance(value, str):
        return json.dumps(unicodedata.normalize("NFC", value), ensure_ascii=False)
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_encode(item) for item in value) + "]"
    if isinstance(value, dict):
        normalized: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise CanonicalizationError("object keys must be strings")
            nfc_key = unicodedata.normalize("NFC", key)
            if nfc_key in normalized:
                raise CanonicalizationError(f"duplicate key after NFC normalization: {nfc_key!r}")
            normalized[nfc_key] = item
        return (
            "{"
            + ",".join(
                json.dumps(key, ensure_ascii=False, separators=_SEPARATORS) + ":" + _encode(normalized[key])
                for key in sorted(normalized)
            )
            + "}"
        )
    raise CanonicalizationError(f"type {type(value).__name__} is not JSON-serializable")
