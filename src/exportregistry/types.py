"""Typed models for the exporter registry."""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Generic, Literal, NotRequired, TypeAlias, TypedDict, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

from .errors import RegistryCallError

Principal: TypeAlias = str

T = TypeVar("T")


class ErrorCode(IntEnum):
    """Numeric error codes returned by registry operations."""

    NOT_AUTHORIZED = 1
    ALREADY_VERIFIED = 2
    NOT_FOUND = 3

    @property
    def message(self) -> str:
        return _ERROR_MESSAGES[self]


_ERROR_MESSAGES = {
    ErrorCode.NOT_AUTHORIZED: "not authorized",
    ErrorCode.ALREADY_VERIFIED: "already verified",
    ErrorCode.NOT_FOUND: "not found",
}


class ExporterRecord(BaseModel):
    """Verification record for a single exporter.

    Field aliases match the contract's tuple keys so records serialize to
    the same shape the ledger stores (``company-name``, ``is-active``, ...).
    """

    model_config = {"frozen": True, "populate_by_name": True}

    company_name: str = Field(alias="company-name")
    country: str
    verification_date: int = Field(alias="verification-date", ge=0)
    is_active: bool = Field(alias="is-active")

    def deactivated(self) -> "ExporterRecord":
        """Return a copy of this record with ``is_active`` cleared.

        Every other field is carried forward from the existing record.
        """
        return self.model_copy(update={"is_active": False})

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "ExporterRecord":
        return cls.model_validate(data)


class Response(BaseModel, Generic[T]):
    """Result of a registry call: ``ok(value)`` or ``err(code)``."""

    model_config = {"frozen": True}

    ok: bool
    value: T | None = None
    error: ErrorCode | None = None

    @model_validator(mode="after")
    def _ok_xor_error(self) -> "Response[T]":
        if self.ok and self.error is not None:
            raise ValueError("ok response cannot carry an error code")
        if not self.ok and self.error is None:
            raise ValueError("error response requires an error code")
        return self

    @classmethod
    def success(cls, value: Any) -> "Response[Any]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, code: ErrorCode) -> "Response[Any]":
        return cls(ok=False, error=code)

    @property
    def is_ok(self) -> bool:
        return self.ok

    @property
    def is_err(self) -> bool:
        return not self.ok

    def unwrap(self) -> T:
        """Return the ok value or raise ``RegistryCallError`` with the code."""
        if self.error is not None:
            raise RegistryCallError(int(self.error), self.error.message)
        return self.value  # type: ignore[return-value]

    def to_wire(self) -> dict[str, Any]:
        """Render as ``{"type": "ok"|"err", "value": ...}``."""
        if self.error is not None:
            return {"type": "err", "value": int(self.error)}
        value = self.value
        if isinstance(value, ExporterRecord):
            value = value.to_wire()
        return {"type": "ok", "value": value}


# -------- Journal typed structures --------


class JournalResult(TypedDict):
    type: Literal["ok", "err"]
    value: Any


class JournalEntry(TypedDict):
    schema_version: str
    prev_entry_hash: str | None
    entry_hash: str | None
    created_at: str
    height: int
    operation: str
    caller: Principal
    arguments: dict[str, Any]
    result: JournalResult
    reverts: NotRequired[str]


class CallContext(BaseModel):
    """Data captured for a single mutating registry call."""

    operation: str
    caller: Principal
    height: int = Field(ge=0)
    arguments: dict[str, Any] = Field(default_factory=dict)

    @field_validator("operation")
    @classmethod
    def _operation_non_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("operation must be a non-empty string")
        return value
