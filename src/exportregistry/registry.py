"""Admin-gated exporter registry."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from .height import BlockHeight, HeightSource, MonotonicGuard
from .journal.base import Journal
from .journal.jsonl import SCHEMA_VERSION
from .store import InMemoryRegistryStore, RegistryStore
from .types import CallContext, ErrorCode, ExporterRecord, JournalEntry, Principal, Response

_logger = logging.getLogger(__name__)

VERIFY_EXPORTER = "verify-exporter"
DEACTIVATE_EXPORTER = "deactivate-exporter"
TRANSFER_ADMIN = "transfer-admin"

# Result value of a compensating journal entry for a call whose store write failed.
STORE_FAILURE = "store-failure"


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class ExporterRegistry:
    """Verifies and deactivates exporters on behalf of a single admin.

    Every operation returns a ``Response``; guard failures never raise and
    never touch the store. Guards run in a fixed order (authorization
    first, then record existence) so error codes are deterministic.

    The registry holds no locks: the host is expected to serialize calls.
    """

    def __init__(
        self,
        store: RegistryStore,
        *,
        height: HeightSource | None = None,
        journal: Journal | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        if store is None:
            raise ValueError("store is required")
        self.store = store
        self.journal = journal
        self._height = MonotonicGuard(
            height if height is not None else BlockHeight(), floor=store.get_height()
        )
        self._now = now or (lambda: datetime.now(timezone.utc))

    @classmethod
    def deploy(
        cls,
        deployer: Principal,
        *,
        height: HeightSource | None = None,
        journal: Journal | None = None,
    ) -> "ExporterRegistry":
        """Create a registry over a fresh in-memory store owned by ``deployer``."""
        return cls(InMemoryRegistryStore(admin=deployer), height=height, journal=journal)

    @property
    def admin(self) -> Principal:
        return self.store.get_admin()

    # ----- mutating operations -----

    def verify_exporter(
        self,
        caller: Principal,
        exporter: Principal,
        company_name: str,
        country: str,
    ) -> Response[bool]:
        """Register ``exporter`` as verified at the current height."""
        ctx = CallContext(
            operation=VERIFY_EXPORTER,
            caller=caller,
            height=self._height(),
            arguments={"exporter": exporter, "company-name": company_name, "country": country},
        )
        if not self._is_admin(caller):
            return self._reject(ctx, ErrorCode.NOT_AUTHORIZED)
        _require_principal("exporter", exporter)
        if self.store.get(exporter) is not None:
            return self._reject(ctx, ErrorCode.ALREADY_VERIFIED)

        record = ExporterRecord(
            company_name=company_name,
            country=country,
            verification_date=ctx.height,
            is_active=True,
        )
        response = self._commit(ctx, lambda: self.store.put(exporter, record))
        _logger.info("Verified exporter %s (%s, %s) at height %d", exporter, company_name, country, ctx.height)
        return response

    def deactivate_exporter(self, caller: Principal, exporter: Principal) -> Response[bool]:
        """Clear the active flag on an existing record.

        Deactivating an already inactive exporter succeeds and leaves the
        record as it was.
        """
        ctx = CallContext(
            operation=DEACTIVATE_EXPORTER,
            caller=caller,
            height=self._height(),
            arguments={"exporter": exporter},
        )
        if not self._is_admin(caller):
            return self._reject(ctx, ErrorCode.NOT_AUTHORIZED)
        existing = self.store.get(exporter)
        if existing is None:
            return self._reject(ctx, ErrorCode.NOT_FOUND)

        response = self._commit(ctx, lambda: self.store.put(exporter, existing.deactivated()))
        if existing.is_active:
            _logger.info("Deactivated exporter %s at height %d", exporter, ctx.height)
        else:
            _logger.debug("Exporter %s was already inactive", exporter)
        return response

    def transfer_admin(self, caller: Principal, new_admin: Principal) -> Response[bool]:
        """Hand the admin role to ``new_admin``; the caller loses it immediately."""
        ctx = CallContext(
            operation=TRANSFER_ADMIN,
            caller=caller,
            height=self._height(),
            arguments={"new-admin": new_admin},
        )
        if not self._is_admin(caller):
            return self._reject(ctx, ErrorCode.NOT_AUTHORIZED)
        _require_principal("new_admin", new_admin)

        response = self._commit(ctx, lambda: self.store.set_admin(new_admin))
        _logger.info("Admin transferred from %s to %s at height %d", caller, new_admin, ctx.height)
        return response

    # ----- read-only operations -----

    def is_verified_exporter(self, exporter: Principal) -> Response[bool]:
        """Return ok(is_active) for a known exporter, err(NOT_FOUND) otherwise."""
        record = self.store.get(exporter)
        if record is None:
            return Response.failure(ErrorCode.NOT_FOUND)
        return Response.success(record.is_active)

    def get_exporter(self, exporter: Principal) -> Response[ExporterRecord]:
        record = self.store.get(exporter)
        if record is None:
            return Response.failure(ErrorCode.NOT_FOUND)
        return Response.success(record)

    def list_exporters(self) -> Iterator[tuple[Principal, ExporterRecord]]:
        return self.store.items()

    # ----- internal helpers -----

    def _is_admin(self, caller: Principal) -> bool:
        return caller == self.store.get_admin()

    def _reject(self, ctx: CallContext, code: ErrorCode) -> Response[Any]:
        response: Response[Any] = Response.failure(code)
        if code is ErrorCode.NOT_AUTHORIZED:
            _logger.warning("Rejected %s from non-admin caller %s", ctx.operation, ctx.caller)
        else:
            _logger.debug("Rejected %s: %s (%s)", ctx.operation, code.message, ctx.arguments)
        self._journal(ctx, response.to_wire())
        return response

    def _commit(self, ctx: CallContext, apply: Callable[[], None]) -> Response[bool]:
        """Journal a successful call, then apply it to the store.

        If the store write fails after the journal entry was written, a
        compensating entry referencing it is appended before re-raising.
        """
        response: Response[bool] = Response.success(True)
        entry_hash = self._journal(ctx, response.to_wire())
        try:
            self.store.set_height(ctx.height)
            apply()
        except Exception as exc:
            _logger.warning("Store write failed for %s at height %d: %s", ctx.operation, ctx.height, exc)
            if entry_hash is not None:
                self._journal(ctx, {"type": "err", "value": STORE_FAILURE}, reverts=entry_hash)
            raise
        return response

    def _journal(
        self,
        ctx: CallContext,
        result: dict[str, Any],
        *,
        reverts: str | None = None,
    ) -> str | None:
        """Write the call to the journal and return its entry hash."""
        if self.journal is None:
            return None
        entry: JournalEntry = {
            "schema_version": SCHEMA_VERSION,
            "prev_entry_hash": None,
            "entry_hash": None,
            "created_at": _format_timestamp(self._now()),
            "height": ctx.height,
            "operation": ctx.operation,
            "caller": ctx.caller,
            "arguments": dict(ctx.arguments),
            "result": result,  # type: ignore[typeddict-item]
        }
        if reverts is not None:
            entry["reverts"] = reverts
        try:
            return self.journal.append(entry)
        except Exception as exc:
            _logger.warning("Failed to journal %s: %s", ctx.operation, exc)
            raise


def _require_principal(name: str, value: object) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")
