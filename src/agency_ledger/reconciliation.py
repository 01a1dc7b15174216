"""Reconciliation of income transaction state against the Sheet Store.

State machine per transaction::

    PENDING --approve--> APPROVED
    PENDING --reject--> removed (row deleted)
    not cancelled --cancel--> CANCELLED (amounts zeroed, row retained)
    any --toggle-paid--> flips paid_to_client_directly

Toggle-paid and cancel are confirmed first: the ledger only changes after the
store acknowledged the write. Approve and reject are locally authoritative:
the ledger changes even when the remote call fails, and the failure is
logged and returned to the caller. Records without a remote row position
never touch the store.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import date, tzinfo
from decimal import Decimal
from uuid import uuid4

from agency_ledger.config import get_logger, get_settings
from agency_ledger.ledger import Ledger
from agency_ledger.mapper import approval_row, income_to_row, map_income_rows, round_shekels
from agency_ledger.models import (
    ZERO,
    Identity,
    IncomeTransaction,
    LedgerValidationError,
    RecordStatus,
    Role,
    ShiftLocation,
    parse_amount,
)
from agency_ledger.sheets import SheetStore, SheetStoreError


@dataclass(frozen=True)
class SyncOutcome:
    """Result of a locally authoritative mutation."""

    record: IncomeTransaction
    error: str | None = None

    @property
    def synced(self) -> bool:
        return self.error is None


@dataclass
class ApprovalReport:
    """Summary of a bulk approval."""

    approved: list[str] = field(default_factory=list)
    sync_failures: dict[str, str] = field(default_factory=dict)
    skipped: dict[str, str] = field(default_factory=dict)

    @property
    def fully_synced(self) -> bool:
        return not self.sync_failures and not self.skipped


def _newest_first(record: IncomeTransaction) -> tuple[bool, date]:
    return (record.date is not None, record.date or date.min)


class ReconciliationService:
    """Applies income state transitions to the ledger and the Sheet Store.

    A ``None`` store runs the service offline: every mutation is local.
    """

    def __init__(
        self,
        ledger: Ledger[IncomeTransaction],
        store: SheetStore | None = None,
        actor: Identity | None = None,
        sheet_name: str | None = None,
        tz: tzinfo | None = None,
    ):
        settings = get_settings()
        self.ledger = ledger
        self._store = store
        self.actor = actor or Identity.admin()
        self.sheet_name = sheet_name or settings.income_sheet
        self._tz = tz if tz is not None else settings.tz
        self._default_usd_rate = settings.default_usd_rate
        self._locks: dict[str, asyncio.Lock] = {}
        self._logger = get_logger(__name__, component="reconciliation", sheet=self.sheet_name)

    @property
    def offline(self) -> bool:
        return self._store is None

    def _lock_for(self, record_id: str) -> asyncio.Lock:
        lock = self._locks.get(record_id)
        if lock is None:
            lock = self._locks[record_id] = asyncio.Lock()
        return lock

    def _current(self, record: IncomeTransaction) -> IncomeTransaction:
        current = self.ledger.get(record.id)
        if current is None:
            raise LedgerValidationError(f"Unknown income record: {record.id}")
        return current

    def _remote_store(self, record: IncomeTransaction) -> SheetStore | None:
        """The store to sync with, or None for local-only records and offline mode."""
        if record.is_local:
            return None
        return self._store

    # === Loading & submission ===

    async def load(self) -> list[IncomeTransaction]:
        """Replace the ledger with a full read of the income sheet."""
        if self._store is None:
            return self.ledger.records()
        rows = await self._store.read(self.sheet_name)
        records = map_income_rows(rows, self._tz)
        self.ledger.replace_all(records)
        self._locks.clear()
        self._logger.info("income_loaded", rows=max(len(rows) - 1, 0), records=len(records))
        return records

    def pending(self) -> list[IncomeTransaction]:
        """Pending agent submissions, newest first."""
        pending = [
            r for r in self.ledger if r.status == RecordStatus.PENDING and r.agent_name
        ]
        return sorted(pending, key=_newest_first, reverse=True)

    async def submit(
        self,
        client_name: str,
        amount_ils: Decimal | None = None,
        amount_usd: Decimal | None = None,
        usd_rate: Decimal | None = None,
        platform: str = "",
        on_date: date | None = None,
        hour: str = "",
        shift_location: ShiftLocation = ShiftLocation.OFFICE,
        notes: str = "",
        agent_name: str | None = None,
    ) -> IncomeTransaction:
        """Record a new pending transaction submitted by an agent.

        Agents always submit in their own name; an admin may name the agent.
        """
        agent = self.actor.name if self.actor.role == Role.AGENT else (agent_name or "")
        if not client_name:
            raise LedgerValidationError("A client is required")
        if not agent:
            raise LedgerValidationError("An agent is required")
        usd = parse_amount(amount_usd, "USD amount")
        ils = parse_amount(amount_ils, "ILS amount")
        if usd < 0 or ils < 0:
            raise LedgerValidationError("Amounts cannot be negative")
        if not usd and not ils:
            raise LedgerValidationError("An ILS or USD amount is required")

        rate = parse_amount(usd_rate, "USD rate") or self._default_usd_rate
        if rate < 0:
            raise LedgerValidationError("The USD rate cannot be negative")
        if not ils:
            ils = round_shekels(usd * rate)

        record = IncomeTransaction(
            id=f"I-new-{uuid4().hex[:8]}",
            agent_name=agent,
            client_name=client_name,
            usd_rate=rate,
            amount_usd=usd,
            amount_ils=ils,
            original_amount=ils,
            original_amount_usd=usd,
            platform=platform,
            date=on_date or date.today(),
            hour=hour,
            notes=notes,
            shift_location=shift_location,
        )

        if self._store is not None:
            await self._store.append(self.sheet_name, [income_to_row(record)])
            record = replace(record, source_row=await self._appended_position(self._store))

        self.ledger.add(record)
        self._logger.info(
            "income_submitted",
            record_id=record.id,
            agent=agent,
            client=client_name,
            amount_ils=str(ils),
            row=record.source_row,
        )
        return record

    async def _appended_position(self, store: SheetStore) -> int:
        """Row position of the row just appended (the sheet's last row)."""
        try:
            rows = await store.read(self.sheet_name)
        except SheetStoreError as e:
            self._logger.warning("appended_row_unresolved", error=str(e))
            return 0
        return len(rows)

    # === Transitions ===

    async def toggle_direct_payment(self, record: IncomeTransaction) -> IncomeTransaction:
        """Flip the paid-to-client-directly flag, confirmed by the store."""
        self.actor.require_admin("change direct payments")
        async with self._lock_for(record.id):
            current = self._current(record)
            updated = replace(current, paid_to_client_directly=not current.paid_to_client_directly)
            store = self._remote_store(current)
            if store is not None:
                await store.update(self.sheet_name, current.source_row, income_to_row(updated))
            self.ledger.replace(updated)
            self._logger.info(
                "direct_payment_toggled",
                record_id=current.id,
                paid_to_client=updated.paid_to_client_directly,
                local_only=store is None,
            )
            return updated

    async def cancel(self, record: IncomeTransaction) -> IncomeTransaction:
        """Cancel a transaction, zeroing its amounts but keeping its row."""
        self.actor.require_admin("cancel transactions")
        async with self._lock_for(record.id):
            current = self._current(record)
            if current.cancelled:
                self._logger.debug("cancel_noop", record_id=current.id)
                return current

            updated = replace(
                current,
                cancelled=True,
                amount_ils=ZERO,
                amount_usd=ZERO,
                original_amount=current.amount_ils,
                original_amount_usd=current.amount_usd,
            )
            store = self._remote_store(current)
            if store is not None:
                await store.update(self.sheet_name, current.source_row, income_to_row(updated))
            self.ledger.replace(updated)
            self._logger.info(
                "transaction_cancelled",
                record_id=current.id,
                original_amount=str(updated.original_amount),
                local_only=store is None,
            )
            return updated

    async def approve(self, record: IncomeTransaction) -> SyncOutcome:
        """Mark a transaction verified; the ledger is updated even if sync fails."""
        self.actor.require_admin("approve transactions")
        async with self._lock_for(record.id):
            current = self._current(record)
            if current.verified:
                return SyncOutcome(record=current)
            if current.cancelled:
                raise LedgerValidationError("Cancelled transactions cannot be approved")

            error: str | None = None
            store = self._remote_store(current)
            if store is not None:
                try:
                    await store.update(self.sheet_name, current.source_row, approval_row())
                except SheetStoreError as e:
                    error = str(e)
                    self._logger.warning(
                        "approval_sync_failed",
                        record_id=current.id,
                        row=current.source_row,
                        error=error,
                    )

            updated = replace(current, verified=True)
            self.ledger.replace(updated)
            self._logger.info("transaction_approved", record_id=current.id, synced=error is None)
            return SyncOutcome(record=updated, error=error)

    async def reject(self, record: IncomeTransaction) -> SyncOutcome:
        """Delete a pending transaction; it leaves the ledger even if the delete fails."""
        self.actor.require_admin("reject transactions")
        async with self._lock_for(record.id):
            current = self._current(record)
            if current.status != RecordStatus.PENDING:
                raise LedgerValidationError(
                    f"Only pending transactions can be rejected (status: {current.status.value})"
                )

            error: str | None = None
            deleted = False
            store = self._remote_store(current)
            if store is not None:
                try:
                    await store.delete(self.sheet_name, current.source_row)
                    deleted = True
                except SheetStoreError as e:
                    error = str(e)
                    self._logger.warning(
                        "reject_sync_failed",
                        record_id=current.id,
                        row=current.source_row,
                        error=error,
                    )

            self.ledger.remove(current.id)
            self._locks.pop(current.id, None)
            if deleted:
                self.ledger.shift_rows_after(current.source_row)
            self._logger.info("transaction_rejected", record_id=current.id, synced=error is None)
            return SyncOutcome(record=current, error=error)

    async def approve_all(self, records: list[IncomeTransaction] | None = None) -> ApprovalReport:
        """Approve each record in turn; a failed sync never stops the rest."""
        self.actor.require_admin("approve transactions")
        report = ApprovalReport()
        for record in records if records is not None else self.pending():
            try:
                outcome = await self.approve(record)
            except LedgerValidationError as e:
                report.skipped[record.id] = str(e)
                continue
            report.approved.append(record.id)
            if outcome.error:
                report.sync_failures[record.id] = outcome.error

        self._logger.info(
            "bulk_approval_completed",
            approved=len(report.approved),
            sync_failures=len(report.sync_failures),
            skipped=len(report.skipped),
        )
        return report
