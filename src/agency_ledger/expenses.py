"""Expense bookkeeping against the expense sheet."""

import asyncio
from dataclasses import replace
from datetime import date, tzinfo
from decimal import Decimal
from uuid import uuid4

from agency_ledger.config import get_logger, get_settings
from agency_ledger.ledger import Ledger
from agency_ledger.mapper import expense_to_row, map_expense_rows
from agency_ledger.models import (
    DEFAULT_DOCUMENT_TYPE,
    EXPENSE_CATEGORIES,
    EntryMethod,
    Expense,
    LedgerValidationError,
    parse_amount,
)
from agency_ledger.sheets import SheetStore, SheetStoreError


class ExpenseService:
    """Adds, edits and deletes expenses, committing locally after the store confirms.

    Re-tagging a classification is the exception: it is applied locally first
    and a failed sync is only logged.
    """

    def __init__(
        self,
        ledger: Ledger[Expense],
        store: SheetStore | None = None,
        sheet_name: str | None = None,
        cost_bearers: tuple[str, str] | None = None,
        tz: tzinfo | None = None,
    ):
        settings = get_settings()
        self.ledger = ledger
        self._store = store
        self.sheet_name = sheet_name or settings.expense_sheet
        self.cost_bearers = cost_bearers or settings.cost_bearers
        self._tz = tz if tz is not None else settings.tz
        self._locks: dict[str, asyncio.Lock] = {}
        self._logger = get_logger(__name__, component="expenses", sheet=self.sheet_name)

    def _lock_for(self, expense_id: str) -> asyncio.Lock:
        lock = self._locks.get(expense_id)
        if lock is None:
            lock = self._locks[expense_id] = asyncio.Lock()
        return lock

    def _current(self, expense: Expense) -> Expense:
        current = self.ledger.get(expense.id)
        if current is None:
            raise LedgerValidationError(f"Unknown expense: {expense.id}")
        return current

    def _remote_store(self, expense: Expense) -> SheetStore | None:
        if expense.is_local:
            return None
        return self._store

    def validate(self, expense: Expense) -> None:
        """Reject an incomplete expense before any I/O."""
        if expense.category not in EXPENSE_CATEGORIES:
            raise LedgerValidationError(f"Unknown expense category: {expense.category!r}")
        if not expense.description:
            raise LedgerValidationError("An expense description is required")
        if not expense.amount.is_finite() or expense.amount <= 0:
            raise LedgerValidationError("Expense amount must be positive")
        if expense.payer not in self.cost_bearers:
            raise LedgerValidationError(
                f"Payer must be one of {', '.join(self.cost_bearers)}: {expense.payer!r}"
            )

    async def load(self) -> list[Expense]:
        """Replace the ledger with a full read of the expense sheet.

        A missing or unreachable expense sheet leaves an empty ledger.
        """
        if self._store is None:
            return self.ledger.records()
        try:
            rows = await self._store.read(self.sheet_name)
        except SheetStoreError as e:
            self._logger.warning("expense_sheet_unavailable", error=str(e))
            self.ledger.replace_all([])
            return []
        expenses = map_expense_rows(rows, self._tz)
        self.ledger.replace_all(expenses)
        self._locks.clear()
        self._logger.info("expenses_loaded", records=len(expenses))
        return expenses

    async def add(
        self,
        category: str,
        description: str,
        amount: Decimal,
        payer: str,
        on_date: date | None = None,
        hour: str = "",
        vat_eligible: bool = False,
        tax_eligible: bool = True,
        classification: str = "",
        entry_method: EntryMethod = EntryMethod.MANUAL,
        receipt_reference: str | None = None,
    ) -> Expense:
        expense = Expense(
            id=f"E-new-{uuid4().hex[:8]}",
            category=category,
            description=description.strip(),
            amount=parse_amount(amount, "expense amount"),
            date=on_date or date.today(),
            hour=hour,
            payer=payer,
            vat_eligible=vat_eligible,
            tax_eligible=tax_eligible,
            classification=classification,
            entry_method=entry_method,
            receipt_reference=receipt_reference,
            document_type=DEFAULT_DOCUMENT_TYPE,
        )
        self.validate(expense)

        if self._store is not None:
            await self._store.append(self.sheet_name, [expense_to_row(expense)])
            try:
                rows = await self._store.read(self.sheet_name)
                expense = replace(expense, source_row=len(rows))
            except SheetStoreError as e:
                self._logger.warning("appended_row_unresolved", error=str(e))

        self.ledger.add(expense)
        self._logger.info(
            "expense_added",
            expense_id=expense.id,
            category=category,
            amount=str(expense.amount),
            payer=payer,
            row=expense.source_row,
        )
        return expense

    async def edit(self, expense: Expense) -> Expense:
        """Rewrite an expense row with the edited record."""
        self.validate(expense)
        async with self._lock_for(expense.id):
            current = self._current(expense)
            updated = replace(expense, source_row=current.source_row)
            store = self._remote_store(current)
            if store is not None:
                await store.update(self.sheet_name, current.source_row, expense_to_row(updated))
            self.ledger.replace(updated)
            self._logger.info("expense_edited", expense_id=expense.id, local_only=store is None)
            return updated

    async def reclassify(self, expense: Expense, classification: str) -> Expense:
        """Re-tag an expense; the local change stands even if the sync fails."""
        if classification not in EXPENSE_CATEGORIES:
            raise LedgerValidationError(f"Unknown classification: {classification!r}")
        async with self._lock_for(expense.id):
            current = self._current(expense)
            updated = replace(current, classification=classification)
            self.ledger.replace(updated)
            store = self._remote_store(current)
            if store is not None:
                try:
                    await store.update(self.sheet_name, current.source_row, expense_to_row(updated))
                except SheetStoreError as e:
                    self._logger.warning(
                        "reclassify_sync_failed", expense_id=current.id, error=str(e)
                    )
            return updated

    async def remove(self, expense: Expense) -> Expense:
        """Delete an expense row; the ledger keeps the expense if the delete fails."""
        async with self._lock_for(expense.id):
            current = self._current(expense)
            store = self._remote_store(current)
            if store is not None:
                await store.delete(self.sheet_name, current.source_row)
            self.ledger.remove(current.id)
            self._locks.pop(current.id, None)
            if store is not None:
                self.ledger.shift_rows_after(current.source_row)
            self._logger.info("expense_removed", expense_id=current.id, local_only=store is None)
            return current
