"""Pytest configuration and fixtures."""

import os
from dataclasses import dataclass, field
from typing import Any

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("SHEET_STORE_URL", "https://script.example.test/macros/s/test/exec")
os.environ.setdefault("SHEET_TIMEZONE", "Asia/Jerusalem")
os.environ.setdefault("COST_BEARER_A", "Dor")
os.environ.setdefault("COST_BEARER_B", "Yurai")

from agency_ledger.sheets import SheetStoreError  # noqa: E402

INCOME_HEADER = [
    "Timestamp", "Chatter", "Model", "Client", "Rate", "USD", "ILS", "Type",
    "Platform", "Date", "Hour", "Notes", "Verified", "Location", "PaidToClient", "Cancelled",
]

EXPENSE_HEADER = [
    "Date", "DocType", "Name", "Amount", "VAT", "Tax", "Category", "PaidBy",
    "Hour", "Receipt", "", "", "Classification", "Source",
]


def income_row(**overrides: Any) -> list[Any]:
    """A sales_report data row; override cells by column name."""
    columns = {
        "timestamp": "",
        "agent": "Noa",
        "client": "Yael",
        "payer": "",
        "rate": 3.6,
        "usd": 100,
        "ils": 0,
        "type": "",
        "platform": "OnlyFans",
        "date": "05/03/2026",
        "hour": "10:30",
        "notes": "",
        "verified": "",
        "location": "משרד",
        "paid": "",
        "cancelled": "",
    }
    columns.update(overrides)
    return list(columns.values())


def expense_row(**overrides: Any) -> list[Any]:
    columns = {
        "date": "10/03/2026",
        "doc_type": "חשבונית מס קבלה",
        "description": "Electricity bill",
        "amount": 450,
        "vat": "כן",
        "tax": "כן",
        "category": "חשמל",
        "payer": "Dor",
        "hour": "09:15",
        "receipt": "",
        "blank_1": "",
        "blank_2": "",
        "classification": "חשמל",
        "source": "ידני",
    }
    columns.update(overrides)
    return list(columns.values())


@dataclass
class FakeSheetStore:
    """In-memory Sheet Store that records every call."""

    sheets: dict[str, list[list[Any]]] = field(default_factory=dict)
    calls: list[tuple[str, ...]] = field(default_factory=list)
    fail_on: set[str] = field(default_factory=set)

    def _check(self, action: str) -> None:
        if action in self.fail_on:
            raise SheetStoreError(f"{action} failed: HTTP 500")

    def _sheet(self, name: str) -> list[list[Any]]:
        if name not in self.sheets:
            raise SheetStoreError(f"Sheet not found: {name}")
        return self.sheets[name]

    async def read(self, sheet_name: str) -> list[list[Any]]:
        self.calls.append(("read", sheet_name))
        self._check("read")
        return [list(row) for row in self._sheet(sheet_name)]

    async def append(self, sheet_name: str, rows: list[list[Any]]) -> None:
        self.calls.append(("append", sheet_name))
        self._check("append")
        self._sheet(sheet_name).extend(list(row) for row in rows)

    async def update(self, sheet_name: str, row_position: int, row_values: list[Any]) -> None:
        self.calls.append(("update", sheet_name, row_position))
        self._check("update")
        row = self._sheet(sheet_name)[row_position - 1]
        row.extend([""] * (len(row_values) - len(row)))
        for index, value in enumerate(row_values):
            if value is not None:
                row[index] = value

    async def delete(self, sheet_name: str, row_position: int) -> None:
        self.calls.append(("delete", sheet_name, row_position))
        self._check("delete")
        del self._sheet(sheet_name)[row_position - 1]

    async def list_sheet_names(self) -> list[str]:
        self.calls.append(("sheets",))
        self._check("sheets")
        return list(self.sheets)

    def actions(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def sheet_store():
    """A fake store holding a small income sheet and an expense sheet."""
    return FakeSheetStore(
        sheets={
            "sales_report": [
                INCOME_HEADER,
                income_row(),
                income_row(agent="Shira", client="Roni", ils=500, usd=0, location="חוץ"),
                income_row(agent="", client="", usd=0, ils=0),
                income_row(agent="Dana", client="Yael", ils=800, verified="V"),
            ],
            "כל החשבוניות": [
                EXPENSE_HEADER,
                expense_row(),
                expense_row(description="Accountant", amount=1200, category="עלות רו״ח",
                            payer="Yurai", classification="עלות רו״ח"),
            ],
        }
    )
