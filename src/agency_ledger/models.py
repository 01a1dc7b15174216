"""Ledger record types.

Income transactions and expenses are immutable snapshots; every state
transition produces a replacement record via ``dataclasses.replace`` which the
ledger then swaps in by id.
"""

import datetime
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

ZERO = Decimal("0")

# Marker written into flag columns of the sheets.
MARKER = "V"

YES_LABEL = "כן"
NO_LABEL = "לא"

DEFAULT_DOCUMENT_TYPE = "חשבונית מס קבלה"

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "עלות רו״ח",
    "חיובי בנק",
    "Directors Pay",
    "Financing Costs",
    "ביטוח",
    "אחר",
    "שכירות",
    "חשמל",
    "מים",
    "ארנונה",
    "עלויות אתר",
    "שיווק",
    "הוצאות משרד",
    "תוכנות",
    "תשלומים כוח אדם",
    "דלק והוצאות רכב",
    "הזמנות אינטרנט",
    "ביגוד",
)


class LedgerError(Exception):
    """Base exception for ledger operations."""


class LedgerValidationError(LedgerError):
    """A command was rejected before any I/O was attempted."""


class PermissionDeniedError(LedgerError):
    """The acting identity may not perform the operation."""


def parse_amount(value: Any, label: str) -> Decimal:
    """Convert a caller-supplied amount; missing amounts are zero.

    Raises LedgerValidationError for text that is not a number and for
    non-finite values.
    """
    if value is None or value == "":
        return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as e:
        raise LedgerValidationError(f"Invalid {label}: {value!r}") from e
    if not amount.is_finite():
        raise LedgerValidationError(f"Invalid {label}: {value!r}")
    return amount


class ShiftLocation(str, Enum):
    """Where income was generated; drives the payroll percentage."""

    OFFICE = "משרד"
    REMOTE = "חוץ"


class EntryMethod(str, Enum):
    """Provenance of an expense row."""

    MANUAL = "ידני"
    AUTOMATIC = "אוטומטי"


class RecordStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    CANCELLED = "cancelled"


class Role(str, Enum):
    ADMIN = "admin"
    AGENT = "agent"


@dataclass(frozen=True)
class Identity:
    """The signed-in operator. Only the role and name matter to the ledger."""

    name: str
    role: Role = Role.AGENT

    @classmethod
    def admin(cls) -> "Identity":
        return cls(name="admin", role=Role.ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def require_admin(self, operation: str) -> None:
        if not self.is_admin:
            raise PermissionDeniedError(f"{self.name} may not {operation}")


@dataclass(frozen=True)
class IncomeTransaction:
    """A single income line recorded by an agent for a client."""

    id: str
    source_row: int = 0
    agent_name: str = ""
    client_name: str = ""
    payer_name: str = ""
    usd_rate: Decimal = ZERO
    amount_usd: Decimal = ZERO
    amount_ils: Decimal = ZERO
    original_amount: Decimal = ZERO
    original_amount_usd: Decimal = ZERO
    income_type: str = ""
    platform: str = ""
    date: datetime.date | None = None
    hour: str = ""
    notes: str = ""
    verified: bool = False
    shift_location: ShiftLocation | None = None
    paid_to_client_directly: bool = False
    cancelled: bool = False

    @property
    def is_local(self) -> bool:
        """True when the record has no remote row counterpart."""
        return self.source_row <= 0

    @property
    def effective_amount(self) -> Decimal:
        """ILS amount counted by every aggregate."""
        return ZERO if self.cancelled else self.amount_ils

    @property
    def status(self) -> RecordStatus:
        if self.cancelled:
            return RecordStatus.CANCELLED
        if self.verified:
            return RecordStatus.APPROVED
        return RecordStatus.PENDING

    @property
    def is_direct_payment(self) -> bool:
        """Money that reached the client without passing through the agency."""
        return self.paid_to_client_directly or (
            bool(self.client_name) and self.income_type == self.client_name
        )


@dataclass(frozen=True)
class Expense:
    """A business expense borne by one of the two partners."""

    id: str
    source_row: int = 0
    category: str = ""
    description: str = ""
    amount: Decimal = ZERO
    date: datetime.date | None = None
    payer: str = ""
    vat_eligible: bool = False
    tax_eligible: bool = False
    classification: str = ""
    entry_method: EntryMethod = EntryMethod.MANUAL
    receipt_reference: str | None = None
    document_type: str = DEFAULT_DOCUMENT_TYPE
    hour: str = ""

    @property
    def is_local(self) -> bool:
        return self.source_row <= 0

    @property
    def year(self) -> int:
        return self.date.year if self.date else 0

    @property
    def month(self) -> int:
        return self.date.month if self.date else 0
