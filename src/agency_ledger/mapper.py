"""Row mapping between positional sheet rows and ledger records.

Sheet cells arrive loosely typed: numbers may be strings, dates may be
serial numbers, ISO timestamps or ``DD/MM/YY`` text, and text columns can
carry stray dates or booleans left behind by spreadsheet formulas. Every
function here is total: a malformed cell degrades to a zero, empty or
``None`` default instead of raising.
"""

import re
from datetime import date, datetime, time, timedelta, tzinfo
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any
from uuid import uuid4

from agency_ledger.models import (
    DEFAULT_DOCUMENT_TYPE,
    MARKER,
    NO_LABEL,
    YES_LABEL,
    ZERO,
    EntryMethod,
    Expense,
    IncomeTransaction,
    ShiftLocation,
)

SERIAL_EPOCH = date(1899, 12, 30)
HEADER_OFFSET = 2  # header row + 1-based positions

INCOME_COLUMNS = 16
EXPENSE_COLUMNS = 14
VERIFIED_COLUMN = 12

_ISO_TIMESTAMP = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}")
_HOUR = re.compile(r"^(\d{1,2}):(\d{2})")

_SHIFT_ALIASES = {
    ShiftLocation.OFFICE.value: ShiftLocation.OFFICE,
    "office": ShiftLocation.OFFICE,
    ShiftLocation.REMOTE.value: ShiftLocation.REMOTE,
    "remote": ShiftLocation.REMOTE,
}

_ENTRY_ALIASES = {
    EntryMethod.MANUAL.value: EntryMethod.MANUAL,
    "manual": EntryMethod.MANUAL,
    EntryMethod.AUTOMATIC.value: EntryMethod.AUTOMATIC,
    "automatic": EntryMethod.AUTOMATIC,
}


# === Cell coercion ===


def _cell(row: list[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def coerce_number(value: Any) -> Decimal:
    """Coerce a cell to a Decimal; anything non-numeric becomes zero."""
    if value is None or isinstance(value, bool):
        return ZERO
    if _is_number(value):
        candidate = str(value)
    elif isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return ZERO
    else:
        return ZERO
    try:
        number = Decimal(candidate)
    except InvalidOperation:
        return ZERO
    return number if number.is_finite() else ZERO


def coerce_text(value: Any) -> str:
    """Render a cell as stripped text; missing cells become empty."""
    if value is None or value is False:
        return ""
    if _is_number(value):
        return _format_number(coerce_number(value))
    return str(value).strip()


def is_marked(value: Any) -> bool:
    """True for the sheet's ``V`` marker or a native boolean true."""
    if value is True:
        return True
    return isinstance(value, str) and value.strip().upper() == MARKER


def sniff_text(value: Any) -> str:
    """Return a text cell, treating date and boolean-like artifacts as empty.

    Spreadsheet formulas upstream occasionally leave a date, an ISO timestamp
    or a 0/1 flag in a column meant for free text.
    """
    if value is None or isinstance(value, (bool, date, datetime, time)):
        return ""
    if _is_number(value):
        return "" if coerce_number(value) < 2 else coerce_text(value)
    text = str(value).strip()
    if _ISO_TIMESTAMP.match(text):
        return ""
    return text


def parse_shift_location(value: Any) -> ShiftLocation | None:
    text = sniff_text(value)
    return _SHIFT_ALIASES.get(text.lower())


def parse_entry_method(value: Any) -> EntryMethod:
    text = coerce_text(value)
    return _ENTRY_ALIASES.get(text.lower(), EntryMethod.MANUAL)


def _build_date(year: int, month: int, day: int) -> date | None:
    if year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _leading_int(text: str) -> int | None:
    match = re.match(r"^\s*(\d+)", text)
    return int(match.group(1)) if match else None


def _local_date(value: datetime, tz: tzinfo | None) -> date:
    if tz is not None and value.tzinfo is not None:
        value = value.astimezone(tz)
    return value.date()


def parse_date(value: Any, tz: tzinfo | None = None) -> date | None:
    """Parse a date cell; unparseable input yields ``None``.

    Accepts native dates, spreadsheet serial numbers (days since 1899-12-30),
    ISO-8601 timestamps, ``DD/MM/YY[YY]`` (or dot-separated) and
    ``YYYY-MM-DD`` text. Two-digit years are taken as 2000+. Zone-aware
    timestamps are shifted into ``tz`` when given, since the store serializes
    sheet dates as UTC instants.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _local_date(value, tz)
    if isinstance(value, date):
        return value
    if _is_number(value):
        serial = coerce_number(value)
        if serial <= 0:
            return None
        try:
            return SERIAL_EPOCH + timedelta(days=int(serial))
        except OverflowError:
            return None
    if not isinstance(value, str):
        return None

    text = value.strip().replace(".", "/")
    if "T" in text:
        try:
            return _local_date(datetime.fromisoformat(value.strip().replace("Z", "+00:00")), tz)
        except ValueError:
            pass

    parts = text.split("/")
    if len(parts) == 3:
        day, month, year = (_leading_int(p) for p in parts)
        if day is None or month is None or year is None:
            return None
        return _build_date(year, month, day)

    parts = text.split("-")
    if len(parts) == 3:
        year, month, day = (_leading_int(p) for p in parts)
        if day is None or month is None or year is None:
            return None
        return _build_date(year, month, day)

    return None


def format_date(value: date | None) -> str:
    """Format a date as ``DD/MM/YYYY`` (empty for ``None``)."""
    if value is None:
        return ""
    return f"{value.day:02d}/{value.month:02d}/{value.year}"


def parse_hour(value: Any) -> str:
    """Parse a clock-time cell into ``HH:MM`` (empty when unknown)."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (datetime, time)):
        return f"{value.hour:02d}:{value.minute:02d}"
    if _is_number(value):
        number = coerce_number(value)
        fraction = number - number.to_integral_value(rounding=ROUND_FLOOR)
        minutes = int((fraction * 1440).to_integral_value(rounding=ROUND_HALF_UP)) % 1440
        return f"{minutes // 60:02d}:{minutes % 60:02d}"
    text = str(value).strip()
    if "T" in text:
        text = text.split("T", 1)[1][:5]
    match = _HOUR.match(text)
    if match:
        return f"{int(match.group(1)):02d}:{match.group(2)}"
    return text


def _format_number(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return str(value.normalize())


def _number_cell(value: Decimal) -> int | float:
    """JSON-ready number for a write payload."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def round_shekels(value: Decimal) -> Decimal:
    """Round to whole shekels; a value too large to quantize becomes zero."""
    try:
        return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return ZERO


# === Income ===


def map_income_row(
    row: list[Any], sequence_index: int, tz: tzinfo | None = None
) -> IncomeTransaction:
    """Map a ``sales_report`` row (header excluded) into an income record.

    ``sequence_index`` is the 0-based position among the data rows; the
    remote row position is derived from it.
    """
    cancelled = is_marked(_cell(row, 15))
    usd_rate = coerce_number(_cell(row, 4))
    raw_usd = coerce_number(_cell(row, 5))
    raw_ils = coerce_number(_cell(row, 6))

    if raw_ils > 0:
        amount_ils = raw_ils
    elif raw_usd > 0 and usd_rate > 0:
        amount_ils = round_shekels(raw_usd * usd_rate)
    else:
        amount_ils = ZERO

    return IncomeTransaction(
        id=f"I-{sequence_index}-{uuid4().hex[:8]}",
        source_row=sequence_index + HEADER_OFFSET,
        agent_name=coerce_text(_cell(row, 1)),
        client_name=coerce_text(_cell(row, 2)),
        payer_name=coerce_text(_cell(row, 3)),
        usd_rate=usd_rate,
        amount_usd=ZERO if cancelled else raw_usd,
        amount_ils=ZERO if cancelled else amount_ils,
        original_amount=amount_ils,
        original_amount_usd=raw_usd,
        income_type=sniff_text(_cell(row, 7)),
        platform=coerce_text(_cell(row, 8)),
        date=parse_date(_cell(row, 9), tz),
        hour=parse_hour(_cell(row, 10)),
        notes=coerce_text(_cell(row, 11)),
        verified=is_marked(_cell(row, 12)),
        shift_location=parse_shift_location(_cell(row, 13)),
        paid_to_client_directly=is_marked(_cell(row, 14)),
        cancelled=cancelled,
    )


def map_income_rows(
    rows: list[list[Any]], tz: tzinfo | None = None
) -> list[IncomeTransaction]:
    """Map a full sheet read, skipping the header and empty-amount rows."""
    records = [map_income_row(row, index, tz) for index, row in enumerate(rows[1:])]
    return [r for r in records if r.original_amount > 0 or r.original_amount_usd > 0]


def income_to_row(record: IncomeTransaction) -> list[Any]:
    """Serialize every field of an income record in sheet column order.

    The store only replaces whole rows, so a partial payload would blank the
    sibling cells. Cancelled records are written with their original amounts
    so the sheet keeps the audit value.
    """
    return [
        "",
        record.agent_name,
        record.client_name,
        record.payer_name,
        _number_cell(record.usd_rate),
        _number_cell(record.original_amount_usd if record.cancelled else record.amount_usd),
        _number_cell(record.original_amount if record.cancelled else record.amount_ils),
        record.income_type,
        record.platform,
        format_date(record.date),
        record.hour,
        record.notes,
        MARKER if record.verified else "",
        record.shift_location.value if record.shift_location else "",
        MARKER if record.paid_to_client_directly else "",
        MARKER if record.cancelled else "",
    ]


def approval_row() -> list[Any]:
    """Full-width payload that only sets the verified marker."""
    row: list[Any] = [None] * INCOME_COLUMNS
    row[VERIFIED_COLUMN] = MARKER
    return row


# === Expenses ===


def _yes(value: Any) -> bool:
    return value is True or coerce_text(value) == YES_LABEL


def map_expense_row(
    row: list[Any], sequence_index: int, tz: tzinfo | None = None
) -> Expense:
    """Map an expense sheet row (header excluded) into an expense record."""
    receipt = coerce_text(_cell(row, 9))
    return Expense(
        id=f"E-{sequence_index}-{uuid4().hex[:8]}",
        source_row=sequence_index + HEADER_OFFSET,
        date=parse_date(_cell(row, 0), tz),
        document_type=coerce_text(_cell(row, 1)) or DEFAULT_DOCUMENT_TYPE,
        description=coerce_text(_cell(row, 2)),
        amount=coerce_number(_cell(row, 3)),
        vat_eligible=_yes(_cell(row, 4)),
        tax_eligible=_yes(_cell(row, 5)),
        category=sniff_text(_cell(row, 6)),
        payer=coerce_text(_cell(row, 7)),
        hour=parse_hour(_cell(row, 8)),
        receipt_reference=receipt or None,
        classification=sniff_text(_cell(row, 12)),
        entry_method=parse_entry_method(_cell(row, 13)),
    )


def map_expense_rows(rows: list[list[Any]], tz: tzinfo | None = None) -> list[Expense]:
    return [map_expense_row(row, index, tz) for index, row in enumerate(rows[1:])]


def expense_to_row(expense: Expense) -> list[Any]:
    """Serialize every field of an expense in sheet column order."""
    return [
        format_date(expense.date),
        expense.document_type or DEFAULT_DOCUMENT_TYPE,
        expense.description,
        _number_cell(expense.amount),
        YES_LABEL if expense.vat_eligible else NO_LABEL,
        YES_LABEL if expense.tax_eligible else NO_LABEL,
        expense.category,
        expense.payer,
        expense.hour,
        expense.receipt_reference or "",
        "",
        "",
        expense.classification,
        expense.entry_method.value,
    ]
