"""In-memory ledger of income and expense records."""

from collections.abc import Iterable, Iterator
from dataclasses import replace
from typing import Generic, Protocol, TypeVar


class LedgerRecord(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def source_row(self) -> int: ...


RecordT = TypeVar("RecordT", bound=LedgerRecord)
DatedT = TypeVar("DatedT")


class Ledger(Generic[RecordT]):
    """Id-keyed collection for one dataset (income or expenses).

    Insertion order is kept but carries no meaning; views sort as they need.
    The ledger does no locking, callers serialize writes per record.
    """

    def __init__(self, records: Iterable[RecordT] = ()):
        self._records: dict[str, RecordT] = {}
        self.replace_all(records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[RecordT]:
        return iter(list(self._records.values()))

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def get(self, record_id: str) -> RecordT | None:
        return self._records.get(record_id)

    def replace_all(self, records: Iterable[RecordT]) -> None:
        """Swap in the result of a full fetch."""
        self._records = {record.id: record for record in records}

    def add(self, record: RecordT) -> None:
        if record.id in self._records:
            raise KeyError(f"Duplicate record id: {record.id}")
        self._records[record.id] = record

    def replace(self, record: RecordT) -> None:
        """Swap in the post-mutation version of a record."""
        if record.id not in self._records:
            raise KeyError(f"Unknown record id: {record.id}")
        self._records[record.id] = record

    def remove(self, record_id: str) -> RecordT | None:
        return self._records.pop(record_id, None)

    def shift_rows_after(self, position: int) -> int:
        """Move records below a deleted remote row up by one position.

        Returns the number of records renumbered.
        """
        shifted = 0
        for record_id, record in list(self._records.items()):
            if record.source_row > position:
                self._records[record_id] = replace(record, source_row=record.source_row - 1)  # type: ignore[type-var]
                shifted += 1
        return shifted

    def records(self) -> list[RecordT]:
        return list(self._records.values())


def in_year(records: Iterable[DatedT], year: int) -> list[DatedT]:
    """Records dated in the given year (undated records are excluded)."""
    return [r for r in records if r.date is not None and r.date.year == year]  # type: ignore[attr-defined]


def in_month(records: Iterable[DatedT], year: int, month: int) -> list[DatedT]:
    """Records dated in the given year and month (1-12)."""
    return [
        r
        for r in records
        if r.date is not None and r.date.year == year and r.date.month == month  # type: ignore[attr-defined]
    ]
