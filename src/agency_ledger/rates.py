"""Per-client, per-month commission rate registry."""

import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Protocol

import structlog

from agency_ledger.models import ZERO, Identity, LedgerValidationError

logger = structlog.get_logger(__name__)

MAX_PERCENTAGE = Decimal("100")

RateTable = dict[str, dict[str, Decimal]]


def _in_range(pct: Decimal) -> bool:
    return pct.is_finite() and 0 <= pct <= MAX_PERCENTAGE


def year_month(year: int, month: int) -> str:
    """Registry key for a calendar month (``month`` is 1-12)."""
    return f"{year}-{month:02d}"


class RateStore(Protocol):
    """Key-value persistence for the rate table."""

    def load(self) -> RateTable: ...

    def save(self, table: RateTable) -> None: ...


class JsonRateStore:
    """Rate table persisted as a JSON document on disk."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> RateTable:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("rate_file_unreadable", path=str(self.path))
            return {}
        if not isinstance(data, dict):
            return {}

        table: RateTable = {}
        for client, months in data.items():
            if not isinstance(months, dict):
                continue
            for key, value in months.items():
                try:
                    pct = Decimal(str(value))
                except InvalidOperation:
                    pct = Decimal("NaN")
                if not _in_range(pct):
                    logger.warning("rate_value_skipped", client=client, month=key, value=str(value))
                    continue
                table.setdefault(str(client), {})[str(key)] = pct
        return table

    def save(self, table: RateTable) -> None:
        serializable = {
            client: {key: str(value) for key, value in months.items()}
            for client, months in table.items()
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(serializable, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )


class RateRegistry:
    """Commission percentage per (client, year-month); last write wins.

    Reads are open to every aggregate; writes require an admin identity.
    """

    def __init__(self, store: RateStore | None = None):
        self._store = store
        self._rates: RateTable = store.load() if store else {}

    def get(self, client: str, month_key: str) -> Decimal:
        """Percentage for the client and month, 0 when never set."""
        return self._rates.get(client, {}).get(month_key, ZERO)

    def set(
        self,
        client: str,
        month_key: str,
        percentage: Decimal | int | float | str,
        actor: Identity,
    ) -> Decimal:
        actor.require_admin("set commission rates")
        if not client:
            raise LedgerValidationError("A client is required to set a rate")
        try:
            pct = Decimal(str(percentage))
        except InvalidOperation as e:
            raise LedgerValidationError(f"Invalid percentage: {percentage!r}") from e
        if not _in_range(pct):
            raise LedgerValidationError(f"Percentage must be between 0 and 100: {percentage!r}")

        self._rates.setdefault(client, {})[month_key] = pct
        logger.info("rate_set", client=client, month=month_key, percentage=str(pct))
        if self._store:
            self._store.save(self._rates)
        return pct

    def seed(self, table: RateTable) -> None:
        """Bulk-load rates without an actor (demo datasets, fixtures)."""
        for client, months in table.items():
            self._rates.setdefault(client, {}).update(months)

    def clients(self) -> list[str]:
        return sorted(self._rates)

    def snapshot(self) -> RateTable:
        return {client: dict(months) for client, months in self._rates.items()}
