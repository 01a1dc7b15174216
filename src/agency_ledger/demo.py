"""Seeded demo dataset for running the ledger without a Sheet Store.

Every generated record is local-only (``source_row == 0``), so mutations on
it never reach a remote store.
"""

import random
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from agency_ledger.config import get_settings
from agency_ledger.models import (
    EXPENSE_CATEGORIES,
    EntryMethod,
    Expense,
    IncomeTransaction,
    ShiftLocation,
)
from agency_ledger.rates import RateTable, year_month

DEMO_AGENTS = ("נועם", "שירה", "דנה", "אלון", "מיכל")
DEMO_CLIENTS = ("יעל", "רוני", "נועה", "תמר", "ליאת")
DEMO_PLATFORMS = ("OnlyFans", "Fansly", "Instagram", "TikTok")
DEMO_USD_RATE = Decimal("3.6")


@dataclass(frozen=True)
class DemoDataset:
    income: list[IncomeTransaction]
    expenses: list[Expense]
    rates: RateTable


def build_demo_dataset(year: int, seed: int = 0) -> DemoDataset:
    """Generate a year of income, expenses and commission rates."""
    rng = random.Random(seed)
    payers = get_settings().cost_bearers

    income: list[IncomeTransaction] = []
    for month in range(1, 13):
        for i in range(30 + rng.randrange(40)):
            ils = Decimal(rng.randrange(200, 3200))
            usd = (ils / DEMO_USD_RATE).quantize(Decimal("1"))
            client = rng.choice(DEMO_CLIENTS)
            income.append(
                IncomeTransaction(
                    id=f"demo-I-{month}-{i}",
                    agent_name=rng.choice(DEMO_AGENTS),
                    client_name=client,
                    usd_rate=DEMO_USD_RATE,
                    amount_usd=usd,
                    amount_ils=ils,
                    original_amount=ils,
                    original_amount_usd=usd,
                    income_type=client if rng.random() < 0.25 else "",
                    platform=rng.choice(DEMO_PLATFORMS),
                    date=date(year, month, rng.randrange(1, 29)),
                    hour=f"{rng.randrange(24):02d}:00",
                    shift_location=rng.choice((ShiftLocation.OFFICE, ShiftLocation.REMOTE)),
                )
            )

    expenses: list[Expense] = []
    for category in EXPENSE_CATEGORIES:
        for month in range(1, 13):
            for i in range(1 + rng.randrange(3)):
                expenses.append(
                    Expense(
                        id=f"demo-E-{category}-{month}-{i}",
                        category=category,
                        description=f"{category} #{i + 1}",
                        amount=Decimal(rng.randrange(100, 5100)),
                        date=date(year, month, rng.randrange(1, 29)),
                        hour="12:00",
                        payer=rng.choice(payers),
                        vat_eligible=rng.random() > 0.4,
                        tax_eligible=rng.random() > 0.2,
                        classification=category,
                        entry_method=rng.choice((EntryMethod.MANUAL, EntryMethod.AUTOMATIC)),
                    )
                )

    rates: RateTable = {
        client: {year_month(year, month): Decimal(25 + rng.randrange(20)) for month in range(1, 13)}
        for client in DEMO_CLIENTS
    }
    return DemoDataset(income=income, expenses=expenses, rates=rates)
