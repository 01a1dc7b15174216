"""Aggregate calculations over ledger records.

Every function is pure: it takes a record collection plus parameters and
returns a frozen result. Empty input always yields a zero-valued result.
Cancelled income contributes through ``effective_amount`` and therefore
counts as zero everywhere.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from agency_ledger.models import ZERO, Expense, IncomeTransaction, ShiftLocation

OFFICE_RATE = Decimal("0.17")
REMOTE_RATE = Decimal("0.15")

GROWTH_STEPS = (Decimal("1.05"), Decimal("1.10"), Decimal("1.15"))
AGENT_GOAL_STEPS = (10, 20, 30)

HUNDRED = Decimal("100")


def total_income(records: Iterable[IncomeTransaction]) -> Decimal:
    return sum((r.effective_amount for r in records), ZERO)


def total_expenses(expenses: Iterable[Expense]) -> Decimal:
    return sum((e.amount for e in expenses), ZERO)


# === Payroll ===


@dataclass(frozen=True)
class PayrollSplit:
    """Agent pay split by the shift location the income was generated from."""

    office_sales: Decimal = ZERO
    remote_sales: Decimal = ZERO
    office_pay: Decimal = ZERO
    remote_pay: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.office_pay + self.remote_pay

    @property
    def total_sales(self) -> Decimal:
        return self.office_sales + self.remote_sales


def payroll_split(
    records: Iterable[IncomeTransaction],
    office_rate: Decimal = OFFICE_RATE,
    remote_rate: Decimal = REMOTE_RATE,
) -> PayrollSplit:
    """Office income pays ``office_rate``; everything else pays ``remote_rate``.

    A record without a recognized location counts as remote.
    """
    office = ZERO
    remote = ZERO
    for record in records:
        if record.shift_location == ShiftLocation.OFFICE:
            office += record.effective_amount
        else:
            remote += record.effective_amount
    return PayrollSplit(
        office_sales=office,
        remote_sales=remote,
        office_pay=office * office_rate,
        remote_pay=remote * remote_rate,
    )


# === Client commission ===


@dataclass(frozen=True)
class ClientBalance:
    """Commission position between the agency and one client.

    ``balance_due`` > 0 means the agency owes the client; < 0 means the
    client owes the agency.
    """

    client_name: str
    total_income: Decimal = ZERO
    direct_amount: Decimal = ZERO
    pct: Decimal = ZERO
    entitlement: Decimal = ZERO

    @property
    def through_agency(self) -> Decimal:
        return self.total_income - self.direct_amount

    @property
    def balance_due(self) -> Decimal:
        return self.entitlement - self.direct_amount

    @property
    def agency_owes_client(self) -> bool:
        return self.balance_due >= 0


def client_balance(
    records: Iterable[IncomeTransaction], client_name: str, pct: Decimal = ZERO
) -> ClientBalance:
    client_records = [r for r in records if r.client_name == client_name]
    total = total_income(client_records)
    direct = total_income(r for r in client_records if r.is_direct_payment)
    return ClientBalance(
        client_name=client_name,
        total_income=total,
        direct_amount=direct,
        pct=pct,
        entitlement=total * pct / HUNDRED,
    )


# === Expense offset ===


@dataclass(frozen=True)
class ExpenseOffset:
    """Equal-split settlement of shared expenses between two cost-bearers."""

    payer_a: str
    payer_b: str
    paid_a: Decimal = ZERO
    paid_b: Decimal = ZERO

    @property
    def offset(self) -> Decimal:
        return abs(self.paid_a - self.paid_b) / 2

    @property
    def creditor(self) -> str:
        return self.payer_a if self.paid_a > self.paid_b else self.payer_b

    @property
    def debtor(self) -> str:
        return self.payer_b if self.paid_a > self.paid_b else self.payer_a

    def describe(self) -> str:
        return f"{self.debtor} owes {self.creditor}"


def expense_offset(expenses: Iterable[Expense], payer_a: str, payer_b: str) -> ExpenseOffset:
    items = list(expenses)
    return ExpenseOffset(
        payer_a=payer_a,
        payer_b=payer_b,
        paid_a=total_expenses(e for e in items if e.payer == payer_a),
        paid_b=total_expenses(e for e in items if e.payer == payer_b),
    )


# === Profit ===


@dataclass(frozen=True)
class Profit:
    income: Decimal = ZERO
    expenses: Decimal = ZERO

    @property
    def profit(self) -> Decimal:
        return self.income - self.expenses


def profit(income: Iterable[IncomeTransaction], expenses: Iterable[Expense]) -> Profit:
    """Income minus expenses for a period slice, no tax adjustment."""
    return Profit(income=total_income(income), expenses=total_expenses(expenses))


# === Targets ===


@dataclass(frozen=True)
class GrowthTargets:
    daily_average: Decimal = ZERO
    target_1: Decimal = ZERO
    target_2: Decimal = ZERO
    target_3: Decimal = ZERO

    def as_tuple(self) -> tuple[Decimal, Decimal, Decimal]:
        return (self.target_1, self.target_2, self.target_3)


def growth_targets(prior_total: Decimal, prior_days: int, current_days: int) -> GrowthTargets:
    """Escalating +5/+10/+15% targets from the prior period's daily average.

    Without a baseline (no prior income or a zero day count) every target is
    zero.
    """
    if not prior_days or not current_days or not prior_total:
        return GrowthTargets()
    daily = Decimal(prior_total) / prior_days
    base = daily * current_days
    first, second, third = (base * step for step in GROWTH_STEPS)
    return GrowthTargets(daily_average=daily, target_1=first, target_2=second, target_3=third)


@dataclass(frozen=True)
class ProgressGoal:
    label: str
    goal: Decimal
    progress: int


def agent_progress_targets(prior_total: Decimal, current_total: Decimal) -> list[ProgressGoal]:
    """Goals at +10/+20/+30% over last month with progress capped at 100%."""
    goals: list[ProgressGoal] = []
    for pct in AGENT_GOAL_STEPS:
        goal = (prior_total * (HUNDRED + pct) / HUNDRED).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        if goal > 0:
            ratio = (current_total / goal * HUNDRED).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            progress = min(int(ratio), 100)
        else:
            progress = 0
        goals.append(ProgressGoal(label=f"+{pct}%", goal=goal, progress=progress))
    return goals
