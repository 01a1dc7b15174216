"""Period reports composed from the ledger, calculations and rate registry."""

import calendar
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from agency_ledger.calculations import (
    ClientBalance,
    ExpenseOffset,
    GrowthTargets,
    PayrollSplit,
    Profit,
    ProgressGoal,
    agent_progress_targets,
    client_balance,
    expense_offset,
    growth_targets,
    payroll_split,
    profit,
    total_expenses,
    total_income,
)
from agency_ledger.ledger import in_month, in_year
from agency_ledger.models import (
    ZERO,
    Expense,
    IncomeTransaction,
    LedgerValidationError,
    RecordStatus,
)
from agency_ledger.rates import RateRegistry, year_month

# Baseline used for January, which has no prior month in the same year.
FIRST_MONTH_PRIOR_DAYS = 31


def _names(values: Iterable[str]) -> list[str]:
    return sorted({v for v in values if v})


def previous_month(year: int, month: int) -> tuple[int, int]:
    return (year - 1, 12) if month == 1 else (year, month - 1)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


@dataclass(frozen=True)
class AgentPayroll:
    agent_name: str
    split: PayrollSplit


@dataclass(frozen=True)
class PeriodReport:
    """Everything the dashboard shows for one month or one year."""

    year: int
    month: int | None
    payroll: list[AgentPayroll] = field(default_factory=list)
    clients: list[ClientBalance] = field(default_factory=list)
    offset: ExpenseOffset | None = None
    profit: Profit = field(default_factory=Profit)

    @property
    def total_payroll(self) -> Decimal:
        return sum((row.split.total for row in self.payroll), ZERO)

    @classmethod
    def build(
        cls,
        income: Iterable[IncomeTransaction],
        expenses: Iterable[Expense],
        registry: RateRegistry,
        year: int,
        month: int | None,
        cost_bearers: tuple[str, str],
        rate_month: int | None = None,
    ) -> "PeriodReport":
        """Build a monthly report, or a yearly one when ``month`` is None.

        Client commission uses the registry percentage for ``rate_month``
        (defaults to ``month``). A yearly report must name one, since
        commission rates are set per month.
        """
        if month is None and rate_month is None:
            raise LedgerValidationError("A yearly report needs a rate_month for commission rates")
        if month is None:
            period_income = in_year(income, year)
            period_expenses = in_year(expenses, year)
        else:
            period_income = in_month(income, year, month)
            period_expenses = in_month(expenses, year, month)

        payroll = [
            AgentPayroll(
                agent_name=agent,
                split=payroll_split(r for r in period_income if r.agent_name == agent),
            )
            for agent in _names(r.agent_name for r in period_income)
        ]
        payroll.sort(key=lambda row: row.split.total, reverse=True)

        rate_key = year_month(year, rate_month or month)
        clients = [
            client_balance(period_income, client, registry.get(client, rate_key))
            for client in _names(r.client_name for r in period_income)
        ]
        clients.sort(key=lambda balance: balance.total_income, reverse=True)

        payer_a, payer_b = cost_bearers
        return cls(
            year=year,
            month=month,
            payroll=payroll,
            clients=clients,
            offset=expense_offset(period_expenses, payer_a, payer_b),
            profit=profit(period_income, period_expenses),
        )


@dataclass(frozen=True)
class MonthRow:
    month: int
    days: int
    income: Decimal
    expenses: Decimal
    targets: GrowthTargets


def monthly_breakdown(
    income: Iterable[IncomeTransaction], expenses: Iterable[Expense], year: int
) -> list[MonthRow]:
    """Twelve months of totals with targets chained from the previous month."""
    year_income = in_year(income, year)
    year_expenses = in_year(expenses, year)

    rows: list[MonthRow] = []
    prior_total, prior_days = ZERO, FIRST_MONTH_PRIOR_DAYS
    for month in range(1, 13):
        days = days_in_month(year, month)
        month_income = total_income(in_month(year_income, year, month))
        month_expenses = total_expenses(in_month(year_expenses, year, month))
        rows.append(
            MonthRow(
                month=month,
                days=days,
                income=month_income,
                expenses=month_expenses,
                targets=growth_targets(prior_total, prior_days, days),
            )
        )
        prior_total, prior_days = month_income, days
    return rows


def classification_breakdown(expenses: Iterable[Expense]) -> list[tuple[str, Decimal]]:
    """Expense totals per classification, largest first; untagged expenses are left out."""
    totals: dict[str, Decimal] = {}
    for expense in expenses:
        if expense.classification:
            totals[expense.classification] = totals.get(expense.classification, ZERO) + expense.amount
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


@dataclass(frozen=True)
class AgentSummary:
    agent_name: str
    approved_total: Decimal
    approved_count: int
    pending_total: Decimal
    pending_count: int
    last_month_total: Decimal
    last_month_daily_average: Decimal
    goals: list[ProgressGoal]


def agent_summary(
    income: Iterable[IncomeTransaction], agent_name: str, year: int, month: int
) -> AgentSummary:
    """An agent's own month: approved vs pending and progress against last month."""
    records = [r for r in income if r.agent_name == agent_name]
    current = in_month(records, year, month)
    approved = [r for r in current if r.status == RecordStatus.APPROVED]
    pending = [r for r in current if r.status == RecordStatus.PENDING]

    prior_year, prior_month = previous_month(year, month)
    last_total = total_income(in_month(records, prior_year, prior_month))
    last_days = days_in_month(prior_year, prior_month)

    return AgentSummary(
        agent_name=agent_name,
        approved_total=total_income(approved),
        approved_count=len(approved),
        pending_total=total_income(pending),
        pending_count=len(pending),
        last_month_total=last_total,
        last_month_daily_average=last_total / last_days,
        goals=agent_progress_targets(last_total, total_income(current)),
    )
