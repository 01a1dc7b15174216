"""Command line entry point for the agency ledger.

Usage:
    # Monthly summary against the configured Sheet Store
    agency-ledger summary --year=2026 --month=3

    # Same summary on the seeded demo dataset
    agency-ledger --demo summary --year=2026 --month=3

    # List and approve pending agent submissions
    agency-ledger pending
    agency-ledger approve-all

    # Discover sheet names
    agency-ledger sheets
"""

import argparse
import asyncio
import sys
from contextlib import AsyncExitStack
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import structlog

from agency_ledger.config import configure_logging, get_settings
from agency_ledger.demo import build_demo_dataset
from agency_ledger.expenses import ExpenseService
from agency_ledger.ledger import Ledger
from agency_ledger.mapper import format_date
from agency_ledger.models import Expense, IncomeTransaction, LedgerError
from agency_ledger.rates import JsonRateStore, RateRegistry
from agency_ledger.reconciliation import ReconciliationService
from agency_ledger.reports import PeriodReport, monthly_breakdown
from agency_ledger.sheets import AppsScriptSheetStore, SheetStoreError

logger = structlog.get_logger(__name__)


@dataclass
class Book:
    """The services of one session, wired to a store or to demo data."""

    income: ReconciliationService
    expenses: ExpenseService
    rates: RateRegistry


def _money(value: Decimal) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}₪{abs(value):,.0f}"


async def open_book(stack: AsyncExitStack, demo: bool, year: int) -> Book:
    settings = get_settings()
    rate_store = JsonRateStore(settings.rates_file) if settings.rates_file else None
    rates = RateRegistry(rate_store)
    income_ledger: Ledger[IncomeTransaction] = Ledger()
    expense_ledger: Ledger[Expense] = Ledger()

    if demo:
        dataset = build_demo_dataset(year)
        income_ledger.replace_all(dataset.income)
        expense_ledger.replace_all(dataset.expenses)
        rates.seed(dataset.rates)
        return Book(
            income=ReconciliationService(income_ledger),
            expenses=ExpenseService(expense_ledger),
            rates=rates,
        )

    income_store = await stack.enter_async_context(AppsScriptSheetStore())
    expense_store = await stack.enter_async_context(
        AppsScriptSheetStore(url=settings.resolved_expenses_url)
    )
    book = Book(
        income=ReconciliationService(income_ledger, income_store),
        expenses=ExpenseService(expense_ledger, expense_store),
        rates=rates,
    )
    await book.income.load()
    await book.expenses.load()
    return book


def print_summary(book: Book, year: int, month: int) -> None:
    settings = get_settings()
    report = PeriodReport.build(
        book.income.ledger,
        book.expenses.ledger,
        book.rates,
        year=year,
        month=month,
        cost_bearers=settings.cost_bearers,
    )
    print(f"\n{'=' * 60}")
    print(f"Summary {month:02d}/{year}")
    print("=" * 60)
    print(f"Income:   {_money(report.profit.income)}")
    print(f"Expenses: {_money(report.profit.expenses)}")
    print(f"Profit:   {_money(report.profit.profit)}")

    print("\nAgent payroll")
    for row in report.payroll:
        print(
            f"  {row.agent_name:<16} office {_money(row.split.office_sales):>10}"
            f"  remote {_money(row.split.remote_sales):>10}  pay {_money(row.split.total):>9}"
        )
    print(f"  {'total':<16} {_money(report.total_payroll)}")

    print("\nClient balances")
    for balance in report.clients:
        direction = "agency owes client" if balance.agency_owes_client else "client owes agency"
        print(
            f"  {balance.client_name:<16} {balance.pct}%  income {_money(balance.total_income):>10}"
            f"  due {_money(balance.balance_due):>9} ({direction})"
        )

    if report.offset:
        print(f"\nExpense offset: {report.offset.describe()} {_money(report.offset.offset)}")

    targets = monthly_breakdown(book.income.ledger, book.expenses.ledger, year)[month - 1]
    print(
        "Targets: "
        + " / ".join(_money(t) for t in targets.targets.as_tuple())
        + f"  (daily average {_money(targets.targets.daily_average)})"
    )


def print_pending(book: Book) -> None:
    pending = book.income.pending()
    print(f"{len(pending)} pending transactions")
    for record in pending:
        print(
            f"  {format_date(record.date):<10} {record.agent_name:<12} {record.client_name:<12}"
            f" {_money(record.amount_ils):>9}  row {record.source_row or '-'}"
        )


async def main() -> None:
    """Main entry point."""
    configure_logging()
    today = date.today()

    parser = argparse.ArgumentParser(
        description="Agency ledger reconciliation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--demo", action="store_true", help="Use the seeded demo dataset")
    subparsers = parser.add_subparsers(dest="command", required=True)

    summary = subparsers.add_parser("summary", help="Monthly financial summary")
    summary.add_argument("--year", type=int, default=today.year)
    summary.add_argument("--month", type=int, choices=range(1, 13), default=today.month)
    subparsers.add_parser("pending", help="List pending agent submissions")
    subparsers.add_parser("approve-all", help="Approve every pending submission")
    subparsers.add_parser("sheets", help="List sheet names in the store")

    args = parser.parse_args()
    if args.demo and args.command == "sheets":
        parser.error("--demo has no Sheet Store to list sheets from")
    year = getattr(args, "year", today.year)

    try:
        async with AsyncExitStack() as stack:
            if args.command == "sheets":
                store = await stack.enter_async_context(AppsScriptSheetStore())
                for name in await store.list_sheet_names():
                    print(name)
                return

            book = await open_book(stack, demo=args.demo, year=year)
            if args.command == "summary":
                print_summary(book, args.year, args.month)
            elif args.command == "pending":
                print_pending(book)
            elif args.command == "approve-all":
                report = await book.income.approve_all()
                print(f"Approved {len(report.approved)} transactions")
                for record_id, error in report.sync_failures.items():
                    print(f"  not synced: {record_id}: {error}")
                for record_id, reason in report.skipped.items():
                    print(f"  skipped: {record_id}: {reason}")

    except (SheetStoreError, LedgerError) as e:
        logger.error("command_failed", command=args.command, error=str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("interrupted")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
