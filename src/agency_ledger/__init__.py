"""Agency Ledger - normalization and reconciliation of agency income and expenses."""

__version__ = "0.1.0"

from agency_ledger.calculations import (
    ClientBalance,
    ExpenseOffset,
    GrowthTargets,
    PayrollSplit,
    Profit,
    client_balance,
    expense_offset,
    growth_targets,
    payroll_split,
    profit,
)
from agency_ledger.config import configure_logging, get_settings
from agency_ledger.expenses import ExpenseService
from agency_ledger.ledger import Ledger
from agency_ledger.mapper import map_expense_row, map_income_row
from agency_ledger.models import (
    EXPENSE_CATEGORIES,
    EntryMethod,
    Expense,
    Identity,
    IncomeTransaction,
    LedgerError,
    LedgerValidationError,
    PermissionDeniedError,
    RecordStatus,
    Role,
    ShiftLocation,
)
from agency_ledger.rates import JsonRateStore, RateRegistry, year_month
from agency_ledger.reconciliation import ApprovalReport, ReconciliationService, SyncOutcome
from agency_ledger.sheets import AppsScriptSheetStore, SheetStore, SheetStoreError

__all__ = [
    # Version
    "__version__",
    # Records
    "IncomeTransaction",
    "Expense",
    "ShiftLocation",
    "EntryMethod",
    "RecordStatus",
    "Identity",
    "Role",
    "EXPENSE_CATEGORIES",
    # Errors
    "LedgerError",
    "LedgerValidationError",
    "PermissionDeniedError",
    "SheetStoreError",
    # Mapping & storage
    "map_income_row",
    "map_expense_row",
    "Ledger",
    "SheetStore",
    "AppsScriptSheetStore",
    # Calculations
    "PayrollSplit",
    "ClientBalance",
    "ExpenseOffset",
    "Profit",
    "GrowthTargets",
    "payroll_split",
    "client_balance",
    "expense_offset",
    "profit",
    "growth_targets",
    # Services
    "ReconciliationService",
    "SyncOutcome",
    "ApprovalReport",
    "ExpenseService",
    "RateRegistry",
    "JsonRateStore",
    "year_month",
    # Config
    "get_settings",
    "configure_logging",
]
