"""spendscan-core - Receipt extraction and category budgeting."""

__version__ = "0.1.0"

from .budget_engine import (
    BudgetEngine,
    compute_category_aggregates,
    compute_category_budgets,
    compute_dashboard_stats,
)
from .config import BudgetConfig, ReceiptParserConfig, SpendscanConfig, configure_logging
from .exceptions import ConfigurationError, SpendscanError, ValidationError
from .expenses import apply_update, draft_to_expense, filter_expenses
from .models import (
    CATEGORY_COLORS,
    DEFAULT_BUDGET_PERCENTAGES,
    EXPENSE_CATEGORIES,
    AmountSource,
    BudgetStatus,
    CategoryAggregate,
    CategoryBudget,
    DailyTotal,
    DashboardStats,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseFilters,
    ExpenseUpdate,
    ReceiptItem,
    SpendingReport,
    coerce_category,
    get_category_color,
)
from .receipt_parser import ReceiptParser, guess_category, parse_receipt
from .report_generator import SpendingReportGenerator, export_expenses_csv

__all__ = [
    # Components
    "ReceiptParser",
    "BudgetEngine",
    "SpendingReportGenerator",
    # Functions
    "parse_receipt",
    "guess_category",
    "compute_category_budgets",
    "compute_category_aggregates",
    "compute_dashboard_stats",
    "filter_expenses",
    "apply_update",
    "draft_to_expense",
    "export_expenses_csv",
    "coerce_category",
    "get_category_color",
    # Models
    "Expense",
    "ExpenseDraft",
    "ExpenseUpdate",
    "ExpenseFilters",
    "ReceiptItem",
    "CategoryBudget",
    "CategoryAggregate",
    "DailyTotal",
    "DashboardStats",
    "SpendingReport",
    # Enums and tables
    "ExpenseCategory",
    "BudgetStatus",
    "AmountSource",
    "EXPENSE_CATEGORIES",
    "CATEGORY_COLORS",
    "DEFAULT_BUDGET_PERCENTAGES",
    # Config
    "SpendscanConfig",
    "ReceiptParserConfig",
    "BudgetConfig",
    "configure_logging",
    # Exceptions
    "SpendscanError",
    "ValidationError",
    "ConfigurationError",
]
