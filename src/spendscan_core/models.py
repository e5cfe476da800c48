"""Core data models for receipt extraction and budget tracking.

This module holds the single shared category table consumed by both the
receipt parser and the budget engine, together with the pydantic models
that flow between them:

- ExpenseDraft: unpersisted output of the receipt parser
- Expense: a persisted spend record supplied by the storage layer
- CategoryBudget / CategoryAggregate / DashboardStats / SpendingReport:
  derived views recomputed on demand, never persisted
"""

import datetime as dt
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field, field_validator


# =============================================================================
# CATEGORIES
# =============================================================================

class ExpenseCategory(str, Enum):
    """Fixed set of expense categories.

    OTHER is the catch-all for anything undetected or unknown.
    """
    FOOD_DINING = "Food & Dining"
    TRANSPORTATION = "Transportation"
    GROCERIES = "Groceries"
    ENTERTAINMENT = "Entertainment"
    HEALTHCARE = "Healthcare"
    SHOPPING = "Shopping"
    UTILITIES = "Utilities"
    TRAVEL = "Travel"
    EDUCATION = "Education"
    OTHER = "Other"


class BudgetStatus(str, Enum):
    """Budget health classification for a category."""
    UNDER = "under"
    NEAR = "near"
    OVER = "over"


class AmountSource(str, Enum):
    """Which rule of the fallback chain produced a draft's amount."""
    TOTAL = "total"
    SUBTOTAL = "subtotal"
    LARGEST_AMOUNT = "largest_amount"
    NONE = "none"


# Stable display and budgeting order
EXPENSE_CATEGORIES: tuple[ExpenseCategory, ...] = tuple(ExpenseCategory)

CATEGORY_COLORS: dict[ExpenseCategory, str] = {
    ExpenseCategory.FOOD_DINING: "#EF4444",
    ExpenseCategory.TRANSPORTATION: "#3B82F6",
    ExpenseCategory.GROCERIES: "#10B981",
    ExpenseCategory.ENTERTAINMENT: "#8B5CF6",
    ExpenseCategory.HEALTHCARE: "#F59E0B",
    ExpenseCategory.SHOPPING: "#EC4899",
    ExpenseCategory.UTILITIES: "#6B7280",
    ExpenseCategory.TRAVEL: "#06B6D4",
    ExpenseCategory.EDUCATION: "#84CC16",
    ExpenseCategory.OTHER: "#64748B",
}

# Share of monthly income allotted to each category, in percent
DEFAULT_BUDGET_PERCENTAGES: dict[ExpenseCategory, Decimal] = {
    ExpenseCategory.FOOD_DINING: Decimal("15"),
    ExpenseCategory.TRANSPORTATION: Decimal("10"),
    ExpenseCategory.GROCERIES: Decimal("12"),
    ExpenseCategory.ENTERTAINMENT: Decimal("8"),
    ExpenseCategory.HEALTHCARE: Decimal("8"),
    ExpenseCategory.SHOPPING: Decimal("10"),
    ExpenseCategory.UTILITIES: Decimal("12"),
    ExpenseCategory.TRAVEL: Decimal("5"),
    ExpenseCategory.EDUCATION: Decimal("5"),
    ExpenseCategory.OTHER: Decimal("15"),
}

_CATEGORY_LOOKUP: dict[str, ExpenseCategory] = {
    c.value.casefold(): c for c in ExpenseCategory
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def find_category(value: Any) -> Optional[ExpenseCategory]:
    """Look up a category by name, case-insensitively. None if unknown."""
    if isinstance(value, ExpenseCategory):
        return value
    if isinstance(value, str):
        return _CATEGORY_LOOKUP.get(value.strip().casefold())
    return None


def coerce_category(value: Any) -> ExpenseCategory:
    """Map any input onto the fixed category set.

    Anything outside the enumeration (including None) becomes OTHER.
    """
    return find_category(value) or ExpenseCategory.OTHER


def get_category_color(category: Any) -> str:
    """Get the palette colour for a category (OTHER's colour if unknown)."""
    return CATEGORY_COLORS[coerce_category(category)]


def to_decimal(value: Any) -> Decimal:
    """Convert ints, floats and numeric strings to Decimal.

    Floats go through their string form so 0.1 stays 0.1.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        return Decimal(value.strip())
    return Decimal(value)


# =============================================================================
# RECEIPT MODELS
# =============================================================================

class ReceiptItem(BaseModel):
    """A single priced line on a receipt."""
    name: str
    price: Decimal = Field(ge=0)


class ExpenseDraft(BaseModel):
    """Best-effort expense candidate extracted from OCR text.

    Handed to the UI for review and editing before the storage layer
    persists it as an Expense. Strings are never None and all numbers are
    finite and non-negative.
    """

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "store_name": "CORNER CAFE",
                    "items": [{"name": "Latte", "price": "4.50"}],
                    "subtotal": "4.50",
                    "tax": "0.36",
                    "total": "4.86",
                    "amount": "4.86",
                    "amount_source": "total",
                    "date": "2024-03-14",
                    "date_detected": True,
                    "time": "8:15 AM",
                    "description": "Latte 4.50",
                    "category": "Food & Dining",
                }
            ]
        }
    }

    store_name: str = ""
    items: list[ReceiptItem] = Field(default_factory=list)
    subtotal: Decimal = Field(default=Decimal("0"), ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(default=Decimal("0"), ge=0)
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    amount_source: AmountSource = AmountSource.NONE
    time: str = ""
    description: str = ""
    category: ExpenseCategory = ExpenseCategory.OTHER
    date_detected: bool = False
    date: date


# =============================================================================
# EXPENSE MODELS
# =============================================================================

class Expense(BaseModel):
    """A persisted spend record.

    The id is assigned by the storage layer. Instances are frozen; changes
    go through expenses.apply_update, which returns a new record.
    """

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "id": "k3j9x0q2a",
                    "amount": "42.50",
                    "description": "Dinner with friends",
                    "category": "Food & Dining",
                    "date": "2024-03-14",
                    "receipt": None,
                }
            ]
        },
    }

    id: str
    amount: Decimal = Field(ge=0)
    description: str = ""
    category: ExpenseCategory = ExpenseCategory.OTHER
    receipt: Optional[str] = None

    # Optional fields carried over from a scanned receipt
    store_name: Optional[str] = None
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    total: Optional[Decimal] = None
    time: Optional[str] = None
    items: list[ReceiptItem] = Field(default_factory=list)

    date: date

    @field_validator("category", mode="before")
    @classmethod
    def coerce_unknown_category(cls, v):
        """Out-of-enumeration categories fall back to OTHER."""
        return coerce_category(v)

    @field_validator("amount", "subtotal", "tax", "total", mode="before")
    @classmethod
    def coerce_amount_to_decimal(cls, v):
        """Coerce float amounts to Decimal through their string form."""
        if isinstance(v, float):
            return to_decimal(v)
        return v


class ExpenseUpdate(BaseModel):
    """Partial update for an Expense.

    Only fields explicitly set on the instance are applied, so an explicit
    receipt=None clears the receipt while an omitted receipt keeps it.
    """
    description: Optional[str] = None
    category: Optional[ExpenseCategory] = None
    amount: Optional[Decimal] = None
    receipt: Optional[str] = None
    date: Optional[dt.date] = None

    @field_validator("category", mode="before")
    @classmethod
    def coerce_unknown_category(cls, v):
        if v is None:
            return v
        return coerce_category(v)

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount_to_decimal(cls, v):
        if isinstance(v, float):
            return to_decimal(v)
        return v


class ExpenseFilters(BaseModel):
    """Filters for an expense list. Unset filters match everything."""
    category: Optional[ExpenseCategory] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search_term: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def coerce_unknown_category(cls, v):
        if v is None or v == "":
            return None
        return coerce_category(v)


# =============================================================================
# BUDGET AND REPORTING MODELS
# =============================================================================

class CategoryBudget(BaseModel):
    """Spend against the income share allotted to one category.

    percentage_used is None when the category has no allocation at all.
    """
    category: ExpenseCategory
    spent: Decimal = Decimal("0")
    budget: Decimal = Decimal("0")
    remaining: Decimal = Decimal("0")
    percentage_used: Optional[Decimal] = None
    status: BudgetStatus = BudgetStatus.UNDER


class CategoryAggregate(BaseModel):
    """Summed spend for a single category, for charts and reports."""
    name: ExpenseCategory
    amount: Decimal = Decimal("0")
    count: int = 0
    color: str

    @property
    def average(self) -> Decimal:
        """Average expense amount."""
        if self.count == 0:
            return Decimal("0")
        return self.amount / self.count


class DailyTotal(BaseModel):
    """Sum of expense amounts on one calendar day."""
    amount: Decimal = Decimal("0")
    date: date


class DashboardStats(BaseModel):
    """Headline numbers for the dashboard view."""
    total: Decimal = Decimal("0")
    this_month_total: Decimal = Decimal("0")
    last_month_total: Decimal = Decimal("0")
    monthly_change_percent: Decimal = Decimal("0")
    expense_count: int = 0
    daily_totals_last_7_days: list[DailyTotal] = Field(default_factory=list)

    @computed_field
    @property
    def daily_amounts(self) -> list[Decimal]:
        """The seven daily sums, oldest first."""
        return [d.amount for d in self.daily_totals_last_7_days]


class SpendingReport(BaseModel):
    """Spending summary over an inclusive date range."""
    date_from: date
    date_to: date
    expense_count: int = 0
    total_amount: Decimal = Decimal("0")
    average_expense: Decimal = Decimal("0")
    categories: list[CategoryAggregate] = Field(default_factory=list)
    daily_trend: list[DailyTotal] = Field(default_factory=list)

    @property
    def period(self) -> str:
        """Human-readable period label."""
        return f"{self.date_from.isoformat()} to {self.date_to.isoformat()}"
