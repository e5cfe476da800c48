"""Category budgets and dashboard aggregates over an expense collection.

Every function here is a pure aggregation: inputs are never mutated and
results are recomputed in full on each call. Empty collections produce
zeroed or empty results, never errors.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Union

import structlog

from .config import BudgetConfig, normalize_allocations
from .models import (
    EXPENSE_CATEGORIES,
    BudgetStatus,
    CategoryAggregate,
    CategoryBudget,
    DailyTotal,
    DashboardStats,
    Expense,
    ExpenseCategory,
    SpendingReport,
    coerce_category,
    get_category_color,
    to_decimal,
)

logger = structlog.get_logger()

DASHBOARD_DAYS = 7


# =============================================================================
# AGGREGATION HELPERS
# =============================================================================

def sum_amounts(expenses: Iterable[Expense]) -> Decimal:
    """Sum of expense amounts."""
    return sum((e.amount for e in expenses), Decimal("0"))


def spend_by_category(expenses: Iterable[Expense]) -> dict[ExpenseCategory, Decimal]:
    """All-time spend per category."""
    totals: dict[ExpenseCategory, Decimal] = defaultdict(Decimal)
    for expense in expenses:
        totals[coerce_category(expense.category)] += expense.amount
    return dict(totals)


def classify_budget_status(
    percentage_used: Decimal,
    near_threshold: Decimal = Decimal("90"),
) -> BudgetStatus:
    """over above 100%, near above the threshold, under otherwise."""
    if percentage_used > 100:
        return BudgetStatus.OVER
    if percentage_used > near_threshold:
        return BudgetStatus.NEAR
    return BudgetStatus.UNDER


def previous_month(year: int, month: int) -> tuple[int, int]:
    """(year, month) of the calendar month before the given one."""
    if month == 1:
        return year - 1, 12
    return year, month - 1


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


# =============================================================================
# BUDGET ENGINE
# =============================================================================

class BudgetEngine:
    """
    Compute category budgets, category breakdowns and dashboard statistics.

    The engine only holds configuration (allocation table and thresholds),
    so concurrent callers can share one instance.
    """

    def __init__(
        self,
        allocations: Optional[Mapping[Any, Any]] = None,
        config: Optional[BudgetConfig] = None,
    ):
        """
        Initialize the budget engine.

        Args:
            allocations: Category to percent-of-income table. Overrides the
                table from config. Keys may be category names.
            config: Engine settings. Defaults are read from the environment.

        Raises:
            ConfigurationError: If the allocation table is invalid.
        """
        self._config = config or BudgetConfig()
        source = allocations if allocations is not None else self._config.allocations
        self._allocations = normalize_allocations(source)

    @property
    def allocations(self) -> dict[ExpenseCategory, Decimal]:
        """Copy of the configured allocation table."""
        return dict(self._allocations)

    def compute_category_budgets(
        self,
        expenses: Iterable[Expense],
        monthly_income: Any,
        allocations: Optional[Mapping[Any, Any]] = None,
    ) -> list[CategoryBudget]:
        """
        Compare spend per category with its share of monthly income.

        Spend is summed over all expenses regardless of date.

        Args:
            expenses: Expense collection
            monthly_income: Monthly income; nothing is budgeted without it
            allocations: Optional per-call allocation table

        Returns:
            One CategoryBudget per category in fixed category order, or an
            empty list when monthly_income <= 0
        """
        try:
            income = to_decimal(monthly_income) if monthly_income is not None else Decimal("0")
        except (InvalidOperation, TypeError, ValueError):
            income = Decimal("0")
        if not income.is_finite() or income <= 0:
            logger.debug("budget_skipped_no_income", monthly_income=str(monthly_income))
            return []

        table = self._allocations if allocations is None else normalize_allocations(allocations)
        spent_by_category = spend_by_category(expenses)

        budgets = []
        for category in EXPENSE_CATEGORIES:
            percent = table.get(category, Decimal("0"))
            budget_amount = income * percent / 100
            spent = spent_by_category.get(category, Decimal("0"))

            if budget_amount > 0:
                percentage_used: Optional[Decimal] = spent / budget_amount * 100
                status = classify_budget_status(percentage_used, self._config.near_threshold)
            else:
                percentage_used = None
                status = BudgetStatus.OVER if spent > 0 else BudgetStatus.UNDER

            budgets.append(CategoryBudget(
                category=category,
                spent=spent,
                budget=budget_amount,
                remaining=budget_amount - spent,
                percentage_used=percentage_used,
                status=status,
            ))

        logger.debug(
            "category_budgets_computed",
            monthly_income=str(income),
            over=sum(1 for b in budgets if b.status == BudgetStatus.OVER),
            near=sum(1 for b in budgets if b.status == BudgetStatus.NEAR),
        )
        return budgets

    def compute_category_aggregates(self, expenses: Iterable[Expense]) -> list[CategoryAggregate]:
        """
        Group expenses by category with sum and count.

        Returns:
            Aggregates ordered by descending amount; ties keep the order in
            which categories were first seen
        """
        amounts: dict[ExpenseCategory, Decimal] = {}
        counts: dict[ExpenseCategory, int] = {}
        for expense in expenses:
            category = coerce_category(expense.category)
            amounts[category] = amounts.get(category, Decimal("0")) + expense.amount
            counts[category] = counts.get(category, 0) + 1

        aggregates = [
            CategoryAggregate(
                name=category,
                amount=amount,
                count=counts[category],
                color=get_category_color(category),
            )
            for category, amount in amounts.items()
        ]
        # sort is stable, so equal amounts stay in first-seen order
        aggregates.sort(key=lambda a: a.amount, reverse=True)
        return aggregates

    def compute_dashboard_stats(
        self,
        expenses: Iterable[Expense],
        now: Union[date, datetime],
    ) -> DashboardStats:
        """
        Headline totals for the dashboard.

        monthly_change_percent divides the month-over-month difference by
        the all-time total, not by last month's total.

        Args:
            expenses: Expense collection
            now: Reference point for "this month" and the last seven days

        Returns:
            DashboardStats with exactly seven daily totals, oldest first
        """
        expenses = list(expenses)
        today = _as_date(now)
        last_year, last_month = previous_month(today.year, today.month)

        total = sum_amounts(expenses)
        this_month_total = sum_amounts(
            e for e in expenses
            if e.date.year == today.year and e.date.month == today.month
        )
        last_month_total = sum_amounts(
            e for e in expenses
            if e.date.year == last_year and e.date.month == last_month
        )

        change = Decimal("0")
        if total > 0:
            change = (this_month_total - last_month_total) / total * 100

        by_day: dict[date, Decimal] = defaultdict(Decimal)
        for expense in expenses:
            by_day[expense.date] += expense.amount

        days = [today - timedelta(days=offset) for offset in range(DASHBOARD_DAYS - 1, -1, -1)]
        daily = [DailyTotal(date=day, amount=by_day.get(day, Decimal("0"))) for day in days]

        return DashboardStats(
            total=total,
            this_month_total=this_month_total,
            last_month_total=last_month_total,
            monthly_change_percent=change,
            expense_count=len(expenses),
            daily_totals_last_7_days=daily,
        )

    def build_spending_report(
        self,
        expenses: Iterable[Expense],
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        today: Optional[date] = None,
    ) -> SpendingReport:
        """
        Summarize spending over an inclusive date range.

        Args:
            expenses: Expense collection
            date_from: First day included. Defaults to report_window_days
                before date_to.
            date_to: Last day included. Defaults to today.
            today: Reference date for the defaults. Defaults to date.today().

        Returns:
            SpendingReport with category breakdown and per-day trend
        """
        if date_to is None:
            date_to = today or date.today()
        if date_from is None:
            date_from = date_to - timedelta(days=self._config.report_window_days)

        selected = [e for e in expenses if date_from <= e.date <= date_to]
        total = sum_amounts(selected)
        average = total / len(selected) if selected else Decimal("0")

        by_day: dict[date, Decimal] = defaultdict(Decimal)
        for expense in selected:
            by_day[expense.date] += expense.amount

        report = SpendingReport(
            date_from=date_from,
            date_to=date_to,
            expense_count=len(selected),
            total_amount=total,
            average_expense=average,
            categories=self.compute_category_aggregates(selected),
            daily_trend=[DailyTotal(date=day, amount=by_day[day]) for day in sorted(by_day)],
        )

        logger.debug(
            "spending_report_built",
            period=report.period,
            expenses=report.expense_count,
            total=str(total),
        )
        return report


# =============================================================================
# MODULE-LEVEL API (default allocation table)
# =============================================================================

_default_engine: Optional[BudgetEngine] = None


def _engine() -> BudgetEngine:
    global _default_engine
    if _default_engine is None:
        _default_engine = BudgetEngine()
    return _default_engine


def compute_category_budgets(
    expenses: Iterable[Expense],
    monthly_income: Any,
    allocations: Optional[Mapping[Any, Any]] = None,
) -> list[CategoryBudget]:
    """See BudgetEngine.compute_category_budgets."""
    return _engine().compute_category_budgets(expenses, monthly_income, allocations)


def compute_category_aggregates(expenses: Iterable[Expense]) -> list[CategoryAggregate]:
    """See BudgetEngine.compute_category_aggregates."""
    return _engine().compute_category_aggregates(expenses)


def compute_dashboard_stats(
    expenses: Iterable[Expense],
    now: Union[date, datetime],
) -> DashboardStats:
    """See BudgetEngine.compute_dashboard_stats."""
    return _engine().compute_dashboard_stats(expenses, now)
