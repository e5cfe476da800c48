"""Pure helpers over expense records.

Filtering an expense list, applying a partial update and turning a parser
draft into an Expense once the storage layer has assigned it an id. None of
these touch storage; callers persist the results themselves.
"""

from typing import Iterable, Optional

import structlog

from .exceptions import ValidationError
from .models import Expense, ExpenseDraft, ExpenseFilters, ExpenseUpdate

logger = structlog.get_logger()


def filter_expenses(
    expenses: Iterable[Expense],
    filters: Optional[ExpenseFilters] = None,
) -> list[Expense]:
    """
    Select expenses matching every set filter.

    Args:
        expenses: Expense collection (order is preserved)
        filters: Category, inclusive date range and description search term

    Returns:
        Matching expenses in input order
    """
    if filters is None:
        return list(expenses)

    term = (filters.search_term or "").strip().casefold()

    def matches(expense: Expense) -> bool:
        if filters.category is not None and expense.category != filters.category:
            return False
        if filters.date_from is not None and expense.date < filters.date_from:
            return False
        if filters.date_to is not None and expense.date > filters.date_to:
            return False
        if term and term not in expense.description.casefold():
            return False
        return True

    return [e for e in expenses if matches(e)]


def apply_update(expense: Expense, update: ExpenseUpdate) -> Expense:
    """
    Return a copy of the expense with the update's explicitly set fields.

    Args:
        expense: Current record (left untouched)
        update: Partial update

    Returns:
        New Expense instance

    Raises:
        ValidationError: If the update sets a negative or missing amount,
            or clears a required field
    """
    changes = {name: getattr(update, name) for name in update.model_fields_set}

    for required in ("amount", "date", "category", "description"):
        if required in changes and changes[required] is None:
            raise ValidationError(
                f"Expense {required} cannot be cleared",
                field=required,
                constraint="required",
            )

    amount = changes.get("amount")
    if amount is not None and (not amount.is_finite() or amount < 0):
        raise ValidationError(
            "Expense amount cannot be negative",
            field="amount",
            value=str(amount),
            constraint="amount >= 0",
        )

    updated = expense.model_copy(update=changes)
    logger.debug("expense_updated", expense_id=expense.id, fields=sorted(changes))
    return updated


def draft_to_expense(
    draft: ExpenseDraft,
    expense_id: str,
    receipt: Optional[str] = None,
) -> Expense:
    """
    Build the Expense record for a reviewed draft.

    Args:
        draft: Parser output, possibly edited by the user
        expense_id: Identifier assigned by the storage layer
        receipt: Reference to the stored receipt image, if any

    Returns:
        Expense carrying the draft's amount, category, date and OCR fields.
        The description falls back to the store name when no line items
        were recognised.
    """
    return Expense(
        id=expense_id,
        amount=draft.amount,
        description=draft.description or draft.store_name,
        category=draft.category,
        date=draft.date,
        receipt=receipt,
        store_name=draft.store_name,
        subtotal=draft.subtotal,
        tax=draft.tax,
        total=draft.total,
        time=draft.time or None,
        items=list(draft.items),
    )
