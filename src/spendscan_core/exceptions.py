"""Custom exceptions for spendscan-core.

The receipt parser and the budget engine are total functions over their
data inputs: malformed OCR text, missing income or unknown categories
degrade to default output instead of raising. The exceptions below are
reserved for caller mistakes such as a broken allocation table, an invalid
partial update or an unknown report format.

Example:
    try:
        engine = BudgetEngine(allocations={"Food & Dining": 150})
    except ConfigurationError as e:
        logger.error("bad_budget_config", error=str(e), **e.details)
"""

from typing import Any, Optional


class SpendscanError(Exception):
    """Base exception for all spendscan-core errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
        recoverable: Whether the caller can fix the input and retry.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable!r})"
        )


class ValidationError(SpendscanError):
    """Error raised when caller-supplied data fails validation.

    Attributes:
        field: The field that failed validation.
        value: The invalid value.
        constraint: The validation constraint that was violated.

    Example:
        >>> raise ValidationError(
        ...     "Expense amount cannot be negative",
        ...     field="amount",
        ...     value="-5.00",
        ...     constraint="amount >= 0",
        ... )
        ValidationError: Expense amount cannot be negative
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        constraint: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message, details=details, recoverable=recoverable)
        self.field = field
        self.value = value
        self.constraint = constraint

        if field:
            self.details["field"] = field
        if value is not None:
            self.details["value"] = value
        if constraint:
            self.details["constraint"] = constraint


class ConfigurationError(SpendscanError):
    """Error raised when configuration is invalid.

    Budget allocation tables are the main source: every key must be a known
    category and every percentage must lie between 0 and 100.

    Attributes:
        config_key: The configuration key that is problematic.
        expected: Description of the expected value or format.
        actual: The actual value found (if any).
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message, details=details, recoverable=recoverable)
        self.config_key = config_key
        self.expected = expected
        self.actual = actual

        if config_key:
            self.details["config_key"] = config_key
        if expected:
            self.details["expected"] = expected
        if actual is not None:
            self.details["actual"] = actual


__all__ = [
    "SpendscanError",
    "ValidationError",
    "ConfigurationError",
]
