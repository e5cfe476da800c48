"""Configuration system for spendscan-core.

Pydantic Settings-based configuration with environment variable support
and defaults matching the expense tracker's built-in behaviour.

Usage:
    from spendscan_core.config import SpendscanConfig

    # Load from environment variables and .env file
    config = SpendscanConfig()
    config.setup_logging()

    parser = ReceiptParser(config=config.parser)
    engine = BudgetEngine(config=config.budget)
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import DEFAULT_BUDGET_PERCENTAGES, ExpenseCategory, find_category


def normalize_allocations(allocations: Mapping[Any, Any]) -> dict[ExpenseCategory, Decimal]:
    """Validate a category-to-percentage table.

    Keys may be ExpenseCategory members or category names. Percentages must
    lie between 0 and 100; their sum is not checked.

    Raises:
        ConfigurationError: On an unknown category or a bad percentage.
    """
    normalized: dict[ExpenseCategory, Decimal] = {}
    for key, raw in allocations.items():
        category = find_category(key)
        if category is None:
            raise ConfigurationError(
                f"Unknown budget category: {key!r}",
                config_key="allocations",
                expected="one of: " + ", ".join(c.value for c in ExpenseCategory),
                actual=str(key),
            )
        try:
            percent = Decimal(str(raw))
        except (InvalidOperation, ValueError) as e:
            raise ConfigurationError(
                f"Budget percentage for {category.value} is not a number",
                config_key="allocations",
                expected="number between 0 and 100",
                actual=str(raw),
            ) from e
        if not percent.is_finite() or percent < 0 or percent > 100:
            raise ConfigurationError(
                f"Budget percentage for {category.value} out of range",
                config_key="allocations",
                expected="number between 0 and 100",
                actual=str(raw),
            )
        normalized[category] = percent
    return normalized


class ReceiptParserConfig(BaseSettings):
    """Receipt parser settings.

    Environment Variables:
        SPENDSCAN_PARSER_DEFAULT_STORE_NAME: Store name when the text is empty
        SPENDSCAN_PARSER_MAX_FALLBACK_AMOUNT: Upper bound for the largest-amount fallback
        SPENDSCAN_PARSER_DAY_FIRST: Read 03/04/2024 as 3 April instead of 4 March
        SPENDSCAN_PARSER_INFER_CATEGORY: Guess the category from keywords
    """

    model_config = SettingsConfigDict(
        env_prefix="SPENDSCAN_PARSER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_store_name: str = Field(
        default="Unknown Store",
        description="Store name used when the receipt text has no lines",
    )
    max_fallback_amount: Decimal = Field(
        default=Decimal("10000"),
        gt=0,
        description="Numbers at or above this are ignored when guessing the amount",
    )
    day_first: bool = Field(
        default=False,
        description="Interpret numeric dates as day/month/year",
    )
    infer_category: bool = Field(
        default=True,
        description="Guess the category from merchant and item keywords",
    )


class BudgetConfig(BaseSettings):
    """Budget engine settings.

    Environment Variables:
        SPENDSCAN_BUDGET_ALLOCATIONS: JSON object of category name to percent
        SPENDSCAN_BUDGET_NEAR_THRESHOLD: Percent used above which a category is "near"
        SPENDSCAN_BUDGET_REPORT_WINDOW_DAYS: Default span of a spending report
    """

    model_config = SettingsConfigDict(
        env_prefix="SPENDSCAN_BUDGET_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    allocations: dict[ExpenseCategory, Decimal] = Field(
        default_factory=lambda: dict(DEFAULT_BUDGET_PERCENTAGES),
        description="Share of monthly income allotted to each category",
    )
    near_threshold: Decimal = Field(
        default=Decimal("90"),
        ge=0,
        le=100,
        description="Percentage used above which a category is near its budget",
    )
    report_window_days: int = Field(
        default=30,
        gt=0,
        description="Default number of days covered by a spending report",
    )

    @field_validator("allocations", mode="before")
    @classmethod
    def validate_allocations(cls, v: Any) -> Any:
        """Accept category names as keys and check every percentage."""
        if not isinstance(v, Mapping):
            return v
        try:
            return normalize_allocations(v)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e


class SpendscanConfig(BaseSettings):
    """Root configuration.

    Environment Variables:
        SPENDSCAN_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)

    Example:
        config = SpendscanConfig(
            budget=BudgetConfig(allocations={"Travel": 20}),
            parser=ReceiptParserConfig(day_first=True),
        )
    """

    model_config = SettingsConfigDict(
        env_prefix="SPENDSCAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    parser: ReceiptParserConfig = Field(default_factory=ReceiptParserConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper().strip()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {valid_levels}")
        return v_upper

    def setup_logging(self) -> None:
        """Apply log_level to structlog."""
        configure_logging(self.log_level)


def configure_logging(level: str = "INFO") -> None:
    """Make structlog drop events below the given level."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
        cache_logger_on_first_use=False,
    )
