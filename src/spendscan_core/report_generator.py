"""Report rendering for spending summaries and expense exports.

Renders a SpendingReport as plain text, Markdown or JSON, and an expense
list as CSV. Output is returned as a string; writing it anywhere is up to
the caller.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

import pandas as pd
import structlog

from .exceptions import ValidationError
from .models import Expense, SpendingReport

logger = structlog.get_logger()

REPORT_FORMATS = ("text", "markdown", "json")
CSV_HEADERS = ["Date", "Description", "Category", "Amount"]


@dataclass
class ReportSection:
    """A section of the report."""
    title: str
    content: str


class SpendingReportGenerator:
    """
    Generate spending reports for a date range.

    Covers the period summary, the category breakdown and the daily trend.
    """

    def __init__(self, generated_at: Optional[datetime] = None):
        """
        Initialize the report generator.

        Args:
            generated_at: Timestamp printed in the header. Defaults to now.
        """
        self._generated_at = generated_at

    def generate(self, report: SpendingReport, format: str = "text") -> str:
        """
        Render a spending report.

        Args:
            report: Output of BudgetEngine.build_spending_report
            format: "text", "markdown" or "json"

        Returns:
            Formatted report

        Raises:
            ValidationError: If the format is not supported
        """
        if format not in REPORT_FORMATS:
            raise ValidationError(
                f"Unsupported report format: {format}",
                field="format",
                value=format,
                constraint="one of: " + ", ".join(REPORT_FORMATS),
            )

        if format == "json":
            return self._format_json(report)

        sections: list[ReportSection] = []
        self._add_header(sections, report)
        self._add_summary(sections, report)
        self._add_categories(sections, report)
        self._add_daily_trend(sections, report)

        logger.debug("spending_report_rendered", format=format, sections=len(sections))
        if format == "markdown":
            return self._format_markdown(sections)
        return self._format_text(sections)

    def _timestamp(self) -> datetime:
        return self._generated_at or datetime.now()

    def _add_header(self, sections: list[ReportSection], report: SpendingReport) -> None:
        content = f"""
SPENDING REPORT
===============

Period:    {report.period}
Generated: {self._timestamp().strftime('%B %d, %Y')}
""".strip()
        sections.append(ReportSection(title="Header", content=content))

    def _add_summary(self, sections: list[ReportSection], report: SpendingReport) -> None:
        content = f"""
Total Spent:        ${report.total_amount:,.2f}
Expenses:           {report.expense_count}
Average Expense:    ${report.average_expense:,.2f}
Categories:         {len(report.categories)}
""".strip()
        sections.append(ReportSection(title="Summary", content=content))

    def _add_categories(self, sections: list[ReportSection], report: SpendingReport) -> None:
        if not report.categories:
            content = "No expenses in this period."
        else:
            lines = []
            for aggregate in report.categories:
                share = (
                    aggregate.amount / report.total_amount * 100
                    if report.total_amount > 0 else 0
                )
                lines.append(
                    f"{aggregate.name.value:<16} ${aggregate.amount:>10,.2f}"
                    f"  {share:5.1f}%  ({aggregate.count} expenses)"
                )
            content = "\n".join(lines)
        sections.append(ReportSection(title="Categories", content=content))

    def _add_daily_trend(self, sections: list[ReportSection], report: SpendingReport) -> None:
        if not report.daily_trend:
            return
        lines = [
            f"{day.date.strftime('%b %d'):<8} ${day.amount:,.2f}"
            for day in report.daily_trend
        ]
        sections.append(ReportSection(title="Daily Trend", content="\n".join(lines)))

    def _format_text(self, sections: list[ReportSection]) -> str:
        output = []
        for section in sections:
            if section.title != "Header":
                output.append(section.title.upper())
                output.append("-" * 40)
            output.append(section.content)
            output.append("")
        return "\n".join(output)

    def _format_markdown(self, sections: list[ReportSection]) -> str:
        output = []
        for section in sections:
            if section.title != "Header":
                output.append(f"\n## {section.title}\n")
            output.append("```")
            output.append(section.content)
            output.append("```")
        return "\n".join(output)

    def _format_json(self, report: SpendingReport) -> str:
        data = {
            "period": report.period,
            "summary": {
                "totalExpenses": report.expense_count,
                "totalAmount": float(report.total_amount),
                "averageExpense": float(report.average_expense),
                "categories": len(report.categories),
            },
            "categories": [
                {
                    "name": c.name.value,
                    "amount": float(c.amount),
                    "color": c.color,
                    "count": c.count,
                }
                for c in report.categories
            ],
            "dailyTrend": [
                {"date": d.date.isoformat(), "amount": float(d.amount)}
                for d in report.daily_trend
            ],
        }
        return json.dumps(data, indent=2)


def export_expenses_csv(expenses: Iterable[Expense]) -> str:
    """
    Export expenses as CSV with a Date, Description, Category, Amount header.

    Fields containing commas, quotes or line breaks are quoted.
    """
    rows = [
        {
            "Date": expense.date.isoformat(),
            "Description": expense.description,
            "Category": expense.category.value,
            "Amount": f"{expense.amount:.2f}",
        }
        for expense in expenses
    ]
    frame = pd.DataFrame(rows, columns=CSV_HEADERS)
    logger.debug("expenses_exported", rows=len(frame))
    return frame.to_csv(index=False, lineterminator="\n")
