"""Receipt parser for OCR text.

Turns the noisy plain text produced by an OCR engine into an ExpenseDraft
(merchant, line items, subtotal, tax, total, date, time, category guess).
Extraction is a lenient grammar: an ordered list of summary rules with a
fixed first/last match policy per field, followed by a fallback chain for
the amount. Parsing never raises; unrecognised input degrades to defaults.
"""

import re
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, NamedTuple, Optional

import structlog

from .config import ReceiptParserConfig
from .models import (
    AmountSource,
    ExpenseCategory,
    ExpenseDraft,
    ReceiptItem,
)

logger = structlog.get_logger()


# =============================================================================
# PATTERNS
# =============================================================================

# A money value with exactly two fraction digits: 12.99, 1,234.56
_MONEY = r"(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}"

AMOUNT_PATTERN = re.compile(rf"(?<![\d.])({_MONEY})(?!\d|\.\d)")

# "<name> <price>" with an optional dollar sign before the price
LINE_ITEM_PATTERN = re.compile(rf"^(?P<name>.*?\S)\s+\$?\s?(?P<price>{_MONEY})$")

# 1-2 digit day and month, 2-4 digit year, separators / - .
DATE_PATTERN = re.compile(r"(?<!\d)(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{2,4})(?!\d)")

# YYYY-MM-DD as printed by some terminals
ISO_DATE_PATTERN = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")

# H:MM with optional seconds and AM/PM
COLON_TIME_PATTERN = re.compile(
    r"(?<!\d)(\d{1,2}):(\d{2})(?::\d{2})?(?:\s*([AaPp])\.?[Mm]\.?)?(?![\d:])"
)

# H.MM only counts as a time when followed by AM/PM; otherwise it is a price
DOT_TIME_PATTERN = re.compile(
    r"(?<![\d.])(\d{1,2})\.(\d{2})\s*([AaPp])\.?[Mm]\.?(?![A-Za-z])"
)

_HAS_LETTER = re.compile(r"[A-Za-z]")


def _keyword_pattern(keyword: str) -> re.Pattern:
    """Case-insensitive keyword bounded by non-letters (so "cab" skips "cabinet")."""
    return re.compile(rf"(?<![a-z]){re.escape(keyword)}(?![a-z])", re.IGNORECASE)


# =============================================================================
# SUMMARY RULES
# =============================================================================

class MatchPolicy(str, Enum):
    """Which match wins when a field's keyword appears on several lines."""
    FIRST = "first"
    LAST = "last"


class SummaryRule(NamedTuple):
    """Keyword rule that claims a receipt line for one summary field."""
    field: str
    keywords: tuple[str, ...]
    policy: MatchPolicy

    def matches(self, line: str) -> bool:
        """Case-insensitive substring match, so "TAXES" and "GRANDTOTAL" count."""
        folded = line.casefold()
        return any(kw in folded for kw in self.keywords)


# Order is precedence: a line is claimed by the first rule that matches it,
# so "subtotal" never reaches the total rule.
# Totals take the last match since receipts repeat the total near the
# signature line after the tax breakdown.
SUMMARY_RULES: tuple[SummaryRule, ...] = (
    SummaryRule("subtotal", ("subtotal", "sub total", "sub-total"), MatchPolicy.FIRST),
    SummaryRule("tax", ("tax",), MatchPolicy.FIRST),
    SummaryRule("total", ("total", "amount due", "balance"), MatchPolicy.LAST),
)


# =============================================================================
# CATEGORY GUESSING
# =============================================================================

# Checked in this order; the first category with a matching keyword wins.
# Shopping goes last because its keywords are the most generic.
CATEGORY_KEYWORDS: dict[ExpenseCategory, list[str]] = {
    ExpenseCategory.FOOD_DINING: [
        'restaurant', 'cafe', 'café', 'coffee', 'diner', 'bistro', 'grill',
        'pizza', 'burger', 'sushi', 'bakery', 'bar', 'pub', 'food', 'dine',
        'starbucks', 'mcdonald', 'chipotle', 'subway', 'kfc', 'taco',
        'tip', 'gratuity', 'server',
    ],
    ExpenseCategory.GROCERIES: [
        'grocery', 'groceries', 'supermarket', 'market', 'whole foods',
        'trader joe', 'safeway', 'kroger', 'aldi', 'publix', 'produce',
    ],
    ExpenseCategory.TRANSPORTATION: [
        'gas', 'fuel', 'gasoline', 'diesel', 'station', 'uber', 'lyft', 'taxi',
        'cab', 'parking', 'toll', 'metro', 'transit', 'shell', 'chevron',
        'exxon',
    ],
    ExpenseCategory.HEALTHCARE: [
        'pharmacy', 'medical', 'doctor', 'clinic', 'hospital', 'dental',
        'cvs', 'walgreens', 'prescription', 'rx',
    ],
    ExpenseCategory.TRAVEL: [
        'hotel', 'motel', 'airline', 'airlines', 'airport', 'flight', 'inn',
        'resort', 'airbnb', 'booking',
    ],
    ExpenseCategory.ENTERTAINMENT: [
        'cinema', 'movie', 'theater', 'theatre', 'concert', 'ticket',
        'museum', 'bowling', 'arcade', 'netflix', 'spotify',
    ],
    ExpenseCategory.EDUCATION: [
        'school', 'university', 'college', 'tuition', 'bookstore', 'course',
        'textbook',
    ],
    ExpenseCategory.UTILITIES: [
        'electric', 'electricity', 'water bill', 'utility', 'internet',
        'comcast', 'verizon', 'at&t', 'phone bill',
    ],
    ExpenseCategory.SHOPPING: [
        'shop', 'store', 'retail', 'mall', 'outlet', 'boutique', 'walmart',
        'target', 'amazon', 'best buy', 'ikea',
    ],
}

_CATEGORY_PATTERNS: list[tuple[ExpenseCategory, list[re.Pattern]]] = [
    (category, [_keyword_pattern(kw) for kw in keywords])
    for category, keywords in CATEGORY_KEYWORDS.items()
]


def guess_category(text: str) -> ExpenseCategory:
    """
    Guess an expense category from receipt text.

    Args:
        text: Merchant name, item names or the full receipt text

    Returns:
        Best matching ExpenseCategory, OTHER when nothing matches
    """
    for category, patterns in _CATEGORY_PATTERNS:
        for pattern in patterns:
            if pattern.search(text):
                return category
    return ExpenseCategory.OTHER


# =============================================================================
# HELPERS
# =============================================================================

def _to_money(value: str) -> Decimal:
    return Decimal(value.replace(",", ""))


def find_amounts(text: str) -> list[Decimal]:
    """All two-decimal money values in the text, in order of appearance."""
    return [_to_money(m.group(1)) for m in AMOUNT_PATTERN.finditer(text)]


def split_lines(text: str) -> list[str]:
    """Trimmed, non-empty lines in their original order."""
    return [line.strip() for line in text.splitlines() if line.strip()]


class _Summary(NamedTuple):
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    claimed: frozenset[int]


# =============================================================================
# RECEIPT PARSER
# =============================================================================

class ReceiptParser:
    """
    Extract a structured expense draft from OCR receipt text.

    The parser is stateless apart from its configuration and clock, so one
    instance can be shared freely between callers.
    """

    def __init__(
        self,
        config: Optional[ReceiptParserConfig] = None,
        clock: Optional[Callable[[], date]] = None,
    ):
        """
        Initialize the receipt parser.

        Args:
            config: Parser settings. Defaults are read from the environment.
            clock: Returns "today" for the date fallback. Defaults to date.today.
        """
        self._config = config or ReceiptParserConfig()
        self._clock = clock or date.today

    def parse(self, text: Optional[str], today: Optional[date] = None) -> ExpenseDraft:
        """
        Parse OCR text into an ExpenseDraft.

        Args:
            text: Raw OCR output. Empty or whitespace-only text is valid.
            today: Date used when no date is found on the receipt.
                Overrides the parser's clock.

        Returns:
            ExpenseDraft with every field populated (defaults where undetected)
        """
        text = text or ""
        lines = split_lines(text)

        summary = self._extract_summary(lines)
        items, item_lines = self._extract_items(lines, summary.claimed)
        amount, amount_source = self._resolve_amount(text, summary)

        parsed_date = self._extract_date(text)
        date_detected = parsed_date is not None
        if parsed_date is None:
            parsed_date = today or self._clock()

        category = ExpenseCategory.OTHER
        if self._config.infer_category and lines:
            category = guess_category(text)

        draft = ExpenseDraft(
            store_name=lines[0] if lines else self._config.default_store_name,
            items=items,
            subtotal=summary.subtotal,
            tax=summary.tax,
            total=summary.total,
            amount=amount,
            amount_source=amount_source,
            date=parsed_date,
            date_detected=date_detected,
            time=self._extract_time(text),
            description="\n".join(item_lines),
            category=category,
        )

        logger.debug(
            "receipt_parsed",
            lines=len(lines),
            items=len(items),
            amount=str(amount),
            amount_source=amount_source.value,
            date_detected=date_detected,
            category=category.value,
        )
        return draft

    def _extract_summary(self, lines: list[str]) -> _Summary:
        """Apply SUMMARY_RULES to every line."""
        values: dict[str, Decimal] = {}
        claimed: set[int] = set()

        for index, line in enumerate(lines):
            rule = next((r for r in SUMMARY_RULES if r.matches(line)), None)
            if rule is None:
                continue
            claimed.add(index)

            amounts = find_amounts(line)
            if not amounts:
                continue
            if rule.policy == MatchPolicy.FIRST and rule.field in values:
                continue
            # Amounts are usually right-aligned after labels and rates
            values[rule.field] = amounts[-1]

        return _Summary(
            subtotal=values.get("subtotal", Decimal("0")),
            tax=values.get("tax", Decimal("0")),
            total=values.get("total", Decimal("0")),
            claimed=frozenset(claimed),
        )

    def _extract_items(
        self,
        lines: list[str],
        claimed: frozenset[int],
    ) -> tuple[list[ReceiptItem], list[str]]:
        """Match "<name> <price>" lines not already claimed by a summary rule."""
        items = []
        item_lines = []
        for index, line in enumerate(lines):
            if index in claimed:
                continue
            match = LINE_ITEM_PATTERN.match(line)
            if not match:
                continue
            name = match.group("name").strip()
            if not _HAS_LETTER.search(name):
                continue
            items.append(ReceiptItem(name=name, price=_to_money(match.group("price"))))
            item_lines.append(line)
        return items, item_lines

    def _resolve_amount(self, text: str, summary: _Summary) -> tuple[Decimal, AmountSource]:
        """Total, else subtotal, else the largest plausible number, else zero."""
        if summary.total > 0:
            return summary.total, AmountSource.TOTAL
        if summary.subtotal > 0:
            return summary.subtotal, AmountSource.SUBTOTAL

        candidates = [
            a for a in find_amounts(text)
            if 0 < a < self._config.max_fallback_amount
        ]
        if candidates:
            return max(candidates), AmountSource.LARGEST_AMOUNT
        return Decimal("0"), AmountSource.NONE

    def _extract_date(self, text: str) -> Optional[date]:
        """First numeric date in the text that is a real calendar date."""
        matches = sorted(
            [*DATE_PATTERN.finditer(text), *ISO_DATE_PATTERN.finditer(text)],
            key=lambda m: m.start(),
        )
        for match in matches:
            if match.re is ISO_DATE_PATTERN:
                year_str, month_str, day_str = match.groups()
                orders = [(int(month_str), int(day_str))]
            else:
                first, second, year_str = match.groups()
                a, b = int(first), int(second)
                orders = [(b, a), (a, b)] if self._config.day_first else [(a, b), (b, a)]

            year = int(year_str)
            if len(year_str) < 4:
                # OCR often drops a digit from "2024"; keep the last two
                year = 2000 + year % 100

            for month, day in orders:
                try:
                    return date(year, month, day)
                except ValueError:
                    continue
        return None

    def _extract_time(self, text: str) -> str:
        """Earliest valid time of day in the text, verbatim, or ""."""
        candidates = []
        for pattern in (COLON_TIME_PATTERN, DOT_TIME_PATTERN):
            for match in pattern.finditer(text):
                hour, minute = int(match.group(1)), int(match.group(2))
                meridiem = match.group(3)
                max_hour = 12 if meridiem else 23
                if hour <= max_hour and minute < 60:
                    candidates.append(match)
                    break

        if not candidates:
            return ""
        earliest = min(candidates, key=lambda m: m.start())
        return earliest.group(0).strip()


_default_parser: Optional[ReceiptParser] = None


def parse_receipt(text: Optional[str], today: Optional[date] = None) -> ExpenseDraft:
    """Parse OCR text with a shared, default-configured ReceiptParser."""
    global _default_parser
    if _default_parser is None:
        _default_parser = ReceiptParser()
    return _default_parser.parse(text, today=today)
