"""
Heuristic receipt field parser.

Turns raw OCR text into purchase date, merchant name and total amount.
Pure and deterministic: no I/O, and unparseable text simply leaves a
field absent.
"""
from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, NamedTuple, Optional

from receiptflow.schemas import ParsedFields

# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")
_MONTH_NAMES = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)
_MON = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)"

_DAY_MONTH_YEAR = re.compile(r"(\d{1,2})(?:st|nd|rd|th)?\s?([A-Za-z]+)\s?(\d{2,4})$")
_MONTH_DAY_YEAR = re.compile(r"([A-Za-z]+)\s(\d{1,2}),\s(\d{4})$")


def _expand_year(raw: str) -> Optional[int]:
    year = int(raw)
    if len(raw) == 2:
        return 2000 + year if year < 50 else 1900 + year
    if len(raw) == 4:
        return year
    return None


def _month_number(token: str) -> Optional[int]:
    token = token.lower()
    for idx, full in enumerate(_MONTH_NAMES):
        if token.startswith(_MONTHS[idx]) and full.startswith(token):
            return idx + 1
    return None


def _build_date(year: Optional[int], month: Optional[int], day: int) -> Optional[datetime]:
    if year is None or month is None:
        return None
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def parse_numeric_date(value: str) -> Optional[datetime]:
    """``M/D/Y`` with a two- or four-digit year, month first."""
    parts = value.split("/")
    if len(parts) != 3:
        return None
    month, day, year = parts
    return _build_date(_expand_year(year), int(month), int(day))


def parse_iso_date(value: str) -> Optional[datetime]:
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return None


def parse_day_month_year(value: str) -> Optional[datetime]:
    m = _DAY_MONTH_YEAR.match(value)
    if not m:
        return None
    day, month, year = m.groups()
    return _build_date(_expand_year(year), _month_number(month), int(day))


def parse_month_day_year(value: str) -> Optional[datetime]:
    m = _MONTH_DAY_YEAR.match(value)
    if not m:
        return None
    month, day, year = m.groups()
    return _build_date(_expand_year(year), _month_number(month), int(day))


class DatePattern(NamedTuple):
    name: str
    regex: re.Pattern[str]
    parse: Callable[[str], Optional[datetime]]
    group: int = 1


# Priority order matters: the first pattern whose capture parses wins.
DATE_PATTERNS: tuple[DatePattern, ...] = (
    DatePattern("mm/dd/yyyy", re.compile(r"(\d{2}/\d{2}/\d{4})"), parse_numeric_date),
    DatePattern("yyyy-mm-dd", re.compile(r"(\d{4}-\d{2}-\d{2})"), parse_iso_date),
    DatePattern("mm/dd/yy", re.compile(r"(\d{2}/\d{2}/\d{2})"), parse_numeric_date),
    DatePattern(
        "d mon yyyy",
        re.compile(rf"(\d{{1,2}}\s{_MON}[a-z]*\s\d{{2,4}})"),
        parse_day_month_year,
    ),
    DatePattern(
        "mon d, yyyy",
        re.compile(rf"({_MON}[a-z]*\s\d{{1,2}},\s\d{{4}})"),
        parse_month_day_year,
    ),
    DatePattern("m/d/yy", re.compile(r"(\d{1,2}/\d{1,2}/\d{2,4})"), parse_numeric_date),
    DatePattern(
        "ddmonyyyy",
        re.compile(rf"(\d{{2}}\s?{_MON}\s?\d{{4}})"),
        parse_day_month_year,
    ),
    DatePattern(
        "dth mon yyyy",
        re.compile(rf"(\d{{1,2}}(?:st|nd|rd|th)?\s{_MON}[a-z]*\s\d{{4}})"),
        parse_day_month_year,
    ),
    # e.g. "08:15 AM 05/24/2024": group 1 is the time, group 2 the date
    DatePattern(
        "time date",
        re.compile(r"(\d{1,2}:\d{2}\s(?:AM|PM|am|pm))\s(\d{2}/\d{2}/\d{4})"),
        parse_numeric_date,
        group=2,
    ),
)


def extract_purchase_date(
    text: str, patterns: tuple[DatePattern, ...] = DATE_PATTERNS
) -> Optional[datetime]:
    for pattern in patterns:
        m = pattern.regex.search(text)
        if not m:
            continue
        parsed = pattern.parse(m.group(pattern.group))
        if parsed is not None:
            return parsed
    return None


# ---------------------------------------------------------------------------
# Merchant
# ---------------------------------------------------------------------------

MERCHANT_KEYWORDS = (
    "Receipt", "Invoice", "Bill", "Store", "Shop", "Market", "Restaurant", "Cafe", "Bar",
)
_KEYWORDS = "|".join(MERCHANT_KEYWORDS)

# A line that opens with a keyword, e.g. "Receipt #123"
_HEADER_LINE = re.compile(rf"^[ \t]*(?:{_KEYWORDS})\b", re.IGNORECASE | re.MULTILINE)
# Text in front of a keyword on the same line, e.g. "Joe's Cafe"
_KEYWORD_PREFIX = re.compile(rf"^(.*?)(?:{_KEYWORDS})", re.IGNORECASE | re.MULTILINE)


def _non_empty_lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def merchant_above_header(text: str) -> Optional[str]:
    m = _HEADER_LINE.search(text)
    if not m:
        return None
    above = _non_empty_lines(text[: m.start()])
    return above[0] if above else None


def merchant_before_keyword(text: str) -> Optional[str]:
    for m in _KEYWORD_PREFIX.finditer(text):
        prefix = m.group(1).strip()
        if prefix:
            return prefix
    return None


def merchant_first_line(text: str) -> Optional[str]:
    lines = _non_empty_lines(text)
    return lines[0] if lines else None


MERCHANT_HEURISTICS: tuple[Callable[[str], Optional[str]], ...] = (
    merchant_above_header,
    merchant_before_keyword,
    merchant_first_line,
)


def extract_merchant_name(text: str) -> Optional[str]:
    for heuristic in MERCHANT_HEURISTICS:
        name = heuristic(text)
        if name:
            return name
    return None


# ---------------------------------------------------------------------------
# Total
# ---------------------------------------------------------------------------

TOTAL_LABELS = (
    "TOTAL", "TOTAL DUE", "AMOUNT DUE", "GRAND TOTAL",
    "BALANCE", "NET AMOUNT", "SUM", "TOTAL PAID",
)
_TOTAL_PATTERN = re.compile(
    r"(?:" + "|".join(TOTAL_LABELS) + r")[:\s]*[$€£]?\s*"
    r"((?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2})",
    re.IGNORECASE,
)


def extract_total_amount(text: str) -> Optional[Decimal]:
    m = _TOTAL_PATTERN.search(text)
    if not m:
        return None
    try:
        return Decimal(m.group(1).replace(",", ""))
    except InvalidOperation:
        return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_fields(text: str) -> ParsedFields:
    """Parse all receipt fields out of *text*."""
    if not text or not text.strip():
        return ParsedFields()
    return ParsedFields(
        purchased_at=extract_purchase_date(text),
        merchant_name=extract_merchant_name(text),
        total_amount=extract_total_amount(text),
    )
