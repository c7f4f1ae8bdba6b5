"""
Temporal Expression Resolver

Turns the period token of a `details` or `bill` command into a concrete
window the ledger can filter on.

This is DETERMINISTIC - no I/O, no state. "Now" and the civil time zone
are passed in, so the same token and the same clock always give the
same window.

Accepted tokens, in priority order (first match wins):
1. Explicit date      12/8/25, 12-8-25, 01/02/2025, 01-02-2025
2. date=<date>        date=12/8/25
3. month=<n>          month=8, optionally followed by a year=25 token
4. Rolling period     10d, 1m, 2y (case-insensitive)

BUSINESS RULE: two-digit years 00-30 mean 2000-2030 and 31-99 mean
1931-1999. Do not move the pivot.
"""

import calendar
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from typing import Callable, Optional

from ledgerbot.exceptions import LedgerBotError
from ledgerbot.models.transaction import (
    ExactDayWindow,
    MonthWindow,
    SinceWindow,
    Window,
)


DATE_PATTERNS = (
    re.compile(r"^([0-9]{1,2})/([0-9]{1,2})/([0-9]{2}|[0-9]{4})$"),
    re.compile(r"^([0-9]{1,2})-([0-9]{1,2})-([0-9]{2}|[0-9]{4})$"),
)
MONTH_VALUE_PATTERN = re.compile(r"^[0-9]{1,2}$")
YEAR_VALUE_PATTERN = re.compile(r"^([0-9]{2}|[0-9]{4})$")
PERIOD_PATTERN = re.compile(r"^([0-9]+)([dmy])$", re.IGNORECASE)

DATE_PREFIX = "date="
MONTH_PREFIX = "month="
YEAR_PREFIX = "year="

TWO_DIGIT_YEAR_PIVOT = 30

END_OF_DAY = time(23, 59, 59, 999000)


class ParseErrorKind(str, Enum):
    """Which part of the input could not be understood."""
    BAD_DATE = "bad_date"
    BAD_MONTH = "bad_month"
    BAD_YEAR = "bad_year"
    UNRECOGNIZED = "unrecognized"


class ParseError(LedgerBotError):
    """A period token could not be resolved to a window."""

    def __init__(self, kind: ParseErrorKind, token: str, message: str):
        self.kind = kind
        self.token = token
        super().__init__(message)


# =============================================================================
# Building blocks
# =============================================================================

def expand_year(year: str) -> int:
    """
    Expand a 2- or 4-digit year string.

    "25" -> 2025, "30" -> 2030, "31" -> 1931, "2025" -> 2025.
    """
    if len(year) == 2:
        value = int(year)
        return 2000 + value if value <= TWO_DIGIT_YEAR_PIVOT else 1900 + value
    return int(year)


def _date_parts(text: str) -> Optional[tuple[str, str, str]]:
    """Return (day, month, year) strings if `text` has date shape."""
    for pattern in DATE_PATTERNS:
        match = pattern.match(text)
        if match:
            return match.group(1), match.group(2), match.group(3)
    return None


def parse_date(text: str) -> Optional[date]:
    """
    Parse D/M/Y or D-M-Y into a calendar date.

    Returns None if the text is not date-shaped or names a day that
    does not exist (31/02/2025 is rejected, never clamped).
    """
    parts = _date_parts(text)
    if parts is None:
        return None
    day, month, year = parts
    try:
        parsed = date(expand_year(year), int(month), int(day))
    except ValueError:
        return None
    # Round trip check: the date we built must be the date we were given
    if (parsed.day, parsed.month, parsed.year) != (int(day), int(month), expand_year(year)):
        return None
    return parsed


def start_of_day(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def end_of_day(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, END_OF_DAY, tzinfo=tz)


def shift_months(moment: datetime, months: int) -> datetime:
    """
    Move `moment` back by `months` calendar months.

    The day is clamped to the length of the target month,
    so 31 March minus one month is the last day of February.
    """
    index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    if year < 1:
        raise ValueError("Period reaches before year 1")
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def day_window(day: date, tz: tzinfo) -> ExactDayWindow:
    return ExactDayWindow(start=start_of_day(day, tz), end=end_of_day(day, tz))


def month_window(year: int, month: int, tz: tzinfo) -> MonthWindow:
    last_day = calendar.monthrange(year, month)[1]
    return MonthWindow(
        start=start_of_day(date(year, month, 1), tz),
        end=end_of_day(date(year, month, last_day), tz),
    )


def period_window(amount: int, unit: str, now: datetime) -> SinceWindow:
    """
    Trailing window for a rolling period.

    Days count today, so 10d starts at the beginning of the day nine
    days ago. Months and years shift back the full N from now.
    Every cutoff is snapped to the start of its day.
    """
    unit = unit.lower()
    if unit == "d":
        cutoff_day = now.date() - timedelta(days=amount - 1)
    elif unit == "m":
        cutoff_day = shift_months(now, amount).date()
    elif unit == "y":
        cutoff_day = shift_months(now, amount * 12).date()
    else:
        raise ValueError(f"Invalid unit: {unit}")
    return SinceWindow(
        cutoff=start_of_day(cutoff_day, now.tzinfo),
        amount=amount,
        unit=unit,
    )


# =============================================================================
# Matchers
#
# Each matcher returns a window when the token is its form, None when the
# token is not its form, and raises ParseError when the token is its form
# but the value is wrong. They are tried in the order of MATCHERS.
# =============================================================================

Matcher = Callable[[str, Optional[str], datetime], Optional[Window]]


def _match_explicit_date(
    token: str,
    year_token: Optional[str],
    now: datetime,
) -> Optional[Window]:
    if _date_parts(token) is None:
        return None
    parsed = parse_date(token)
    if parsed is None:
        raise ParseError(
            ParseErrorKind.BAD_DATE,
            token,
            f"'{token}' is not a real calendar date",
        )
    return day_window(parsed, now.tzinfo)


def _match_date_prefix(
    token: str,
    year_token: Optional[str],
    now: datetime,
) -> Optional[Window]:
    if not token.startswith(DATE_PREFIX):
        return None
    parsed = parse_date(token[len(DATE_PREFIX):])
    if parsed is None:
        raise ParseError(
            ParseErrorKind.BAD_DATE,
            token,
            "Invalid date format. Use DD/MM/YY, DD-MM-YY or DD/MM/YYYY",
        )
    return day_window(parsed, now.tzinfo)


def _match_month(
    token: str,
    year_token: Optional[str],
    now: datetime,
) -> Optional[Window]:
    if not token.startswith(MONTH_PREFIX):
        return None

    value = token[len(MONTH_PREFIX):]
    if not MONTH_VALUE_PATTERN.match(value) or not 1 <= int(value) <= 12:
        raise ParseError(
            ParseErrorKind.BAD_MONTH,
            token,
            "Invalid month. Use month=1 to month=12",
        )

    year = now.year
    # Only a year= token counts; anything else after month= is ignored
    if year_token and year_token.startswith(YEAR_PREFIX):
        year_value = year_token[len(YEAR_PREFIX):]
        if not YEAR_VALUE_PATTERN.match(year_value) or expand_year(year_value) < 1:
            raise ParseError(
                ParseErrorKind.BAD_YEAR,
                year_token,
                "Invalid year format. Use year=25 or year=2025",
            )
        year = expand_year(year_value)

    return month_window(year, int(value), now.tzinfo)


def _match_period(
    token: str,
    year_token: Optional[str],
    now: datetime,
) -> Optional[Window]:
    match = PERIOD_PATTERN.match(token)
    if not match:
        return None

    amount = int(match.group(1))
    if amount < 1:
        raise ParseError(
            ParseErrorKind.UNRECOGNIZED,
            token,
            "A period needs at least one unit, e.g. 1d, 1m or 1y",
        )
    try:
        return period_window(amount, match.group(2), now)
    except (ValueError, OverflowError):
        raise ParseError(
            ParseErrorKind.UNRECOGNIZED,
            token,
            f"Period '{token}' reaches too far back",
        )


MATCHERS: tuple[Matcher, ...] = (
    _match_explicit_date,
    _match_date_prefix,
    _match_month,
    _match_period,
)


def resolve(
    token: str,
    year_token: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> Window:
    """
    Resolve a period token into a window.

    Args:
        token: The first token after the counterparty (e.g. "10d")
        year_token: The token after it, consulted only for month= queries
        now: Reference instant; defaults to the current time
        tz: Civil time zone for day boundaries; defaults to now's zone,
            or UTC when neither is given

    Returns:
        ExactDayWindow, MonthWindow or SinceWindow

    Raises:
        ParseError: With kind bad_date, bad_month, bad_year or unrecognized
    """
    if now is None:
        now = datetime.now(tz or timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz or timezone.utc)
    elif tz is not None:
        now = now.astimezone(tz)

    token = token.strip()
    for matcher in MATCHERS:
        window = matcher(token, year_token, now)
        if window is not None:
            return window

    raise ParseError(
        ParseErrorKind.UNRECOGNIZED,
        token,
        "Invalid format. Use: DD/MM/YY, 10d, 5d, 1m, 2m, 1y, month=9, or month=9 year=25",
    )
