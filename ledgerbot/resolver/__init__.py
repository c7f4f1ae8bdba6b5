"""Temporal expression resolver package."""

from ledgerbot.resolver.temporal import (
    MATCHERS,
    TWO_DIGIT_YEAR_PIVOT,
    ParseError,
    ParseErrorKind,
    day_window,
    expand_year,
    month_window,
    parse_date,
    period_window,
    resolve,
    shift_months,
)

__all__ = [
    "MATCHERS",
    "TWO_DIGIT_YEAR_PIVOT",
    "ParseError",
    "ParseErrorKind",
    "day_window",
    "expand_year",
    "month_window",
    "parse_date",
    "period_window",
    "resolve",
    "shift_months",
]
