"""
Core Data Models for Ledgerbot

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be immutable once built (a written transaction is a fact)

DESIGN DECISION: Windows are a tagged union (ExactDayWindow | MonthWindow |
SinceWindow) discriminated by `kind`. The resolver returns exactly one of
them and the ledger only ever asks a window for its bounds.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


COUNTERPARTY_REGEX = r"^[0-9]+$"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A recorded money-transfer notification.

    CRITICAL: Transactions are only created by the ledger's append.
    They are never updated or deleted afterwards.

    occurred_at is the business timestamp used for window filtering.
    recorded_at is insertion order and breaks "most recent" ties.
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(
        ...,
        ge=1,
        description="Identifier assigned by the store"
    )
    counterparty: str = Field(
        ...,
        min_length=1,
        pattern=COUNTERPARTY_REGEX,
        description="Phone-number-like identifier, digits only"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount in the single implicit currency"
    )
    details: Optional[str] = Field(
        default=None,
        description="Optional free-text annotation"
    )
    occurred_at: AwareDatetime = Field(
        ...,
        description="When the transfer happened (UTC)"
    )
    recorded_at: AwareDatetime = Field(
        ...,
        description="When the row was written (UTC), strictly increasing"
    )

    @field_validator('details')
    @classmethod
    def empty_details_is_none(cls, v: Optional[str]) -> Optional[str]:
        """Empty and absent annotations mean the same thing."""
        return v or None


# =============================================================================
# TIME WINDOWS
# =============================================================================

class _BoundedWindow(BaseModel):
    """A closed [start, end] range of instants."""
    model_config = ConfigDict(frozen=True)

    start: AwareDatetime
    end: AwareDatetime

    @model_validator(mode='after')
    def validate_order(self) -> '_BoundedWindow':
        if self.end < self.start:
            raise ValueError("Window end cannot be before start")
        return self

    def bounds(self) -> tuple[datetime, Optional[datetime]]:
        """Inclusive (lower, upper) bounds."""
        return self.start, self.end

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end


class ExactDayWindow(_BoundedWindow):
    """One civil day, 00:00:00.000 to 23:59:59.999."""
    kind: Literal["exact_day"] = "exact_day"

    @property
    def label(self) -> str:
        day = self.start.date()
        return f"{day.day}/{day.month}/{day.year}"


class MonthWindow(_BoundedWindow):
    """One calendar month, first instant to 23:59:59.999 of its last day."""
    kind: Literal["month"] = "month"

    @property
    def month(self) -> int:
        return self.start.month

    @property
    def year(self) -> int:
        return self.start.year

    @property
    def label(self) -> str:
        return f"month {self.month}/{self.year}"


class SinceWindow(BaseModel):
    """
    Everything from `cutoff` (inclusive) up to now.

    `amount` and `unit` remember the rolling period that produced the
    cutoff ("10" and "d" for 10d) so replies can echo it back.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["since"] = "since"
    cutoff: AwareDatetime
    amount: Optional[int] = Field(default=None, ge=1)
    unit: Optional[Literal["d", "m", "y"]] = None

    @classmethod
    def all_time(cls) -> 'SinceWindow':
        """Full-history window."""
        return cls(cutoff=EPOCH)

    def bounds(self) -> tuple[datetime, Optional[datetime]]:
        return self.cutoff, None

    def contains(self, instant: datetime) -> bool:
        return instant >= self.cutoff

    @property
    def label(self) -> str:
        if self.amount is None or self.unit is None:
            return "so far"
        return f"last {self.amount}{self.unit.upper()}"


Window = Annotated[
    Union[ExactDayWindow, MonthWindow, SinceWindow],
    Field(discriminator="kind"),
]


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found in operator input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    value: Optional[str] = Field(
        default=None,
        description="The rejected input, as received"
    )
