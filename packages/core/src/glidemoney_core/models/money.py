"""Income and set-aside models for the tax engine.

This module implements the data structures consumed and produced by the
set-aside engine:
- IncomeItem: one gross income record for the tax period
- SetAsides: CPP, income tax and HST owed on that income
- PeriodSetAside: the short-horizon reserve Glide Guard takes off a paycheque

Currency amounts are Decimal throughout. Floats are accepted on input and
converted through their string form, so 0.1 becomes Decimal("0.1") rather
than its binary approximation.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from glidemoney_core.exceptions import InvalidInput
from glidemoney_core.models.audit import AuditEntry


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def _require_finite(value: Decimal, field: str) -> Decimal:
    if not value.is_finite():
        raise InvalidInput(
            f"{field} must be a finite number, got {value}",
            field=field,
            value=str(value),
            constraint="finite number",
        )
    return value


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Coerce an int, float or numeric string to Decimal.

    Raises:
        InvalidInput: If the value is not numeric (booleans included) or is
            not finite (NaN, Infinity).
    """
    if isinstance(value, Decimal):
        return _require_finite(value, field)
    if isinstance(value, bool):
        raise InvalidInput(
            f"{field} must be numeric, got a boolean",
            field=field,
            value=value,
            constraint="numeric",
        )
    if isinstance(value, float):
        return _require_finite(Decimal(str(value)), field)
    if isinstance(value, (int, str)):
        try:
            return _require_finite(Decimal(value), field)
        except InvalidOperation as exc:
            raise InvalidInput(
                f"{field} is not a valid number: {value!r}",
                field=field,
                value=value,
                constraint="numeric",
            ) from exc
    raise InvalidInput(
        f"{field} must be numeric, got {type(value).__name__}",
        field=field,
        value=repr(value),
        constraint="numeric",
    )


def quantize_cents(value: Decimal, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Round a currency amount to cents (half-up unless told otherwise)."""
    return value.quantize(CENTS, rounding=rounding)


def require_non_negative(value: Decimal, field: str) -> Decimal:
    """Reject negative amounts instead of clamping them."""
    if value < ZERO:
        raise InvalidInput(
            f"{field} cannot be negative: {value}",
            field=field,
            value=str(value),
            constraint=f"{field} >= 0",
        )
    return value


# =============================================================================
# INCOME
# =============================================================================

class IncomeItem(BaseModel):
    """A single gross income record for the tax period.

    HST registration is tracked per item rather than per person so that a
    worker who registers mid-year only remits on income earned afterwards.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {"gross": "52000.00", "hst_registered": True, "label": "Uber"},
            ]
        },
    )

    gross: Decimal = Field(description="Gross income amount, never negative")
    hst_registered: bool = Field(
        default=False,
        description="Whether HST/GST must be collected and remitted on this income",
    )
    label: Optional[str] = Field(
        default=None,
        description="Platform or stream the income came from",
    )

    @field_validator("gross", mode="before")
    @classmethod
    def coerce_gross(cls, v):
        """Coerce numeric input to Decimal."""
        return to_decimal(v, "gross")

    @field_validator("gross")
    @classmethod
    def validate_gross(cls, v: Decimal) -> Decimal:
        """Negative income is a caller bug and is rejected."""
        return require_non_negative(v, "gross")


# =============================================================================
# SET-ASIDES
# =============================================================================

class SetAsides(BaseModel):
    """Recommended reserve for a period's income.

    ``total`` is exactly ``cpp + income_tax + hst_remit``; each component is
    already rounded to cents, so no rounding happens in the sum.
    """

    model_config = ConfigDict(frozen=True)

    cpp: Decimal = Field(description="Canada Pension Plan contribution")
    income_tax: Decimal = Field(description="Federal plus provincial income tax")
    hst_remit: Decimal = Field(description="HST/GST to remit on registered income")
    total: Decimal = Field(description="Sum of the three components")
    jurisdiction: Optional[str] = None
    tax_year: Optional[int] = None
    audit_log: tuple[AuditEntry, ...] = ()

    @model_validator(mode="after")
    def check_components(self) -> "SetAsides":
        """All components are non-negative cents and add up to the total."""
        for name in ("cpp", "income_tax", "hst_remit", "total"):
            value = getattr(self, name)
            require_non_negative(value, name)
            if value != quantize_cents(value):
                raise InvalidInput(
                    f"{name} must be rounded to cents: {value}",
                    field=name,
                    value=str(value),
                    constraint="two decimal places",
                )
        if self.cpp + self.income_tax + self.hst_remit != self.total:
            raise InvalidInput(
                "Set-aside total does not equal the sum of its components",
                field="total",
                value=str(self.total),
                constraint="total == cpp + income_tax + hst_remit",
            )
        return self

    @property
    def is_empty(self) -> bool:
        """True when nothing needs to be set aside."""
        return self.total == ZERO


class PeriodSetAside(BaseModel):
    """Reserve taken off one pay period's income before planning payments.

    Income tax uses the user's effective rate rather than the annual
    brackets; CPP is annualised from the period income and spread back over
    the periods in a year.
    """

    model_config = ConfigDict(frozen=True)

    period_income: Decimal
    income_tax: Decimal
    cpp: Decimal
    hst: Decimal
    total: Decimal
    periods_per_year: int = Field(gt=0)
