"""Card, configuration and payment plan models for Glide Guard.

These models describe the inputs the allocator reads (card profiles, the
user's money settings, upcoming bills) and the plan it returns. Card
profiles are owned by the card-profile store; the core never writes them
back.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from glidemoney_core.exceptions import InvalidCardProfile, InvalidInput, UnsupportedJurisdiction
from glidemoney_core.models.money import ZERO, require_non_negative, to_decimal


# =============================================================================
# ENUMERATIONS
# =============================================================================

class Cadence(str, Enum):
    """How often the user gets paid and reviews the plan."""
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    MONTHLY = "monthly"

    @property
    def periods_per_year(self) -> int:
        """Number of pay periods in a year."""
        return {
            Cadence.WEEKLY: 52,
            Cadence.BI_WEEKLY: 26,
            Cadence.MONTHLY: 12,
        }[self]


class CardStatus(str, Enum):
    """Display status of a card in the action list."""
    OK = "OK"
    PAY = "PAY"
    URGENT = "URGENT"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so that comparisons never mix kinds."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _check_ratio(value: Decimal, field: str, error=InvalidInput, **extra) -> Decimal:
    """Ratios such as target utilization live in (0, 1]."""
    if value <= ZERO or value > Decimal("1"):
        raise error(
            f"{field} must be in (0, 1], got {value}",
            field=field,
            value=str(value),
            constraint="0 < ratio <= 1",
            **extra,
        )
    return value


# =============================================================================
# CARDS
# =============================================================================

class CardProfile(BaseModel):
    """One credit account as reported by the card-profile store."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "id": "td-visa",
                    "name": "TD Visa",
                    "limit": "2000.00",
                    "posted_balance": "960.00",
                    "apr": "20.99",
                }
            ]
        },
    )

    id: str = Field(min_length=1, description="Stable card identifier")
    name: Optional[str] = Field(default=None, description="Display name")
    limit: Decimal = Field(description="Credit limit, must be positive")
    posted_balance: Decimal = Field(default=ZERO, description="Posted statement balance")
    apr: Decimal = Field(default=ZERO, description="Purchase APR in percent")
    next_close_at: Optional[datetime] = Field(
        default=None,
        description="Next statement close, when the store has inferred it",
    )
    posting_delay_days: Optional[int] = Field(
        default=None,
        description="Business days a payment takes to post on this card's rail",
    )
    target_utilization: Optional[Decimal] = Field(
        default=None,
        description="Per-card target ratio overriding the user's default",
    )

    @field_validator("limit", "posted_balance", "apr", mode="before")
    @classmethod
    def coerce_amounts(cls, v, info):
        """Coerce numeric input to Decimal."""
        return to_decimal(v, info.field_name)

    @field_validator("target_utilization", mode="before")
    @classmethod
    def coerce_target(cls, v):
        """Coerce an optional target ratio to Decimal."""
        if v is None:
            return v
        return to_decimal(v, "target_utilization")

    @field_validator("next_close_at")
    @classmethod
    def normalize_close(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store close timestamps as timezone-aware."""
        return ensure_utc(v) if v is not None else v

    @model_validator(mode="after")
    def validate_profile(self) -> "CardProfile":
        """Reject profiles the allocator cannot reason about."""
        if self.limit <= ZERO:
            raise InvalidCardProfile(
                f"Card {self.id} has a non-positive limit: {self.limit}",
                card_id=self.id,
                field="limit",
                value=str(self.limit),
                constraint="limit > 0",
            )
        for name in ("posted_balance", "apr"):
            value = getattr(self, name)
            if value < ZERO:
                raise InvalidCardProfile(
                    f"Card {self.id} has a negative {name}: {value}",
                    card_id=self.id,
                    field=name,
                    value=str(value),
                    constraint=f"{name} >= 0",
                )
        if self.posting_delay_days is not None and self.posting_delay_days < 0:
            raise InvalidCardProfile(
                f"Card {self.id} has a negative posting delay",
                card_id=self.id,
                field="posting_delay_days",
                value=self.posting_delay_days,
                constraint="posting_delay_days >= 0",
            )
        if self.target_utilization is not None:
            _check_ratio(
                self.target_utilization,
                "target_utilization",
                error=InvalidCardProfile,
                card_id=self.id,
            )
        return self

    @property
    def display_name(self) -> str:
        """Name shown to the user, falling back to the id."""
        return self.name or self.id


class UpcomingBill(BaseModel):
    """A recurring bill due within the planning horizon."""

    model_config = ConfigDict(frozen=True)

    name: str
    amount: Decimal
    due_at: Optional[datetime] = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        """Coerce numeric input to Decimal."""
        return to_decimal(v, "amount")

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        """Bills are fixed deductions and cannot be negative."""
        return require_non_negative(v, "amount")


class UserMoneyConfig(BaseModel):
    """The user's Glide Guard and tax settings.

    ``jurisdiction`` has no default: planning against the wrong province's
    rates would quietly produce wrong set-asides.
    """

    model_config = ConfigDict(frozen=True)

    jurisdiction: str = Field(description="Province/territory code, e.g. ON")
    target_utilization: Decimal = Field(
        default=Decimal("0.30"),
        description="Default target utilization ratio for every card",
    )
    cushion: Decimal = Field(
        default=Decimal("100"),
        description="Balance the allocator never spends",
    )
    cadence: Cadence = Cadence.WEEKLY
    effective_tax_rate: Decimal = Field(
        default=Decimal("0.18"),
        description="Effective income tax rate applied to each pay period",
    )
    hst_registered: bool = False

    @field_validator("target_utilization", "cushion", "effective_tax_rate", mode="before")
    @classmethod
    def coerce_amounts(cls, v, info):
        """Coerce numeric input to Decimal."""
        return to_decimal(v, info.field_name)

    @field_validator("jurisdiction")
    @classmethod
    def validate_jurisdiction(cls, v: str) -> str:
        """Normalize the province code; an empty one is never defaulted."""
        code = v.strip().upper()
        if not code:
            raise UnsupportedJurisdiction("A jurisdiction must be supplied")
        return code

    @field_validator("target_utilization")
    @classmethod
    def validate_target(cls, v: Decimal) -> Decimal:
        return _check_ratio(v, "target_utilization")

    @field_validator("cushion")
    @classmethod
    def validate_cushion(cls, v: Decimal) -> Decimal:
        return require_non_negative(v, "cushion")

    @field_validator("effective_tax_rate")
    @classmethod
    def validate_tax_rate(cls, v: Decimal) -> Decimal:
        if v < ZERO or v > Decimal("1"):
            raise InvalidInput(
                f"effective_tax_rate must be in [0, 1], got {v}",
                field="effective_tax_rate",
                value=str(v),
                constraint="0 <= rate <= 1",
            )
        return v


# =============================================================================
# PLAN
# =============================================================================

class GapEntry(BaseModel):
    """Amount a card sits above its target; lives for one allocation run."""

    model_config = ConfigDict(frozen=True)

    card: CardProfile
    target_utilization: Decimal
    gap: Decimal


class PaymentSlice(BaseModel):
    """One recommended payment: which card, how much, by when."""

    model_config = ConfigDict(frozen=True)

    card_id: str
    card_name: str
    amount: Decimal = Field(gt=0)
    safe_by: datetime
    rationale: str


class PaymentPlan(BaseModel):
    """Result of one Glide Guard run.

    An empty ``slices`` tuple is a normal outcome meaning no payment is
    needed or affordable this period.
    """

    model_config = ConfigDict(frozen=True)

    slices: tuple[PaymentSlice, ...] = ()
    as_of: datetime
    available_budget: Decimal = ZERO
    set_aside: Decimal = ZERO
    upcoming_bills_total: Decimal = ZERO
    cushion: Decimal = ZERO
    rounding_drift: Decimal = ZERO

    @property
    def is_empty(self) -> bool:
        """True when no payment is recommended."""
        return not self.slices

    @property
    def total_payments(self) -> Decimal:
        """Sum of every slice amount."""
        return sum((s.amount for s in self.slices), ZERO)

    def slice_for(self, card_id: str) -> Optional[PaymentSlice]:
        """Return the slice for a card, if it has one."""
        for s in self.slices:
            if s.card_id == card_id:
                return s
        return None


class CardPosition(BaseModel):
    """A card as seen by the ranking utilities.

    Combines the profile with the target it is measured against and the
    payment currently recommended for it.
    """

    model_config = ConfigDict(frozen=True)

    card: CardProfile
    target_utilization: Decimal
    recommended_payment: Decimal = ZERO
    top_action: bool = False

    @field_validator("target_utilization", "recommended_payment", mode="before")
    @classmethod
    def coerce_amounts(cls, v, info):
        return to_decimal(v, info.field_name)

    @field_validator("recommended_payment")
    @classmethod
    def validate_payment(cls, v: Decimal) -> Decimal:
        return require_non_negative(v, "recommended_payment")


class SnoozePlan(BaseModel):
    """When to remind the user about a deferred payment."""

    model_config = ConfigDict(frozen=True)

    remind_at: datetime
    note: str
