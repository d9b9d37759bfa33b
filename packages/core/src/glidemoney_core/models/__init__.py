"""Data models for glidemoney-core.

This package provides the immutable data structures shared by the engines:
- Income records and set-aside results (money.py)
- Card profiles, user money settings and payment plans (cards.py)
- Calculation audit trail (audit.py)
"""

from glidemoney_core.models.audit import AuditEntry
from glidemoney_core.models.money import (
    CENTS,
    ZERO,
    IncomeItem,
    PeriodSetAside,
    SetAsides,
    quantize_cents,
    require_non_negative,
    to_decimal,
)
from glidemoney_core.models.cards import (
    Cadence,
    CardPosition,
    CardProfile,
    CardStatus,
    GapEntry,
    PaymentPlan,
    PaymentSlice,
    SnoozePlan,
    UpcomingBill,
    UserMoneyConfig,
    ensure_utc,
)

__all__ = [
    # Audit
    "AuditEntry",
    # Money helpers
    "CENTS",
    "ZERO",
    "quantize_cents",
    "require_non_negative",
    "to_decimal",
    # Income and set-asides
    "IncomeItem",
    "PeriodSetAside",
    "SetAsides",
    # Cards and plans
    "Cadence",
    "CardPosition",
    "CardProfile",
    "CardStatus",
    "GapEntry",
    "PaymentPlan",
    "PaymentSlice",
    "SnoozePlan",
    "UpcomingBill",
    "UserMoneyConfig",
    "ensure_utc",
]
