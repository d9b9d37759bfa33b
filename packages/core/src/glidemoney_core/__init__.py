"""GlideMoney Core - Set-aside and card payment planning for gig workers."""

__version__ = "0.1.0"

from .exceptions import (
    ConfigurationError,
    GlideMoneyError,
    InvalidCardProfile,
    InvalidInput,
    UnsupportedJurisdiction,
)
from .models import (
    AuditEntry,
    Cadence,
    CardPosition,
    CardProfile,
    CardStatus,
    GapEntry,
    IncomeItem,
    PaymentPlan,
    PaymentSlice,
    PeriodSetAside,
    SetAsides,
    SnoozePlan,
    UpcomingBill,
    UserMoneyConfig,
)
from .rate_tables import (
    JURISDICTIONS,
    CppRates,
    InMemoryRateTableProvider,
    PackagedRateTableProvider,
    RateTableProvider,
    TaxBracket,
    TaxRateTable,
)
from .tax_engine import (
    SetAsideCalculator,
    calculate_cpp,
    calculate_hst_remittance,
    calculate_income_tax,
    compute_period_set_aside,
    compute_set_asides,
    progressive_tax,
)
from .priority import (
    action_queue,
    card_status,
    compare_cards,
    days_to_close,
    gap_to_target,
    is_card_healthy,
    needs_payment,
    over_target_percent,
    positions_from_plan,
    select_top_action,
    sort_cards,
    target_percent,
    utilization_percent,
)
from .glide_guard import (
    GlideGuardPlanner,
    add_business_days,
    compute_plan,
    compute_smart_snooze,
    next_money_day,
)
from .periods import Period, bucket_key, period_start, summarize_by_period
from .formatting import format_cad
from .config import GlideGuardSettings, GlideMoneyConfig

__all__ = [
    # Errors
    "GlideMoneyError",
    "InvalidInput",
    "InvalidCardProfile",
    "UnsupportedJurisdiction",
    "ConfigurationError",
    # Models
    "AuditEntry",
    "Cadence",
    "CardPosition",
    "CardProfile",
    "CardStatus",
    "GapEntry",
    "IncomeItem",
    "PaymentPlan",
    "PaymentSlice",
    "PeriodSetAside",
    "SetAsides",
    "SnoozePlan",
    "UpcomingBill",
    "UserMoneyConfig",
    # Rate tables
    "JURISDICTIONS",
    "CppRates",
    "InMemoryRateTableProvider",
    "PackagedRateTableProvider",
    "RateTableProvider",
    "TaxBracket",
    "TaxRateTable",
    # Set-asides
    "SetAsideCalculator",
    "calculate_cpp",
    "calculate_hst_remittance",
    "calculate_income_tax",
    "compute_period_set_aside",
    "compute_set_asides",
    "progressive_tax",
    # Ranking
    "action_queue",
    "card_status",
    "compare_cards",
    "days_to_close",
    "gap_to_target",
    "is_card_healthy",
    "needs_payment",
    "over_target_percent",
    "positions_from_plan",
    "select_top_action",
    "sort_cards",
    "target_percent",
    "utilization_percent",
    # Glide Guard
    "GlideGuardPlanner",
    "add_business_days",
    "compute_plan",
    "compute_smart_snooze",
    "next_money_day",
    # Periods and display
    "Period",
    "bucket_key",
    "period_start",
    "summarize_by_period",
    "format_cad",
    # Settings
    "GlideGuardSettings",
    "GlideMoneyConfig",
]
