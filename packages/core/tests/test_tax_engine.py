"""Tests for the set-aside engine.

These tests cover:
- Progressive bracket math (slice-by-slice, never a single marginal rate)
- CPP contributions, including the basic exemption floor and YMPE cap
- Income tax with the capped CPP credit
- HST remittance on registered income only
- The short-horizon period set-aside used by Glide Guard
"""

from datetime import date
from decimal import Decimal

import pytest
import structlog

from glidemoney_core import (
    IncomeItem,
    InvalidInput,
    PackagedRateTableProvider,
    SetAsideCalculator,
    SetAsides,
    TaxBracket,
    TaxRateTable,
    calculate_cpp,
    calculate_hst_remittance,
    calculate_income_tax,
    compute_period_set_aside,
    compute_set_asides,
    progressive_tax,
)
from glidemoney_core.rate_tables import CppRates


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def two_bracket_schedule() -> tuple[TaxBracket, ...]:
    """10% up to 50,000 then 20%."""
    return (
        TaxBracket(up_to=Decimal("50000"), rate=Decimal("0.10")),
        TaxBracket(up_to=None, rate=Decimal("0.20")),
    )


@pytest.fixture
def simple_table(two_bracket_schedule) -> TaxRateTable:
    """Rate table with no basic credits and no provincial tax."""
    return TaxRateTable(
        tax_year=2024,
        jurisdiction="ON",
        effective_date=date(2024, 1, 1),
        cpp=CppRates(rate="0.0595", ympe="68500", basic_exemption="3500"),
        cpp_credit_cap="1000",
        federal_basic_credit="0",
        provincial_basic_credit="0",
        federal_brackets=two_bracket_schedule,
        provincial_brackets=(TaxBracket(up_to=None, rate="0"),),
        hst_rate="0.13",
    )


@pytest.fixture
def ontario_2024() -> TaxRateTable:
    """Packaged Ontario table for 2024."""
    return PackagedRateTableProvider().get_table("ON", 2024)


# =============================================================================
# PROGRESSIVE TAX
# =============================================================================

class TestProgressiveTax:
    """Test suite for progressive_tax."""

    def test_taxes_each_slice_at_its_own_rate(self, two_bracket_schedule):
        """60,000 is 50,000 at 10% plus 10,000 at 20%, not 60,000 at 20%."""
        tax = progressive_tax(Decimal("60000"), two_bracket_schedule)

        assert tax == Decimal("7000")
        assert tax != Decimal("60000") * Decimal("0.20")

    def test_income_inside_first_bracket(self, two_bracket_schedule):
        """Income below the first cap only sees the first rate."""
        assert progressive_tax(Decimal("20000"), two_bracket_schedule) == Decimal("2000")

    def test_income_exactly_at_cap(self, two_bracket_schedule):
        """Income equal to a cap stops at that bracket."""
        assert progressive_tax(Decimal("50000"), two_bracket_schedule) == Decimal("5000")

    def test_zero_and_negative_taxable(self, two_bracket_schedule):
        """Nothing taxable means no tax."""
        assert progressive_tax(Decimal("0"), two_bracket_schedule) == Decimal("0")
        assert progressive_tax(Decimal("-100"), two_bracket_schedule) == Decimal("0")

    def test_three_brackets(self):
        """Every intermediate bracket contributes its full width."""
        brackets = (
            TaxBracket(up_to="10000", rate="0.10"),
            TaxBracket(up_to="20000", rate="0.20"),
            TaxBracket(up_to=None, rate="0.30"),
        )

        # 1,000 + 2,000 + 5,000 * 0.30
        assert progressive_tax(Decimal("25000"), brackets) == Decimal("4500")


# =============================================================================
# CPP
# =============================================================================

class TestCpp:
    """Test suite for calculate_cpp."""

    def test_zero_at_basic_exemption(self, simple_table):
        """Earnings equal to the exemption owe exactly zero."""
        assert calculate_cpp(Decimal("3500"), simple_table.cpp) == Decimal("0")

    def test_zero_below_basic_exemption(self, simple_table):
        """Earnings below the exemption owe zero, not a negative amount."""
        assert calculate_cpp(Decimal("1200"), simple_table.cpp) == Decimal("0")

    def test_contribution_on_pensionable_earnings(self, simple_table):
        """(60,000 - 3,500) * 5.95%."""
        assert calculate_cpp(Decimal("60000"), simple_table.cpp) == Decimal("3361.75")

    def test_capped_at_ympe(self, simple_table):
        """Earnings above YMPE are not pensionable."""
        assert calculate_cpp(Decimal("100000"), simple_table.cpp) == Decimal("3867.50")
        assert calculate_cpp(Decimal("68500"), simple_table.cpp) == Decimal("3867.50")

    def test_rounded_to_cents(self, simple_table):
        """CPP is rounded half-up to cents."""
        # (3510 - 3500) * 0.0595 = 0.595
        assert calculate_cpp(Decimal("3510"), simple_table.cpp) == Decimal("0.60")


# =============================================================================
# INCOME TAX AND HST
# =============================================================================

class TestIncomeTax:
    """Test suite for calculate_income_tax."""

    def test_cpp_credit_is_capped(self, simple_table):
        """Only up to cpp_credit_cap of CPP comes off the tax."""
        tax = calculate_income_tax(Decimal("60000"), Decimal("3361.75"), simple_table)

        assert tax == Decimal("6000.00")

    def test_small_cpp_credit_used_in_full(self, simple_table):
        """CPP below the cap is credited in full."""
        tax = calculate_income_tax(Decimal("10000"), Decimal("386.75"), simple_table)

        # 10,000 * 10% - 386.75
        assert tax == Decimal("613.25")

    def test_never_negative(self):
        """A credit larger than the tax floors at zero."""
        table = PackagedRateTableProvider().get_table("ON", 2024)

        tax = calculate_income_tax(Decimal("4000"), Decimal("29.75"), table)

        assert tax == Decimal("0")

    def test_uses_both_schedules(self, ontario_2024):
        """Federal and Ontario tax are added before the CPP credit."""
        tax = calculate_income_tax(Decimal("60000"), Decimal("3361.75"), ontario_2024)

        # federal (60000 - 15705) * 15% = 6644.25
        # ontario (60000 - 12399) * 5.05% = 2403.8505
        assert tax == Decimal("8048.10")


class TestHstRemittance:
    """Test suite for calculate_hst_remittance."""

    def test_only_registered_items_count(self):
        """Unregistered income contributes nothing regardless of size."""
        items = [
            IncomeItem(gross="52000", hst_registered=True),
            IncomeItem(gross="8000", hst_registered=False),
        ]

        assert calculate_hst_remittance(items, Decimal("0.13")) == Decimal("6760.00")

    def test_nothing_registered(self):
        """No registered income means no remittance."""
        items = [IncomeItem(gross="100000")]

        assert calculate_hst_remittance(items, Decimal("0.13")) == Decimal("0")


# =============================================================================
# SET-ASIDE CALCULATOR
# =============================================================================

class TestSetAsideCalculator:
    """Test suite for SetAsideCalculator and compute_set_asides."""

    def test_full_calculation(self, ontario_2024):
        """All three components and their total for mixed registration."""
        result = compute_set_asides(
            [
                IncomeItem(gross="52000", hst_registered=True),
                IncomeItem(gross="8000", hst_registered=False),
            ],
            ontario_2024,
        )

        assert isinstance(result, SetAsides)
        assert result.cpp == Decimal("3361.75")
        assert result.income_tax == Decimal("8048.10")
        assert result.hst_remit == Decimal("6760.00")
        assert result.total == Decimal("18169.85")
        assert result.jurisdiction == "ON"
        assert result.tax_year == 2024

    @pytest.mark.parametrize(
        "amounts",
        [
            ["0"],
            ["3499.99"],
            ["12345.67", "89.01"],
            ["250000"],
            ["1000.005", "2000.015", "3000.025"],
        ],
    )
    def test_total_is_sum_of_components(self, ontario_2024, amounts):
        """total == cpp + income_tax + hst_remit exactly."""
        income = [IncomeItem(gross=a, hst_registered=i % 2 == 0) for i, a in enumerate(amounts)]

        result = compute_set_asides(income, ontario_2024)

        assert result.total == result.cpp + result.income_tax + result.hst_remit
        for value in (result.cpp, result.income_tax, result.hst_remit, result.total):
            assert value >= 0
            assert value == value.quantize(Decimal("0.01"))

    def test_no_income_is_empty_not_an_error(self, ontario_2024):
        """An empty income list yields a zero result."""
        result = compute_set_asides([], ontario_2024)

        assert result.is_empty
        assert result.total == Decimal("0")

    def test_accepts_mappings(self, ontario_2024):
        """Plain dicts from the transaction store are accepted."""
        result = compute_set_asides(
            [{"gross": 52000, "hst_registered": True}, {"gross": 8000}],
            ontario_2024,
        )

        assert result.hst_remit == Decimal("6760.00")

    def test_negative_gross_rejected(self, ontario_2024):
        """Negative income is a caller bug and is surfaced, not clamped."""
        with pytest.raises(InvalidInput) as exc_info:
            compute_set_asides([{"gross": "-50"}], ontario_2024)

        assert exc_info.value.field == "gross"

    def test_audit_log_populated(self, ontario_2024):
        """Each calculation step is recorded."""
        result = SetAsideCalculator(ontario_2024).calculate([IncomeItem(gross="60000")])

        step_names = [entry.step for entry in result.audit_log]
        assert step_names == [
            "period_gross",
            "cpp_contribution",
            "income_tax",
            "hst_remittance",
            "set_aside_total",
        ]
        assert "2024-ON" in result.audit_log[2].source

    def test_steps_emitted_as_log_events(self, ontario_2024):
        """Each step is also a structured log event."""
        with structlog.testing.capture_logs() as logs:
            compute_set_asides([IncomeItem(gross="60000")], ontario_2024)

        steps = [e["step"] for e in logs if e["event"] == "set_aside_step"]
        assert "cpp_contribution" in steps

    def test_deterministic(self, ontario_2024):
        """Identical inputs give identical results."""
        income = [IncomeItem(gross="41000", hst_registered=True)]

        assert compute_set_asides(income, ontario_2024) == compute_set_asides(income, ontario_2024)


# =============================================================================
# PERIOD SET-ASIDE
# =============================================================================

class TestPeriodSetAside:
    """Test suite for compute_period_set_aside."""

    def test_weekly_reserve(self, ontario_2024):
        """680/week at 18%: 122.40 tax + 36.46 CPP."""
        result = compute_period_set_aside(Decimal("680"), Decimal("0.18"), ontario_2024)

        assert result.income_tax == Decimal("122.40")
        # (680 * 52 - 3500) * 0.0595 / 52 = 36.455...
        assert result.cpp == Decimal("36.46")
        assert result.hst == Decimal("0")
        assert result.total == Decimal("158.86")

    def test_hst_when_registered(self, ontario_2024):
        """Registered users also reserve HST on the period's income."""
        result = compute_period_set_aside(
            Decimal("680"), Decimal("0.18"), ontario_2024, hst_registered=True
        )

        assert result.hst == Decimal("88.40")
        assert result.total == Decimal("247.26")

    def test_cpp_capped_at_ympe(self, ontario_2024):
        """Annualised income above YMPE caps the CPP share."""
        result = compute_period_set_aside(Decimal("2000"), Decimal("0"), ontario_2024)

        # (68500 - 3500) * 0.0595 / 52 = 74.375
        assert result.cpp == Decimal("74.38")

    def test_monthly_periods(self, ontario_2024):
        """Monthly cadence spreads CPP over 12 periods."""
        result = compute_period_set_aside(
            Decimal("3000"), Decimal("0.10"), ontario_2024, periods_per_year=12
        )

        # (36000 - 3500) * 0.0595 / 12 = 161.145833
        assert result.cpp == Decimal("161.15")
        assert result.income_tax == Decimal("300.00")

    def test_negative_income_rejected(self, ontario_2024):
        """Negative period income raises InvalidInput."""
        with pytest.raises(InvalidInput):
            compute_period_set_aside(Decimal("-1"), Decimal("0.18"), ontario_2024)

    def test_rate_out_of_range_rejected(self, ontario_2024):
        """Effective tax rates above 100% are rejected."""
        with pytest.raises(InvalidInput):
            compute_period_set_aside(Decimal("100"), Decimal("1.5"), ontario_2024)
