"""Set-aside calculations for Canadian gig income.

This module turns a period's gross income into the amount a self-employed
worker should reserve for:
1. CPP contributions on pensionable earnings
2. Federal and provincial income tax (progressive brackets)
3. HST/GST remittance on income earned while registered

It also provides the short-horizon reserve Glide Guard takes off each
paycheque, which uses the user's effective tax rate instead of the annual
brackets.

All figures are rounded to cents. Every step is written to an audit log
and emitted as a structured log event.
"""

from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal
from typing import Optional, Union

import structlog

from glidemoney_core.exceptions import InvalidInput
from glidemoney_core.models import (
    ZERO,
    AuditEntry,
    IncomeItem,
    PeriodSetAside,
    SetAsides,
    quantize_cents,
    require_non_negative,
    to_decimal,
)
from glidemoney_core.rate_tables import CppRates, TaxBracket, TaxRateTable

logger = structlog.get_logger()


# =============================================================================
# BUILDING BLOCKS
# =============================================================================

def progressive_tax(taxable: Decimal, brackets: Sequence[TaxBracket]) -> Decimal:
    """Tax owed on ``taxable`` under a progressive bracket schedule.

    Each bracket only taxes the slice of income that falls inside it, so
    60,000 under ``[50,000 @ 10%, rest @ 20%]`` is 5,000 + 2,000 = 7,000,
    not 60,000 x 20%.

    Args:
        taxable: Taxable income; zero or negative owes nothing
        brackets: Brackets sorted ascending by ``up_to``, last one unbounded

    Returns:
        Unrounded tax amount
    """
    if taxable <= ZERO:
        return ZERO

    tax = ZERO
    previous_cap = ZERO
    for bracket in brackets:
        top = taxable if bracket.up_to is None else min(taxable, bracket.up_to)
        taxed_slice = max(ZERO, top - previous_cap)
        tax += taxed_slice * bracket.rate
        if bracket.up_to is None or taxable <= bracket.up_to:
            break
        previous_cap = bracket.up_to
    return tax


def calculate_cpp(period_gross: Decimal, cpp: CppRates) -> Decimal:
    """CPP contribution on self-employed earnings.

    Earnings at or below the basic exemption owe nothing; earnings above
    the YMPE are not pensionable.
    """
    pensionable = max(ZERO, min(period_gross, cpp.ympe) - cpp.basic_exemption)
    return quantize_cents(pensionable * cpp.rate)


def calculate_income_tax(
    period_gross: Decimal,
    cpp_paid: Decimal,
    table: TaxRateTable,
) -> Decimal:
    """Federal plus provincial income tax, less a capped CPP credit.

    The CPP credit is a simplification of the real non-refundable credit:
    ``min(cpp_paid, cpp_credit_cap)`` comes straight off the combined tax.
    The result never goes below zero.
    """
    federal_taxable = max(ZERO, period_gross - table.federal_basic_credit)
    provincial_taxable = max(ZERO, period_gross - table.provincial_basic_credit)
    federal = progressive_tax(federal_taxable, table.federal_brackets)
    provincial = progressive_tax(provincial_taxable, table.provincial_brackets)
    credit = min(cpp_paid, table.cpp_credit_cap)
    return quantize_cents(max(ZERO, federal + provincial - credit))


def calculate_hst_remittance(items: Iterable[IncomeItem], hst_rate: Decimal) -> Decimal:
    """HST owed on income items flagged as registered.

    Unregistered items contribute nothing regardless of size.
    """
    registered = sum((i.gross for i in items if i.hst_registered), ZERO)
    return quantize_cents(registered * hst_rate)


IncomeLike = Union[IncomeItem, Mapping]


def _coerce_income(income: Iterable[IncomeLike]) -> list[IncomeItem]:
    """Accept IncomeItem instances or plain mappings from the store."""
    items = []
    for entry in income:
        if isinstance(entry, IncomeItem):
            items.append(entry)
        elif isinstance(entry, Mapping):
            items.append(IncomeItem(**entry))
        else:
            raise InvalidInput(
                f"Unsupported income record: {type(entry).__name__}",
                field="income",
                constraint="IncomeItem or mapping",
            )
    return items


# =============================================================================
# SET-ASIDE CALCULATOR
# =============================================================================

class SetAsideCalculator:
    """
    Calculate tax, CPP and HST set-asides for a period's income.

    The calculator is bound to one rate table; the caller windows income
    (this week, year to date, ...) before handing it over.

    All calculations are logged for audit trail.
    """

    def __init__(self, rate_table: TaxRateTable):
        """
        Initialize calculator with a rate table.

        Args:
            rate_table: Rates for the province and tax year being computed
        """
        self.rate_table = rate_table
        self._audit_log: list[AuditEntry] = []

    def _log_step(
        self,
        step: str,
        input_value: str,
        output_value: str,
        source: str,
        notes: Optional[str] = None,
    ) -> None:
        """Add an entry to the audit log."""
        entry = AuditEntry(
            step=step,
            input_value=input_value,
            output_value=output_value,
            source=source,
            notes=notes,
        )
        self._audit_log.append(entry)
        logger.info(
            "set_aside_step",
            step=step,
            input=input_value,
            output=output_value,
            source=source,
        )

    def calculate(self, income: Iterable[IncomeLike]) -> SetAsides:
        """
        Compute the set-asides owed on the given income.

        Args:
            income: Income records for the period

        Returns:
            SetAsides with CPP, income tax, HST and their total

        Raises:
            InvalidInput: If any income amount is negative
        """
        self._audit_log = []
        table = self.rate_table
        items = _coerce_income(income)

        # Step 1: Period gross
        period_gross = sum((i.gross for i in items), ZERO)
        self._log_step(
            step="period_gross",
            input_value=f"{len(items)} income items",
            output_value=str(period_gross),
            source="Income records",
        )

        # Step 2: CPP
        cpp = calculate_cpp(period_gross, table.cpp)
        self._log_step(
            step="cpp_contribution",
            input_value=(
                f"(min({period_gross}, {table.cpp.ympe}) - {table.cpp.basic_exemption})"
                f" * {table.cpp.rate}"
            ),
            output_value=str(cpp),
            source=f"CPP {table.tax_year}",
            notes="Below basic exemption" if period_gross <= table.cpp.basic_exemption else None,
        )

        # Step 3: Income tax
        income_tax = calculate_income_tax(period_gross, cpp, table)
        self._log_step(
            step="income_tax",
            input_value=(
                f"gross={period_gross}, federal_credit={table.federal_basic_credit}, "
                f"provincial_credit={table.provincial_basic_credit}, "
                f"cpp_credit=min({cpp}, {table.cpp_credit_cap})"
            ),
            output_value=str(income_tax),
            source=f"Rate table {table.version}",
        )

        # Step 4: HST
        hst_remit = calculate_hst_remittance(items, table.hst_rate)
        registered_count = sum(1 for i in items if i.hst_registered)
        self._log_step(
            step="hst_remittance",
            input_value=f"{registered_count} registered items @ {table.hst_rate}",
            output_value=str(hst_remit),
            source=f"Sales tax {table.jurisdiction}",
        )

        total = cpp + income_tax + hst_remit
        self._log_step(
            step="set_aside_total",
            input_value=f"{cpp} + {income_tax} + {hst_remit}",
            output_value=str(total),
            source="Calculated",
        )

        return SetAsides(
            cpp=cpp,
            income_tax=income_tax,
            hst_remit=hst_remit,
            total=total,
            jurisdiction=table.jurisdiction,
            tax_year=table.tax_year,
            audit_log=tuple(self._audit_log),
        )


def compute_set_asides(income: Iterable[IncomeLike], rate_table: TaxRateTable) -> SetAsides:
    """Compute set-asides for a period's income under one rate table."""
    return SetAsideCalculator(rate_table).calculate(income)


# =============================================================================
# SHORT-HORIZON RESERVE
# =============================================================================

def compute_period_set_aside(
    period_income,
    effective_tax_rate,
    rate_table: TaxRateTable,
    hst_registered: bool = False,
    periods_per_year: int = 52,
) -> PeriodSetAside:
    """Reserve to hold back from a single pay period.

    Full bracket math makes no sense on a one-week horizon, so income tax is
    the effective rate times the period income. CPP is computed on the
    annualised income and divided back over the periods.

    Args:
        period_income: Income received this period
        effective_tax_rate: The user's effective income tax rate (0-1)
        rate_table: Supplies CPP parameters and the sales tax rate
        hst_registered: Whether this income attracts HST remittance
        periods_per_year: 52 for weekly, 26 for bi-weekly, 12 for monthly

    Raises:
        InvalidInput: On negative income or an out-of-range rate
    """
    period_income = require_non_negative(to_decimal(period_income, "period_income"), "period_income")
    effective_tax_rate = to_decimal(effective_tax_rate, "effective_tax_rate")
    if effective_tax_rate < ZERO or effective_tax_rate > Decimal("1"):
        raise InvalidInput(
            f"effective_tax_rate must be in [0, 1], got {effective_tax_rate}",
            field="effective_tax_rate",
            value=str(effective_tax_rate),
            constraint="0 <= rate <= 1",
        )
    if periods_per_year <= 0:
        raise InvalidInput(
            "periods_per_year must be positive",
            field="periods_per_year",
            value=periods_per_year,
            constraint="periods_per_year > 0",
        )

    cpp_rates = rate_table.cpp
    annualised = period_income * periods_per_year
    pensionable = max(ZERO, min(annualised, cpp_rates.ympe) - cpp_rates.basic_exemption)

    income_tax = quantize_cents(period_income * effective_tax_rate)
    cpp = quantize_cents(pensionable * cpp_rates.rate / periods_per_year)
    hst = quantize_cents(period_income * rate_table.hst_rate) if hst_registered else ZERO
    total = income_tax + cpp + hst

    logger.debug(
        "period_set_aside",
        period_income=str(period_income),
        income_tax=str(income_tax),
        cpp=str(cpp),
        hst=str(hst),
        total=str(total),
        periods_per_year=periods_per_year,
    )

    return PeriodSetAside(
        period_income=period_income,
        income_tax=income_tax,
        cpp=cpp,
        hst=hst,
        total=total,
        periods_per_year=periods_per_year,
    )
