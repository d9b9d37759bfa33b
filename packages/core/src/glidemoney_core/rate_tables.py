"""Canadian tax rate tables for set-aside calculations.

Rates are data, not code: each tax year lives in its own JSON file under
``glidemoney_core/rates/<year>.json`` holding the federal brackets, CPP
parameters and a map of province/territory tables. Adding a new year means
adding a file; the calculation logic never changes.

Sources:
- Federal brackets: https://www.canada.ca/en/revenue-agency/services/tax/individuals/frequently-asked-questions-individuals/canadian-income-tax-rates-individuals-current-previous-years.html
- CPP: https://www.canada.ca/en/revenue-agency/services/tax/businesses/topics/payroll/payroll-deductions-contributions/canada-pension-plan-cpp/cpp-contribution-rates-maximums-exemptions.html

Usage:
    provider = PackagedRateTableProvider()
    table = provider.get_table("ON", 2025)
"""

import json
from datetime import date
from decimal import Decimal
from importlib import resources
from pathlib import Path
from typing import Iterable, Optional, Protocol, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from glidemoney_core.exceptions import ConfigurationError, InvalidInput, UnsupportedJurisdiction
from glidemoney_core.models.money import ZERO, to_decimal

logger = structlog.get_logger()


# =============================================================================
# JURISDICTIONS
# =============================================================================

JURISDICTIONS = {
    "AB": "Alberta",
    "BC": "British Columbia",
    "MB": "Manitoba",
    "NB": "New Brunswick",
    "NL": "Newfoundland and Labrador",
    "NS": "Nova Scotia",
    "NT": "Northwest Territories",
    "NU": "Nunavut",
    "ON": "Ontario",
    "PE": "Prince Edward Island",
    "QC": "Quebec",
    "SK": "Saskatchewan",
    "YT": "Yukon",
}


def normalize_jurisdiction(jurisdiction: Optional[str]) -> str:
    """Return the upper-case province code, or fail.

    There is no default province. A missing or unknown code raises rather
    than falling back to Ontario.

    Raises:
        UnsupportedJurisdiction: If the code is empty or not Canadian.
    """
    code = (jurisdiction or "").strip().upper()
    if not code:
        raise UnsupportedJurisdiction("A jurisdiction must be supplied")
    if code not in JURISDICTIONS:
        raise UnsupportedJurisdiction(
            f"Unknown jurisdiction: {jurisdiction}",
            jurisdiction=code,
        )
    return code


# =============================================================================
# TABLE MODELS
# =============================================================================

class TaxBracket(BaseModel):
    """One bracket of a progressive tax schedule.

    ``up_to`` is the top of the bracket; ``None`` marks the unbounded top
    bracket.
    """

    model_config = ConfigDict(frozen=True)

    up_to: Optional[Decimal] = None
    rate: Decimal

    @field_validator("up_to", "rate", mode="before")
    @classmethod
    def coerce_amounts(cls, v, info):
        if v is None:
            return v
        return to_decimal(v, info.field_name)

    @model_validator(mode="after")
    def validate_bracket(self) -> "TaxBracket":
        if self.rate < ZERO or self.rate > Decimal("1"):
            raise InvalidInput(
                f"Bracket rate must be in [0, 1], got {self.rate}",
                field="rate",
                value=str(self.rate),
                constraint="0 <= rate <= 1",
            )
        if self.up_to is not None and self.up_to <= ZERO:
            raise InvalidInput(
                f"Bracket cap must be positive, got {self.up_to}",
                field="up_to",
                value=str(self.up_to),
                constraint="up_to > 0",
            )
        return self


class CppRates(BaseModel):
    """Canada Pension Plan contribution parameters for a year."""

    model_config = ConfigDict(frozen=True)

    rate: Decimal
    ympe: Decimal = Field(description="Year's Maximum Pensionable Earnings")
    basic_exemption: Decimal

    @field_validator("rate", "ympe", "basic_exemption", mode="before")
    @classmethod
    def coerce_amounts(cls, v, info):
        return to_decimal(v, info.field_name)

    @model_validator(mode="after")
    def validate_rates(self) -> "CppRates":
        if self.rate < ZERO or self.rate > Decimal("1"):
            raise InvalidInput(
                f"CPP rate must be in [0, 1], got {self.rate}",
                field="cpp.rate",
                value=str(self.rate),
                constraint="0 <= rate <= 1",
            )
        if self.basic_exemption < ZERO or self.ympe <= self.basic_exemption:
            raise InvalidInput(
                "CPP ceiling must exceed a non-negative basic exemption",
                field="cpp.ympe",
                value=str(self.ympe),
                constraint="ympe > basic_exemption >= 0",
            )
        return self


def validate_brackets(brackets: Iterable[TaxBracket], schedule: str) -> None:
    """Check that a schedule is sorted ascending and ends unbounded.

    Raises:
        InvalidInput: If the schedule is empty, unsorted, or the unbounded
            bracket is missing or not last.
    """
    brackets = list(brackets)
    if not brackets:
        raise InvalidInput(
            f"{schedule} bracket schedule is empty",
            field=schedule,
            constraint="at least one bracket",
        )
    previous = ZERO
    for index, bracket in enumerate(brackets):
        is_last = index == len(brackets) - 1
        if bracket.up_to is None:
            if not is_last:
                raise InvalidInput(
                    f"{schedule} has an unbounded bracket before the last position",
                    field=schedule,
                    value=index,
                    constraint="only the last bracket may have up_to = null",
                )
            continue
        if is_last:
            raise InvalidInput(
                f"{schedule} top bracket must be unbounded",
                field=schedule,
                value=str(bracket.up_to),
                constraint="last bracket has up_to = null",
            )
        if bracket.up_to <= previous:
            raise InvalidInput(
                f"{schedule} brackets are not sorted ascending",
                field=schedule,
                value=str(bracket.up_to),
                constraint="up_to strictly ascending",
            )
        previous = bracket.up_to


class TaxRateTable(BaseModel):
    """All rates needed to compute set-asides for one province and year."""

    model_config = ConfigDict(frozen=True)

    tax_year: int
    jurisdiction: str
    effective_date: date
    cpp: CppRates
    cpp_credit_cap: Decimal = Field(
        default=Decimal("1000"),
        description="Upper bound on the simplified CPP tax credit",
    )
    federal_basic_credit: Decimal
    provincial_basic_credit: Decimal
    federal_brackets: tuple[TaxBracket, ...]
    provincial_brackets: tuple[TaxBracket, ...]
    hst_rate: Decimal = Field(description="Sales tax rate remitted by registrants")

    @field_validator(
        "cpp_credit_cap",
        "federal_basic_credit",
        "provincial_basic_credit",
        "hst_rate",
        mode="before",
    )
    @classmethod
    def coerce_amounts(cls, v, info):
        return to_decimal(v, info.field_name)

    @field_validator("jurisdiction")
    @classmethod
    def validate_jurisdiction(cls, v: str) -> str:
        return normalize_jurisdiction(v)

    @model_validator(mode="after")
    def validate_table(self) -> "TaxRateTable":
        validate_brackets(self.federal_brackets, "federal_brackets")
        validate_brackets(self.provincial_brackets, "provincial_brackets")
        for name in ("cpp_credit_cap", "federal_basic_credit", "provincial_basic_credit"):
            if getattr(self, name) < ZERO:
                raise InvalidInput(
                    f"{name} cannot be negative",
                    field=name,
                    value=str(getattr(self, name)),
                    constraint=f"{name} >= 0",
                )
        if self.hst_rate < ZERO or self.hst_rate > Decimal("1"):
            raise InvalidInput(
                f"hst_rate must be in [0, 1], got {self.hst_rate}",
                field="hst_rate",
                value=str(self.hst_rate),
                constraint="0 <= rate <= 1",
            )
        return self

    @property
    def version(self) -> str:
        """Identifier used in audit entries, e.g. "2025-ON"."""
        return f"{self.tax_year}-{self.jurisdiction}"


# =============================================================================
# PROVIDERS
# =============================================================================

class RateTableProvider(Protocol):
    """Anything that can hand out a rate table for a province and year."""

    def get_table(self, jurisdiction: str, tax_year: int) -> TaxRateTable:
        ...


class InMemoryRateTableProvider:
    """Provider backed by tables the caller already holds."""

    def __init__(self, tables: Iterable[TaxRateTable]):
        self._tables = {(t.jurisdiction, t.tax_year): t for t in tables}

    def get_table(self, jurisdiction: str, tax_year: int) -> TaxRateTable:
        code = normalize_jurisdiction(jurisdiction)
        try:
            return self._tables[(code, tax_year)]
        except KeyError:
            raise UnsupportedJurisdiction(
                f"No rate table for {code} {tax_year}",
                jurisdiction=code,
                tax_year=tax_year,
            ) from None

    def supported(self) -> list[tuple[str, int]]:
        """All (jurisdiction, year) pairs this provider can serve."""
        return sorted(self._tables)


def build_tables(document: dict) -> dict[str, TaxRateTable]:
    """Build the per-province tables described by one year's rate document.

    Raises:
        InvalidInput: If the document is missing fields or holds bad rates.
    """
    try:
        tax_year = int(document["tax_year"])
        federal = document["federal"]
        provinces = document["provinces"]
        tables = {}
        for code, province in provinces.items():
            table = TaxRateTable(
                tax_year=tax_year,
                jurisdiction=code,
                effective_date=document["effective_date"],
                cpp=CppRates(**document["cpp"]),
                cpp_credit_cap=document.get("cpp_credit_cap", "1000"),
                federal_basic_credit=federal["basic_credit"],
                provincial_basic_credit=province["basic_credit"],
                federal_brackets=tuple(TaxBracket(**b) for b in federal["brackets"]),
                provincial_brackets=tuple(TaxBracket(**b) for b in province["brackets"]),
                hst_rate=province["hst_rate"],
            )
            tables[table.jurisdiction] = table
    except (KeyError, TypeError, ValueError, ValidationError) as exc:
        raise InvalidInput(
            f"Malformed rate table document: {exc}",
            field="rate_table",
            constraint="see rates/<year>.json layout",
        ) from exc
    return tables


class PackagedRateTableProvider:
    """Provider that reads ``<year>.json`` files.

    By default the files shipped inside the package are used; pass
    ``rates_dir`` to load a directory of your own (same layout). Parsed
    years are cached per provider instance.
    """

    def __init__(self, rates_dir: Optional[Union[str, Path]] = None):
        if rates_dir is not None:
            rates_dir = Path(rates_dir)
            if not rates_dir.is_dir():
                raise ConfigurationError(
                    f"Rate directory does not exist: {rates_dir}",
                    config_key="rates_dir",
                    expected="Directory containing <year>.json files",
                    actual=str(rates_dir),
                )
        self._rates_dir = rates_dir
        self._cache: dict[int, dict[str, TaxRateTable]] = {}

    def _root(self):
        if self._rates_dir is not None:
            return self._rates_dir
        return resources.files("glidemoney_core") / "rates"

    def available_years(self) -> list[int]:
        """Tax years with a rate file."""
        years = []
        for entry in self._root().iterdir():
            name = entry.name
            if name.endswith(".json") and name[:-5].isdigit():
                years.append(int(name[:-5]))
        return sorted(years)

    def _load_year(self, tax_year: int) -> dict[str, TaxRateTable]:
        if tax_year in self._cache:
            return self._cache[tax_year]

        source = self._root() / f"{tax_year}.json"
        if not source.is_file():
            raise UnsupportedJurisdiction(
                f"No rate tables for tax year {tax_year}",
                tax_year=tax_year,
            )
        try:
            document = json.loads(source.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise InvalidInput(
                f"Rate file for {tax_year} is not valid JSON",
                field="rate_table",
                value=str(tax_year),
                constraint="valid JSON",
            ) from exc

        tables = build_tables(document)
        for table in tables.values():
            if table.tax_year != tax_year:
                raise InvalidInput(
                    f"Rate file {tax_year}.json declares tax year {table.tax_year}",
                    field="tax_year",
                    value=table.tax_year,
                    constraint="file name matches tax_year",
                )
        self._cache[tax_year] = tables
        logger.info(
            "rate_table_loaded",
            tax_year=tax_year,
            jurisdictions=sorted(tables),
        )
        return tables

    def get_table(self, jurisdiction: str, tax_year: int) -> TaxRateTable:
        """Return the rate table for a province and year.

        Raises:
            UnsupportedJurisdiction: If the year or the province has no table.
            InvalidInput: If the rate file is malformed.
        """
        code = normalize_jurisdiction(jurisdiction)
        tables = self._load_year(tax_year)
        if code not in tables:
            raise UnsupportedJurisdiction(
                f"No rate table for {code} {tax_year}",
                jurisdiction=code,
                tax_year=tax_year,
            )
        return tables[code]

    def supported(self) -> list[tuple[str, int]]:
        """All (jurisdiction, year) pairs this provider can serve."""
        pairs = []
        for year in self.available_years():
            pairs.extend((code, year) for code in self._load_year(year))
        return sorted(pairs)
