"""Custom exceptions for GlideMoney Core.

This module provides the exception hierarchy for the set-aside engine, the
Glide Guard allocator and the rate table providers. All exceptions inherit
from GlideMoneyError, making it easy to catch every core error at once.

An empty result (no set-asides owed, no card payments recommended) is never
an error. Check ``SetAsides.is_empty`` or ``PaymentPlan.is_empty`` instead.

Example:
    try:
        table = provider.get_table("ON", 2025)
        result = compute_set_asides(income, table)
    except UnsupportedJurisdiction as e:
        logger.warning("no_rate_table", jurisdiction=e.jurisdiction)
        raise
    except InvalidInput as e:
        # Caller bug: negative income, bad card limit, malformed table
        logger.error("invalid_input", field=e.field, constraint=e.constraint)
        raise
"""

from typing import Any, Optional


class GlideMoneyError(Exception):
    """Base exception for all GlideMoney Core errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
        recoverable: Whether the caller can fix the problem and try again.

    Example:
        >>> raise GlideMoneyError("Something went wrong", details={"step": "cpp"})
        GlideMoneyError: Something went wrong
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize GlideMoneyError.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context about the error.
            recoverable: Whether the error can be fixed by the caller, e.g. by
                correcting input data. Defaults to False.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation of the error."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable!r})"
        )


class InvalidInput(GlideMoneyError):
    """Error raised when caller-supplied data is out of range or malformed.

    Covers negative income amounts, negative bills, and malformed rate
    tables. Values are surfaced to the caller, never clamped: a silently
    corrected tax or payment figure looks plausible and is still wrong.

    Attributes:
        field: The field that failed validation.
        value: The invalid value.
        constraint: The validation constraint that was violated.

    Example:
        >>> raise InvalidInput(
        ...     "Income amount cannot be negative",
        ...     field="gross",
        ...     value="-50.00",
        ...     constraint="gross >= 0",
        ... )
        InvalidInput: Income amount cannot be negative
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        constraint: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        """Initialize InvalidInput.

        Args:
            message: Human-readable error description.
            field: The name of the field that failed validation.
            value: The invalid value.
            constraint: Description of the validation rule violated.
            details: Optional dictionary with additional context.
            recoverable: Whether the caller can correct the input. Defaults
                to True.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.field = field
        self.value = value
        self.constraint = constraint

        if field:
            self.details["field"] = field
        if value is not None:
            self.details["value"] = value
        if constraint:
            self.details["constraint"] = constraint


class InvalidCardProfile(InvalidInput):
    """Error raised when a card profile cannot be planned against.

    A zero or negative limit makes utilization and gap meaningless, so the
    allocator refuses the whole run instead of returning a $0 plan that
    looks healthy.

    Attributes:
        card_id: Identifier of the offending card (if known).

    Example:
        >>> raise InvalidCardProfile(
        ...     "Card limit must be positive",
        ...     card_id="td-visa",
        ...     field="limit",
        ...     value="0",
        ... )
        InvalidCardProfile: Card limit must be positive
    """

    def __init__(
        self,
        message: str,
        *,
        card_id: Optional[str] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        constraint: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            field=field,
            value=value,
            constraint=constraint,
            details=details,
        )
        self.card_id = card_id
        if card_id:
            self.details["card_id"] = card_id


class UnsupportedJurisdiction(GlideMoneyError):
    """Error raised when no rate table exists for a province and year.

    The engine never falls back to a "best guess" province; the caller has
    to supply a jurisdiction the rate table provider knows about.

    Attributes:
        jurisdiction: The requested province/territory code.
        tax_year: The requested tax year.

    Example:
        >>> raise UnsupportedJurisdiction(
        ...     "No rate table for QC 2025",
        ...     jurisdiction="QC",
        ...     tax_year=2025,
        ... )
        UnsupportedJurisdiction: No rate table for QC 2025
    """

    def __init__(
        self,
        message: str,
        *,
        jurisdiction: Optional[str] = None,
        tax_year: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message, details=details, recoverable=recoverable)
        self.jurisdiction = jurisdiction
        self.tax_year = tax_year

        if jurisdiction:
            self.details["jurisdiction"] = jurisdiction
        if tax_year is not None:
            self.details["tax_year"] = tax_year


class ConfigurationError(GlideMoneyError):
    """Error raised when settings are invalid or missing.

    Attributes:
        config_key: The configuration key that is problematic.
        expected: Description of the expected value or format.
        actual: The actual value found (if any).

    Example:
        >>> raise ConfigurationError(
        ...     "Rate directory does not exist",
        ...     config_key="GLIDEMONEY_RATES_DIR",
        ...     expected="Existing directory with <year>.json files",
        ... )
        ConfigurationError: Rate directory does not exist
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message, details=details, recoverable=recoverable)
        self.config_key = config_key
        self.expected = expected
        self.actual = actual

        if config_key:
            self.details["config_key"] = config_key
        if expected:
            self.details["expected"] = expected
        if actual is not None:
            self.details["actual"] = actual


__all__ = [
    "GlideMoneyError",
    "InvalidInput",
    "InvalidCardProfile",
    "UnsupportedJurisdiction",
    "ConfigurationError",
]
