"""Display helpers for amounts produced by the core."""

from decimal import Decimal

from glidemoney_core.models import quantize_cents, to_decimal


def format_cad(value) -> str:
    """Format an amount as Canadian dollars, e.g. ``$1,234.56`` or ``-$5.00``."""
    amount = quantize_cents(to_decimal(value, "value"))
    if amount < Decimal("0"):
        return f"-${-amount:,.2f}"
    return f"${amount:,.2f}"
