"""
Base schemas with standardized field types for consistent results.
"""

from pydantic import BaseModel, ConfigDict


class StandardizedModel(BaseModel):
    """Base model with standardized JSON encoding"""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)


class StrictModel(BaseModel):
    """Forbid extras, validate defaults and assignments."""

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        validate_assignment=True,
    )


def format_cents(amount_cents: int, currency: str = "usd") -> str:
    """Display helper: 6000 -> "$60.00". Only used at the display boundary."""
    sign = "-" if amount_cents < 0 else ""
    dollars, cents = divmod(abs(int(amount_cents)), 100)
    symbol = "$" if currency.lower() == "usd" else f"{currency.upper()} "
    return f"{sign}{symbol}{dollars:,}.{cents:02d}"
