from decimal import ROUND_HALF_UP, Decimal


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal amount in major units to integer cents, rounding half up."""
    cents = Decimal(amount) * 100
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
