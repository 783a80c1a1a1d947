"""Decimal utilities for monetary values.

All monetary calculations use Decimal to avoid floating-point precision issues.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# Currency symbols to strip
CURRENCY_SYMBOLS = {"$", "€", "£", "¥", "₹", "₽", "₩"}

# Parentheses-enclosed negatives: ($1,234.56) or (1234.56)
PARENS_NEGATIVE_PATTERN = re.compile(r"^\(\s*([^)]*)\s*\)$")

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def normalize_amount(raw_amount: str | None) -> Decimal:
    """Normalize a raw amount string into a signed Decimal.

    Handles:
    - Standard: 1234.56, -1234.56
    - With currency and thousands separators: $1,234.56, -$1,234.56
    - Parentheses for negative: ($1,234.56), (1234.56)

    Never raises. Empty or unparseable input yields 0, as does NaN or
    infinity.

    Args:
        raw_amount: The raw amount string.

    Returns:
        Signed Decimal amount.
    """
    if not raw_amount:
        return ZERO

    amount_str = raw_amount.strip()
    is_negative = False

    parens_match = PARENS_NEGATIVE_PATTERN.match(amount_str)
    if parens_match:
        amount_str = parens_match.group(1)
        is_negative = True

    for symbol in CURRENCY_SYMBOLS:
        amount_str = amount_str.replace(symbol, "")
    amount_str = re.sub(r"[,\s]", "", amount_str)

    if amount_str.startswith("-"):
        is_negative = True
        amount_str = amount_str[1:]

    if not amount_str:
        return ZERO

    try:
        amount = Decimal(amount_str)
    except InvalidOperation:
        return ZERO

    if not amount.is_finite():
        return ZERO

    return -abs(amount) if is_negative else amount


def round_half_up(amount: Decimal, places: Decimal = CENTS) -> Decimal:
    """Round a Decimal half-up to the given quantum.

    Args:
        amount: Amount to round.
        places: Quantum, e.g. Decimal("0.01") or Decimal("1").

    Returns:
        Rounded Decimal.
    """
    return amount.quantize(places, rounding=ROUND_HALF_UP)


def format_currency(
    amount: Decimal,
    decimal_places: int = 2,
    include_sign: bool = True,
) -> str:
    """Format a Decimal amount for display.

    Args:
        amount: The amount to format.
        decimal_places: Number of decimal places (default 2).
        include_sign: Whether to include sign for negative amounts.

    Returns:
        Formatted string like "-1234.56" or "1234.56".
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    rounded = amount.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)

    if include_sign and rounded < 0:
        return str(rounded)
    return str(abs(rounded))
