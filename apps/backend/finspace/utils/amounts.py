"""
Monetary amount helpers

User input arrives as strings typed in a pt-BR form ("1.234,56"), plain
JSON numbers, or ``Decimal`` values read back from the database.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENTS = Decimal("0.01")


def parse_amount(value: str | int | float | Decimal | None) -> Decimal:
    """
    Parse a monetary amount into a ``Decimal`` rounded to cents

    - A decimal comma is accepted ("100,50")
    - When both separators appear, "." is the thousands separator ("1.234,56")
    - Floats go through ``str`` so binary noise is not carried over

    Args:
        value: raw amount

    Returns:
        ``Decimal`` quantized to two places

    Raises:
        ValueError: empty, non-numeric or non-finite input

    Example:
        >>> parse_amount("100,00")
        Decimal('100.00')
        >>> parse_amount("1.234,56")
        Decimal('1234.56')
    """
    if value is None or isinstance(value, bool):
        raise ValueError("amount is required")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        text = str(value).strip().replace(" ", "")
        if not text:
            raise ValueError("amount is required")
        if "," in text:
            text = text.replace(".", "").replace(",", ".")
        try:
            amount = Decimal(text)
        except InvalidOperation as exc:
            raise ValueError(f"invalid amount: {value!r}") from exc

    if not amount.is_finite():
        raise ValueError("amount must be finite")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
