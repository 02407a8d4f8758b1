from __future__ import annotations

from decimal import Decimal, InvalidOperation

CENT = Decimal("0.01")

# Teto por valor (linha ou pedido): 999.999,99 cabe em INTEGER de 32 bits.
MAX_AMOUNT_CENTS = 99_999_999
MAX_AMOUNT = Decimal(MAX_AMOUNT_CENTS) / 100


def to_cents(value: Decimal | int | float | str) -> int:
    """Convert an amount with at most two decimal places to integer cents.

    Raises ValueError for non-numeric input, more than two decimal places
    or a magnitude above MAX_AMOUNT_CENTS.
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    if abs(amount) > MAX_AMOUNT:
        raise ValueError(f"Amount exceeds {MAX_AMOUNT}: {value!r}")
    try:
        quantized = amount.quantize(CENT)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if amount != quantized:
        raise ValueError(f"Amount must have at most two decimal places: {value!r}")
    return int(amount * 100)


def from_cents(cents: int | None) -> Decimal:
    return (Decimal(int(cents or 0)) / 100).quantize(CENT)


def format_cents(cents: int | None) -> str:
    return str(from_cents(cents))
