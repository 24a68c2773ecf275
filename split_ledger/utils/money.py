"""
Money/Amount utilities

All ledger amounts are Decimals quantized to cents. Rounding is ROUND_HALF_UP:
an amount is divided first and the quotient is rounded to the nearest cent,
halves going away from zero.

Two policies exist for the cents left over when an expense does not divide
evenly:

- ``RemainderPolicy.PAYER`` (default): every participant's share is the
  rounded quotient. The leftover (positive or negative) stays with the payer
  and is never recorded, so the debts may not sum exactly to the expense.
- ``RemainderPolicy.ROUND_ROBIN``: the amount is divided in whole cents and
  the leftover cents are handed out one each, in order, so the shares sum
  exactly to the amount.

Example:
    >>> split_amount(Decimal("10"), 3)
    Decimal('3.33')
    >>> allocate_equal_shares(Decimal("10"), 3, RemainderPolicy.ROUND_ROBIN)
    [Decimal('3.34'), Decimal('3.33'), Decimal('3.33')]
"""
import enum
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import List, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest value a DECIMAL(10, 2) column holds
MAX_AMOUNT = Decimal("99999999.99")

AmountLike = Union[Decimal, int, float, str]


class RemainderPolicy(str, enum.Enum):
    PAYER = "payer"
    ROUND_ROBIN = "round_robin"


def to_decimal(value: AmountLike) -> Decimal:
    """
    Convert a raw amount into a Decimal.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal('0.1')`` rather
    than its binary expansion.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def round_decimal(value: AmountLike, precision: Decimal = CENT) -> Decimal:
    """
    Round a value to the specified precision using ROUND_HALF_UP.

    Example:
        >>> round_decimal(Decimal("100.005"))
        Decimal('100.01')
    """
    return to_decimal(value).quantize(precision, rounding=ROUND_HALF_UP)


def to_cents(value: AmountLike) -> int:
    return int(round_decimal(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def split_amount(amount: AmountLike, count: int) -> Decimal:
    """Divide an amount between ``count`` people and round to the nearest cent"""
    if count <= 0:
        raise ValueError("Cannot split an amount between zero participants")
    return round_decimal(to_decimal(amount) / count)


def allocate_equal_shares(
    amount: AmountLike,
    count: int,
    policy: RemainderPolicy = RemainderPolicy.PAYER
) -> List[Decimal]:
    """
    Split an amount into ``count`` equal shares.

    Args:
        amount: Total amount to split
        count: Number of shares
        policy: How to treat cents that do not divide evenly

    Returns:
        List of ``count`` Decimal shares, quantized to cents
    """
    if count <= 0:
        raise ValueError("Cannot split an amount between zero participants")

    if RemainderPolicy(policy) is RemainderPolicy.PAYER:
        return [split_amount(amount, count)] * count

    total_cents = to_cents(amount)
    base, remainder = divmod(total_cents, count)
    return [from_cents(base + (1 if i < remainder else 0)) for i in range(count)]
