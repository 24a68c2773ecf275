from decimal import Decimal
from typing import Optional, Union
from split_ledger.core.exceptions import ValidationError
from split_ledger.models.debts import Currency
from split_ledger.utils.money import CENT, MAX_AMOUNT, round_decimal, to_decimal

DESCRIPTION_MAX_LENGTH = 200


def parse_amount(value, field: str = "amount") -> Decimal:
    """
    Parse a positive amount without rounding it.

    The value must still round to something between one cent and
    MAX_AMOUNT, so it can be stored once quantized.
    """
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{field.capitalize()} must be a number", details={"field": field})
    if amount <= 0:
        raise ValidationError(f"{field.capitalize()} must be positive", details={"field": field})
    rounded = round_decimal(amount)
    if rounded < CENT:
        raise ValidationError(f"{field.capitalize()} must be at least {CENT}", details={"field": field})
    if rounded > MAX_AMOUNT:
        raise ValidationError(f"{field.capitalize()} cannot exceed {MAX_AMOUNT}", details={"field": field})
    return amount


def clean_amount(value, field: str = "amount") -> Decimal:
    """Parse a positive amount and quantize it to cents"""
    return round_decimal(parse_amount(value, field))


def clean_description(value: Optional[str]) -> str:
    description = (value or "").strip()
    if not description:
        raise ValidationError("Description cannot be empty", details={"field": "description"})
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters",
            details={"field": "description"}
        )
    return description


def clean_currency(value: Union[str, Currency]) -> str:
    try:
        return Currency(value).value
    except ValueError:
        allowed = ", ".join(c.value for c in Currency)
        raise ValidationError(f"Currency must be one of {allowed}", details={"field": "currency"})
