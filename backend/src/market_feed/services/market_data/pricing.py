"""
Price derivation from concentrated-liquidity pool state.

Pools encode price as ``sqrtPriceX96 = sqrt(token1/token0) * 2**96``.
The conversion uses double precision floats; extreme exponents lose
precision, which is an accepted ceiling rather than an error.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Union

Q96 = 2**96

# Significant digits kept when rendering a derived (float) price.
PRICE_PRECISION = 12


def price_from_sqrt_x96(sqrt_price_x96: Union[str, int]) -> float:
    """
    Convert a sqrtPriceX96 value to a price (token1 per token0).

    Args:
        sqrt_price_x96: Fixed-point square-root price, as the indexer returns it

    Returns:
        float: ``(sqrtPriceX96 / 2**96) ** 2``; 0.0 for zero or unparseable input
    """
    try:
        sqrt_price = float(sqrt_price_x96)
    except (TypeError, ValueError):
        return 0.0
    if not sqrt_price or not math.isfinite(sqrt_price):
        return 0.0
    price = (sqrt_price / Q96) ** 2
    return price if math.isfinite(price) else 0.0


def invert_price(price: float) -> float:
    """Return ``1 / price``; zero, negative or non-finite input yields 0.0."""
    if not price or price < 0 or not math.isfinite(price):
        return 0.0
    inverted = 1 / price
    return inverted if math.isfinite(inverted) else 0.0


def format_decimal(value: Union[float, int, str, Decimal], precision: int = 0) -> str:
    """
    Render a number as a plain decimal string (no exponent).

    Args:
        value: Number to render
        precision: Significant digits to keep; 0 keeps the value as is

    Returns:
        str: e.g. ``"0.000000123456789012"``

    Raises:
        ValueError: For non-finite or unparseable values
    """
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"not a finite number: {value!r}")
        text = format(value, f".{precision}g") if precision else repr(value)
    else:
        text = str(value).strip()
    try:
        number = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"not a decimal: {value!r}") from e
    if not number.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    if precision and not isinstance(value, float) and number:
        number = Decimal(format(number, f".{precision}g"))
    if number == 0:
        return "0"
    rendered = format(number, "f")
    if "." in rendered:
        rendered = rendered.rstrip("0").rstrip(".")
    return rendered


def format_price(price: float) -> str:
    return format_decimal(price, PRICE_PRECISION)


def invert_price_str(price: str) -> str:
    """Invert a decimal price string; unusable input yields ``"0"``."""
    try:
        value = float(price)
    except (TypeError, ValueError):
        return "0"
    return format_price(invert_price(value))
