"""Kubernetes resource quantity parsing.

Quantities such as ``"500m"``, ``"4"``, ``"8Gi"`` or ``"1e3"`` are parsed
into exact ``Decimal`` values in base units (cores, bytes, counts).
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Union


_QUANTITY_PATTERN = re.compile(
    r"^(?P<number>[+-]?(?:\d+\.?\d*|\.\d+))(?P<suffix>[eE][+-]?\d+|Ki|Mi|Gi|Ti|Pi|Ei|n|u|m|k|M|G|T|P|E)?$"
)

_BINARY_SUFFIXES = {
    "Ki": Decimal(2) ** 10,
    "Mi": Decimal(2) ** 20,
    "Gi": Decimal(2) ** 30,
    "Ti": Decimal(2) ** 40,
    "Pi": Decimal(2) ** 50,
    "Ei": Decimal(2) ** 60,
}

_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}

GIB = Decimal(2) ** 30

QuantityLike = Union[str, int, float, Decimal]


def parse_quantity(value: QuantityLike) -> Decimal:
    """Parse a Kubernetes quantity into a Decimal.

    Args:
        value: Quantity string or number

    Returns:
        Value in base units

    Raises:
        ValueError: If the quantity is malformed
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid quantity: {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if not isinstance(value, str):
        raise ValueError(f"Invalid quantity: {value!r}")

    match = _QUANTITY_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid quantity: {value!r}")

    try:
        number = Decimal(match.group("number"))
    except InvalidOperation:
        raise ValueError(f"Invalid quantity: {value!r}")

    suffix = match.group("suffix") or ""
    if suffix in _BINARY_SUFFIXES:
        return number * _BINARY_SUFFIXES[suffix]
    if suffix in _DECIMAL_SUFFIXES:
        return number * _DECIMAL_SUFFIXES[suffix]
    # Decimal exponent, e.g. 1e3
    return number * (Decimal(10) ** int(suffix[1:]))


def is_valid_quantity(value: QuantityLike) -> bool:
    try:
        parse_quantity(value)
    except ValueError:
        return False
    return True


def quantities_equal(left: QuantityLike, right: QuantityLike) -> bool:
    """Compare two quantities by value, so "1" equals "1000m"."""
    try:
        return parse_quantity(left) == parse_quantity(right)
    except ValueError:
        return str(left) == str(right)


def format_quantity(value: Decimal) -> str:
    """Render a Decimal as a plain quantity string, millis when fractional."""
    if value == value.to_integral_value():
        return str(int(value))
    millis = value * 1000
    if millis == millis.to_integral_value():
        return f"{int(millis)}m"
    return format(value.normalize(), "f")
