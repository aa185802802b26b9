"""Exact decimal helpers and the non-zero decimal value type."""

from __future__ import annotations

import decimal
from decimal import Decimal
from typing import Union

from errors import DecimalParseError, MultiplicationOverflowError, ZeroDecimalError

# 28 significant digits with a bounded exponent so that runaway products
# overflow loudly instead of growing without limit.
DECIMAL_CONTEXT = decimal.Context(
    prec=28,
    rounding=decimal.ROUND_HALF_EVEN,
    Emin=-28,
    Emax=28,
    traps=[decimal.InvalidOperation, decimal.DivisionByZero, decimal.Overflow],
)

DecimalLike = Union["NonZeroDecimal", Decimal, int, float, str]


def parse_decimal(text: str) -> Decimal:
    """Parse one exact decimal string such as ``9.760000``."""
    if not text or text != text.strip():
        raise DecimalParseError(f"Not a decimal number: {text!r}")
    try:
        value = Decimal(text)
    except decimal.InvalidOperation as exc:
        raise DecimalParseError(f"Not a decimal number: {text!r}") from exc
    if not value.is_finite():
        raise DecimalParseError(f"Not a finite decimal number: {text!r}")
    return value


def to_decimal(value: DecimalLike) -> Decimal:
    if isinstance(value, NonZeroDecimal):
        return value.value
    if isinstance(value, bool):
        raise DecimalParseError(f"Not a decimal number: {value!r}")
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise DecimalParseError(f"Not a finite decimal number: {value!r}")
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        # repr gives the shortest text that round-trips, not the binary expansion
        return parse_decimal(repr(value))
    if isinstance(value, str):
        return parse_decimal(value)
    raise DecimalParseError(f"Cannot convert {type(value).__name__} to a decimal")


def round_places(value: Decimal, places: int) -> Decimal:
    """Round half-to-even to ``places`` fractional digits."""
    exponent = Decimal(1).scaleb(-places)
    return value.quantize(exponent, context=DECIMAL_CONTEXT)


class NonZeroDecimal:
    """A decimal value that is guaranteed not to be zero."""

    __slots__ = ("_value",)

    def __init__(self, value: DecimalLike) -> None:
        converted = to_decimal(value)
        if converted.is_zero():
            raise ZeroDecimalError(f"Expected a non-zero decimal, got {value!r}")
        self._value = converted

    @property
    def value(self) -> Decimal:
        return self._value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, NonZeroDecimal):
            return self._value == other._value
        if isinstance(other, (Decimal, int)) and not isinstance(other, bool):
            return self._value == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"NonZeroDecimal('{self._value}')"

    def __str__(self) -> str:
        return str(self._value)


def checked_multiply(left: NonZeroDecimal, right: NonZeroDecimal) -> Decimal:
    """Multiply two non-zero decimals, raising instead of saturating on overflow."""
    try:
        return DECIMAL_CONTEXT.multiply(left.value, right.value)
    except decimal.Overflow as exc:
        raise MultiplicationOverflowError(left, right) from exc
