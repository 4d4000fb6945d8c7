"""Decimal quantity helpers: step-size flattening and locale-free formatting.

Everything here works on ``Decimal`` so that amounts read from a venue as
strings are rounded without binary float drift.
"""
from __future__ import annotations
from decimal import Decimal, ROUND_FLOOR, localcontext
from typing import Union

from core.errors import GatewayConfigError

Number = Union[Decimal, str, int]


def _dec(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def precision_from_step(step: Number) -> int:
    """Digits after the decimal point implied by a power-of-ten step.

    ``0.001 -> 3``, ``1 -> 0``, ``10 -> -1``. Raises for steps such as ``0.5``
    or ``0.0025`` that are not a power of ten.
    """
    step = _dec(step)
    if step <= 0:
        raise GatewayConfigError(f"Step size must be positive, got {step}")
    normalized = step.normalize()
    if normalized.as_tuple().digits != (1,):
        raise GatewayConfigError(f"Step size {step} is not a power of ten")
    return -normalized.adjusted()


def step_from_precision(digits: int) -> Decimal:
    return Decimal(1).scaleb(-int(digits))


def flatten(amount: Number, step_size: Number, steps_down: int = 0) -> Decimal:
    """Round ``amount`` down to a multiple of ``step_size``.

    ``steps_down`` subtracts that many extra steps first, which is how a
    rejected order gets re-sized just below the previous attempt.
    """
    amount = _dec(amount)
    step = _dec(step_size)
    digits = precision_from_step(step)
    # enough precision to hold every digit from the integer part down to the step
    width = (max(amount.adjusted(), 0) + max(digits, -amount.as_tuple().exponent, 0)
             + len(str(abs(steps_down))) + 2)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, width)
        shifted = (amount - steps_down * step).scaleb(digits)
        floored = shifted.to_integral_value(rounding=ROUND_FLOOR)
        return floored.scaleb(-digits)


def fmt_decimal(value: Number) -> str:
    """Plain decimal text: no exponent, no trailing zeros."""
    value = _dec(value)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("", "-0"):
        return "0"
    return text
