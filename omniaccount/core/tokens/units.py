"""Exact conversions between raw integer amounts and decimal strings."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

from ..errors import InvalidAmount

# Enough digits for any uint256 at any scale.
_PRECISION = 96


def format_units(raw: int, decimals: int) -> str:
    """400000 @ 6 -> "0.4". Never goes through float."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        value = Decimal(raw).scaleb(-decimals)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def parse_units(amount: Union[str, Decimal, int], decimals: int) -> int:
    """"0.3" @ 6 -> 300000. Rejects amounts finer than ``decimals``."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation as exc:
            raise InvalidAmount(amount) from exc
        if not value.is_finite():
            raise InvalidAmount(amount)

        scaled = value.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise InvalidAmount(amount)
        return int(scaled)
