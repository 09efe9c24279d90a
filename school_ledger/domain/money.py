"""Fixed-point money helpers. All amounts are Decimals with two places."""

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from school_ledger.domain.exceptions import InvalidAmountError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(value: Decimal) -> Decimal:
    """Round to cents, half up"""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(raw: Any) -> Decimal:
    """
    Parse a text/number amount into a two-place Decimal.

    Floats go through str() so 0.1 parses as "0.1", not its binary expansion.

    Raises:
        InvalidAmountError: On empty, non-numeric, NaN or infinite input
    """
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, bool) or raw is None:
        raise InvalidAmountError(f"Invalid amount: {raw!r}")
    else:
        text = str(raw).strip().replace(",", "")
        if not text:
            raise InvalidAmountError("Invalid amount: empty")
        try:
            value = Decimal(text)
        except InvalidOperation as e:
            raise InvalidAmountError(f"Invalid amount: {raw!r}") from e

    if not value.is_finite():
        raise InvalidAmountError(f"Invalid amount: {raw!r}")

    return quantize(value)


def safe_amount(raw: Any) -> Decimal:
    """Parse an amount for summing; malformed input contributes zero"""
    try:
        return parse_amount(raw)
    except InvalidAmountError:
        logging.warning("Malformed amount treated as zero", extra={"raw_amount": repr(raw)})
        return ZERO


def format_amount(value: Decimal) -> str:
    """Render as plain two-decimal text, e.g. '1234.50'"""
    return f"{quantize(value):.2f}"
