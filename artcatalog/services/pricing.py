"""Price parsing and bulk price adjustment."""

import re

_PRICE_NOISE_RE = re.compile(r"[$€£,\s]")


def parse_price(value) -> float | None:
    """Parse free-text currency input such as ``"$1,200.50"``.

    Returns ``None`` for empty or unparseable input rather than raising, so a
    sloppy price never blocks recording a sale.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _PRICE_NOISE_RE.sub("", str(value)).strip()
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def adjust_price(price: float | None, mode: str, amount: float) -> float | None:
    """Apply a percentage or fixed adjustment to *price*.

    Works without a price stay without one. The result is rounded to cents
    and floored at zero.
    """
    if price is None:
        return None
    if mode == "percent":
        new_price = price * (1 + amount / 100)
    elif mode == "fixed":
        new_price = price + amount
    else:
        raise ValueError(f"Unknown price adjustment mode: {mode}")
    return max(round(new_price, 2), 0.0)
