from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import time

from django.conf import settings


def to_decimal(value) -> Decimal:
    try:
        return Decimal(str(value if value is not None else 0))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def format_price(amount, currency_code: str = "") -> str:
    """'AED 129.90' - code first, two decimals; empty amounts render as 0."""
    code = (currency_code or getattr(settings, "DEFAULT_CURRENCY", "") or "").upper()
    value = to_decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if not value:
        return f"{code} 0.00".strip()
    return f"{code} {value:,.2f}".strip()


def copy_suffix() -> str:
    # millisecond stamp used for duplicated sku/slug/code values
    return str(int(time.time() * 1000))


def title_status(status: str) -> str:
    return (status or "")[:1].upper() + (status or "")[1:]
