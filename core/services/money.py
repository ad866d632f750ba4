"""Decimal helpers and display formatting for amounts and percentages.

Amounts are Decimals end to end. Rounding to cents happens once, when a
total is produced or displayed (`quantize_money`), never between the
intermediate multiplications.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.utils import numberformat

from core.services.vat import vat_rate_to_number

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# DecimalField(max_digits=14, decimal_places=2) used for every stored amount
MONEY_MAX_DIGITS = 14
MONEY_DECIMAL_PLACES = 2


def to_decimal(value) -> Decimal:
    """Convert JSON-ish input (str, int, float, Decimal) to Decimal.

    Floats go through str() so that 0.1 becomes Decimal("0.1") and not the
    binary approximation.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise TypeError(f"Cannot use {value!r} as an amount.")
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise TypeError(f"Cannot use {value!r} as an amount.") from None
    if not result.is_finite():
        raise TypeError(f"Cannot use {value!r} as an amount.")
    return result


def quantize_money(value) -> Decimal:
    """Round to cents, half up (the way amounts are printed on invoices)."""
    value = to_decimal(value)
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise TypeError(f"{value} is too large for an amount.") from None


def decimal_places(value: Decimal) -> int:
    """Significant decimal places: Decimal("1.250") -> 2, Decimal("100") -> 0."""
    _sign, digits, exponent = value.as_tuple()
    if exponent >= 0 or not any(digits):
        return 0
    trailing_zeros = len(digits) - len("".join(map(str, digits)).rstrip("0"))
    return max(0, -exponent - trailing_zeros)


def fits_field(value: Decimal, max_digits: int, places: int) -> bool:
    """True when `value` is stored unchanged in DecimalField(max_digits, places)."""
    return decimal_places(value) <= places and abs(value) < Decimal(10) ** (max_digits - places)


def fits_money(value: Decimal) -> bool:
    return fits_field(value, MONEY_MAX_DIGITS, MONEY_DECIMAL_PLACES)


def _format_number(value: Decimal, decimal_pos: int) -> str:
    return numberformat.format(
        value,
        getattr(settings, "INVOICING_DECIMAL_SEPARATOR", ","),
        decimal_pos=decimal_pos,
        grouping=3,
        thousand_sep=getattr(settings, "INVOICING_THOUSAND_SEPARATOR", " "),
        force_grouping=True,
    )


def format_currency(amount) -> str:
    """Display an amount: Decimal("1234.5") -> "1 234,50 €"."""
    symbol = getattr(settings, "INVOICING_CURRENCY_SYMBOL", "€")
    return f"{_format_number(quantize_money(amount), 2)} {symbol}"


def format_percent(rate) -> str:
    """Display a VAT rate or a plain percentage: STANDARD -> "20,0 %"."""
    # VatRate members are str, plain numbers are percentages already
    if isinstance(rate, str):
        value = vat_rate_to_number(rate)
    else:
        value = to_decimal(rate)
    value = value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{_format_number(value, 1)} %"
