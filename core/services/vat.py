from decimal import Decimal

from core.errors import UnknownVatRate
from core.models.vat import VAT_PERCENTAGES, VatRate


def coerce_vat_rate(rate) -> VatRate:
    """Return the VatRate member for `rate` (member or its stored value).

    Anything else (a percentage, a typo from a JSON payload, None) raises
    UnknownVatRate instead of silently falling back to a default rate.
    """
    try:
        return VatRate(rate)
    except (ValueError, TypeError):
        raise UnknownVatRate(f"Unknown VAT rate {rate!r}.") from None


def vat_rate_to_number(rate) -> Decimal:
    """Percentage for a VAT rate, e.g. STANDARD -> Decimal("20")."""
    return VAT_PERCENTAGES[coerce_vat_rate(rate)]


def vat_amount(net: Decimal, rate) -> Decimal:
    """VAT on a net amount. Not rounded: callers round once, at the end."""
    return net * vat_rate_to_number(rate) / Decimal("100")
