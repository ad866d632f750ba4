from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class VatRate(models.TextChoices):
    """Closed set of VAT rates a line can carry.

    The stored value is the rate *name*, not the percentage, so that a rate
    change never rewrites historical documents silently.
    """

    ZERO = "ZERO", _("0 %")
    REDUCED = "REDUCED", _("5,5 %")
    INTERMEDIATE = "INTERMEDIATE", _("10 %")
    STANDARD = "STANDARD", _("20 %")


# Percentage per rate (20 means 20 %). Must cover every VatRate member.
VAT_PERCENTAGES = {
    VatRate.ZERO: Decimal("0"),
    VatRate.REDUCED: Decimal("5.5"),
    VatRate.INTERMEDIATE: Decimal("10"),
    VatRate.STANDARD: Decimal("20"),
}


class Unit(models.TextChoices):
    """Units a product or a line can be sold in."""

    UNIT = "unite", _("Unit")
    HOUR = "heure", _("Hour")
    DAY = "jour", _("Day")
    MONTH = "mois", _("Month")
    KILOGRAM = "kg", _("Kilogram")
    METRE = "m", _("Metre")
    SQUARE_METRE = "m2", _("Square metre")
    FLAT_RATE = "forfait", _("Flat rate")
