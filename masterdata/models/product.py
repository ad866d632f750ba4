from decimal import Decimal

from django.db import models

from core.models.vat import Unit, VatRate


class Product(models.Model):
    """Catalogue entry used to prefill invoice and quote lines."""
    company = models.ForeignKey("core.Company", on_delete=models.CASCADE, related_name="products")

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")

    price_excluding_tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    vat_rate = models.CharField(max_length=20, choices=VatRate.choices, default=VatRate.ZERO)
    unit = models.CharField(max_length=20, choices=Unit.choices, default=Unit.UNIT)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name
