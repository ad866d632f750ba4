from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _
from simple_history.models import HistoricalRecords


class Payment(models.Model):
    """Money received against an invoice.

    Payments are append-only: there is no edit or delete path in the
    services, and the invoice FK is PROTECT so an invoice with payments can
    never be deleted underneath them.
    """

    class Method(models.TextChoices):
        CASH = "cash", _("Cash")
        CREDIT_CARD = "credit_card", _("Credit card")
        BANK_TRANSFER = "bank_transfer", _("Bank transfer")

    invoice = models.ForeignKey("documents.Invoice", on_delete=models.PROTECT, related_name="payments")

    amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    payment_date = models.DateField()
    method = models.CharField(max_length=20, choices=Method.choices, default=Method.CREDIT_CARD)

    description = models.CharField(max_length=255, blank=True, default="")
    reference = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.PROTECT, related_name="+")

    history = HistoricalRecords()

    class Meta:
        ordering = ("payment_date", "id")

    def __str__(self):
        return f"{self.amount} ({self.get_method_display()}) on {self.invoice}"
