from django.db import models
from django.utils.translation import gettext_lazy as _


class Customer(models.Model):
    """Customer of a company: a private person or a business."""

    class Type(models.TextChoices):
        INDIVIDUAL = "individual", _("Individual")
        COMPANY = "company", _("Company")

    company = models.ForeignKey("core.Company", on_delete=models.CASCADE, related_name="customers")
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.INDIVIDUAL)

    # individual
    first_name = models.CharField(max_length=100, blank=True, default="")
    last_name = models.CharField(max_length=100, blank=True, default="")

    # business
    name = models.CharField(max_length=255, blank=True, default="")
    siret = models.CharField(max_length=14, blank=True, default="")
    tva_intra = models.CharField(max_length=20, blank=True, default="")

    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    address = models.CharField(max_length=255, blank=True, default="")
    postal_code = models.CharField(max_length=20, blank=True, default="")
    city = models.CharField(max_length=100, blank=True, default="")
    country = models.CharField(max_length=100, default="France")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "last_name", "first_name"]

    def __str__(self):
        return self.display_name

    @property
    def display_name(self) -> str:
        if self.type == self.Type.COMPANY:
            return self.name
        return f"{self.first_name} {self.last_name}".strip()
