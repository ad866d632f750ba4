from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class Company(models.Model):
    """Issuing company / organization.

    Key principle:
    - Every customer, product and document belongs to a Company (multi-company).
    - Company holds the legal identity printed on documents and the number series
      used when a document is sent.
    """

    class LegalForm(models.TextChoices):
        SAS = "SAS", "SAS"
        SARL = "SARL", "SARL"
        EURL = "EURL", "EURL"
        SASU = "SASU", "SASU"
        SA = "SA", "SA"
        SNC = "SNC", "SNC"
        SOCIETE_CIVILE = "SOCIETE_CIVILE", _("Société civile")
        ENTREPRISE_INDIVIDUELLE = "ENTREPRISE_INDIVIDUELLE", _("Entreprise individuelle")

    name = models.CharField(max_length=255)
    legal_form = models.CharField(max_length=30, choices=LegalForm.choices, blank=True, default="")

    siret = models.CharField(max_length=14, blank=True, default="")
    siren = models.CharField(max_length=9, blank=True, default="")
    tva_intra = models.CharField(max_length=20, blank=True, default="", help_text=_("Intra-community VAT number"))
    vat_applicable = models.BooleanField(default=True)
    rcs_number = models.CharField(max_length=50, blank=True, default="")
    rcs_city = models.CharField(max_length=100, blank=True, default="")
    capital = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    address = models.CharField(max_length=255, blank=True, default="")
    postal_code = models.CharField(max_length=20, blank=True, default="")
    city = models.CharField(max_length=100, blank=True, default="")
    country = models.CharField(max_length=100, default="France")

    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=50, blank=True, default="")
    website = models.URLField(blank=True, default="")

    # Number series used when documents are sent
    series_invoice = models.ForeignKey("core.NumberSeries", null=True, blank=True, on_delete=models.PROTECT, related_name="+")
    series_quote = models.ForeignKey("core.NumberSeries", null=True, blank=True, on_delete=models.PROTECT, related_name="+")

    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name


class UserProfile(models.Model):
    """Connect a user to the Company they currently work for."""
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile")
    company = models.ForeignKey("core.Company", on_delete=models.CASCADE, related_name="users")

    is_company_admin = models.BooleanField(default=False)

    def __str__(self):
        return f"{self.user} @ {self.company}"
