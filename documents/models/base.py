from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from core.errors import InvalidDocument, InvoicingError
from core.models.vat import Unit, VatRate
from core.services.money import fits_money
from documents.services.totals import LineItem, Totals, compute_totals, line_totals


class BillingDocument(models.Model):
    """Fields and helpers shared by invoices and quotes.

    Amounts are derived from the lines (`recalc_totals`) and stored so lists
    and dashboards do not have to aggregate lines. The number is empty while
    the document is a draft; it is allocated from the company's series when
    the document is sent.
    """

    kind = ""
    # Company attribute holding the NumberSeries for this kind of document
    number_series_field = ""

    company = models.ForeignKey("core.Company", on_delete=models.CASCADE, related_name="%(class)ss")
    customer = models.ForeignKey("masterdata.Customer", on_delete=models.PROTECT, related_name="%(class)ss")

    number = models.CharField(max_length=40, blank=True, default="")
    issue_date = models.DateField()
    conditions = models.TextField(blank=True, default="")

    amount_excluding_tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    amount_including_tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.PROTECT, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def __str__(self):
        return f"{self.kind.capitalize()} {self.display_no}"

    @property
    def display_no(self) -> str:
        """Number for UI/printing; drafts show their primary key."""
        return self.number or f"#{self.pk}"

    @property
    def secondary_date(self):
        """Due date for invoices, validity date for quotes."""
        raise NotImplementedError

    @property
    def totals(self) -> Totals:
        return Totals(self.amount_excluding_tax, self.tax, self.amount_including_tax)

    def recalc_totals(self, save=True) -> Totals:
        """Recompute the stored amounts from the lines."""
        totals = compute_totals(self.lines.all())
        if not fits_money(totals.including_tax):
            raise InvalidDocument(f"{self.kind.capitalize()} total {totals.including_tax} is too large.")
        self.amount_excluding_tax = totals.excluding_tax
        self.tax = totals.tax
        self.amount_including_tax = totals.including_tax
        if save:
            # IMPORTANT: never include the protected status field in update_fields
            self.save(update_fields=["amount_excluding_tax", "tax", "amount_including_tax", "updated_at"])
        return totals

    def _ensure_lines(self):
        """Transition precondition: document must have at least one line."""
        if not self.lines.exists():
            raise InvalidDocument(f"{self.kind.capitalize()} has no lines.")

    def _allocate_number_if_missing(self):
        if self.number:
            return
        series = getattr(self.company, self.number_series_field)
        if not series:
            raise InvalidDocument(f"Company missing {self.number_series_field}.")
        self.number = series.allocate(self.issue_date)


class DocumentLine(models.Model):
    """A priced line on an invoice or a quote.

    Concrete subclasses add the FK to their document and set `document_field`
    to its name.
    """

    document_field = ""

    line_no = models.IntegerField(default=0)

    product = models.ForeignKey("masterdata.Product", null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
    name = models.CharField(max_length=255, blank=True, default="")
    description = models.TextField(blank=True, default="")

    quantity = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal("1.000"))
    unit = models.CharField(max_length=20, choices=Unit.choices, default=Unit.UNIT)
    unit_price_excluding_tax = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    vat_rate = models.CharField(max_length=20, choices=VatRate.choices, default=VatRate.ZERO)

    class Meta:
        abstract = True
        ordering = ["line_no"]

    def __str__(self):
        return f"{self.line_no} {self.name}"

    def save(self, *args, **kwargs):
        """Number new lines ERP-style (10, 20, ...) and default the name from the product."""
        if not self.line_no:
            document_id = getattr(self, f"{self.document_field}_id")
            last = (
                type(self).objects
                .filter(**{f"{self.document_field}_id": document_id})
                .order_by("-line_no")
                .values_list("line_no", flat=True)
                .first()
            )
            self.line_no = (last or 0) + 10

        if self.product_id and not self.name:
            self.name = self.product.name
            if not self.description:
                self.description = self.product.description

        super().save(*args, **kwargs)

    def clean(self):
        super().clean()
        if self.product_id and not self.name:
            self.name = self.product.name
        try:
            self.as_line_item()
        except InvoicingError as e:
            raise ValidationError(str(e)) from None

    @property
    def totals(self) -> Totals:
        return line_totals(self).quantized()

    def as_line_item(self) -> LineItem:
        return LineItem(
            name=self.name,
            description=self.description,
            quantity=self.quantity,
            unit_price_excluding_tax=self.unit_price_excluding_tax,
            vat_rate=self.vat_rate,
            unit=self.unit,
            product_id=self.product_id,
        )
