from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from django_fsm import FSMField, transition
from django_fsm_log.decorators import fsm_log_by
from simple_history.models import HistoricalRecords

from documents.models.base import BillingDocument, DocumentLine


def is_settled(invoice) -> bool:
    """FSM condition: payments cover the invoice total."""
    from ledger.services.settlement import invoice_balance
    return invoice_balance(invoice).outstanding == 0


class Invoice(BillingDocument):
    """Sales invoice with state machine.

    Stored states are draft/sent/paid/cancelled. "late" is never stored:
    it is derived at read time from the due date (see
    documents.services.lifecycle.effective_status).
    """

    class Status(models.TextChoices):
        DRAFT = "draft", _("Draft")
        SENT = "sent", _("Sent")
        PAID = "paid", _("Paid")
        CANCELLED = "cancelled", _("Cancelled")

    LATE = "late"

    kind = "invoice"
    number_series_field = "series_invoice"

    status = FSMField(default=Status.DRAFT, choices=Status.choices, protected=True, editable=False)

    due_date = models.DateField()
    late_payment_penalty = models.TextField(blank=True, default="")

    sent_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    history = HistoricalRecords()

    class Meta:
        ordering = ("-issue_date", "-id")
        indexes = [
            models.Index(fields=["company", "status", "issue_date"]),
            models.Index(fields=["company", "number"]),
        ]

    @property
    def secondary_date(self):
        return self.due_date

    @fsm_log_by
    @transition(field=status, source=Status.DRAFT, target=Status.SENT)
    def send(self, by=None):
        """Issue the invoice: it must have lines, and gets its number now."""
        self._ensure_lines()
        self._allocate_number_if_missing()
        self.sent_at = timezone.now()

    @fsm_log_by
    @transition(field=status, source=[Status.DRAFT, Status.SENT], target=Status.CANCELLED)
    def cancel(self, by=None):
        self.cancelled_at = timezone.now()

    @fsm_log_by
    @transition(field=status, source=[Status.DRAFT, Status.SENT], target=Status.PAID, conditions=[is_settled])
    def mark_paid(self, by=None):
        self.paid_at = timezone.now()


class InvoiceLine(DocumentLine):
    document_field = "invoice"

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="lines")

    class Meta(DocumentLine.Meta):
        unique_together = ("invoice", "line_no")
