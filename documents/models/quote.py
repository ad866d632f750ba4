from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from django_fsm import FSMField, transition
from django_fsm_log.decorators import fsm_log_by
from simple_history.models import HistoricalRecords

from documents.models.base import BillingDocument, DocumentLine


class Quote(BillingDocument):
    """Quote (devis). "expired" is derived from the validity date, never stored."""

    class Status(models.TextChoices):
        DRAFT = "draft", _("Draft")
        SENT = "sent", _("Sent")
        ACCEPTED = "accepted", _("Accepted")
        REJECTED = "rejected", _("Rejected")

    EXPIRED = "expired"

    kind = "quote"
    number_series_field = "series_quote"

    status = FSMField(default=Status.DRAFT, choices=Status.choices, protected=True, editable=False)

    validity_date = models.DateField()
    notes = models.TextField(blank=True, default="")

    sent_at = models.DateTimeField(null=True, blank=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)

    history = HistoricalRecords()

    class Meta:
        ordering = ("-issue_date", "-id")
        indexes = [
            models.Index(fields=["company", "status", "issue_date"]),
            models.Index(fields=["company", "number"]),
        ]

    @property
    def secondary_date(self):
        return self.validity_date

    @fsm_log_by
    @transition(field=status, source=Status.DRAFT, target=Status.SENT)
    def send(self, by=None):
        self._ensure_lines()
        self._allocate_number_if_missing()
        self.sent_at = timezone.now()

    @fsm_log_by
    @transition(field=status, source=Status.SENT, target=Status.ACCEPTED)
    def mark_accepted(self, by=None):
        self.accepted_at = timezone.now()

    @fsm_log_by
    @transition(field=status, source=Status.SENT, target=Status.REJECTED)
    def mark_rejected(self, by=None):
        self.rejected_at = timezone.now()


class QuoteLine(DocumentLine):
    document_field = "quote"

    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name="lines")

    class Meta(DocumentLine.Meta):
        unique_together = ("quote", "line_no")
