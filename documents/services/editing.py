"""Creating, editing and deleting invoices and quotes.

Every mutation checks the status machine first (documents.services.lifecycle),
so a paid or cancelled invoice cannot be edited even when the caller forgot
to hide the action.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction

from core.errors import IllegalTransition, InvalidDocument
from documents.models import Invoice, InvoiceLine, Quote, QuoteLine
from documents.services.lifecycle import Action, ensure_allowed

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    Invoice.kind: frozenset({"issue_date", "due_date", "conditions", "late_payment_penalty"}),
    Quote.kind: frozenset({"issue_date", "validity_date", "conditions", "notes"}),
}

LINE_MODELS = {
    Invoice.kind: InvoiceLine,
    Quote.kind: QuoteLine,
}


def validate_dates(issue_date, secondary_date) -> None:
    """Due/validity date may not be before the issue date."""
    if issue_date and secondary_date and secondary_date < issue_date:
        raise InvalidDocument(f"Date {secondary_date} is before issue date {issue_date}.")


def _add_lines(doc, items):
    line_model = LINE_MODELS[doc.kind]
    for item in items:
        line_model.objects.create(
            **{line_model.document_field: doc},
            name=item.name,
            description=item.description,
            quantity=item.quantity,
            unit=item.unit,
            unit_price_excluding_tax=item.unit_price_excluding_tax,
            vat_rate=item.vat_rate,
            product_id=item.product_id,
        )


@transaction.atomic
def create_invoice(company, customer, *, issue_date, due_date=None, items=(), conditions="",
                   late_payment_penalty="", by=None) -> Invoice:
    """Create a draft invoice with the given LineItems and computed totals."""
    if customer.company_id != company.pk:
        raise InvalidDocument("Customer belongs to another company.")
    if due_date is None:
        due_date = issue_date + timedelta(days=getattr(settings, "INVOICING_DEFAULT_PAYMENT_DAYS", 30))
    validate_dates(issue_date, due_date)

    invoice = Invoice.objects.create(
        company=company,
        customer=customer,
        issue_date=issue_date,
        due_date=due_date,
        conditions=conditions,
        late_payment_penalty=late_payment_penalty,
        created_by=by,
    )
    _add_lines(invoice, items)
    invoice.recalc_totals()
    logger.info("Created invoice %s for customer %s (%s)", invoice.pk, customer.pk, invoice.amount_including_tax)
    return invoice


@transaction.atomic
def create_quote(company, customer, *, issue_date, validity_date=None, items=(), conditions="",
                 notes="", by=None) -> Quote:
    """Create a draft quote with the given LineItems and computed totals."""
    if customer.company_id != company.pk:
        raise InvalidDocument("Customer belongs to another company.")
    if validity_date is None:
        validity_date = issue_date + timedelta(days=getattr(settings, "INVOICING_QUOTE_VALIDITY_DAYS", 30))
    validate_dates(issue_date, validity_date)

    quote = Quote.objects.create(
        company=company,
        customer=customer,
        issue_date=issue_date,
        validity_date=validity_date,
        conditions=conditions,
        notes=notes,
        created_by=by,
    )
    _add_lines(quote, items)
    quote.recalc_totals()
    logger.info("Created quote %s for customer %s (%s)", quote.pk, customer.pk, quote.amount_including_tax)
    return quote


@transaction.atomic
def update_document(doc, changes: dict, *, today):
    """Apply header changes (dates, conditions, notes) to an editable document."""
    ensure_allowed(doc, Action.EDIT, today=today)

    unknown = set(changes) - EDITABLE_FIELDS[doc.kind]
    if unknown:
        raise InvalidDocument(f"Cannot change {', '.join(sorted(unknown))} on a {doc.kind}.")

    for field, value in changes.items():
        setattr(doc, field, value)
    validate_dates(doc.issue_date, doc.secondary_date)

    doc.save(update_fields=[*changes, "updated_at"])
    return doc


@transaction.atomic
def replace_items(doc, items, *, today):
    """Replace all lines of an editable document and recompute its totals."""
    ensure_allowed(doc, Action.EDIT, today=today)
    doc.lines.all().delete()
    _add_lines(doc, items)
    doc.recalc_totals()
    return doc


@transaction.atomic
def delete_document(doc) -> None:
    """Physically delete a draft.

    Anything already sent is a historical record, and an invoice with
    payments is never deleted (Payment.invoice is also PROTECT).
    """
    if doc.status != doc.Status.DRAFT:
        raise IllegalTransition(f"Cannot delete a {doc.status} {doc.kind}.")
    if doc.kind == Invoice.kind and doc.payments.exists():
        raise IllegalTransition("Cannot delete an invoice with recorded payments.")
    logger.info("Deleting %s %s", doc.kind, doc.pk)
    doc.delete()
