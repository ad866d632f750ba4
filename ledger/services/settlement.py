import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from django.db import transaction
from django_fsm import can_proceed

from core.errors import InvalidPayment
from core.services.money import ZERO, fits_money, quantize_money, to_decimal
from documents.models import Invoice
from documents.services.lifecycle import Action, ensure_allowed
from ledger.models import Payment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Balance:
    """Paid / outstanding view of a document.

    `outstanding` is floored at zero; any surplus is kept in `overpaid`
    instead of being discarded, so the caller can decide on a refund or a
    credit note.
    """
    total_paid: Decimal = ZERO
    outstanding: Decimal = ZERO
    overpaid: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "total_paid": str(self.total_paid),
            "outstanding": str(self.outstanding),
            "overpaid": str(self.overpaid),
        }


def _payment_amount(payment) -> Decimal:
    try:
        amount = to_decimal(payment.amount)
    except TypeError:
        raise InvalidPayment(f"Payment amount must be a number, got {payment.amount!r}.") from None
    if amount <= 0:
        raise InvalidPayment(f"Payment amount must be > 0, got {amount}.")
    return amount


def total_paid(payments: Iterable) -> Decimal:
    """Sum of payment amounts (order does not matter). Empty -> 0.00."""
    total = Decimal("0")
    for payment in payments:
        total += _payment_amount(payment)
    return quantize_money(total)


def outstanding(document, payments: Iterable) -> Balance:
    """Balance of `document` given its payments.

    Adding a payment never changes the document total; only the balance is
    recomputed.
    """
    paid = total_paid(payments)
    due = quantize_money(document.amount_including_tax)
    return Balance(
        total_paid=paid,
        outstanding=max(ZERO, due - paid),
        overpaid=max(ZERO, paid - due),
    )


def invoice_balance(invoice) -> Balance:
    return outstanding(invoice, invoice.payments.all())


@transaction.atomic
def sync_invoice_payment_state(invoice, *, by=None):
    """Move the invoice to PAID when payments cover its total.

    Should be called after any payment is recorded.
    """
    if invoice.status in (Invoice.Status.PAID, Invoice.Status.CANCELLED):
        return invoice
    if can_proceed(invoice.mark_paid, check_conditions=True):
        previous = invoice.status
        invoice.mark_paid(by=by)
        invoice.save()
        logger.info("invoice %s: %s -> %s (settled)", invoice.display_no, previous, invoice.status)
    return invoice


@transaction.atomic
def record_payment(invoice, *, amount, payment_date, method=Payment.Method.CREDIT_CARD,
                   description="", reference="", today, by=None) -> Payment:
    """Record a payment and update the invoice status.

    Rules:
    - The invoice must allow `add_payment` (not paid, not cancelled)
    - Amount must be > 0
    - Overpayment is accepted; it shows up as Balance.overpaid

    `payment.invoice` is the re-loaded invoice, with its new status.
    """
    # Lock the invoice row so two payments cannot both see the old balance
    invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
    ensure_allowed(invoice, Action.ADD_PAYMENT, today=today)

    try:
        amount = quantize_money(amount)
    except TypeError:
        raise InvalidPayment(f"Payment amount must be a number, got {amount!r}.") from None
    if amount <= 0:
        raise InvalidPayment(f"Payment amount must be > 0, got {amount}.")
    if not fits_money(amount):
        raise InvalidPayment(f"Payment amount {amount} is too large.")
    if method not in Payment.Method.values:
        raise InvalidPayment(f"Unknown payment method {method!r}.")

    payment = Payment.objects.create(
        invoice=invoice,
        amount=amount,
        payment_date=payment_date,
        method=method,
        description=description,
        reference=reference,
        created_by=by,
    )
    logger.info("Recorded payment %s of %s on invoice %s", payment.pk, payment.amount, invoice.display_no)

    sync_invoice_payment_state(invoice, by=by)
    return payment
