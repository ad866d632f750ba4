import datetime
from types import SimpleNamespace

import pytest

from core.errors import IllegalTransition, InvalidDocument
from documents.models import Invoice, Quote
from documents.services.editing import update_document
from documents.services.lifecycle import (
    Action,
    allowed_actions,
    apply_transition,
    can_apply,
    effective_status,
    ensure_allowed,
    is_terminal,
)

from .conftest import TODAY

DAY = datetime.timedelta(days=1)


def invoice(status, due_date=TODAY):
    return SimpleNamespace(kind=Invoice.kind, status=status, due_date=due_date)


def quote(status, validity_date=TODAY):
    return SimpleNamespace(kind=Quote.kind, status=status, validity_date=validity_date)


class TestInvoiceActions:
    def test_draft(self):
        assert allowed_actions(invoice("draft"), today=TODAY) == {
            Action.EDIT, Action.ADD_PAYMENT, Action.SEND, Action.CANCEL,
        }

    def test_sent(self):
        assert allowed_actions(invoice("sent"), today=TODAY) == {Action.ADD_PAYMENT, Action.CANCEL}

    @pytest.mark.parametrize("status", ["paid", "cancelled"])
    def test_terminal(self, status):
        doc = invoice(status)
        assert allowed_actions(doc, today=TODAY) == set()
        assert is_terminal(doc, today=TODAY)

    def test_late_is_derived(self):
        doc = invoice("sent", due_date=TODAY - DAY)
        assert effective_status(doc, today=TODAY) == Invoice.LATE
        assert allowed_actions(doc, today=TODAY) == {Action.ADD_PAYMENT, Action.CANCEL}
        assert doc.status == "sent"

    def test_not_late_on_due_date(self):
        assert effective_status(invoice("sent", due_date=TODAY), today=TODAY) == "sent"

    def test_draft_is_never_late(self):
        assert effective_status(invoice("draft", due_date=TODAY - DAY), today=TODAY) == "draft"

    def test_edit_paid_invoice(self):
        with pytest.raises(IllegalTransition, match="Cannot edit a paid invoice."):
            ensure_allowed(invoice("paid"), Action.EDIT, today=TODAY)

    def test_unknown_action(self):
        with pytest.raises(IllegalTransition):
            ensure_allowed(invoice("draft"), "archive", today=TODAY)
        assert not can_apply(invoice("draft"), "archive", today=TODAY)

    def test_unknown_status(self):
        with pytest.raises(IllegalTransition):
            allowed_actions(invoice("archived"), today=TODAY)


class TestQuoteActions:
    def test_draft(self):
        assert allowed_actions(quote("draft"), today=TODAY) == {Action.EDIT, Action.SEND}

    def test_sent(self):
        assert allowed_actions(quote("sent"), today=TODAY) == {Action.MARK_ACCEPTED, Action.MARK_REJECTED}

    def test_expired_is_derived_and_terminal(self):
        doc = quote("sent", validity_date=TODAY - DAY)
        assert effective_status(doc, today=TODAY) == Quote.EXPIRED
        assert is_terminal(doc, today=TODAY)
        assert doc.status == "sent"

    @pytest.mark.parametrize("status", ["accepted", "rejected"])
    def test_terminal(self, status):
        assert is_terminal(quote(status), today=TODAY)

    def test_quotes_take_no_payments(self):
        assert not can_apply(quote("draft"), Action.ADD_PAYMENT, today=TODAY)


@pytest.mark.django_db
class TestInvoiceTransitions:
    def test_send_allocates_number(self, make_invoice):
        first = make_invoice()
        second = make_invoice()
        assert first.number == ""

        apply_transition(first, Action.SEND, today=TODAY)
        apply_transition(second, Action.SEND, today=TODAY)

        first = Invoice.objects.get(pk=first.pk)
        assert first.status == Invoice.Status.SENT
        assert first.number == "FA-0001"
        assert first.sent_at is not None
        assert Invoice.objects.get(pk=second.pk).number == "FA-0002"

    def test_edit_after_send(self, sent_invoice):
        with pytest.raises(IllegalTransition):
            update_document(sent_invoice, {"conditions": "Net 15"}, today=TODAY)

    def test_send_without_lines(self, make_invoice):
        doc = make_invoice(items=[])
        with pytest.raises(InvalidDocument):
            apply_transition(doc, Action.SEND, today=TODAY)
        doc = Invoice.objects.get(pk=doc.pk)
        assert doc.status == Invoice.Status.DRAFT
        assert doc.number == ""

    def test_send_without_number_series(self, make_invoice, company):
        company.series_invoice = None
        company.save()
        doc = make_invoice()
        with pytest.raises(InvalidDocument):
            apply_transition(doc, Action.SEND, today=TODAY)

    def test_cancel(self, sent_invoice):
        apply_transition(sent_invoice, Action.CANCEL, today=TODAY)
        doc = Invoice.objects.get(pk=sent_invoice.pk)
        assert doc.status == Invoice.Status.CANCELLED
        assert doc.cancelled_at is not None

        with pytest.raises(IllegalTransition):
            apply_transition(doc, Action.CANCEL, today=TODAY)

    def test_send_twice(self, sent_invoice):
        with pytest.raises(IllegalTransition):
            apply_transition(sent_invoice, Action.SEND, today=TODAY)

    def test_edit_is_a_check_only(self, make_invoice):
        doc = make_invoice()
        assert apply_transition(doc, Action.EDIT, today=TODAY) is doc
        assert doc.status == Invoice.Status.DRAFT


@pytest.mark.django_db
class TestQuoteTransitions:
    def test_send_then_accept(self, make_quote):
        doc = make_quote()
        apply_transition(doc, Action.SEND, today=TODAY)
        assert doc.number == "DE-0001"

        apply_transition(doc, Action.MARK_ACCEPTED, today=TODAY)
        doc = Quote.objects.get(pk=doc.pk)
        assert doc.status == Quote.Status.ACCEPTED
        assert doc.accepted_at is not None

        with pytest.raises(IllegalTransition):
            apply_transition(doc, Action.MARK_REJECTED, today=TODAY)

    def test_reject(self, make_quote):
        doc = apply_transition(make_quote(), Action.SEND, today=TODAY)
        apply_transition(doc, Action.MARK_REJECTED, today=TODAY)
        assert Quote.objects.get(pk=doc.pk).status == Quote.Status.REJECTED

    def test_accept_expired_quote(self, make_quote):
        doc = apply_transition(make_quote(), Action.SEND, today=TODAY)
        later = doc.validity_date + DAY
        with pytest.raises(IllegalTransition, match="expired"):
            apply_transition(doc, Action.MARK_ACCEPTED, today=later)
        assert Quote.objects.get(pk=doc.pk).status == Quote.Status.SENT

    def test_accept_draft(self, make_quote):
        with pytest.raises(IllegalTransition):
            apply_transition(make_quote(), Action.MARK_ACCEPTED, today=TODAY)
