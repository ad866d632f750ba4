import datetime
from decimal import Decimal

import pytest

from core.errors import IllegalTransition, InvalidDocument
from core.models import VatRate
from documents.models import Invoice, InvoiceLine, Quote
from documents.services.editing import create_invoice, delete_document, replace_items, update_document
from documents.services.totals import LineItem
from ledger.services.settlement import record_payment
from masterdata.models import Customer

from .conftest import TODAY

pytestmark = pytest.mark.django_db


class TestCreate:
    def test_invoice_totals_and_lines(self, make_invoice):
        doc = make_invoice(items=[
            LineItem(name="Design", quantity="2", unit_price_excluding_tax="100", vat_rate=VatRate.STANDARD),
            LineItem(name="Hosting", quantity="1", unit_price_excluding_tax="50", vat_rate=VatRate.INTERMEDIATE),
        ])
        doc = Invoice.objects.get(pk=doc.pk)
        assert doc.status == Invoice.Status.DRAFT
        assert doc.amount_excluding_tax == Decimal("250.00")
        assert doc.tax == Decimal("45.00")
        assert doc.amount_including_tax == Decimal("295.00")
        assert [line.line_no for line in doc.lines.all()] == [10, 20]

    def test_default_due_date(self, make_invoice):
        assert make_invoice().due_date == TODAY + datetime.timedelta(days=30)

    def test_due_date_before_issue_date(self, make_invoice):
        with pytest.raises(InvalidDocument):
            make_invoice(due_date=TODAY - datetime.timedelta(days=1))
        assert not Invoice.objects.exists()

    def test_customer_of_another_company(self, company, other_company):
        stranger = Customer.objects.create(company=other_company, first_name="Paul", last_name="Durand")
        with pytest.raises(InvalidDocument):
            create_invoice(company, stranger, issue_date=TODAY)

    def test_quote_default_validity(self, make_quote):
        doc = make_quote()
        assert doc.validity_date == TODAY + datetime.timedelta(days=30)
        assert doc.amount_including_tax == Decimal("240.00")

    def test_line_name_defaults_to_product(self, make_invoice, product):
        doc = make_invoice(items=[])
        line = InvoiceLine.objects.create(invoice=doc, product=product, quantity=Decimal("1"),
                                          unit_price_excluding_tax=product.price_excluding_tax)
        assert line.name == "Website maintenance"
        assert line.description == "Monthly maintenance"


class TestUpdate:
    def test_update_header(self, make_invoice):
        doc = make_invoice()
        update_document(doc, {"conditions": "Net 15", "due_date": TODAY + datetime.timedelta(days=15)}, today=TODAY)
        doc = Invoice.objects.get(pk=doc.pk)
        assert doc.conditions == "Net 15"
        assert doc.due_date == datetime.date(2024, 3, 30)

    def test_unknown_field(self, make_invoice):
        with pytest.raises(InvalidDocument):
            update_document(make_invoice(), {"number": "FA-9999"}, today=TODAY)

    def test_quote_fields(self, make_quote):
        doc = make_quote()
        update_document(doc, {"notes": "Valid for the spring works"}, today=TODAY)
        assert Quote.objects.get(pk=doc.pk).notes == "Valid for the spring works"
        with pytest.raises(InvalidDocument):
            update_document(doc, {"due_date": TODAY}, today=TODAY)

    def test_replace_items_recomputes_totals(self, make_invoice):
        doc = make_invoice()
        replace_items(doc, [LineItem(name="Audit", quantity="1", unit_price_excluding_tax="1000")], today=TODAY)
        doc = Invoice.objects.get(pk=doc.pk)
        assert doc.lines.count() == 1
        assert doc.amount_including_tax == Decimal("1000.00")

    def test_replace_items_on_sent_invoice(self, sent_invoice):
        with pytest.raises(IllegalTransition):
            replace_items(sent_invoice, [], today=TODAY)
        assert sent_invoice.lines.count() == 1


class TestDelete:
    def test_delete_draft(self, make_invoice):
        doc = make_invoice()
        delete_document(doc)
        assert not Invoice.objects.exists()
        assert not InvoiceLine.objects.exists()

    def test_sent_invoice_is_kept(self, sent_invoice):
        with pytest.raises(IllegalTransition):
            delete_document(sent_invoice)
        assert Invoice.objects.filter(pk=sent_invoice.pk).exists()

    def test_draft_with_payments_is_kept(self, make_invoice):
        doc = make_invoice()
        record_payment(doc, amount="50", payment_date=TODAY, today=TODAY)
        doc = Invoice.objects.get(pk=doc.pk)
        with pytest.raises(IllegalTransition):
            delete_document(doc)

    def test_delete_draft_quote(self, make_quote):
        delete_document(make_quote())
        assert not Quote.objects.exists()
