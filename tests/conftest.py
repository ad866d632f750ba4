import datetime
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from core.models import Company, NumberSeries, UserProfile, VatRate
from documents.services.editing import create_invoice, create_quote
from documents.services.lifecycle import Action, apply_transition
from documents.services.totals import LineItem
from masterdata.models import Customer, Product

TODAY = datetime.date(2024, 3, 15)


def consulting_items():
    """2 x 100.00 at 20 % -> 200.00 / 40.00 / 240.00."""
    return [
        LineItem(
            name="Consulting",
            quantity=Decimal("2"),
            unit_price_excluding_tax=Decimal("100"),
            vat_rate=VatRate.STANDARD,
        )
    ]


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def company(db):
    company = Company.objects.create(name="Atelier Dupont", legal_form=Company.LegalForm.SARL)
    company.series_invoice = NumberSeries.objects.create(company=company, code="INVOICE", prefix="FA-", min_width=4)
    company.series_quote = NumberSeries.objects.create(company=company, code="QUOTE", prefix="DE-", min_width=4)
    company.save()
    return company


@pytest.fixture
def other_company(db):
    return Company.objects.create(name="Concurrent SAS", legal_form=Company.LegalForm.SAS)


@pytest.fixture
def customer(company):
    return Customer.objects.create(company=company, type=Customer.Type.COMPANY, name="Boulangerie Martin")


@pytest.fixture
def product(company):
    return Product.objects.create(
        company=company,
        name="Website maintenance",
        description="Monthly maintenance",
        price_excluding_tax=Decimal("150.00"),
        vat_rate=VatRate.STANDARD,
        unit="mois",
    )


@pytest.fixture
def user(company):
    user = get_user_model().objects.create_user(username="alice", password="secret")
    UserProfile.objects.create(user=user, company=company, is_company_admin=True)
    return user


@pytest.fixture
def api_client(client, user):
    client.force_login(user)
    return client


@pytest.fixture
def make_invoice(company, customer):
    def _make(items=None, issue_date=TODAY, due_date=None):
        return create_invoice(
            company,
            customer,
            issue_date=issue_date,
            due_date=due_date,
            items=consulting_items() if items is None else items,
        )
    return _make


@pytest.fixture
def sent_invoice(make_invoice):
    """Sent 240.00 invoice, due 2024-04-14."""
    invoice = make_invoice()
    return apply_transition(invoice, Action.SEND, today=TODAY)


@pytest.fixture
def make_quote(company, customer):
    def _make(items=None, issue_date=TODAY, validity_date=None):
        return create_quote(
            company,
            customer,
            issue_date=issue_date,
            validity_date=validity_date,
            items=consulting_items() if items is None else items,
        )
    return _make
