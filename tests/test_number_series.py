import datetime

import pytest

from core.errors import InvalidDocument
from core.models import NumberSeries
from documents.models import Invoice
from documents.services.lifecycle import Action, apply_transition

pytestmark = pytest.mark.django_db


@pytest.fixture
def yearly(company):
    return NumberSeries.objects.create(
        company=company, code="YEARLY", prefix="FA-{year}-", min_width=3, yearly_reset=True,
    )


def test_sequential_numbers(company):
    series = company.series_invoice
    day = datetime.date(2024, 3, 15)
    assert [series.allocate(day) for _ in range(3)] == ["FA-0001", "FA-0002", "FA-0003"]
    assert NumberSeries.objects.get(pk=series.pk).next_number == 4


def test_year_in_prefix_and_yearly_reset(yearly):
    assert yearly.allocate(datetime.date(2024, 12, 30)) == "FA-2024-001"
    assert yearly.allocate(datetime.date(2024, 12, 31)) == "FA-2024-002"
    assert yearly.allocate(datetime.date(2025, 1, 2)) == "FA-2025-001"
    assert NumberSeries.objects.get(pk=yearly.pk).current_year == 2025


def test_previous_year_is_closed_after_reset(yearly):
    issued = [yearly.allocate(datetime.date(2024, 12, day)) for day in (28, 29, 30)]
    issued.append(yearly.allocate(datetime.date(2025, 1, 2)))

    with pytest.raises(InvalidDocument):
        yearly.allocate(datetime.date(2024, 12, 31))

    issued.append(yearly.allocate(datetime.date(2025, 1, 3)))
    assert issued == ["FA-2024-001", "FA-2024-002", "FA-2024-003", "FA-2025-001", "FA-2025-002"]
    assert len(set(issued)) == len(issued)


def test_backdated_invoice_stays_draft(company, yearly, make_invoice):
    company.series_invoice = yearly
    company.save()
    apply_transition(make_invoice(issue_date=datetime.date(2025, 1, 2)), Action.SEND, today=datetime.date(2025, 1, 2))

    late_entry = make_invoice(issue_date=datetime.date(2024, 12, 31))
    with pytest.raises(InvalidDocument):
        apply_transition(late_entry, Action.SEND, today=datetime.date(2025, 1, 3))

    stored = Invoice.objects.get(pk=late_entry.pk)
    assert stored.status == Invoice.Status.DRAFT
    assert stored.number == ""


def test_without_yearly_reset_the_counter_continues(company):
    series = NumberSeries.objects.create(company=company, code="CONT", prefix="Q", min_width=2)
    assert series.allocate(datetime.date(2024, 12, 31)) == "Q01"
    assert series.allocate(datetime.date(2025, 1, 1)) == "Q02"
    assert series.allocate(datetime.date(2024, 12, 30)) == "Q03"
