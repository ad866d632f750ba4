import dataclasses
import logging

from django.contrib.auth.decorators import login_required
from django.db import transaction
from django.db.models import Q
from django.http import HttpResponse, JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from core.api import company_api, paginate, parse_date_field, parse_json_body
from core.errors import IllegalTransition, InvalidDocument, InvalidLineItem
from core.services.money import format_currency, to_decimal
from core.services.vat import vat_rate_to_number
from documents.models import Invoice, Quote
from documents.services import editing
from documents.services.lifecycle import Action, allowed_actions, apply_transition, effective_status, is_terminal
from documents.services.totals import LineItem, vat_breakdown
from ledger.api_views import payment_to_dict
from ledger.services.settlement import invoice_balance
from masterdata.models import Customer, Product

logger = logging.getLogger(__name__)

# Target status accepted by PUT {"status": ...}, mapped to the user action
STATUS_ACTIONS = {
    Invoice.kind: {
        Invoice.Status.SENT: Action.SEND,
        Invoice.Status.CANCELLED: Action.CANCEL,
    },
    Quote.kind: {
        Quote.Status.SENT: Action.SEND,
        Quote.Status.ACCEPTED: Action.MARK_ACCEPTED,
        Quote.Status.REJECTED: Action.MARK_REJECTED,
    },
}

# Line fields taken from the product when the payload leaves them empty
PRODUCT_DEFAULTS = {
    "name": "name",
    "description": "description",
    "unit_price_excluding_tax": "price_excluding_tax",
    "vat_rate": "vat_rate",
    "unit": "unit",
}


def _line_to_dict(line):
    return {
        "id": line.id,
        "line_no": line.line_no,
        "product_id": line.product_id,
        "name": line.name,
        "description": line.description,
        "quantity": str(line.quantity),
        "unit": line.unit,
        "unit_price_excluding_tax": str(line.unit_price_excluding_tax),
        "vat_rate": line.vat_rate,
        "vat_percent": str(vat_rate_to_number(line.vat_rate)),
        **line.totals.to_dict(),
    }


def document_to_dict(doc, *, today, detail=False):
    """JSON view of an invoice or quote; `detail` adds lines (and payments)."""
    totals = doc.totals
    data = {
        "id": doc.id,
        "kind": doc.kind,
        "number": doc.number,
        "display_no": doc.display_no,
        "status": doc.status,
        "effective_status": effective_status(doc, today=today),
        "allowed_actions": sorted(action.value for action in allowed_actions(doc, today=today)),
        "is_terminal": is_terminal(doc, today=today),
        "customer_id": doc.customer_id,
        "customer_name": doc.customer.display_name,
        "issue_date": doc.issue_date.isoformat(),
        "conditions": doc.conditions,
        **totals.to_dict(),
        "amount_including_tax_display": format_currency(totals.including_tax),
    }

    if doc.kind == Invoice.kind:
        data["due_date"] = doc.due_date.isoformat()
        data["late_payment_penalty"] = doc.late_payment_penalty
        data["balance"] = invoice_balance(doc).to_dict()
    else:
        data["validity_date"] = doc.validity_date.isoformat()
        data["notes"] = doc.notes

    if detail:
        lines = list(doc.lines.all())
        data["items"] = [_line_to_dict(line) for line in lines]
        data["vat_breakdown"] = [
            {"vat_rate": rate.value, "vat_percent": str(vat_rate_to_number(rate)), **rate_totals.to_dict()}
            for rate, rate_totals in vat_breakdown(lines).items()
        ]
        if doc.kind == Invoice.kind:
            data["payments"] = [payment_to_dict(p) for p in doc.payments.all()]
    return data


def _get_customer(company, customer_id):
    if customer_id in (None, ""):
        raise InvalidDocument("customer_id is required.")
    try:
        return Customer.objects.get(pk=customer_id, company=company)
    except (Customer.DoesNotExist, ValueError, TypeError):
        raise InvalidDocument(f"Unknown customer {customer_id!r}.") from None


def _get_product(company, product_id):
    try:
        return Product.objects.get(pk=product_id, company=company)
    except (Product.DoesNotExist, ValueError, TypeError):
        raise InvalidLineItem(f"Unknown product {product_id!r}.") from None


def _items_from_payload(company, raw_items):
    """Build LineItems from the "items" list of a request body.

    A line with a product_id is prefilled from the product; a line with
    "save_as_product": true creates the product first.
    """
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise InvalidLineItem("items must be a list.")

    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise InvalidLineItem("Each item must be an object.")
        data = dict(raw)
        save_as_product = bool(data.pop("save_as_product", False))

        if data.get("product_id"):
            product = _get_product(company, data["product_id"])
            for field, product_field in PRODUCT_DEFAULTS.items():
                if data.get(field) in (None, ""):
                    data[field] = getattr(product, product_field)
            data["product_id"] = product.id

        item = LineItem.from_dict(data)

        if save_as_product and item.product_id is None:
            product = Product.objects.create(
                company=company,
                name=item.name,
                description=item.description,
                price_excluding_tax=item.unit_price_excluding_tax,
                vat_rate=item.vat_rate,
                unit=item.unit,
            )
            logger.info("Saved line %r as product %s", item.name, product.id)
            item = dataclasses.replace(item, product_id=product.id)

        items.append(item)
    return items


def _header_from_payload(kind, data):
    """Editable header fields of the payload, with dates parsed."""
    unknown = set(data) - editing.EDITABLE_FIELDS[kind]
    if unknown:
        raise InvalidDocument(f"Cannot set {', '.join(sorted(unknown))} on a {kind}.")

    header = {}
    for field, value in data.items():
        if field.endswith("_date"):
            header[field] = parse_date_field(data, field, required=True)
        else:
            header[field] = "" if value is None else str(value)
    return header


def _status_action(doc, status):
    try:
        return STATUS_ACTIONS[doc.kind][status]
    except KeyError:
        raise IllegalTransition(f"Cannot set a {doc.kind} to {status!r}.") from None


def _filter_status(qs, model, status, today):
    """Filter on the effective status, so "sent" excludes late/expired documents."""
    date_field = "due_date" if model is Invoice else "validity_date"
    derived = Invoice.LATE if model is Invoice else Quote.EXPIRED
    overdue = {f"{date_field}__lt": today}

    if status == derived:
        return qs.filter(status=model.Status.SENT, **overdue)
    if status not in model.Status.values:
        raise InvalidDocument(f"Unknown {model.kind} status {status!r}.")
    qs = qs.filter(status=status)
    if status == model.Status.SENT:
        qs = qs.exclude(**overdue)
    return qs


def _amount_param(params, name):
    value = params.get(name)
    if not value:
        return None
    try:
        return to_decimal(value)
    except TypeError:
        raise InvalidDocument(f"{name} must be a number, got {value!r}.") from None


def _sort_fields(model):
    date_field = "due_date" if model is Invoice else "validity_date"
    return {"issue_date", date_field, "amount_including_tax", "status", "number"}


def _list_documents(request, company, model):
    """Paginated list.

    Query parameters: status (effective), customer_id, search (number or
    customer name), start_date / end_date (issue date, inclusive),
    min_amount / max_amount (total incl. tax), sort_by, sort_order (asc|desc).
    """
    today = timezone.localdate()
    params = request.GET
    qs = model.objects.filter(company=company).select_related("customer")

    status = params.get("status")
    if status:
        qs = _filter_status(qs, model, status, today)
    customer_id = params.get("customer_id")
    if customer_id:
        if not customer_id.isdigit():
            raise InvalidDocument("customer_id must be an integer.")
        qs = qs.filter(customer_id=int(customer_id))

    search = (params.get("search") or "").strip()
    if search:
        qs = qs.filter(
            Q(number__icontains=search)
            | Q(customer__name__icontains=search)
            | Q(customer__last_name__icontains=search)
            | Q(customer__first_name__icontains=search)
        )

    start_date = parse_date_field(params, "start_date")
    if start_date:
        qs = qs.filter(issue_date__gte=start_date)
    end_date = parse_date_field(params, "end_date")
    if end_date:
        qs = qs.filter(issue_date__lte=end_date)

    min_amount = _amount_param(params, "min_amount")
    if min_amount is not None:
        qs = qs.filter(amount_including_tax__gte=min_amount)
    max_amount = _amount_param(params, "max_amount")
    if max_amount is not None:
        qs = qs.filter(amount_including_tax__lte=max_amount)

    sort_by = params.get("sort_by")
    if sort_by:
        if sort_by not in _sort_fields(model):
            raise InvalidDocument(f"Cannot sort {model.kind}s by {sort_by!r}.")
        sort_order = (params.get("sort_order") or "desc").lower()
        if sort_order not in ("asc", "desc"):
            raise InvalidDocument("sort_order must be asc or desc.")
        prefix = "-" if sort_order == "desc" else ""
        qs = qs.order_by(f"{prefix}{sort_by}", f"{prefix}id")

    return JsonResponse(paginate(request, qs, lambda doc: document_to_dict(doc, today=today)))


def _create_document(request, company, model):
    data = parse_json_body(request)
    today = timezone.localdate()

    customer = _get_customer(company, data.pop("customer_id", None))
    raw_items = data.pop("items", None)
    header = _header_from_payload(model.kind, data)
    header.setdefault("issue_date", today)

    with transaction.atomic():
        items = _items_from_payload(company, raw_items)
        if model is Invoice:
            doc = editing.create_invoice(company, customer, items=items, by=request.user, **header)
        else:
            doc = editing.create_quote(company, customer, items=items, by=request.user, **header)

    return JsonResponse(document_to_dict(doc, today=today, detail=True), status=201)


def _update_document(request, company, doc):
    data = parse_json_body(request)
    today = timezone.localdate()

    has_items = "items" in data
    raw_items = data.pop("items", None)
    status = data.pop("status", None)

    with transaction.atomic():
        if data:
            editing.update_document(doc, _header_from_payload(doc.kind, data), today=today)
        if has_items:
            editing.replace_items(doc, _items_from_payload(company, raw_items), today=today)
        if status is not None and status != doc.status:
            apply_transition(doc, _status_action(doc, status), today=today, by=request.user)

    return JsonResponse(document_to_dict(doc, today=today, detail=True))


def _document_detail(request, company, model, pk):
    doc = model.objects.select_related("customer").get(pk=pk, company=company)
    if request.method == "PUT":
        return _update_document(request, company, doc)
    if request.method == "DELETE":
        editing.delete_document(doc)
        return HttpResponse(status=204)
    return JsonResponse(document_to_dict(doc, today=timezone.localdate(), detail=True))


def _document_action(request, company, model, pk, action):
    today = timezone.localdate()
    doc = model.objects.select_related("customer", "company").get(pk=pk, company=company)
    apply_transition(doc, action, today=today, by=request.user)
    return JsonResponse(document_to_dict(doc, today=today, detail=True))


@login_required
@require_http_methods(["GET", "POST"])
@company_api
def api_invoices(request, company):
    if request.method == "POST":
        return _create_document(request, company, Invoice)
    return _list_documents(request, company, Invoice)


@login_required
@require_http_methods(["GET", "PUT", "DELETE"])
@company_api
def api_invoice_detail(request, company, pk: int):
    return _document_detail(request, company, Invoice, pk)


@login_required
@require_http_methods(["POST"])
@company_api
def api_invoice_action(request, company, pk: int, action: str):
    return _document_action(request, company, Invoice, pk, action)


@login_required
@require_http_methods(["GET", "POST"])
@company_api
def api_quotes(request, company):
    if request.method == "POST":
        return _create_document(request, company, Quote)
    return _list_documents(request, company, Quote)


@login_required
@require_http_methods(["GET", "PUT", "DELETE"])
@company_api
def api_quote_detail(request, company, pk: int):
    return _document_detail(request, company, Quote, pk)


@login_required
@require_http_methods(["POST"])
@company_api
def api_quote_action(request, company, pk: int, action: str):
    return _document_action(request, company, Quote, pk, action)
