import logging

from django.contrib.auth.decorators import login_required
from django.db.models import Q
from django.http import HttpResponse, JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from core.api import company_api, paginate, parse_json_body
from core.errors import InvoicingError
from core.models.vat import VAT_PERCENTAGES, Unit, VatRate
from core.services.money import ZERO, fits_money, format_currency, quantize_money
from core.services.vat import coerce_vat_rate
from documents.api_views import document_to_dict
from documents.models import Invoice
from ledger.services.settlement import invoice_balance
from masterdata.models import Customer, Product

logger = logging.getLogger(__name__)

LATEST_INVOICES = 5

CUSTOMER_FIELDS = (
    "first_name", "last_name", "name", "siret", "tva_intra",
    "email", "phone", "address", "postal_code", "city", "country",
)


def customer_to_dict(customer):
    return {
        "id": customer.id,
        "type": customer.type,
        "display_name": customer.display_name,
        **{field: getattr(customer, field) for field in CUSTOMER_FIELDS},
    }


def product_to_dict(product):
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price_excluding_tax": str(product.price_excluding_tax),
        "vat_rate": product.vat_rate,
        "unit": product.unit,
    }


@login_required
@require_http_methods(["GET"])
@company_api
def api_dashboard_metrics(request, company):
    today = timezone.localdate()
    invoices = Invoice.objects.filter(company=company)
    unpaid = invoices.filter(status=Invoice.Status.SENT)

    outstanding_total = ZERO
    for invoice in unpaid.prefetch_related("payments"):
        outstanding_total += invoice_balance(invoice).outstanding

    latest = invoices.select_related("customer").order_by("-created_at", "-id")[:LATEST_INVOICES]
    return JsonResponse({
        "unpaid_invoices": unpaid.count(),
        "late_invoices": unpaid.filter(due_date__lt=today).count(),
        "invoices_this_month": invoices.filter(issue_date__year=today.year, issue_date__month=today.month).count(),
        "customers": company.customers.count(),
        "outstanding_total": str(outstanding_total),
        "outstanding_total_display": format_currency(outstanding_total),
        "latest_invoices": [document_to_dict(doc, today=today) for doc in latest],
    })


def _customer_search(qs, search):
    return qs.filter(
        Q(name__icontains=search)
        | Q(last_name__icontains=search)
        | Q(first_name__icontains=search)
        | Q(email__icontains=search)
    )


def _apply_customer_fields(customer, data):
    """Copy the payload onto `customer`; the result must still have a name."""
    if data.get("type"):
        if data["type"] not in Customer.Type.values:
            raise InvoicingError(f"Unknown customer type {data['type']!r}.")
        customer.type = data["type"]
    for field in CUSTOMER_FIELDS:
        if data.get(field) is not None:
            setattr(customer, field, str(data[field]).strip())
    if not customer.display_name:
        raise InvoicingError("Customer needs a name.")


def _apply_product_fields(product, data):
    if "name" in data or product.pk is None:
        name = str(data.get("name") or "").strip()
        if not name:
            raise InvoicingError("Product name is required.")
        product.name = name
    if "description" in data:
        product.description = str(data["description"] or "")
    if "price_excluding_tax" in data or product.pk is None:
        try:
            price = quantize_money(data.get("price_excluding_tax", "0"))
        except TypeError:
            raise InvoicingError("price_excluding_tax must be a number.") from None
        if price < 0 or not fits_money(price):
            raise InvoicingError(f"price_excluding_tax out of range: {price}.")
        product.price_excluding_tax = price
    if "vat_rate" in data or product.pk is None:
        product.vat_rate = coerce_vat_rate(data.get("vat_rate") or VatRate.ZERO)
    if "unit" in data or product.pk is None:
        unit = data.get("unit") or Unit.UNIT
        if unit not in Unit.values:
            raise InvoicingError(f"Unknown unit {unit!r}.")
        product.unit = unit


@login_required
@require_http_methods(["GET", "POST"])
@company_api
def api_customers(request, company):
    """GET: paginated list, `search` (or `q`) and `type` filters. POST: create."""
    if request.method == "POST":
        data = parse_json_body(request)
        customer = Customer(company=company, type=data.get("type") or Customer.Type.INDIVIDUAL)
        _apply_customer_fields(customer, data)
        customer.save()
        logger.info("Created customer %s for company %s", customer.id, company.id)
        return JsonResponse(customer_to_dict(customer), status=201)

    qs = company.customers.all()
    search = (request.GET.get("search") or request.GET.get("q") or "").strip()
    if search:
        qs = _customer_search(qs, search)
    customer_type = request.GET.get("type")
    if customer_type:
        if customer_type not in Customer.Type.values:
            raise InvoicingError(f"Unknown customer type {customer_type!r}.")
        qs = qs.filter(type=customer_type)
    return JsonResponse(paginate(request, qs, customer_to_dict))


@login_required
@require_http_methods(["GET", "PUT", "DELETE"])
@company_api
def api_customer_detail(request, company, pk: int):
    customer = Customer.objects.get(pk=pk, company=company)
    if request.method == "PUT":
        _apply_customer_fields(customer, parse_json_body(request))
        customer.save()
    elif request.method == "DELETE":
        # PROTECT on invoices and quotes: customers with documents stay
        customer.delete()
        logger.info("Deleted customer %s of company %s", pk, company.id)
        return HttpResponse(status=204)
    return JsonResponse(customer_to_dict(customer))


@login_required
@require_http_methods(["GET", "POST"])
@company_api
def api_products(request, company):
    """GET: paginated list with `search`. POST: create."""
    if request.method == "POST":
        product = Product(company=company)
        _apply_product_fields(product, parse_json_body(request))
        product.save()
        return JsonResponse(product_to_dict(product), status=201)

    qs = company.products.all()
    search = (request.GET.get("search") or request.GET.get("q") or "").strip()
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(description__icontains=search))
    return JsonResponse(paginate(request, qs, product_to_dict))


@login_required
@require_http_methods(["GET", "PUT", "DELETE"])
@company_api
def api_product_detail(request, company, pk: int):
    """Lines keep their own copy of name and price, so deleting a product
    only unlinks them."""
    product = Product.objects.get(pk=pk, company=company)
    if request.method == "PUT":
        _apply_product_fields(product, parse_json_body(request))
        product.save()
    elif request.method == "DELETE":
        product.delete()
        return HttpResponse(status=204)
    return JsonResponse(product_to_dict(product))


@login_required
@require_http_methods(["GET"])
def api_product_units(request):
    return JsonResponse({"results": [{"value": value, "label": str(label)} for value, label in Unit.choices]})


@login_required
@require_http_methods(["GET"])
def api_vat_rates(request):
    return JsonResponse({"results": [
        {"value": value, "label": str(label), "percent": str(VAT_PERCENTAGES[value])}
        for value, label in VatRate.choices
    ]})
