from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from core.api import company_api, parse_date_field, parse_json_body
from documents.models import Invoice
from ledger.models import Payment
from ledger.services.settlement import invoice_balance, record_payment


def payment_to_dict(payment):
    return {
        "id": payment.id,
        "invoice_id": payment.invoice_id,
        "amount": str(payment.amount),
        "payment_date": payment.payment_date.isoformat(),
        "method": payment.method,
        "description": payment.description,
        "reference": payment.reference,
        "created_at": payment.created_at.isoformat(),
    }


@login_required
@require_http_methods(["GET", "POST"])
@company_api
def api_invoice_payments(request, company, pk: int):
    """List the payments of an invoice, or record a new one.

    POST body: {"amount": "120.00", "payment_date": "2024-03-01",
    "method": "bank_transfer", "description": "", "reference": ""}.
    payment_date defaults to today.
    """
    invoice = Invoice.objects.get(pk=pk, company=company)

    if request.method == "POST":
        data = parse_json_body(request)
        today = timezone.localdate()
        payment = record_payment(
            invoice,
            amount=data.get("amount"),
            payment_date=parse_date_field(data, "payment_date") or today,
            method=data.get("method") or Payment.Method.CREDIT_CARD,
            description=str(data.get("description") or ""),
            reference=str(data.get("reference") or ""),
            today=today,
            by=request.user,
        )
        invoice = payment.invoice
        return JsonResponse({
            "payment": payment_to_dict(payment),
            "invoice_status": invoice.status,
            "balance": invoice_balance(invoice).to_dict(),
        }, status=201)

    return JsonResponse({
        "results": [payment_to_dict(p) for p in invoice.payments.all()],
        "balance": invoice_balance(invoice).to_dict(),
    })
