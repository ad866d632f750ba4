from django.urls import path

from . import api_views

urlpatterns = [
    path("invoices/<int:pk>/payments/", api_views.api_invoice_payments, name="api-invoice-payments"),
]
