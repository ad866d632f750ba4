from django.urls import path

from . import api_views
from .services.lifecycle import Action

urlpatterns = [
    path("invoices/", api_views.api_invoices, name="api-invoices"),
    path("invoices/<int:pk>/", api_views.api_invoice_detail, name="api-invoice-detail"),
    path("invoices/<int:pk>/send/", api_views.api_invoice_action, {"action": Action.SEND}, name="api-invoice-send"),
    path("invoices/<int:pk>/cancel/", api_views.api_invoice_action, {"action": Action.CANCEL}, name="api-invoice-cancel"),

    path("quotes/", api_views.api_quotes, name="api-quotes"),
    path("quotes/<int:pk>/", api_views.api_quote_detail, name="api-quote-detail"),
    path("quotes/<int:pk>/send/", api_views.api_quote_action, {"action": Action.SEND}, name="api-quote-send"),
    path("quotes/<int:pk>/accept/", api_views.api_quote_action, {"action": Action.MARK_ACCEPTED}, name="api-quote-accept"),
    path("quotes/<int:pk>/reject/", api_views.api_quote_action, {"action": Action.MARK_REJECTED}, name="api-quote-reject"),
]
