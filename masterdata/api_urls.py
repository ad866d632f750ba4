from django.urls import path

from . import api_views

urlpatterns = [
    path("dashboard/metrics/", api_views.api_dashboard_metrics, name="api-dashboard-metrics"),
    path("customers/", api_views.api_customers, name="api-customers"),
    path("customers/<int:pk>/", api_views.api_customer_detail, name="api-customer-detail"),
    path("products/", api_views.api_products, name="api-products"),
    path("products/units/", api_views.api_product_units, name="api-product-units"),
    path("products/vat-rates/", api_views.api_vat_rates, name="api-vat-rates"),
    path("products/<int:pk>/", api_views.api_product_detail, name="api-product-detail"),
]
