from django.contrib import admin
from guardian.admin import GuardedModelAdmin

from core.admin_utils import CompanyScopedAdminMixin
from masterdata.models import Customer, Product


@admin.register(Customer)
class CustomerAdmin(CompanyScopedAdminMixin, GuardedModelAdmin, admin.ModelAdmin):
    list_display = ("company", "display_name", "type", "email", "city")
    list_filter = ("company", "type")
    search_fields = ("name", "first_name", "last_name", "email", "siret")


@admin.register(Product)
class ProductAdmin(CompanyScopedAdminMixin, GuardedModelAdmin, admin.ModelAdmin):
    list_display = ("company", "name", "price_excluding_tax", "vat_rate", "unit")
    list_filter = ("company", "vat_rate", "unit")
    search_fields = ("name", "description")
