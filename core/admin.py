from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from guardian.admin import GuardedModelAdmin

from core.admin_utils import CompanyScopedAdminMixin
from core.models import Company, NumberSeries, UserProfile


class NumberSeriesInline(admin.TabularInline):
    model = NumberSeries
    extra = 0
    fields = ("code", "prefix", "next_number", "min_width", "yearly_reset")


@admin.register(Company)
class CompanyAdmin(GuardedModelAdmin, admin.ModelAdmin):
    inlines = [NumberSeriesInline]
    list_display = ("id", "name", "legal_form", "siret", "city", "is_active")
    list_filter = ("legal_form", "vat_applicable", "is_active")
    search_fields = ("name", "siret", "siren", "tva_intra")

    fieldsets = (
        (_("General"), {"fields": ("name", "legal_form", "is_active")}),
        (_("Legal"), {"fields": ("siret", "siren", "tva_intra", "vat_applicable", "rcs_number", "rcs_city", "capital")}),
        (_("Contact"), {"fields": ("address", "postal_code", "city", "country", "email", "phone", "website")}),
        (_("Number series"), {"fields": ("series_invoice", "series_quote")}),
    )

    def get_form(self, request, obj=None, **kwargs):
        form = super().get_form(request, obj, **kwargs)
        # Only offer the company's own series
        for name in ("series_invoice", "series_quote"):
            if name in form.base_fields:
                qs = NumberSeries.objects.filter(company=obj) if obj else NumberSeries.objects.none()
                form.base_fields[name].queryset = qs
        return form


@admin.register(NumberSeries)
class NumberSeriesAdmin(CompanyScopedAdminMixin, GuardedModelAdmin, admin.ModelAdmin):
    list_display = ("company", "code", "prefix", "next_number", "min_width", "yearly_reset", "current_year")
    list_filter = ("company",)
    search_fields = ("code", "prefix")


@admin.register(UserProfile)
class UserProfileAdmin(CompanyScopedAdminMixin, admin.ModelAdmin):
    list_display = ("user", "company", "is_company_admin")
    list_filter = ("company", "is_company_admin")
    search_fields = ("user__username", "user__email")
