from django import forms
from django.contrib import admin
from django.utils import timezone
from guardian.admin import GuardedModelAdmin

from core.admin_utils import CompanyScopedAdminMixin, get_profile_company_id
from documents.models import Invoice
from documents.services.lifecycle import Action, can_apply
from ledger.models import Payment
from ledger.services.settlement import record_payment


class PaymentAdminForm(forms.ModelForm):
    class Meta:
        model = Payment
        fields = ("invoice", "amount", "payment_date", "method", "description", "reference")

    def clean(self):
        cleaned = super().clean()
        invoice = cleaned.get("invoice")
        if invoice is not None and not can_apply(invoice, Action.ADD_PAYMENT, today=timezone.localdate()):
            raise forms.ValidationError(f"{invoice} does not accept payments ({invoice.status}).")
        amount = cleaned.get("amount")
        if amount is not None and amount <= 0:
            self.add_error("amount", "Amount must be > 0.")
        return cleaned


@admin.register(Payment)
class PaymentAdmin(CompanyScopedAdminMixin, GuardedModelAdmin, admin.ModelAdmin):
    """Append-only: payments can be added and viewed, never changed or deleted."""

    form = PaymentAdminForm
    company_lookup = "invoice__company"

    list_display = ("payment_date", "invoice", "amount", "method", "reference", "created_by")
    list_filter = ("method", "payment_date")
    search_fields = ("invoice__number", "reference", "description")
    date_hierarchy = "payment_date"

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        if db_field.name == "invoice":
            qs = Invoice.objects.filter(status__in=(Invoice.Status.DRAFT, Invoice.Status.SENT))
            company_id = get_profile_company_id(request)
            if not request.user.is_superuser:
                qs = qs.filter(company_id=company_id) if company_id else qs.none()
            kwargs["queryset"] = qs.select_related("customer")
        return super().formfield_for_foreignkey(db_field, request, **kwargs)

    def save_model(self, request, obj, form, change):
        payment = record_payment(
            obj.invoice,
            amount=obj.amount,
            payment_date=obj.payment_date,
            method=obj.method,
            description=obj.description,
            reference=obj.reference,
            today=timezone.localdate(),
            by=request.user,
        )
        obj.pk = payment.pk
        obj.created_at = payment.created_at
        obj.created_by = payment.created_by
        self.assign_object_perms(request, obj)
