from django.contrib import admin, messages
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from django_object_actions import DjangoObjectActions, action
from guardian.admin import GuardedModelAdmin

from core.admin_utils import CompanyScopedAdminMixin
from core.errors import InvoicingError
from core.services.money import format_currency
from documents.models import Invoice, InvoiceLine, Quote, QuoteLine
from documents.services import editing
from documents.services.lifecycle import Action, allowed_actions, apply_transition, can_apply, effective_status
from ledger.models import Payment


def _is_editable(obj):
    return obj is None or can_apply(obj, Action.EDIT, today=timezone.localdate())


class DocumentLineInline(admin.TabularInline):
    """Lines can only be touched while the document is a draft."""
    extra = 0
    fields = ("line_no", "product", "name", "description", "quantity", "unit", "unit_price_excluding_tax", "vat_rate")
    readonly_fields = ("line_no",)

    def has_add_permission(self, request, obj=None):
        return _is_editable(obj) and super().has_add_permission(request, obj)

    def has_change_permission(self, request, obj=None):
        return _is_editable(obj) and super().has_change_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        return _is_editable(obj) and super().has_delete_permission(request, obj)


class InvoiceLineInline(DocumentLineInline):
    model = InvoiceLine
    fk_name = "invoice"


class QuoteLineInline(DocumentLineInline):
    model = QuoteLine
    fk_name = "quote"


class PaymentInline(admin.TabularInline):
    """Read-only; payments are recorded from the Payment admin."""
    model = Payment
    extra = 0
    can_delete = False
    fields = ("payment_date", "amount", "method", "reference", "created_by")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class BillingDocumentAdmin(DjangoObjectActions, CompanyScopedAdminMixin, GuardedModelAdmin, admin.ModelAdmin):
    """Shared admin for invoices and quotes.

    Status changes only go through the lifecycle service, both from the
    changelist (bulk actions) and from the buttons on the change page.
    """

    list_filter = ("company", "status")
    search_fields = ("number", "customer__name", "customer__last_name", "customer__first_name")
    date_hierarchy = "issue_date"
    readonly_fields = ("number", "status", "amount_excluding_tax", "tax", "amount_including_tax",
                       "created_by", "created_at", "updated_at")

    # change action name -> lifecycle Action
    change_action_map = {}

    @admin.display(description=_("Status"))
    def status_display(self, obj):
        return effective_status(obj, today=timezone.localdate())

    @admin.display(description=_("Total incl. tax"), ordering="amount_including_tax")
    def total_display(self, obj):
        return format_currency(obj.amount_including_tax)

    def get_readonly_fields(self, request, obj=None):
        if not _is_editable(obj):
            return [f.name for f in self.model._meta.fields if f.name != "id"]
        return self.readonly_fields

    def has_delete_permission(self, request, obj=None):
        if obj is not None:
            if obj.status != obj.Status.DRAFT:
                return False
            if obj.kind == Invoice.kind and obj.payments.exists():
                return False
        return super().has_delete_permission(request, obj)

    def get_actions(self, request):
        actions = super().get_actions(request)
        # Bulk delete would bypass the draft-only rule
        actions.pop("delete_selected", None)
        return actions

    def delete_model(self, request, obj):
        editing.delete_document(obj)

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        if _is_editable(form.instance):
            form.instance.recalc_totals()

    def get_change_actions(self, request, object_id, form_url):
        obj = self.get_object(request, object_id)
        if not obj:
            return ()
        allowed = allowed_actions(obj, today=timezone.localdate())
        return tuple(name for name, act in self.change_action_map.items() if act in allowed)

    def _apply_one(self, request, obj, act):
        try:
            apply_transition(obj, act, today=timezone.localdate(), by=request.user)
        except InvoicingError as e:
            self.message_user(request, f"{obj}: {e}", level=messages.ERROR)
            return
        self.message_user(request, f"{obj}: {obj.get_status_display()}.", level=messages.SUCCESS)

    def _apply_bulk(self, request, queryset, act):
        ok = 0
        skipped = 0
        failed = 0
        today = timezone.localdate()

        for doc in queryset.select_related("company", "customer"):
            if not can_apply(doc, act, today=today):
                skipped += 1
                continue
            try:
                apply_transition(doc, act, today=today, by=request.user)
                ok += 1
            except InvoicingError as e:
                failed += 1
                self.message_user(request, f"{doc}: {e}", level=messages.ERROR)

        if ok:
            self.message_user(request, f"{act.label}: {ok} document(s).", level=messages.SUCCESS)
        if skipped:
            self.message_user(request, f"Skipped {skipped} document(s) not allowing {act.label.lower()}.", level=messages.WARNING)
        if failed:
            self.message_user(request, f"Failed {failed} document(s).", level=messages.ERROR)

    @action(label=_("Send"), description=_("Allocate the number and send"))
    def send_action(self, request, obj):
        self._apply_one(request, obj, Action.SEND)

    @admin.action(description=_("Send selected documents"))
    def send_documents(self, request, queryset):
        self._apply_bulk(request, queryset, Action.SEND)


@admin.register(Invoice)
class InvoiceAdmin(BillingDocumentAdmin):
    inlines = [InvoiceLineInline, PaymentInline]
    list_display = ("display_no", "issue_date", "due_date", "customer", "status_display", "total_display")
    readonly_fields = BillingDocumentAdmin.readonly_fields + ("sent_at", "paid_at", "cancelled_at")

    change_actions = ("send_action", "cancel_action")
    change_action_map = {
        "send_action": Action.SEND,
        "cancel_action": Action.CANCEL,
    }
    actions = ["send_documents", "cancel_invoices"]

    @action(label=_("Cancel"), description=_("Cancel the invoice"))
    def cancel_action(self, request, obj):
        self._apply_one(request, obj, Action.CANCEL)

    @admin.action(description=_("Cancel selected invoices"))
    def cancel_invoices(self, request, queryset):
        self._apply_bulk(request, queryset, Action.CANCEL)


@admin.register(Quote)
class QuoteAdmin(BillingDocumentAdmin):
    inlines = [QuoteLineInline]
    list_display = ("display_no", "issue_date", "validity_date", "customer", "status_display", "total_display")
    readonly_fields = BillingDocumentAdmin.readonly_fields + ("sent_at", "accepted_at", "rejected_at")

    change_actions = ("send_action", "accept_action", "reject_action")
    change_action_map = {
        "send_action": Action.SEND,
        "accept_action": Action.MARK_ACCEPTED,
        "reject_action": Action.MARK_REJECTED,
    }
    actions = ["send_documents", "accept_quotes", "reject_quotes"]

    @action(label=_("Accept"), description=_("Mark the quote as accepted"))
    def accept_action(self, request, obj):
        self._apply_one(request, obj, Action.MARK_ACCEPTED)

    @action(label=_("Reject"), description=_("Mark the quote as rejected"))
    def reject_action(self, request, obj):
        self._apply_one(request, obj, Action.MARK_REJECTED)

    @admin.action(description=_("Accept selected quotes"))
    def accept_quotes(self, request, queryset):
        self._apply_bulk(request, queryset, Action.MARK_ACCEPTED)

    @admin.action(description=_("Reject selected quotes"))
    def reject_quotes(self, request, queryset):
        self._apply_bulk(request, queryset, Action.MARK_REJECTED)
