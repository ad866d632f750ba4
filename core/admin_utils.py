"""Admin mixins shared by the company-owned models."""

from core.models import Company
from core.permissions import assign_object_perms_to_company_admins, assign_object_perms_to_user


def get_profile_company_id(request):
    profile = getattr(request.user, "profile", None)
    return profile.company_id if profile else None


class CompanyScopedAdminMixin:
    """Keep staff users inside their own company.

    - Superusers see everything.
    - Other users only see rows of their profile's company; users without a
      profile see nothing.
    - New rows default to the user's company, and the user and the company
      admins get guardian object permissions on them.

    `company_lookup` is the path from the model to its Company
    (e.g. "invoice__company" for payments).
    """

    company_lookup = "company"

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if request.user.is_superuser:
            return qs
        company_id = get_profile_company_id(request)
        if company_id is None:
            return qs.none()
        return qs.filter(**{f"{self.company_lookup}_id": company_id})

    def get_changeform_initial_data(self, request):
        initial = super().get_changeform_initial_data(request)
        company_id = get_profile_company_id(request)
        if company_id and self.company_lookup == "company":
            initial.setdefault("company", company_id)
        return initial

    def get_form(self, request, obj=None, **kwargs):
        form = super().get_form(request, obj, **kwargs)

        # Non-superusers can only create rows for their own company
        company_id = get_profile_company_id(request)
        if obj is None and not request.user.is_superuser and company_id and "company" in form.base_fields:
            field = form.base_fields["company"]
            field.initial = company_id
            field.queryset = Company.objects.filter(pk=company_id)
        return form

    def save_model(self, request, obj, form, change):
        super().save_model(request, obj, form, change)
        if not change:
            self.assign_object_perms(request, obj)

    def assign_object_perms(self, request, obj):
        assign_object_perms_to_user(request.user, obj)
        company = self._company_of(obj)
        if company is not None:
            assign_object_perms_to_company_admins(company, obj)

    def _company_of(self, obj):
        target = obj
        for part in self.company_lookup.split("__"):
            target = getattr(target, part, None)
            if target is None:
                return None
        return target
