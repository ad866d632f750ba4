"""Guardian helpers for company visibility.

When an object is created from the admin, object-level permissions go to:
  * the current user
  * every admin of the object's company (UserProfile.is_company_admin=True)

Called explicitly from CompanyScopedAdminMixin.save_model; a signal would not
know request.user.
"""

from guardian.shortcuts import assign_perm

from core.models import UserProfile

DEFAULT_PERMS = ("view", "change", "delete")


def assign_object_perms_to_user(user, obj, perms=DEFAULT_PERMS):
    if not user or not user.is_authenticated:
        return
    app_label = obj._meta.app_label
    model_name = obj._meta.model_name
    for p in perms:
        assign_perm(f"{app_label}.{p}_{model_name}", user, obj)


def assign_object_perms_to_company_admins(company, obj, perms=DEFAULT_PERMS):
    qs = UserProfile.objects.filter(company=company, is_company_admin=True).select_related("user")
    for profile in qs:
        assign_object_perms_to_user(profile.user, obj, perms=perms)
