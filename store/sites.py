# store/sites.py: admin site guarded by store.permissions instead of is_staff
from django import forms
from django.contrib import admin
from django.contrib.admin.forms import AdminAuthenticationForm

from .permissions import has_capability


class StoreAdminAuthenticationForm(AdminAuthenticationForm):
    """Any live account holding a role may sign in; is_staff plays no part."""

    def confirm_login_allowed(self, user):
        if not user.is_active or not has_capability(user, "access_admin"):
            raise forms.ValidationError(
                self.error_messages["invalid_login"],
                code="invalid_login",
                params={"username": self.username_field.verbose_name},
            )


class StoreAdminSite(admin.AdminSite):
    site_header = "Store back-office"
    site_title = "Store back-office"
    index_title = "Catalogue, orders and staff"
    login_form = StoreAdminAuthenticationForm

    def has_permission(self, request):
        user = request.user
        return user.is_active and has_capability(user, "access_admin")
