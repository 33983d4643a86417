# store/admin.py
import logging

from django.contrib import admin, messages
from django.utils.safestring import mark_safe

from . import orders as order_service
from .exceptions import CategoryInUse, PrimarySuperadminProtected
from .forms import ProductAdminForm
from .models import (
    Address,
    Category,
    Invoice,
    Order,
    OrderHistory,
    OrderItem,
    OrderStatus,
    Product,
    Review,
    Role,
    User,
    UserRole,
)
from .permissions import capabilities_for, resolve_roles
from .services import delete_category, delete_user
from .utils import format_price

logger = logging.getLogger(__name__)


def request_capabilities(request) -> frozenset:
    """Capabilities of request.user, resolved once per request."""
    caps = getattr(request, "_store_capabilities", None)
    if caps is None:
        user = request.user
        caps = capabilities_for(resolve_roles(user)) if user.is_authenticated else frozenset()
        request._store_capabilities = caps
    return caps


class CapabilityMixin:
    """
    Admin permissions from store.permissions, never from Django model perms.
    Viewing needs access_admin; add/change need `capability`; delete needs
    `delete_capability` (defaults to `capability`). `read_only` tables only
    ever get the view permission.
    """
    capability = "access_admin"
    delete_capability = None
    read_only = False

    def _can(self, request, capability) -> bool:
        return capability in request_capabilities(request)

    def has_module_permission(self, request):
        return self._can(request, "access_admin")

    def has_view_permission(self, request, obj=None):
        return self._can(request, "access_admin")

    def has_add_permission(self, request, obj=None):
        return not self.read_only and self._can(request, self.capability)

    def has_change_permission(self, request, obj=None):
        return not self.read_only and self._can(request, self.capability)

    def has_delete_permission(self, request, obj=None):
        return not self.read_only and self._can(request, self.delete_capability or self.capability)


class SoftDeleteAdmin(CapabilityMixin, admin.ModelAdmin):
    """Delete in the admin flags the row instead of removing it."""

    def delete_model(self, request, obj):
        obj.soft_delete()

    def delete_queryset(self, request, queryset):
        for obj in queryset:
            self.delete_model(request, obj)


# ===============================
# Users / roles
# ===============================
class UserRoleInline(CapabilityMixin, admin.TabularInline):
    model = UserRole
    capability = "manage_roles"
    extra = 0
    fields = ("role", "created_at")
    readonly_fields = ("created_at",)


@admin.register(User)
class UserAdmin(SoftDeleteAdmin):
    capability = "manage_roles"
    delete_capability = "delete_users"

    list_display = ("id", "email", "first_name", "last_name", "is_active", "date_joined")
    search_fields = ("email", "first_name", "last_name")
    exclude = ("password", "user_permissions", "groups")
    inlines = [UserRoleInline]

    def delete_model(self, request, obj):
        try:
            delete_user(request.user, obj)
        except PrimarySuperadminProtected as e:
            self.message_user(request, f"{obj.email}: {e.detail}", level=messages.ERROR)


@admin.register(Role)
class RoleAdmin(CapabilityMixin, admin.ModelAdmin):
    read_only = True
    list_display = ("id", "name")


# ===============================
# Category
# ===============================
@admin.register(Category)
class CategoryAdmin(SoftDeleteAdmin):
    capability = "manage_catalog"

    list_display = ("id", "name_en", "name_ar", "slug", "created_at")
    search_fields = ("name_en", "name_ar", "slug")
    prepopulated_fields = {"slug": ("name_en",)}

    def delete_model(self, request, obj):
        try:
            delete_category(obj)
        except CategoryInUse as e:
            self.message_user(request, f"{obj.name_en}: {e.detail}", level=messages.ERROR)


# ===============================
# Product
# ===============================
@admin.register(Product)
class ProductAdmin(SoftDeleteAdmin):
    capability = "manage_catalog"
    form = ProductAdminForm

    list_display = ("id", "name_en", "sku", "price_fmt", "quantity", "category", "thumb")
    list_filter = ("category", "currency_code")
    search_fields = ("name_en", "name_ar", "sku", "description_en")
    readonly_fields = ("thumb_preview",)

    def price_fmt(self, obj):
        return format_price(obj.price, obj.currency_code)
    price_fmt.short_description = "Price"

    def thumb(self, obj):
        if not obj.primary_image:
            return "-"
        return mark_safe(
            f'<img src="{obj.primary_image}" style="height:40px;width:40px;object-fit:cover;border-radius:6px;" />'
        )
    thumb.short_description = "Thumb"

    def thumb_preview(self, obj):
        if not obj.primary_image:
            return "-"
        return mark_safe(
            f'<img src="{obj.primary_image}" style="max-width:240px;height:auto;border-radius:8px;'
            f'box-shadow:0 1px 3px rgba(0,0,0,.15)" />'
        )


# ===============================
# Order / OrderItem / OrderHistory
# ===============================
class OrderItemInline(CapabilityMixin, admin.TabularInline):
    model = OrderItem
    capability = "manage_orders"
    extra = 0
    fields = ("product", "quantity", "price")
    readonly_fields = ("price",)


class OrderHistoryInline(CapabilityMixin, admin.TabularInline):
    model = OrderHistory
    read_only = True
    extra = 0
    fields = ("status", "note", "changed_by", "changed_at")
    readonly_fields = fields
    can_delete = False


def _status_action(new_status):
    def action(modeladmin, request, queryset):
        actor = getattr(request.user, "email", "") or str(request.user.pk)
        moved = 0
        for order in queryset:
            try:
                order_service.update_order_status(order.pk, new_status, changed_by=actor)
                moved += 1
            except Exception as e:
                logger.exception(f"Admin status change failed for {order.code}")
                modeladmin.message_user(request, f"{order.code}: {e}", level=messages.ERROR)
        if moved:
            modeladmin.message_user(request, f"{moved} order(s) marked {new_status}.")

    action.__name__ = f"mark_{new_status}"
    action.short_description = f"Mark selected orders as {OrderStatus(new_status).label.lower()}"
    action.allowed_permissions = ("change",)
    return action


@admin.register(Order)
class OrderAdmin(SoftDeleteAdmin):
    capability = "manage_orders"

    list_display = ("id", "code", "user", "status", "total_fmt", "created_at")
    list_filter = ("status", "payment_method")
    search_fields = ("code", "user__email")
    readonly_fields = ("status", "updated_by")
    inlines = [OrderItemInline, OrderHistoryInline]
    actions = [_status_action(s) for s in ("confirmed", "processing", "shipped", "delivered", "cancelled")]

    def total_fmt(self, obj):
        return format_price(obj.total_price, obj.currency_code)
    total_fmt.short_description = "Total"


# ===============================
# Invoices / reviews / addresses
# ===============================
@admin.register(Invoice)
class InvoiceAdmin(SoftDeleteAdmin):
    capability = "manage_invoices"

    list_display = ("id", "code", "order_code", "user_name", "total_price", "created_at")
    search_fields = ("code", "order_code", "user_name", "user_email")


@admin.register(Review)
class ReviewAdmin(SoftDeleteAdmin):
    capability = "approve_reviews"
    delete_capability = "delete_reviews"

    list_display = ("id", "product", "name", "rating", "is_approved", "created_at")
    list_filter = ("is_approved", "rating")
    search_fields = ("comment", "name", "product__name_en")

    def delete_model(self, request, obj):
        obj.soft_delete(by=getattr(request.user, "email", "") or request.user.pk)


@admin.register(Address)
class AddressAdmin(SoftDeleteAdmin):
    read_only = True

    list_display = ("id", "full_name", "email", "city", "country_code")
    search_fields = ("full_name", "email", "phone", "address")
