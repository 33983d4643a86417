# store/services.py: catalogue, invoice, review and user mutations shared by API and admin
import logging

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from .exceptions import CategoryInUse, PrimarySuperadminProtected
from .models import Category, Invoice, Product, Review, Role, User, UserRole
from .permissions import SUPERADMIN, is_primary_superadmin, require_capability
from .utils import copy_suffix

logger = logging.getLogger(__name__)


# --------- Categories ---------
def delete_category(category: Category):
    live_products = Product.objects.filter(category_id=category.pk).count()
    if live_products > 0:
        raise CategoryInUse()
    category.soft_delete()
    logger.info(f"Category {category.pk} ({category.slug}) soft-deleted")


def slug_exists(slug: str, exclude_id=None) -> bool:
    qs = Category.objects.filter(Q(slug=slug) | Q(slug_ar=slug))
    if exclude_id:
        qs = qs.exclude(pk=exclude_id)
    return qs.exists()


# --------- Products ---------
def duplicate_product(product: Product) -> Product:
    suffix = copy_suffix()
    copy = Product.objects.get(pk=product.pk)
    copy.pk = None
    copy.id = None
    copy._state.adding = True
    copy.name_en = f"{product.name_en} (Copy)"
    copy.name_ar = f"{product.name_ar} (نسخة)" if product.name_ar else ""
    copy.sku = f"{product.sku}-COPY-{suffix}"
    copy.slug = f"{product.slug}-copy-{suffix}"
    copy.slug_ar = f"{product.slug_ar}-نسخة-{suffix}" if product.slug_ar else ""
    copy.is_deleted = False
    copy.deleted_at = None
    copy.save()
    logger.info(f"Product {product.pk} duplicated as {copy.pk}")
    return copy


# --------- Invoices ---------
def duplicate_invoice(invoice: Invoice) -> Invoice:
    copy = Invoice.all_objects.get(pk=invoice.pk)
    copy.pk = None
    copy.id = None
    copy._state.adding = True
    copy.code = f"{invoice.code}-COPY-{copy_suffix()}"
    copy.is_deleted = False
    copy.deleted_at = None
    copy.save()
    logger.info(f"Invoice {invoice.code} duplicated as {copy.code}")
    return copy


# --------- Reviews ---------
def approve_review(review: Review, approved_by=None) -> Review:
    review.is_approved = True
    review.updated_by = str(approved_by or "")
    review.save(update_fields=["is_approved", "updated_by", "updated_at"])
    return review


def delete_review(review: Review, deleted_by=None):
    review.soft_delete(by=deleted_by or "")


# --------- Users / roles ---------
def _ensure_superadmin(user: User):
    role = Role.objects.filter(name=SUPERADMIN).first()
    if role and not UserRole.objects.filter(user=user, role=role).exists():
        UserRole.objects.create(user=user, role=role)


@transaction.atomic
def set_user_roles(actor, user: User, role_names) -> frozenset:
    """
    Replace a user's roles. Primary superadmins keep superadmin no matter
    what is requested; for them the call only re-asserts it.
    """
    require_capability(actor, "manage_roles")

    if is_primary_superadmin(user.email):
        _ensure_superadmin(user)
        logger.info(f"Roles of primary superadmin {user.email} left unchanged")
        return frozenset({SUPERADMIN})

    UserRole.objects.filter(user=user).update(is_deleted=True, deleted_at=timezone.now())
    roles = list(Role.objects.filter(name__in=set(role_names or ())))
    UserRole.objects.bulk_create([UserRole(user=user, role=r) for r in roles])
    logger.info(f"Roles of {user.email or user.pk} set to {[r.name for r in roles]} by {actor}")
    return frozenset(r.name for r in roles)


def delete_user(actor, user: User):
    require_capability(actor, "delete_users")
    if is_primary_superadmin(user.email):
        raise PrimarySuperadminProtected()
    user.soft_delete(by=actor.pk)
    logger.info(f"User {user.pk} soft-deleted by {actor.pk}")
