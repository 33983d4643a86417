# store/models.py: catalogue, orders, invoices, reviews, addresses, users/roles
# Every mutating table carries is_deleted/deleted_at; rows are never removed.
from decimal import Decimal

from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models
from django.utils import timezone


# --------- Soft delete ---------
class SoftDeleteQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(is_deleted=False)

    def dead(self):
        return self.filter(is_deleted=True)

    def soft_delete(self) -> int:
        return self.update(is_deleted=True, deleted_at=timezone.now())


class SoftDeleteManager(models.Manager.from_queryset(SoftDeleteQuerySet)):
    """Default manager: hides soft-deleted rows."""

    def get_queryset(self):
        return super().get_queryset().filter(is_deleted=False)


class SoftDeleteModel(models.Model):
    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    # first manager is the default one (admin, related managers, DRF)
    objects = SoftDeleteManager()
    all_objects = models.Manager.from_queryset(SoftDeleteQuerySet)()

    class Meta:
        abstract = True

    def soft_delete(self, by=None):
        self.is_deleted = True
        self.deleted_at = timezone.now()
        fields = ["is_deleted", "deleted_at"]
        if by is not None and hasattr(self, "deleted_by"):
            self.deleted_by = str(by)
            fields.append("deleted_by")
        self.save(update_fields=fields)


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# --------- Users / roles ---------
class LiveUserManager(UserManager):
    def get_queryset(self):
        return super().get_queryset().filter(is_deleted=False)


class User(AbstractUser):
    """
    Customer or staff account. Authorization tier comes from UserRole rows
    (see store.permissions), never from is_staff/is_superuser.
    """
    phone = models.CharField(max_length=32, blank=True, default="")
    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)
    deleted_by = models.CharField(max_length=150, blank=True, default="")

    objects = LiveUserManager()
    all_objects = UserManager()

    class Meta:
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email or self.username

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def soft_delete(self, by=None):
        self.is_deleted = True
        self.is_active = False
        self.deleted_at = timezone.now()
        self.deleted_by = str(by) if by is not None else ""
        self.save(update_fields=["is_deleted", "is_active", "deleted_at", "deleted_by"])


class Role(models.Model):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    EDITOR = "editor"
    NAME_CHOICES = [
        (SUPERADMIN, "Super admin"),
        (ADMIN, "Admin"),
        (EDITOR, "Editor"),
    ]

    name = models.CharField(max_length=32, unique=True, choices=NAME_CHOICES)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class UserRole(SoftDeleteModel):
    user = models.ForeignKey(User, related_name="user_roles", on_delete=models.CASCADE)
    role = models.ForeignKey(Role, related_name="user_roles", on_delete=models.CASCADE)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user} → {self.role}"


# --------- Categories ---------
class Category(SoftDeleteModel, TimeStampedModel):
    name_en = models.CharField(max_length=120)
    name_ar = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, allow_unicode=True)
    slug_ar = models.SlugField(max_length=140, allow_unicode=True)
    image = models.URLField(blank=True, default="")
    meta_title_en = models.CharField(max_length=200, blank=True, default="")
    meta_title_ar = models.CharField(max_length=200, blank=True, default="")
    meta_description_en = models.TextField(blank=True, default="")
    meta_description_ar = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "categories"

    def __str__(self):
        return self.name_en


# --------- Products ---------
class Product(SoftDeleteModel, TimeStampedModel):
    name_en = models.CharField(max_length=255)
    name_ar = models.CharField(max_length=255, blank=True, default="")
    description_en = models.TextField(blank=True, default="")
    description_ar = models.TextField(blank=True, default="")
    slug = models.SlugField(max_length=280, allow_unicode=True)
    slug_ar = models.SlugField(max_length=280, allow_unicode=True, blank=True, default="")
    sku = models.CharField(max_length=80)
    category = models.ForeignKey(
        Category, related_name="products", on_delete=models.PROTECT
    )

    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    old_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    quantity = models.PositiveIntegerField(default=0)
    country_code = models.CharField(max_length=2)
    currency_code = models.CharField(max_length=3)
    variant_group = models.CharField(max_length=120, blank=True, default="")

    # comma separated, as the storefront reads it
    keywords = models.TextField(blank=True, default="")
    attributes = models.JSONField(default=dict, blank=True)
    primary_image = models.URLField(blank=True, default="")
    images = models.JSONField(default=list, blank=True)

    meta_title_en = models.CharField(max_length=200, blank=True, default="")
    meta_title_ar = models.CharField(max_length=200, blank=True, default="")
    meta_description_en = models.TextField(blank=True, default="")
    meta_description_ar = models.TextField(blank=True, default="")
    meta_thumbnail = models.URLField(blank=True, default="")
    admin_note = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-id"]

    def __str__(self):
        return f"{self.name_en} ({self.sku})"

    @property
    def keyword_list(self) -> list[str]:
        return [k.strip() for k in (self.keywords or "").split(",") if k.strip()]


# --------- Addresses ---------
class Address(SoftDeleteModel, TimeStampedModel):
    user = models.ForeignKey(
        User, related_name="addresses", on_delete=models.SET_NULL, null=True, blank=True
    )
    label = models.CharField(max_length=60, blank=True, default="")
    full_name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=32, blank=True, default="")
    address = models.TextField()
    city = models.CharField(max_length=120, blank=True, default="")
    state_code = models.CharField(max_length=16, blank=True, default="")
    country_code = models.CharField(max_length=2, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name_plural = "addresses"

    def __str__(self):
        return f"{self.full_name} - {self.label or self.city}"


# --------- Orders ---------
class OrderStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
    RETURNED = "returned", "Returned"


class Order(SoftDeleteModel, TimeStampedModel):
    PAYMENT_METHOD_CHOICES = [
        ("cash", "Cash on delivery"),
        ("card", "Card"),
    ]

    code = models.CharField(max_length=40, unique=True)
    status = models.CharField(
        max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING, db_index=True
    )
    payment_method = models.CharField(max_length=10, choices=PAYMENT_METHOD_CHOICES, default="cash")

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    shipping = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    admin_note = models.TextField(blank=True, default="")
    user_note = models.TextField(blank=True, default="")

    user = models.ForeignKey(
        User, related_name="orders", on_delete=models.SET_NULL, null=True, blank=True
    )
    address = models.ForeignKey(
        Address, related_name="orders", on_delete=models.SET_NULL, null=True, blank=True
    )
    updated_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.code

    @property
    def items_subtotal(self) -> Decimal:
        """Sum of price snapshots; computed for display, never stored."""
        return sum(
            ((it.price or Decimal("0")) * (it.quantity or 0) for it in self.items.all()),
            Decimal("0.00"),
        )

    @property
    def computed_total(self) -> Decimal:
        return self.items_subtotal + (self.shipping or 0) - (self.discount or 0)

    @property
    def currency_code(self) -> str:
        # all lines share the currency of their products
        for it in self.items.all():
            if it.product_id and it.product.currency_code:
                return it.product.currency_code
        return ""


class OrderItem(SoftDeleteModel):
    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product = models.ForeignKey(Product, related_name="order_items", on_delete=models.PROTECT)
    quantity = models.PositiveIntegerField(default=1)
    # price at order time, not the live product price
    price = models.DecimalField(max_digits=12, decimal_places=2)

    def __str__(self):
        return f"{self.quantity}x {self.product.name_en} in {self.order.code}"

    @property
    def line_total(self) -> Decimal:
        return (self.price or Decimal("0")) * (self.quantity or 0)


class OrderHistory(models.Model):
    """Append-only audit trail of status changes."""
    order = models.ForeignKey(Order, related_name="history", on_delete=models.CASCADE)
    status = models.CharField(max_length=20, choices=OrderStatus.choices)
    note = models.TextField(null=True, blank=True)
    changed_by = models.CharField(max_length=150, null=True, blank=True)
    changed_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-changed_at", "-id"]
        verbose_name_plural = "order history"

    def __str__(self):
        return f"{self.order.code} → {self.status}"


# --------- Invoices ---------
class Invoice(SoftDeleteModel, TimeStampedModel):
    code = models.CharField(max_length=80)
    # plain reference, an invoice can exist without any order
    order_code = models.CharField(max_length=40, blank=True, default="", db_index=True)

    user_name = models.CharField(max_length=255)
    user_email = models.EmailField()
    user_phone = models.CharField(max_length=32)
    user_address = models.TextField()
    user_notes = models.TextField(blank=True, default="")

    # [{id, name, quantity, price, total}, ...]
    products = models.JSONField(default=list)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    delivery_fees = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    rate = models.DecimalField(max_digits=5, decimal_places=4, default=Decimal("0"))
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.code


# --------- Reviews ---------
class Review(SoftDeleteModel, TimeStampedModel):
    product = models.ForeignKey(Product, related_name="reviews", on_delete=models.CASCADE)
    user = models.ForeignKey(
        User, related_name="reviews", on_delete=models.SET_NULL, null=True, blank=True
    )
    name = models.CharField(max_length=120, blank=True, default="")
    rating = models.PositiveSmallIntegerField(default=5)
    comment = models.TextField(blank=True, default="")
    is_approved = models.BooleanField(default=False, db_index=True)
    updated_by = models.CharField(max_length=150, blank=True, default="")
    deleted_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Review #{self.pk} on {self.product.name_en}"
