# store/serializers.py: read/write serializers for the back-office API
from decimal import Decimal

from rest_framework import serializers

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
)
from .permissions import capabilities_for, resolve_roles
from .utils import format_price


# --------- Users ---------
class UserBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "first_name", "last_name", "email", "phone"]


class UserSerializer(serializers.ModelSerializer):
    roles = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "first_name", "last_name", "email", "phone", "date_joined", "roles"]

    def get_roles(self, obj):
        roles_by_user = self.context.get("roles_by_user")
        if roles_by_user is not None:
            return sorted(roles_by_user.get(obj.pk, ()))
        return sorted(resolve_roles(obj))


class CurrentUserSerializer(UserSerializer):
    capabilities = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ["capabilities"]

    def get_capabilities(self, obj):
        return sorted(capabilities_for(resolve_roles(obj)))


class SetRolesSerializer(serializers.Serializer):
    role_names = serializers.ListField(
        child=serializers.ChoiceField(choices=[c[0] for c in Role.NAME_CHOICES]),
        allow_empty=True,
    )


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True, trim_whitespace=False)


# --------- Categories ---------
class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = [
            "id",
            "name_en",
            "name_ar",
            "slug",
            "slug_ar",
            "image",
            "meta_title_en",
            "meta_title_ar",
            "meta_description_en",
            "meta_description_ar",
            "created_at",
            "updated_at",
            "product_count",
        ]
        read_only_fields = ["created_at", "updated_at"]

    def get_product_count(self, obj):
        count = getattr(obj, "product_count", None)
        if count is None:
            count = obj.products.count()
        return int(count or 0)


# --------- Products ---------
class KeywordsField(serializers.Field):
    """List of strings on the wire, comma-separated text in the table."""

    def to_representation(self, value):
        return [k.strip() for k in (value or "").split(",") if k.strip()]

    def to_internal_value(self, data):
        if data in (None, ""):
            return ""
        if isinstance(data, str):
            data = data.split(",")
        if not isinstance(data, (list, tuple)):
            raise serializers.ValidationError("Expected a list of keywords.")
        return ", ".join(str(k).strip() for k in data if str(k).strip())


class ProductSerializer(serializers.ModelSerializer):
    category = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all())
    category_name = serializers.CharField(source="category.name_en", read_only=True)
    keywords = KeywordsField(required=False)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))
    old_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )
    price_formatted = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            "id",
            "name_en",
            "name_ar",
            "description_en",
            "description_ar",
            "slug",
            "slug_ar",
            "sku",
            "category",
            "category_name",
            "price",
            "old_price",
            "price_formatted",
            "quantity",
            "country_code",
            "currency_code",
            "variant_group",
            "keywords",
            "attributes",
            "primary_image",
            "images",
            "meta_title_en",
            "meta_title_ar",
            "meta_description_en",
            "meta_description_ar",
            "meta_thumbnail",
            "admin_note",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]

    def get_price_formatted(self, obj):
        return format_price(obj.price, obj.currency_code)

    def validate_attributes(self, value):
        if value in (None, ""):
            return {}
        if not isinstance(value, dict):
            raise serializers.ValidationError("Attributes must be an object.")
        return value

    def validate_images(self, value):
        if value in (None, ""):
            return []
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise serializers.ValidationError("Images must be a list of URLs.")
        return value


# --------- Addresses ---------
class AddressSerializer(serializers.ModelSerializer):
    user = UserBriefSerializer(read_only=True)

    class Meta:
        model = Address
        fields = [
            "id",
            "user",
            "label",
            "full_name",
            "email",
            "phone",
            "address",
            "city",
            "state_code",
            "country_code",
            "created_at",
        ]


# --------- Orders ---------
class OrderItemSerializer(serializers.ModelSerializer):
    product_id = serializers.IntegerField(read_only=True)
    product_name = serializers.CharField(source="product.name_en", read_only=True)
    sku = serializers.CharField(source="product.sku", read_only=True)
    currency_code = serializers.CharField(source="product.currency_code", read_only=True)
    line_total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ["id", "product_id", "product_name", "sku", "currency_code", "quantity", "price", "line_total"]


class OrderHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderHistory
        fields = ["id", "status", "note", "changed_by", "changed_at"]


class InvoiceBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Invoice
        fields = ["id", "code", "order_code", "total_price", "created_at"]


class OrderListSerializer(serializers.ModelSerializer):
    customer = UserBriefSerializer(source="user", read_only=True)
    total_formatted = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "code",
            "status",
            "payment_method",
            "total_price",
            "total_formatted",
            "customer",
            "created_at",
            "updated_at",
        ]

    def get_total_formatted(self, obj):
        return format_price(obj.total_price)


class DashboardOrderSerializer(OrderListSerializer):
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta(OrderListSerializer.Meta):
        fields = OrderListSerializer.Meta.fields + ["items"]


class OrderDetailSerializer(serializers.ModelSerializer):
    """Shape of store.orders.get_order_details()."""
    customer = serializers.SerializerMethodField()
    address = serializers.SerializerMethodField()
    items = OrderItemSerializer(many=True, read_only=True)
    history = OrderHistorySerializer(many=True, read_only=True)
    invoice = serializers.SerializerMethodField()
    items_subtotal = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    computed_total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    currency_code = serializers.CharField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "code",
            "status",
            "payment_method",
            "subtotal",
            "shipping",
            "discount",
            "total_price",
            "items_subtotal",
            "computed_total",
            "currency_code",
            "admin_note",
            "user_note",
            "updated_by",
            "customer",
            "address",
            "items",
            "history",
            "invoice",
            "created_at",
            "updated_at",
        ]

    def get_customer(self, obj):
        customer = getattr(obj, "customer", None)
        return UserBriefSerializer(customer).data if customer else None

    def get_address(self, obj):
        address = getattr(obj, "shipping_address", None)
        return AddressSerializer(address).data if address else None

    def get_invoice(self, obj):
        invoice = getattr(obj, "invoice", None)
        return InvoiceBriefSerializer(invoice).data if invoice else None


class OrderUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = ["admin_note", "user_note", "payment_method", "subtotal", "shipping", "discount", "total_price"]
        extra_kwargs = {
            "subtotal": {"min_value": Decimal("0")},
            "shipping": {"min_value": Decimal("0")},
            "discount": {"min_value": Decimal("0")},
            "total_price": {"min_value": Decimal("0")},
        }


class OrderStatusUpdateSerializer(serializers.Serializer):
    new_status = serializers.ChoiceField(choices=OrderStatus.choices)
    admin_note = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    changed_by = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


# --------- Invoices ---------
class InvoiceLineSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"), coerce_to_string=False)
    total = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0"), coerce_to_string=False)


class InvoiceSerializer(serializers.ModelSerializer):
    products = serializers.ListField(child=InvoiceLineSerializer(), allow_empty=False)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))
    delivery_fees = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False, default=Decimal("0")
    )
    discount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False, default=Decimal("0")
    )
    rate = serializers.DecimalField(
        max_digits=5, decimal_places=4, min_value=Decimal("0"), max_value=Decimal("1"),
        required=False, default=Decimal("0"),
    )
    total_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))

    class Meta:
        model = Invoice
        fields = [
            "id",
            "code",
            "order_code",
            "user_name",
            "user_email",
            "user_phone",
            "user_address",
            "user_notes",
            "products",
            "subtotal",
            "delivery_fees",
            "discount",
            "rate",
            "total_price",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]

    def validate_products(self, value):
        # JSONField cannot store Decimal
        return [
            {**line, "price": float(line["price"]), "total": float(line["total"])}
            for line in value
        ]


# --------- Reviews ---------
class ReviewSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name_en", read_only=True)
    user = UserBriefSerializer(read_only=True)

    class Meta:
        model = Review
        fields = [
            "id",
            "product",
            "product_name",
            "user",
            "name",
            "rating",
            "comment",
            "is_approved",
            "updated_by",
            "created_at",
        ]
        read_only_fields = ["is_approved", "updated_by", "created_at"]
