# store/views.py: back-office API ViewSets + auth/health endpoints

import logging
from decimal import Decimal

from django.contrib.auth import authenticate, login, logout
from django.db.models import Count, Prefetch, Q, Sum
from django.http import JsonResponse, HttpRequest
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from . import orders as order_service
from . import services
from .exceptions import OrderNotFound
from .models import Address, Category, Invoice, Order, OrderItem, Product, Review, User
from .permissions import resolve_roles_bulk
from .serializers import (
    AddressSerializer,
    CategorySerializer,
    CurrentUserSerializer,
    DashboardOrderSerializer,
    InvoiceSerializer,
    LoginSerializer,
    OrderDetailSerializer,
    OrderListSerializer,
    OrderStatusUpdateSerializer,
    OrderUpdateSerializer,
    ProductSerializer,
    ReviewSerializer,
    SetRolesSerializer,
    UserSerializer,
)
from .utils import format_price

logger = logging.getLogger(__name__)

WRITE_ACTIONS = ("create", "update", "partial_update", "destroy")
DASHBOARD_RECENT_ORDERS = 5


def _actor(request) -> str:
    user = getattr(request, "user", None)
    return (getattr(user, "email", "") or str(getattr(user, "pk", ""))) if user else ""


# -------------------------------------------------
# Categories
# -------------------------------------------------
class CategoryViewSet(viewsets.ModelViewSet):
    serializer_class = CategorySerializer
    action_capabilities = {a: "manage_catalog" for a in WRITE_ACTIONS}

    search_fields = ["name_en", "name_ar"]
    ordering_fields = ["name_en", "name_ar", "created_at", "updated_at"]
    ordering = ["-created_at"]

    def get_queryset(self):
        return Category.objects.annotate(
            product_count=Count("products", filter=Q(products__is_deleted=False))
        )

    def perform_destroy(self, instance):
        services.delete_category(instance)

    @action(detail=False, methods=["get"], url_path="by-slug")
    def by_slug(self, request):
        slug = (request.query_params.get("slug") or "").strip()
        category = self.get_queryset().filter(Q(slug=slug) | Q(slug_ar=slug)).first() if slug else None
        if category is None:
            raise NotFound("Category not found")
        return Response(self.get_serializer(category).data)

    @action(detail=False, methods=["get"], url_path="check-slug")
    def check_slug(self, request):
        slug = (request.query_params.get("slug") or "").strip()
        if not slug:
            raise ValidationError({"slug": ["This parameter is required."]})
        exclude_id = request.query_params.get("exclude_id") or None
        return Response({"exists": services.slug_exists(slug, exclude_id=exclude_id)})


# -------------------------------------------------
# Products
# -------------------------------------------------
class ProductViewSet(viewsets.ModelViewSet):
    serializer_class = ProductSerializer
    queryset = Product.objects.select_related("category")
    action_capabilities = {**{a: "manage_catalog" for a in WRITE_ACTIONS}, "duplicate": "manage_catalog"}

    filterset_fields = ["category", "currency_code"]
    search_fields = ["name_en", "name_ar", "sku", "description_en"]
    ordering_fields = ["id", "name_en", "price", "quantity", "created_at"]
    ordering = ["-id"]

    def get_queryset(self):
        qs = super().get_queryset()
        category_slug = self.request.query_params.get("category_slug")
        if category_slug:
            qs = qs.filter(category__slug=category_slug)
        return qs

    def perform_destroy(self, instance):
        instance.soft_delete()
        logger.info(f"Product {instance.pk} ({instance.sku}) soft-deleted by {_actor(self.request)}")

    @action(detail=True, methods=["post"])
    def duplicate(self, request, pk=None):
        copy = services.duplicate_product(self.get_object())
        return Response(self.get_serializer(copy).data, status=status.HTTP_201_CREATED)


# -------------------------------------------------
# Orders: list/detail read, status through the updater
# -------------------------------------------------
class OrderViewSet(viewsets.ModelViewSet):
    queryset = Order.objects.select_related("user")
    serializer_class = OrderListSerializer
    action_capabilities = {
        "update": "manage_orders",
        "partial_update": "manage_orders",
        "destroy": "manage_orders",
        "set_status": "manage_orders",
    }
    filterset_fields = ["status", "payment_method"]
    search_fields = ["code", "user__email", "user__first_name", "user__last_name"]
    ordering_fields = ["created_at", "total_price", "status"]
    ordering = ["-created_at"]

    def _details_or_404(self, identifier):
        order = order_service.get_order_details(identifier)
        if order is None:
            raise OrderNotFound()
        return order

    def retrieve(self, request, *args, **kwargs):
        order = self._details_or_404(kwargs.get("pk"))
        return Response(OrderDetailSerializer(order, context={"request": request}).data)

    def create(self, request, *args, **kwargs):
        return Response({"detail": "Orders are created at checkout."}, status=405)

    def update(self, request, *args, **kwargs):
        order = self._details_or_404(kwargs.get("pk"))
        ser = OrderUpdateSerializer(order, data=request.data, partial=kwargs.get("partial", False))
        ser.is_valid(raise_exception=True)
        order_service.update_order(order.pk, changed_by=_actor(request), **ser.validated_data)
        fresh = order_service.get_order_details(order.pk)
        return Response({"success": True, "data": OrderDetailSerializer(fresh).data})

    def destroy(self, request, *args, **kwargs):
        order = self._details_or_404(kwargs.get("pk"))
        order_service.delete_order(order.pk, by=_actor(request))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="status")
    def set_status(self, request, pk=None):
        order = self._details_or_404(pk)
        ser = OrderStatusUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        change = order_service.update_order_status(
            order.pk,
            data["new_status"],
            note=data.get("admin_note"),
            changed_by=data.get("changed_by") or _actor(request),
        )
        fresh = order_service.get_order_details(order.pk)
        return Response({
            "success": True,
            "data": OrderDetailSerializer(fresh).data,
            "previous_status": change.previous_status,
            "new_status": change.new_status,
            "notification": change.notification,
        })


# -------------------------------------------------
# Invoices
# -------------------------------------------------
class InvoiceViewSet(viewsets.ModelViewSet):
    serializer_class = InvoiceSerializer
    queryset = Invoice.objects.all()
    action_capabilities = {**{a: "manage_invoices" for a in WRITE_ACTIONS}, "duplicate": "manage_invoices"}
    search_fields = ["code", "user_name", "user_email", "order_code"]
    ordering_fields = ["created_at", "total_price", "code"]
    ordering = ["-created_at"]

    def perform_destroy(self, instance):
        instance.soft_delete()
        logger.info(f"Invoice {instance.code} soft-deleted by {_actor(self.request)}")

    @action(detail=True, methods=["post"])
    def duplicate(self, request, pk=None):
        copy = services.duplicate_invoice(self.get_object())
        return Response(self.get_serializer(copy).data, status=status.HTTP_201_CREATED)


# -------------------------------------------------
# Reviews (moderation only)
# -------------------------------------------------
class ReviewViewSet(mixins.ListModelMixin,
                    mixins.RetrieveModelMixin,
                    mixins.DestroyModelMixin,
                    viewsets.GenericViewSet):
    serializer_class = ReviewSerializer
    queryset = Review.objects.select_related("product", "user")
    action_capabilities = {"approve": "approve_reviews", "destroy": "delete_reviews"}
    search_fields = ["comment", "name", "user__email", "product__name_en"]
    ordering = ["-created_at"]

    def get_queryset(self):
        qs = super().get_queryset()
        review_status = self.request.query_params.get("status")
        if review_status == "pending":
            qs = qs.filter(is_approved=False)
        elif review_status == "approved":
            qs = qs.filter(is_approved=True)
        return qs

    def perform_destroy(self, instance):
        services.delete_review(instance, deleted_by=self.request.data.get("deleted_by") or _actor(self.request))

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        review = services.approve_review(
            self.get_object(), approved_by=request.data.get("approved_by") or _actor(request)
        )
        return Response({"ok": True, "review": self.get_serializer(review).data})


# -------------------------------------------------
# Addresses (read-only table)
# -------------------------------------------------
class AddressViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = AddressSerializer
    queryset = Address.objects.select_related("user")
    search_fields = ["email", "full_name", "phone", "address", "label"]
    ordering = ["-created_at"]


# -------------------------------------------------
# Users + roles
# -------------------------------------------------
class UserViewSet(mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  mixins.DestroyModelMixin,
                  viewsets.GenericViewSet):
    serializer_class = UserSerializer
    queryset = User.objects.all()
    action_capabilities = {"set_roles": "manage_roles", "destroy": "delete_users"}
    search_fields = ["email", "first_name", "last_name"]
    ordering = ["-date_joined"]

    def list(self, request, *args, **kwargs):
        qs = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(qs)
        rows = page if page is not None else list(qs)
        ctx = {**self.get_serializer_context(), "roles_by_user": resolve_roles_bulk(rows)}
        data = UserSerializer(rows, many=True, context=ctx).data
        if page is not None:
            return self.get_paginated_response(data)
        return Response(data)

    def perform_destroy(self, instance):
        services.delete_user(self.request.user, instance)

    @action(detail=True, methods=["post"], url_path="roles")
    def set_roles(self, request, pk=None):
        user = self.get_object()
        ser = SetRolesSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        roles = services.set_user_roles(request.user, user, ser.validated_data["role_names"])
        return Response({"ok": True, "roles": sorted(roles)})


# -------------------------------------------------
# Auth
# -------------------------------------------------
@api_view(["POST"])
@permission_classes([AllowAny])
def login_view(request):
    ser = LoginSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    email = ser.validated_data["email"].lower()
    account = User.objects.filter(email__iexact=email).first()
    user = None
    if account is not None:
        user = authenticate(request, username=account.get_username(), password=ser.validated_data["password"])
    if user is None:
        return Response({"detail": "Invalid login credentials", "code": "invalid_credentials"}, status=400)
    login(request._request, user)
    logger.info(f"Login: {user.email}")
    return Response({"user": CurrentUserSerializer(user).data})


@api_view(["POST"])
@permission_classes([AllowAny])
def logout_view(request):
    logout(request._request)
    return Response({"ok": True})


@api_view(["GET"])
@permission_classes([AllowAny])
def me(request):
    user = request.user
    if not getattr(user, "is_authenticated", False):
        return Response({"user": None})
    return Response({"user": CurrentUserSerializer(user).data})


@api_view(["GET"])
def dashboard(request):
    """Headline counts, revenue over live orders and the five newest orders."""
    revenue = Order.objects.aggregate(total=Sum("total_price"))["total"] or Decimal("0")
    recent = (
        Order.objects.select_related("user")
        .prefetch_related(Prefetch("items", queryset=OrderItem.objects.select_related("product").order_by("id")))
        .order_by("-created_at", "-id")[:DASHBOARD_RECENT_ORDERS]
    )
    return Response({
        "products_count": Product.objects.count(),
        "orders_count": Order.objects.count(),
        "users_count": User.objects.count(),
        "total_revenue": f"{revenue:.2f}",
        "total_revenue_formatted": format_price(revenue),
        "recent_orders": DashboardOrderSerializer(recent, many=True).data,
    })


def health(_request: HttpRequest):
    return JsonResponse({"service": "Store back-office", "status": "healthy"})
