# store/urls.py: back-office API routes (mounted under /api/)

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register(r"categories", views.CategoryViewSet, basename="category")
router.register(r"products", views.ProductViewSet, basename="product")
router.register(r"orders", views.OrderViewSet, basename="order")
router.register(r"invoices", views.InvoiceViewSet, basename="invoice")
router.register(r"reviews", views.ReviewViewSet, basename="review")
router.register(r"addresses", views.AddressViewSet, basename="address")
router.register(r"users", views.UserViewSet, basename="user")


urlpatterns = [
    path("health", views.health),
    path("health/", views.health, name="health"),

    # session
    path("auth/login/", views.login_view, name="auth-login"),
    path("auth/logout/", views.logout_view, name="auth-logout"),
    path("auth/me/", views.me, name="auth-me"),

    path("dashboard/", views.dashboard, name="dashboard"),

    # Router por último
    path("", include(router.urls)),
]
