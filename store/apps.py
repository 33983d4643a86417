from django.apps import AppConfig
from django.contrib.admin.apps import AdminConfig


class StoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "store"
    verbose_name = "Store back-office"


class StoreAdminConfig(AdminConfig):
    default_site = "store.sites.StoreAdminSite"
