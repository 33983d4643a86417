# backoffice/settings.py: single settings module, dev/prod driven by ENV
import os
from pathlib import Path
import dj_database_url
from dotenv import load_dotenv

# -------------------------
# .env optional (instance/.env)
# -------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / "instance" / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


def _env_bool(var_name: str, default: str = "False") -> bool:
    return os.getenv(var_name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(var_name: str, fallback: list[str]) -> list[str]:
    raw = os.getenv(var_name, "")
    if raw.strip():
        return [u.strip() for u in raw.split(",") if u.strip()]
    return fallback


# -------------------------
# Security / mode
# -------------------------
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-fallback-key-for-dev")
DEBUG = _env_bool("DEBUG")
# "production" switches off every dev-only convenience below
DJANGO_ENV = os.getenv("DJANGO_ENV", "development").strip().lower()
IS_PRODUCTION = DJANGO_ENV == "production"
# dev-auth cookie and origin rewrite; needs DEBUG switched on explicitly
DEV_MODE = DEBUG and not IS_PRODUCTION

ALLOWED_HOSTS: list[str] = _env_list("ALLOWED_HOSTS", ["127.0.0.1", "localhost", "testserver"])

# Dev-only host override (Codespaces / tunnels)
DEV_SITE_HOST = os.getenv("DEV_SITE_HOST", "").strip()
if DEV_SITE_HOST and not IS_PRODUCTION:
    ALLOWED_HOSTS.append(DEV_SITE_HOST)
    USE_X_FORWARDED_HOST = True

# -------------------------
# Apps
# -------------------------
INSTALLED_APPS = [
    "store.apps.StoreAdminConfig",  # django.contrib.admin with the role-guarded site
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "whitenoise.runserver_nostatic",
    "django.contrib.staticfiles",

    # third party
    "rest_framework",
    "django_filters",
    "corsheaders",

    # local app
    "store.apps.StoreConfig",
]

AUTH_USER_MODEL = "store.User"

# -------------------------
# Middlewares
# -------------------------
MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",          # before CommonMiddleware
    "store.middleware.DevOriginMiddleware",           # before CSRF sees the Origin header
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "store.middleware.DevAuthCookieMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "backoffice.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,  # store/templates/emails/*
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "backoffice.wsgi.application"

# -------------------------
# Database (prod/dev)
# -------------------------
DATABASES = {
    "default": dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
        ssl_require=_env_bool("DATABASE_SSL_REQUIRE"),
    )
}

# -------------------------
# Password validation (defaults)
# -------------------------
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# -------------------------
# Locale / time zone
# -------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "Asia/Dubai")
USE_I18N = True
USE_TZ = True

# -------------------------
# Static files
# -------------------------
STATIC_URL = "/static/"
STATIC_ROOT = os.path.join(BASE_DIR, "staticfiles")
if not DEBUG:
    STORAGES = {
        "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
        "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -------------------------
# DRF (pagination + filters/search/ordering)
# -------------------------
REST_FRAMEWORK = {
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": int(os.getenv("API_PAGE_SIZE", "10")),
    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.SearchFilter",
        "rest_framework.filters.OrderingFilter",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "store.authentication.DevCookieAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "store.permissions.HasCapability",
    ],
    "EXCEPTION_HANDLER": "store.exceptions.api_exception_handler",
}

# -------------------------
# CORS / CSRF
# -------------------------
# Local frontends (Vite / Next dev servers) when ALLOW_DEV_ORIGINS is on
_DEV_ORIGINS = [
    "http://localhost:3000", "http://127.0.0.1:3000",
    "http://localhost:5173", "http://127.0.0.1:5173",
]
_PROD_ORIGINS = _env_list("PUBLIC_ORIGINS", [])

ALLOW_DEV_ORIGINS = _env_bool("ALLOW_DEV_ORIGINS", "True") and not IS_PRODUCTION
_default_origins = _PROD_ORIGINS + (_DEV_ORIGINS if ALLOW_DEV_ORIGINS else [])
if DEV_SITE_HOST and not IS_PRODUCTION:
    _default_origins.append(f"https://{DEV_SITE_HOST}")

CORS_ALLOWED_ORIGINS = _env_list("CORS_ALLOWED_ORIGINS", _default_origins)
CSRF_TRUSTED_ORIGINS = _env_list("CSRF_TRUSTED_ORIGINS", _default_origins)
CORS_ALLOW_CREDENTIALS = True  # session + CSRF cookies

# -------------------------
# Security (production)
# -------------------------
if IS_PRODUCTION:
    SECURE_SSL_REDIRECT = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_HSTS_SECONDS = 31536000
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

# -------------------------
# E-mail (SMTP relay, ENV)
# -------------------------
EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend")
EMAIL_HOST = os.getenv("SMTP_HOST", "localhost")
EMAIL_PORT = int(os.getenv("SMTP_PORT", "587"))
EMAIL_HOST_USER = os.getenv("SMTP_USER", "")
EMAIL_HOST_PASSWORD = os.getenv("SMTP_PASSWORD", "")
EMAIL_USE_TLS = _env_bool("SMTP_USE_TLS", "True")
EMAIL_USE_SSL = _env_bool("SMTP_USE_SSL")
EMAIL_TIMEOUT = int(os.getenv("SMTP_TIMEOUT", "30"))
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "") or EMAIL_HOST_USER or "no-reply@localhost"

# internal support inbox that receives the admin copy of status changes
SUPPORT_EMAIL = os.getenv("SUPPORT_EMAIL", "support@localhost")
STORE_NAME = os.getenv("STORE_NAME", "Store")
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "AED")

# -------------------------
# Roles / orders
# -------------------------
# Accounts that always resolve to superadmin, whatever user_roles says
PRIMARY_SUPERADMIN_EMAILS = [e.lower() for e in _env_list("PRIMARY_SUPERADMIN_EMAILS", [])]

# Off: any status may follow any other (legacy behavior). On: only the
# pairs in store.orders.ALLOWED_TRANSITIONS are accepted.
ORDER_STATUS_STRICT_TRANSITIONS = _env_bool("ORDER_STATUS_STRICT_TRANSITIONS")

# -------------------------
# Dev auth bypass (never in production)
# -------------------------
DEV_AUTH_COOKIE = "dev-auth"
DEV_AUTH_EMAIL = os.getenv("DEV_AUTH_EMAIL", "").strip().lower()

# -------------------------
# Logging
# -------------------------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {name} {message}",
            "style": "{",
        },
        "simple": {
            "format": "{levelname} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("DJANGO_LOG_LEVEL", "INFO"),
        },
        "store": {
            "handlers": ["console"],
            "level": os.getenv("STORE_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
