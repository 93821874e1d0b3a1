# config/settings/base.py
from pathlib import Path
import os
from dotenv import load_dotenv
from datetime import timedelta


BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "unsafe-dev-key")
DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    # Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "django_filters",

    # Domain apps
    "dr_core.common.apps.CommonConfig",
    "dr_core.tenants.apps.TenantsConfig",
    "dr_core.catalog.apps.CatalogConfig",
    # last: discovers resource models from every app above
    "dr_core.resources.apps.ResourcesConfig",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",

    "django.contrib.auth.middleware.AuthenticationMiddleware",

    # empty tenant context at the start and end of every request
    "dr_core.common.middleware.TenantContextMiddleware",

    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

WSGI_APPLICATION = "config.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("DB_NAME", "dr"),
        "USER": os.getenv("DB_USER", "dr"),
        "PASSWORD": os.getenv("DB_PASSWORD", "dr"),
        "HOST": os.getenv("DB_HOST", "127.0.0.1"),
        "PORT": os.getenv("DB_PORT", "5432"),
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.redis.RedisCache",
        "LOCATION": os.getenv("REDIS_URL", "redis://127.0.0.1:6379/1"),
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",

    # Standard error envelope
    "EXCEPTION_HANDLER": "dr_core.common.api.exceptions.api_exception_handler",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Dynamic Resources API",
    "DESCRIPTION": "Tenant-scoped generic listing, filtering and metadata for registered resources",
    "VERSION": "0.1.0",

    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": True,
    "SORT_OPERATION_PARAMETERS": True,
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=10),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=14),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": False,
    "UPDATE_LAST_LOGIN": True,
}

# CORS settings
# Development
CORS_ALLOW_ALL_ORIGINS = True  # Only for development!
CORS_ALLOW_CREDENTIALS = True

# Tenancy
TENANT_HEADER = os.getenv("TENANT_HEADER", "X-Organization-Id")

# Resource listings
RESOURCES_PAGINATION_DEFAULT_SIZE = int(os.getenv("RESOURCES_PAGINATION_DEFAULT_SIZE", "25"))
RESOURCES_PAGINATION_MAX_SIZE = int(os.getenv("RESOURCES_PAGINATION_MAX_SIZE", "100"))
RESOURCES_CURSOR_PARAM = "page[cursor]"
RESOURCES_SIZE_PARAM = "page[per_page]"
RESOURCE_MODELS = []  # extra models outside INSTALLED_APPS discovery ("app_label.Model")

# Metadata cache
METADATA_CACHE_ENABLED = os.getenv("METADATA_CACHE_ENABLED", "1") == "1"
METADATA_CACHE_TTL = int(os.getenv("METADATA_CACHE_TTL", "600"))
METADATA_CACHE_PREFIX = os.getenv("METADATA_CACHE_PREFIX", "dr:metadata")
METADATA_CACHE_BACKEND = os.getenv("METADATA_CACHE_BACKEND", "dr_core.cache.backends.VersionedCacheBackend")
METADATA_CACHE_ALIAS = "default"
METADATA_CACHE_REDIS_URL = os.getenv("METADATA_CACHE_REDIS_URL", os.getenv("REDIS_URL", "redis://127.0.0.1:6379/2"))
METADATA_CACHE_MONITORING = os.getenv("METADATA_CACHE_MONITORING", "0") == "1"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "console": {"class": "logging.StreamHandler"},
    },
    "root": {"handlers": ["console"], "level": os.getenv("LOG_LEVEL", "INFO")},
}
