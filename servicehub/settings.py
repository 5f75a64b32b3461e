# servicehub/settings.py
from pathlib import Path
from datetime import timedelta
from decouple import config, Csv
import dj_database_url

BASE_DIR = Path(__file__).resolve().parent.parent

# -------------------------------------------------------------------
# Core / Environment
# -------------------------------------------------------------------
ENV = config("ENV", default="development")  # "development" | "production" | "staging"
DEBUG = config("DEBUG", default=(ENV != "production"), cast=bool)
SECRET_KEY = config("SECRET_KEY")

ALLOWED_HOSTS = config("ALLOWED_HOSTS", cast=Csv(), default="localhost,127.0.0.1")
CSRF_TRUSTED_ORIGINS = config(
    "CSRF_TRUSTED_ORIGINS",
    cast=Csv(),
    default="http://localhost:3000,http://127.0.0.1:3000",
)

# -------------------------------------------------------------------
# Installed Apps
# -------------------------------------------------------------------
INSTALLED_APPS = [
    # Django core
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "corsheaders",
    "django_filters",

    # Project apps
    "users",
    "core",
    "services.apps.ServicesConfig",
    "payments.apps.PaymentsConfig",
    "notifications",
]

# -------------------------------------------------------------------
# Middleware
# -------------------------------------------------------------------
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",

    "corsheaders.middleware.CorsMiddleware",

    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",

    # Attaches request.client_context (ip, user agent, device) for payments
    "core.middleware.ClientContextMiddleware",
]

# -------------------------------------------------------------------
# URLs / Templates / WSGI
# -------------------------------------------------------------------
ROOT_URLCONF = "servicehub.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
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

WSGI_APPLICATION = "servicehub.wsgi.application"

# -------------------------------------------------------------------
# Database (Render/Heroku-style via DATABASE_URL)
# -------------------------------------------------------------------
DATABASES = {
    "default": dj_database_url.config(
        default=config("DATABASE_URL", default=f"sqlite:///{BASE_DIR/'db.sqlite3'}"),
        conn_max_age=600,
        ssl_require=config("DB_SSL_REQUIRE", default=False, cast=bool),
    )
}

# -------------------------------------------------------------------
# Cache (Redis when REDIS_URL is set; used by the cache lock backend)
# -------------------------------------------------------------------
REDIS_URL = config("REDIS_URL", default="")
if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": REDIS_URL,
            "OPTIONS": {"CLIENT_CLASS": "django_redis.client.DefaultClient"},
        }
    }
else:
    CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
    }

# -------------------------------------------------------------------
# Password Validators
# -------------------------------------------------------------------
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# -------------------------------------------------------------------
# I18N / TZ
# -------------------------------------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = "Asia/Kolkata"
USE_I18N = True
USE_TZ = True

# -------------------------------------------------------------------
# Static (WhiteNoise, admin only)
# -------------------------------------------------------------------
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
WHITENOISE_MAX_AGE = 60 if DEBUG else 60 * 60 * 24 * 30  # 30 days in prod
STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -------------------------------------------------------------------
# Auth
# -------------------------------------------------------------------
AUTH_USER_MODEL = "users.User"

# -------------------------------------------------------------------
# Email (payment notifications)
# -------------------------------------------------------------------
EMAIL_BACKEND = config("EMAIL_BACKEND", default="django.core.mail.backends.console.EmailBackend")
DEFAULT_FROM_EMAIL = config("DEFAULT_FROM_EMAIL", default="no-reply@servicehub.app")
NOTIFY_BY_EMAIL = config("NOTIFY_BY_EMAIL", default=False, cast=bool)

# -------------------------------------------------------------------
# DRF / Schema / Throttling
# -------------------------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.UserRateThrottle",
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.ScopedRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        # keep conservative with live money ops
        "user": config("DRF_USER_THROTTLE", default="1000/day"),
        "anon": config("DRF_ANON_THROTTLE", default="100/day"),
        "payment_initiation": config("DRF_PAYMENT_INIT_THROTTLE", default="12/hour"),
        "payment_webhook": config("DRF_PAYMENT_WEBHOOK_THROTTLE", default="600/minute"),
    },
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 25,
    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.OrderingFilter",
    ],
}

SPECTACULAR_SETTINGS = {
    "TITLE": "ServiceHub Payments API",
    "DESCRIPTION": "Provider registration payments: initiation, gateway callbacks, activation",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}

# -------------------------------------------------------------------
# JWT
# -------------------------------------------------------------------
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=config("JWT_ACCESS_MIN", default=60, cast=int)),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=config("JWT_REFRESH_DAYS", default=1, cast=int)),
    "AUTH_HEADER_TYPES": ("Bearer",),
}

# -------------------------------------------------------------------
# CORS
# -------------------------------------------------------------------
CORS_ALLOWED_ORIGINS = config(
    "CORS_ALLOWED_ORIGINS",
    cast=Csv(),
    default="http://localhost:3000,http://127.0.0.1:3000",
)
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_ALL_ORIGINS = config("CORS_ALLOW_ALL_ORIGINS", default=DEBUG, cast=bool)

# -------------------------------------------------------------------
# Security (good defaults behind an HTTPS proxy)
# -------------------------------------------------------------------
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = config("SECURE_SSL_REDIRECT", default=(ENV == "production"), cast=bool)

SESSION_COOKIE_SECURE = (ENV == "production")
CSRF_COOKIE_SECURE = (ENV == "production")

SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_HSTS_SECONDS = 60 * 60 * 24 * 7 if ENV == "production" else 0
SECURE_HSTS_INCLUDE_SUBDOMAINS = (ENV == "production")

X_FRAME_OPTIONS = "DENY"
REFERRER_POLICY = "same-origin"

# -------------------------------------------------------------------
# Payment gateway (Paytm-style form post + status API)
# -------------------------------------------------------------------
GATEWAY_MODE = config("GATEWAY_MODE", default="STAGING").upper()  # LIVE | STAGING
GATEWAY_MERCHANT_ID = config("GATEWAY_MERCHANT_ID", default="")
GATEWAY_MERCHANT_KEY = config("GATEWAY_MERCHANT_KEY", default="")
GATEWAY_WEBSITE = config("GATEWAY_WEBSITE", default="WEBSTAGING")
GATEWAY_CHANNEL_ID = config("GATEWAY_CHANNEL_ID", default="WAP")
GATEWAY_INDUSTRY_TYPE = config("GATEWAY_INDUSTRY_TYPE", default="Retail")
GATEWAY_CALLBACK_URL = config(
    "GATEWAY_CALLBACK_URL", default="http://localhost:8000/api/payments/webhook/"
)
# Published callback source ranges; anything else is rejected before the payload is read
GATEWAY_WEBHOOK_IP_RANGES = config(
    "GATEWAY_WEBHOOK_IP_RANGES",
    cast=Csv(),
    default="203.192.240.0/24,203.192.241.0/24,202.164.37.0/24",
)
GATEWAY_ALLOW_PRIVATE_ORIGINS = config("GATEWAY_ALLOW_PRIVATE_ORIGINS", default=DEBUG, cast=bool)
GATEWAY_TRUST_FORWARDED_FOR = config("GATEWAY_TRUST_FORWARDED_FOR", default=False, cast=bool)

# -------------------------------------------------------------------
# Payment integrity tuning
# -------------------------------------------------------------------
PAYMENT_LOCK_BACKEND = config("PAYMENT_LOCK_BACKEND", default="db")  # db | cache
PAYMENT_LOCK_TTL_SECONDS = config("PAYMENT_LOCK_TTL_SECONDS", default=30, cast=int)
PAYMENT_DUPLICATE_GRACE_SECONDS = config("PAYMENT_DUPLICATE_GRACE_SECONDS", default=300, cast=int)
PAYMENT_PENDING_TIMEOUT_MINUTES = config("PAYMENT_PENDING_TIMEOUT_MINUTES", default=30, cast=int)
WEBHOOK_FRESHNESS_SECONDS = config("WEBHOOK_FRESHNESS_SECONDS", default=300, cast=int)
WEBHOOK_RECEIPT_RETENTION_HOURS = config("WEBHOOK_RECEIPT_RETENTION_HOURS", default=72, cast=int)
REGISTRATION_VALIDITY_DAYS = config("REGISTRATION_VALIDITY_DAYS", default=365, cast=int)

RISK_REVIEW_THRESHOLD = config("RISK_REVIEW_THRESHOLD", default=0.7, cast=float)
RISK_VELOCITY_LIMIT = config("RISK_VELOCITY_LIMIT", default=3, cast=int)
RISK_HIGH_AMOUNT = config("RISK_HIGH_AMOUNT", default="50000")
RISK_BLOCKED_IP_RANGES = config("RISK_BLOCKED_IP_RANGES", cast=Csv(), default="")

# -------------------------------------------------------------------
# Logging (mask PII in your own log calls; avoid logging raw payloads)
# -------------------------------------------------------------------
LOG_LEVEL = "DEBUG" if DEBUG else "INFO"
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "app": {
            "format": "[{levelname}] {asctime} {name} - {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "app",
        },
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "django.db.backends": {"level": "WARNING" if not DEBUG else "INFO"},
        "django.request": {"level": "WARNING"},
        "payments": {"level": config("PAYMENTS_LOG_LEVEL", default="INFO")},
    },
}
