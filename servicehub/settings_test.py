# servicehub/settings_test.py
import os
import tempfile

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENV", "test")

from .settings import *  # noqa: E402,F401,F403

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
        # File-backed so threaded tests share one database
        "TEST": {"NAME": os.path.join(tempfile.gettempdir(), "servicehub_test.sqlite3")},
        "OPTIONS": {"timeout": 20},
    }
}

CACHES = {
    "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
}

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

GATEWAY_MODE = "STAGING"
GATEWAY_MERCHANT_ID = "TESTMID0001"
GATEWAY_MERCHANT_KEY = "test-merchant-key"
GATEWAY_WEBHOOK_IP_RANGES = ["203.192.240.0/24"]
GATEWAY_ALLOW_PRIVATE_ORIGINS = False

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    "DEFAULT_THROTTLE_CLASSES": [],
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"null": {"class": "logging.NullHandler"}},
    "root": {"handlers": ["null"], "level": "WARNING"},
}
