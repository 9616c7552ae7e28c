# config/settings/test.py
from .base import *  # noqa

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

LOGGING["loggers"]["lab_core"]["level"] = "WARNING"  # noqa: F405

PRICING_PUBLIC_REFERENCE_NAME = "Público General"
PRICING_ANONYMOUS_CAN_VIEW_PRICES = True
PRICING_RESOLVE_TIMEOUT_SECONDS = 5.0
PRICING_MAX_BATCH_SIZE = 500
PRICING_LEGACY_REFERENCE_MULTIPLIER = "0.8"
