# config/settings/prod.py
import os

from .base import *  # noqa

DEBUG = False
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "").split(",") if h]

CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = [o for o in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",") if o]
CORS_ALLOW_CREDENTIALS = True

# Catalog surfaces that never show prices to anonymous visitors set this to 0.
PRICING_ANONYMOUS_CAN_VIEW_PRICES = os.getenv("PRICING_ANONYMOUS_CAN_VIEW_PRICES", "1") == "1"
