# lab_core/tariffs/apps.py
from django.apps import AppConfig


class TariffsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "lab_core.tariffs"
    verbose_name = "Tariffs and price ledger"
