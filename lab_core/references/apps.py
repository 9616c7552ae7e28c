# lab_core/references/apps.py
from django.apps import AppConfig


class ReferencesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "lab_core.references"
    verbose_name = "Client references"
