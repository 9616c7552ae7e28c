# lab_core/catalog/models.py
from __future__ import annotations

from django.db import models

from lab_core.common.models import TimeStampedModel


class Exam(TimeStampedModel):
    """
    A laboratory exam in the public catalog.

    Rows are owned by the storefront; the tariff engine only reads them.
    legacy_price / legacy_reference_price predate the price ledger and are
    read by the one-time migration only, never by the resolvers.
    """
    name = models.CharField(max_length=255)
    category = models.CharField(max_length=128, blank=True, default="")

    is_public_visible = models.BooleanField(default=False, db_index=True)

    legacy_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    legacy_reference_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    class Meta:
        db_table = "catalog_exam"
        indexes = [
            models.Index(fields=["category", "name"]),
        ]

    def __str__(self) -> str:
        return self.name
