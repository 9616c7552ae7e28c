# lab_core/tariffs/models.py
from __future__ import annotations

from decimal import Decimal

from django.db import models

from lab_core.catalog.models import Exam
from lab_core.common.models import UUIDModel


class TariffKind(models.TextChoices):
    COST = "cost", "Cost"
    SALE = "sale", "Sale"


class Tariff(UUIDModel):
    """
    A named price list ("Base", "Médicos", "Empresa X").
    is_enabled suspends the whole list for resolution without touching its prices.
    """
    name = models.CharField(max_length=255)
    kind = models.CharField(max_length=8, choices=TariffKind.choices, default=TariffKind.SALE)

    is_taxable = models.BooleanField(default=False)
    is_enabled = models.BooleanField(default=True, db_index=True)

    class Meta:
        db_table = "tariffs_tariff"
        constraints = [
            models.UniqueConstraint(fields=["kind", "name"], name="uq_tariff_kind_name"),
        ]
        indexes = [
            models.Index(fields=["kind", "is_enabled"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.kind})"


class PriceEntry(UUIDModel):
    """
    One price for one (tariff, exam) pair. The ledger is sparse: a missing row
    means "not priced under this tariff", which also hides the exam from members.
    """
    tariff = models.ForeignKey(Tariff, on_delete=models.PROTECT, related_name="price_entries")
    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name="price_entries")

    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        db_table = "tariffs_price_entry"
        constraints = [
            models.UniqueConstraint(fields=["tariff", "exam"], name="uq_price_entry_tariff_exam"),
            models.CheckConstraint(condition=models.Q(price__gte=0), name="ck_price_entry_price_non_negative"),
        ]
        indexes = [
            models.Index(fields=["exam", "tariff"]),
        ]

    def __str__(self) -> str:
        return f"{self.tariff_id}:{self.exam_id}={self.price}"
