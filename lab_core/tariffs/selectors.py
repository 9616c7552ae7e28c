# lab_core/tariffs/selectors.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Avg, Count, QuerySet
from rest_framework.exceptions import NotFound

from lab_core.catalog.models import Exam
from lab_core.references.models import Reference
from lab_core.tariffs.models import PriceEntry, Tariff


@dataclass(frozen=True)
class TariffStats:
    tariff_id: UUID
    exam_count: int
    avg_price: Decimal | None


@dataclass(frozen=True)
class ExamPriceRow:
    """One exam of the admin price matrix; prices are keyed by tariff id."""
    exam_id: int
    name: str
    category: str
    is_public_visible: bool
    prices: Dict[UUID, Decimal] = field(default_factory=dict)


def get_tariff(*, tariff_id) -> Tariff:
    try:
        return Tariff.objects.get(id=tariff_id)
    except (Tariff.DoesNotExist, DjangoValidationError, ValueError, TypeError):
        raise NotFound(f"Tariff {tariff_id} not found.")


def list_tariffs(*, kind: str | None = None, enabled: bool | None = None) -> QuerySet[Tariff]:
    qs = Tariff.objects.annotate(
        exam_count=Count("price_entries"),
        avg_price=Avg("price_entries__price"),
    )
    if kind:
        qs = qs.filter(kind=kind)
    if enabled is not None:
        qs = qs.filter(is_enabled=enabled)
    return qs.order_by("kind", "name")


def list_prices(*, tariff_id=None) -> QuerySet[PriceEntry]:
    """
    Price entries of one tariff, or of every tariff when tariff_id is omitted.
    """
    qs = PriceEntry.objects.select_related("tariff", "exam")
    if tariff_id is not None:
        get_tariff(tariff_id=tariff_id)
        qs = qs.filter(tariff_id=tariff_id)
    return qs.order_by("exam__category", "exam__name", "exam_id", "tariff__name")


def tariff_stats(*, tariff_id) -> TariffStats:
    tariff = get_tariff(tariff_id=tariff_id)
    agg = list_prices(tariff_id=tariff.id).order_by().aggregate(
        exam_count=Count("id"),
        avg_price=Avg("price"),
    )

    avg = agg["avg_price"]
    if avg is not None:
        avg = Decimal(str(avg)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    return TariffStats(tariff_id=tariff.id, exam_count=agg["exam_count"] or 0, avg_price=avg)


def blocking_references(*, tariff_id) -> List[dict]:
    """References whose default tariff is tariff_id, active or not."""
    rows = Reference.objects.filter(default_tariff_id=tariff_id).order_by("name")
    return [{"id": str(r.id), "name": r.name, "active": r.active} for r in rows]


def price_matrix(*, tariff_id=None) -> List[ExamPriceRow]:
    """
    Every exam with its prices per tariff, in catalog order.
    Two queries regardless of catalog size.
    """
    entries = PriceEntry.objects.all()
    if tariff_id is not None:
        get_tariff(tariff_id=tariff_id)
        entries = entries.filter(tariff_id=tariff_id)

    by_exam: Dict[int, Dict[UUID, Decimal]] = {}
    for exam_id, t_id, price in entries.values_list("exam_id", "tariff_id", "price"):
        by_exam.setdefault(exam_id, {})[t_id] = price

    out: List[ExamPriceRow] = []
    for exam in Exam.objects.order_by("category", "name", "id"):
        out.append(
            ExamPriceRow(
                exam_id=exam.id,
                name=exam.name,
                category=exam.category,
                is_public_visible=exam.is_public_visible,
                prices=by_exam.get(exam.id, {}),
            )
        )
    return out
