# lab_core/pricing/repository.py
from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, Protocol, Set
from uuid import UUID

from lab_core.catalog.models import Exam
from lab_core.pricing.context import snapshot_reference
from lab_core.pricing.results import ReferenceSnapshot, TariffRecord
from lab_core.references.selectors import public_reference
from lab_core.tariffs.models import PriceEntry, Tariff


class PricingRepository(Protocol):
    """
    Read operations the price and visibility resolvers depend on.
    Implementations must not mutate anything.
    """

    def existing_exam_ids(self, exam_ids: Iterable[int]) -> Set[int]: ...

    def all_exam_ids(self) -> Set[int]: ...

    def public_exam_ids(self) -> Set[int]: ...

    def enabled_tariffs(self, tariff_ids: Iterable[UUID]) -> Dict[UUID, TariffRecord]:
        """Only the ids that exist and are enabled come back."""
        ...

    def public_reference(self) -> ReferenceSnapshot | None:
        """The active reference reserved for callers without special pricing."""
        ...

    def prices_for(self, tariff_id: UUID, exam_ids: Iterable[int]) -> Dict[int, Decimal]: ...

    def priced_exam_ids(self, tariff_ids: Iterable[UUID]) -> Set[int]:
        """Exams with any price under any of the given tariffs that is enabled."""
        ...


class OrmPricingRepository:
    """Django ORM implementation; every method is a single query."""

    def existing_exam_ids(self, exam_ids: Iterable[int]) -> Set[int]:
        return set(Exam.objects.filter(id__in=list(exam_ids)).values_list("id", flat=True))

    def all_exam_ids(self) -> Set[int]:
        return set(Exam.objects.values_list("id", flat=True))

    def public_exam_ids(self) -> Set[int]:
        return set(Exam.objects.filter(is_public_visible=True).values_list("id", flat=True))

    def enabled_tariffs(self, tariff_ids: Iterable[UUID]) -> Dict[UUID, TariffRecord]:
        rows = Tariff.objects.filter(id__in=list(tariff_ids), is_enabled=True)
        return {
            t.id: TariffRecord(id=t.id, name=t.name, kind=t.kind, is_taxable=t.is_taxable)
            for t in rows
        }

    def public_reference(self) -> ReferenceSnapshot | None:
        ref = public_reference()
        return snapshot_reference(ref) if ref is not None else None

    def prices_for(self, tariff_id: UUID, exam_ids: Iterable[int]) -> Dict[int, Decimal]:
        qs = PriceEntry.objects.filter(tariff_id=tariff_id, exam_id__in=list(exam_ids))
        return dict(qs.values_list("exam_id", "price"))

    def priced_exam_ids(self, tariff_ids: Iterable[UUID]) -> Set[int]:
        qs = PriceEntry.objects.filter(tariff_id__in=list(tariff_ids), tariff__is_enabled=True)
        return set(qs.values_list("exam_id", flat=True).distinct())
