# lab_core/tariffs/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, List
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import ProtectedError
from rest_framework.exceptions import NotFound, ValidationError

from lab_core.audit.services import AuditService
from lab_core.catalog.models import Exam
from lab_core.catalog.selectors import get_exam
from lab_core.common.api.exceptions import ConflictError, DanglingReferenceError
from lab_core.tariffs.models import PriceEntry, Tariff, TariffKind
from lab_core.tariffs.selectors import blocking_references, get_tariff

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
MAX_PRICE = Decimal("9999999999.99")  # max_digits=12, decimal_places=2

TARIFF_MUTABLE_FIELDS = ("name", "kind", "is_taxable", "is_enabled")


def _to_decimal(value, field_name: str) -> Decimal:
    """
    Accepts Decimal / str / int / float and converts to Decimal safely.
    Raises ValidationError for invalid values.
    """
    if isinstance(value, bool):
        raise ValidationError({field_name: "Invalid decimal value."})
    if isinstance(value, Decimal):
        d = value
    else:
        try:
            # str() handles int/float/str uniformly
            d = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError({field_name: "Invalid decimal value."})
    if not d.is_finite():
        raise ValidationError({field_name: "Invalid decimal value."})
    return d


def _to_price(value, field_name: str = "price") -> Decimal:
    price = _to_decimal(value, field_name).quantize(CENT, rounding=ROUND_HALF_UP)
    if price < Decimal("0.00"):
        raise ValidationError({field_name: "Must be >= 0"})
    if price > MAX_PRICE:
        raise ValidationError({field_name: f"Must be <= {MAX_PRICE}"})
    return price


def _upsert_entries(rows: List[PriceEntry]) -> None:
    """
    INSERT ... ON CONFLICT (tariff_id, exam_id) DO UPDATE SET price, updated_at.

    Existing rows keep their id. One retry when the store reports an
    IntegrityError, then ConflictError.
    """
    if not rows:
        return

    for attempt in (1, 2):
        try:
            with transaction.atomic():
                PriceEntry.objects.bulk_create(
                    rows,
                    update_conflicts=True,
                    unique_fields=["tariff", "exam"],
                    update_fields=["price", "updated_at"],
                )
            return
        except IntegrityError as exc:
            if attempt == 2:
                logger.error("price upsert failed after retry rows=%d: %s", len(rows), exc)
                raise ConflictError("Concurrent price update could not be applied; retry the request.")
            logger.warning("price upsert conflict, retrying rows=%d: %s", len(rows), exc)


class TariffService:
    """
    Tariff CRUD. Deletion is block-and-report: a tariff that is still some
    reference's default, or still has price entries, is never removed.
    """

    @staticmethod
    def _validate_kind(kind: str) -> str:
        if kind not in TariffKind.values:
            raise ValidationError({"kind": f"Must be one of {', '.join(TariffKind.values)}."})
        return kind

    @staticmethod
    def _validate_name(name) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": "This field is required."})
        return name

    @staticmethod
    def _save_unique(tariff: Tariff) -> Tariff:
        dup = Tariff.objects.filter(kind=tariff.kind, name=tariff.name).exclude(id=tariff.id).exists()
        if dup:
            raise ConflictError(f"A {tariff.kind} tariff named '{tariff.name}' already exists.")
        try:
            with transaction.atomic():
                tariff.save()
        except IntegrityError:
            raise ConflictError(f"A {tariff.kind} tariff named '{tariff.name}' already exists.")
        return tariff

    @staticmethod
    @transaction.atomic
    def create_tariff(
        *,
        name: str,
        kind: str = TariffKind.SALE,
        is_taxable: bool = False,
        is_enabled: bool = True,
        actor_user_id=None,
    ) -> Tariff:
        tariff = Tariff(
            name=TariffService._validate_name(name),
            kind=TariffService._validate_kind(kind),
            is_taxable=bool(is_taxable),
            is_enabled=bool(is_enabled),
        )
        TariffService._save_unique(tariff)

        AuditService.log(
            event_code="tariff.created",
            entity_type="Tariff",
            entity_id=tariff.id,
            actor_user_id=actor_user_id,
            metadata={"name": tariff.name, "kind": tariff.kind, "is_enabled": tariff.is_enabled},
        )
        return tariff

    @staticmethod
    @transaction.atomic
    def update_tariff(*, tariff_id, actor_user_id=None, **fields) -> Tariff:
        unknown = set(fields) - set(TARIFF_MUTABLE_FIELDS)
        if unknown:
            raise ValidationError({k: "Unknown field." for k in sorted(unknown)})

        tariff = get_tariff(tariff_id=tariff_id)

        if "name" in fields:
            tariff.name = TariffService._validate_name(fields["name"])
        if "kind" in fields:
            tariff.kind = TariffService._validate_kind(fields["kind"])
        if "is_taxable" in fields:
            tariff.is_taxable = bool(fields["is_taxable"])
        if "is_enabled" in fields:
            tariff.is_enabled = bool(fields["is_enabled"])

        TariffService._save_unique(tariff)

        AuditService.log(
            event_code="tariff.updated",
            entity_type="Tariff",
            entity_id=tariff.id,
            actor_user_id=actor_user_id,
            metadata={k: str(v) for k, v in fields.items()},
        )
        return tariff

    @staticmethod
    @transaction.atomic
    def set_enabled(*, tariff_id, enabled: bool, actor_user_id=None) -> Tariff:
        tariff = get_tariff(tariff_id=tariff_id)
        if tariff.is_enabled != bool(enabled):
            tariff.is_enabled = bool(enabled)
            tariff.save(update_fields=["is_enabled", "updated_at"])

        AuditService.log(
            event_code="tariff.enabled" if tariff.is_enabled else "tariff.disabled",
            entity_type="Tariff",
            entity_id=tariff.id,
            actor_user_id=actor_user_id,
            metadata={"name": tariff.name},
        )
        logger.info("tariff %s enabled=%s", tariff.id, tariff.is_enabled)
        return tariff

    @staticmethod
    @transaction.atomic
    def delete_tariff(*, tariff_id, actor_user_id=None) -> None:
        try:
            tariff = Tariff.objects.select_for_update().get(id=tariff_id)
        except (Tariff.DoesNotExist, DjangoValidationError, ValueError, TypeError):
            raise NotFound(f"Tariff {tariff_id} not found.")

        refs = blocking_references(tariff_id=tariff.id)
        price_count = PriceEntry.objects.filter(tariff_id=tariff.id).count()

        if refs or price_count:
            logger.warning(
                "tariff delete blocked id=%s references=%d price_entries=%d",
                tariff.id,
                len(refs),
                price_count,
            )
            raise DanglingReferenceError(references=refs, price_entry_count=price_count)

        name = tariff.name
        try:
            with transaction.atomic():
                tariff.delete()
        except ProtectedError:
            # A reference or price entry appeared after the check above.
            raise DanglingReferenceError(
                references=blocking_references(tariff_id=tariff_id),
                price_entry_count=PriceEntry.objects.filter(tariff_id=tariff_id).count(),
            )

        AuditService.log(
            event_code="tariff.deleted",
            entity_type="Tariff",
            entity_id=tariff_id,
            actor_user_id=actor_user_id,
            metadata={"name": name},
        )


@dataclass(frozen=True)
class LegacyMigrationReport:
    base_tariff_id: str
    reference_tariff_id: str
    base_prices: int
    reference_prices: int
    skipped: int


class PriceLedgerService:
    """
    Write side of the price ledger. Every write is a conflict-resolving upsert
    on (tariff, exam); there is never a read-then-insert path.
    """

    @staticmethod
    @transaction.atomic
    def set_price(*, tariff_id, exam_id, price, actor_user_id=None) -> PriceEntry:
        price = _to_price(price)
        tariff = get_tariff(tariff_id=tariff_id)
        exam = get_exam(exam_id=exam_id)

        _upsert_entries([PriceEntry(tariff=tariff, exam=exam, price=price)])

        entry = PriceEntry.objects.select_related("tariff", "exam").get(tariff_id=tariff.id, exam_id=exam.id)

        AuditService.log(
            event_code="price.set",
            entity_type="PriceEntry",
            entity_id=entry.id,
            actor_user_id=actor_user_id,
            metadata={"tariff_id": str(tariff.id), "exam_id": exam.id, "price": str(price)},
        )
        return entry

    @staticmethod
    @transaction.atomic
    def set_prices(*, items: Iterable[dict], actor_user_id=None) -> List[PriceEntry]:
        """
        Bulk upsert of {"tariff_id", "exam_id", "price"} items in one statement.
        All-or-nothing; a pair repeated in the batch keeps its last price.
        """
        pending: dict[tuple, Decimal] = {}
        for i, item in enumerate(items):
            try:
                key = (UUID(str(item["tariff_id"])), int(item["exam_id"]))
            except (KeyError, ValueError, TypeError):
                raise ValidationError({"items": f"Item {i} needs tariff_id, exam_id and price."})
            pending[key] = _to_price(item.get("price"), field_name=f"items[{i}].price")

        if not pending:
            return []

        tariff_ids = {t for t, _ in pending}
        exam_ids = {e for _, e in pending}

        tariffs = {t.id: t for t in Tariff.objects.filter(id__in=tariff_ids)}
        exams = {e.id: e for e in Exam.objects.filter(id__in=exam_ids)}

        missing_tariffs = sorted(str(t) for t in tariff_ids - set(tariffs))
        missing_exams = sorted(exam_ids - set(exams))
        if missing_tariffs or missing_exams:
            raise NotFound(
                {
                    "detail": "Unknown tariffs or exams.",
                    "tariff_ids": missing_tariffs,
                    "exam_ids": missing_exams,
                }
            )

        rows = [
            PriceEntry(tariff=tariffs[t], exam=exams[e], price=price)
            for (t, e), price in pending.items()
        ]
        _upsert_entries(rows)

        stored = PriceEntry.objects.select_related("tariff", "exam").filter(
            tariff_id__in=tariff_ids,
            exam_id__in=exam_ids,
        )
        out = [p for p in stored if (p.tariff_id, p.exam_id) in pending]
        out.sort(key=lambda p: (str(p.tariff_id), p.exam_id))

        AuditService.log(
            event_code="price.bulk_set",
            entity_type="PriceEntry",
            entity_id="bulk",
            actor_user_id=actor_user_id,
            metadata={"count": len(out), "tariff_ids": sorted(str(t) for t in tariffs)},
        )
        logger.info("bulk price upsert count=%d", len(out))
        return out

    @staticmethod
    @transaction.atomic
    def delete_price(*, tariff_id, exam_id, actor_user_id=None) -> bool:
        """Removes the (tariff, exam) price if present. Returns True when a row was removed."""
        tariff = get_tariff(tariff_id=tariff_id)
        exam = get_exam(exam_id=exam_id)

        deleted, _ = PriceEntry.objects.filter(tariff_id=tariff.id, exam_id=exam.id).delete()
        if deleted:
            AuditService.log(
                event_code="price.deleted",
                entity_type="PriceEntry",
                entity_id=f"{tariff.id}:{exam.id}",
                actor_user_id=actor_user_id,
                metadata={"tariff_id": str(tariff.id), "exam_id": exam.id},
            )
        return bool(deleted)

    @staticmethod
    @transaction.atomic
    def copy_prices(*, source_tariff_id, target_tariff_id, multiplier=1, actor_user_id=None) -> int:
        """
        Copies every price of source into target, multiplied and rounded
        half-up to cents. Target prices for the same exams are overwritten.
        """
        factor = _to_decimal(multiplier, "multiplier")
        if factor < 0:
            raise ValidationError({"multiplier": "Must be >= 0"})

        source = get_tariff(tariff_id=source_tariff_id)
        target = get_tariff(tariff_id=target_tariff_id)
        if source.id == target.id:
            raise ValidationError({"target_tariff_id": "Source and target tariff must differ."})

        rows = [
            PriceEntry(
                tariff=target,
                exam_id=exam_id,
                price=_to_price(price * factor),
            )
            for exam_id, price in PriceEntry.objects.filter(tariff_id=source.id).values_list("exam_id", "price")
        ]
        _upsert_entries(rows)

        AuditService.log(
            event_code="price.copied",
            entity_type="Tariff",
            entity_id=target.id,
            actor_user_id=actor_user_id,
            metadata={"source_tariff_id": str(source.id), "multiplier": str(factor), "count": len(rows)},
        )
        logger.info("copied %d prices %s -> %s x%s", len(rows), source.id, target.id, factor)
        return len(rows)

    @staticmethod
    @transaction.atomic
    def migrate_legacy_prices(
        *,
        base_tariff_id,
        reference_tariff_id,
        multiplier=None,
        actor_user_id=None,
    ) -> LegacyMigrationReport:
        """
        One-time move of Exam.legacy_price into the base tariff and
        Exam.legacy_reference_price into the reference tariff. When an exam has
        no reference price, legacy_price * multiplier is used instead.
        Re-running it overwrites with the same values.
        """
        if multiplier is None:
            multiplier = getattr(settings, "PRICING_LEGACY_REFERENCE_MULTIPLIER", "0.8")
        factor = _to_decimal(multiplier, "multiplier")
        if factor < 0:
            raise ValidationError({"multiplier": "Must be >= 0"})

        base = get_tariff(tariff_id=base_tariff_id)
        reference = get_tariff(tariff_id=reference_tariff_id)
        if base.id == reference.id:
            raise ValidationError({"reference_tariff_id": "Base and reference tariff must differ."})

        rows: List[PriceEntry] = []
        skipped = Exam.objects.exclude(legacy_price__gt=0).count()
        migrated = 0
        for exam in Exam.objects.filter(legacy_price__gt=0).order_by("id"):
            ref_price = exam.legacy_reference_price or exam.legacy_price * factor
            rows.append(PriceEntry(tariff=base, exam=exam, price=_to_price(exam.legacy_price)))
            rows.append(PriceEntry(tariff=reference, exam=exam, price=_to_price(ref_price)))
            migrated += 1

        _upsert_entries(rows)

        report = LegacyMigrationReport(
            base_tariff_id=str(base.id),
            reference_tariff_id=str(reference.id),
            base_prices=migrated,
            reference_prices=migrated,
            skipped=skipped,
        )
        AuditService.log(
            event_code="price.legacy_migrated",
            entity_type="Tariff",
            entity_id=base.id,
            actor_user_id=actor_user_id,
            metadata={
                "reference_tariff_id": str(reference.id),
                "multiplier": str(factor),
                "migrated": migrated,
                "skipped": skipped,
            },
        )
        logger.info("legacy prices migrated=%d skipped=%d", migrated, skipped)
        return report
