# lab_core/pricing/resolvers.py
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable, List

from django.conf import settings
from django.db import DatabaseError
from rest_framework.exceptions import ValidationError

from lab_core.pricing.context import CallerContext, CallerRole, DeadlineExceeded
from lab_core.pricing.repository import OrmPricingRepository, PricingRepository
from lab_core.pricing.results import (
    NotFound,
    PriceQuote,
    PriceResult,
    TariffChoice,
    Unavailable,
    UnavailableReason,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_BATCH_SIZE = 500


def max_batch_size() -> int:
    return int(getattr(settings, "PRICING_MAX_BATCH_SIZE", DEFAULT_MAX_BATCH_SIZE))


class PriceResolver:
    """
    Decides which price, if any, a caller sees for an exam.

    Precedence: price capability, exam existence, applicable tariff, ledger
    entry. The applicable tariff is the default tariff of the first active
    membership reference whose tariff is enabled, else the public reference's
    enabled tariff. Any store failure or an expired deadline resolves to
    Unavailable.
    """

    def __init__(self, repository: PricingRepository | None = None):
        self.repository = repository or OrmPricingRepository()

    def _choose_tariff(self, ctx: CallerContext) -> TariffChoice | None:
        candidates = [r for r in ctx.memberships if r.active and r.default_tariff_id is not None]

        if candidates:
            ctx.check_deadline()
            enabled = self.repository.enabled_tariffs({r.default_tariff_id for r in candidates})
            for ref in candidates:
                tariff = enabled.get(ref.default_tariff_id)
                if tariff is not None:
                    return TariffChoice(reference=ref, tariff=tariff, has_special_pricing=True)

        ctx.check_deadline()
        public = self.repository.public_reference()
        if public is None or not public.active or public.default_tariff_id is None:
            return None

        ctx.check_deadline()
        tariff = self.repository.enabled_tariffs({public.default_tariff_id}).get(public.default_tariff_id)
        if tariff is None:
            return None
        return TariffChoice(reference=public, tariff=tariff, has_special_pricing=False)

    def applicable_tariff(self, ctx: CallerContext) -> TariffChoice | None:
        try:
            return self._choose_tariff(ctx)
        except DeadlineExceeded:
            logger.warning("applicable tariff: deadline exceeded user=%s", ctx.user_id)
            return None
        except DatabaseError:
            logger.exception("applicable tariff: store error user=%s", ctx.user_id)
            return None

    def resolve_price(self, exam_id: int, ctx: CallerContext) -> PriceResult:
        return self.resolve_prices([exam_id], ctx)[exam_id]

    def resolve_prices(self, exam_ids: Iterable[int], ctx: CallerContext) -> Dict[int, PriceResult]:
        """
        Batched resolution: one tariff decision and one ledger query for the
        whole batch. Keys follow the input order with duplicates collapsed.
        """
        ids: List[int] = list(dict.fromkeys(exam_ids))

        limit = max_batch_size()
        if len(ids) > limit:
            raise ValidationError({"exam_ids": f"At most {limit} exams per request."})

        if not ids:
            return {}

        if not ctx.can_view_prices:
            return {i: Unavailable(exam_id=i, reason=UnavailableReason.NO_CAPABILITY) for i in ids}

        try:
            ctx.check_deadline()
            existing = self.repository.existing_exam_ids(ids)

            choice = self._choose_tariff(ctx) if existing else None

            prices = {}
            if choice is not None:
                ctx.check_deadline()
                prices = self.repository.prices_for(choice.tariff.id, existing)
        except DeadlineExceeded:
            logger.warning("price resolution deadline exceeded user=%s exams=%d", ctx.user_id, len(ids))
            return {i: Unavailable(exam_id=i, reason=UnavailableReason.DEADLINE) for i in ids}
        except DatabaseError:
            logger.exception("price resolution failed user=%s exams=%d", ctx.user_id, len(ids))
            return {i: Unavailable(exam_id=i, reason=UnavailableReason.ERROR) for i in ids}

        out: Dict[int, PriceResult] = {}
        for i in ids:
            if i not in existing:
                out[i] = NotFound(entity="exam", id=i)
            elif choice is None:
                out[i] = Unavailable(exam_id=i, reason=UnavailableReason.NO_TARIFF)
            elif i not in prices:
                out[i] = Unavailable(exam_id=i, reason=UnavailableReason.NO_PRICE)
            else:
                out[i] = PriceQuote(
                    exam_id=i,
                    price=prices[i],
                    tariff_id=choice.tariff.id,
                    tariff_name=choice.tariff.name,
                    is_taxable=choice.tariff.is_taxable,
                    has_special_pricing=choice.has_special_pricing,
                    reference_id=choice.reference.id,
                    reference_name=choice.reference.name,
                )
        return out


class VisibilityResolver:
    """
    Which exams a caller may see.

    Admins see everything. Everyone sees public exams. Members also see every
    exam priced under an enabled default tariff of one of their active
    references. Fails closed to the empty set.
    """

    def __init__(self, repository: PricingRepository | None = None):
        self.repository = repository or OrmPricingRepository()

    def list_visible_exam_ids(self, ctx: CallerContext) -> FrozenSet[int]:
        try:
            ctx.check_deadline()
            if ctx.role == CallerRole.ADMIN:
                return frozenset(self.repository.all_exam_ids())

            visible = set(self.repository.public_exam_ids())

            if ctx.role == CallerRole.MEMBER:
                tariff_ids = {
                    r.default_tariff_id
                    for r in ctx.memberships
                    if r.active and r.default_tariff_id is not None
                }
                if tariff_ids:
                    ctx.check_deadline()
                    visible |= self.repository.priced_exam_ids(tariff_ids)

            return frozenset(visible)
        except DeadlineExceeded:
            logger.warning("visibility deadline exceeded user=%s", ctx.user_id)
            return frozenset()
        except DatabaseError:
            logger.exception("visibility resolution failed user=%s", ctx.user_id)
            return frozenset()

    def is_visible(self, exam_id: int, ctx: CallerContext) -> bool:
        return exam_id in self.list_visible_exam_ids(ctx)
