# lab_core/pricing/api/views.py
from __future__ import annotations

from typing import Dict

from django.conf import settings
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound as DRFNotFound
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from lab_core.catalog.models import Exam
from lab_core.catalog.selectors import exams_filtered
from lab_core.common.api.pagination import paginate
from lab_core.pricing.api.serializers import (
    CatalogExamSerializer,
    PriceResolveRequestSerializer,
    PriceResolveResponseSerializer,
    PriceResultSerializer,
    price_result_payload,
)
from lab_core.pricing.context import CallerContext, CallerRole, Deadline, build_caller_context
from lab_core.pricing.resolvers import PriceResolver, VisibilityResolver, max_batch_size
from lab_core.pricing.results import NotFound, PriceResult, Unavailable, UnavailableReason

DEFAULT_RESOLVE_TIMEOUT_SECONDS = 2.0


def caller_context_for(request) -> CallerContext:
    """CallerContext for the request user with the per-request resolution budget."""
    timeout = float(getattr(settings, "PRICING_RESOLVE_TIMEOUT_SECONDS", DEFAULT_RESOLVE_TIMEOUT_SECONDS))
    return build_caller_context(request.user, deadline=Deadline.after(timeout))


def _prices_for(rows, ctx: CallerContext) -> dict:
    resolver = PriceResolver()
    ids = [r.id for r in rows]
    step = max_batch_size()
    prices = {}
    for start in range(0, len(ids), step):
        prices.update(resolver.resolve_prices(ids[start:start + step], ctx))
    return prices


def restrict_to_visible(results: Dict[int, PriceResult], ctx: CallerContext) -> Dict[int, PriceResult]:
    """
    Masks prices of exams the caller may not see as Unavailable(NOT_VISIBLE).
    NotFound and NO_CAPABILITY results pass through unchanged.
    """
    visible = VisibilityResolver().list_visible_exam_ids(ctx)
    out: Dict[int, PriceResult] = {}
    for exam_id, result in results.items():
        passthrough = isinstance(result, NotFound) or (
            isinstance(result, Unavailable) and result.reason == UnavailableReason.NO_CAPABILITY
        )
        if passthrough or exam_id in visible:
            out[exam_id] = result
        else:
            out[exam_id] = Unavailable(exam_id=exam_id, reason=UnavailableReason.NOT_VISIBLE)
    return out


class CatalogExamViewSet(viewsets.GenericViewSet):
    """
    Public catalog: the exams the caller may see, each with the caller's price.
    """
    permission_classes = [AllowAny]
    serializer_class = CatalogExamSerializer
    queryset = Exam.objects.none()
    lookup_value_regex = r"[0-9]+"

    @extend_schema(
        tags=["Catalog"],
        responses={200: CatalogExamSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="category", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(
                name="q",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Search by name or category.",
            ),
        ],
    )
    def list(self, request):
        ctx = caller_context_for(request)
        # Admins see every exam; skip the id list.
        visible = None if ctx.role == CallerRole.ADMIN else VisibilityResolver().list_visible_exam_ids(ctx)

        qs = exams_filtered(
            exam_ids=visible,
            category=(request.query_params.get("category") or "").strip() or None,
            search=(request.query_params.get("q") or "").strip() or None,
        )
        return paginate(
            request,
            qs,
            CatalogExamSerializer,
            paginator=self.paginator,
            context_for_page=lambda rows: {"prices": _prices_for(rows, ctx)},
        )

    @extend_schema(tags=["Catalog"], responses={200: PriceResultSerializer})
    @action(detail=True, methods=["get"], url_path="price")
    def price(self, request, pk=None):
        try:
            exam_id = int(pk)
        except (TypeError, ValueError):
            raise DRFNotFound(f"Exam {pk} not found.")

        ctx = caller_context_for(request)
        result = restrict_to_visible({exam_id: PriceResolver().resolve_price(exam_id, ctx)}, ctx)[exam_id]
        if isinstance(result, NotFound):
            raise DRFNotFound(f"Exam {exam_id} not found.")
        return Response(price_result_payload(exam_id, result), status=status.HTTP_200_OK)


class PriceResolveView(APIView):
    """Batched price resolution for a cart or a search result page."""
    permission_classes = [AllowAny]

    @extend_schema(
        tags=["Catalog"],
        request=PriceResolveRequestSerializer,
        responses={200: PriceResolveResponseSerializer},
    )
    def post(self, request):
        ser = PriceResolveRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        exam_ids = list(dict.fromkeys(ser.validated_data["exam_ids"]))
        ctx = caller_context_for(request)
        results = restrict_to_visible(PriceResolver().resolve_prices(exam_ids, ctx), ctx)

        payload = [price_result_payload(i, results.get(i)) for i in exam_ids]
        return Response({"results": payload}, status=status.HTTP_200_OK)
