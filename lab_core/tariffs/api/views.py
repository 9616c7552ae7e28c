# lab_core/tariffs/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from lab_core.common.api.pagination import paginate
from lab_core.common.permissions import CatalogAdminPermission
from lab_core.tariffs.api.serializers import (
    BulkPriceSerializer,
    CopyPricesSerializer,
    ExamPriceRowSerializer,
    PriceEntrySerializer,
    PriceSetSerializer,
    TariffEnableSerializer,
    TariffSerializer,
    TariffStatsSerializer,
    TariffWriteSerializer,
)
from lab_core.tariffs.models import Tariff
from lab_core.tariffs.selectors import get_tariff, list_prices, list_tariffs, price_matrix, tariff_stats
from lab_core.tariffs.services import PriceLedgerService, TariffService

UUID_RE = r"[0-9a-fA-F-]{36}"


def _actor(request):
    user = getattr(request, "user", None)
    return user.pk if user is not None and user.is_authenticated else None


class TariffViewSet(viewsets.GenericViewSet):
    """
    Admin API for tariffs and their price ledger.
    Reads go through selectors, writes through TariffService / PriceLedgerService.
    """
    permission_classes = [CatalogAdminPermission]
    serializer_class = TariffSerializer
    queryset = Tariff.objects.none()
    lookup_value_regex = UUID_RE
    filterset_fields = ["kind", "is_enabled"]

    @extend_schema(tags=["Tariffs"], responses={200: TariffSerializer(many=True)})
    def list(self, request):
        qs = self.filter_queryset(list_tariffs())
        return paginate(request, qs, TariffSerializer, paginator=self.paginator)

    @extend_schema(tags=["Tariffs"], request=TariffWriteSerializer, responses={201: TariffSerializer})
    def create(self, request):
        ser = TariffWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        tariff = TariffService.create_tariff(actor_user_id=_actor(request), **ser.validated_data)
        return Response(TariffSerializer(tariff).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Tariffs"], responses={200: TariffSerializer})
    def retrieve(self, request, pk=None):
        tariff = get_tariff(tariff_id=pk)
        return Response(TariffSerializer(tariff).data, status=status.HTTP_200_OK)

    def _update(self, request, pk, *, partial: bool):
        ser = TariffWriteSerializer(data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        tariff = TariffService.update_tariff(tariff_id=pk, actor_user_id=_actor(request), **ser.validated_data)
        return Response(TariffSerializer(tariff).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Tariffs"], request=TariffWriteSerializer, responses={200: TariffSerializer})
    def update(self, request, pk=None):
        return self._update(request, pk, partial=False)

    @extend_schema(tags=["Tariffs"], request=TariffWriteSerializer, responses={200: TariffSerializer})
    def partial_update(self, request, pk=None):
        return self._update(request, pk, partial=True)

    @extend_schema(tags=["Tariffs"], responses={204: None})
    def destroy(self, request, pk=None):
        TariffService.delete_tariff(tariff_id=pk, actor_user_id=_actor(request))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Tariffs"], request=TariffEnableSerializer, responses={200: TariffSerializer})
    @action(detail=True, methods=["post"])
    def enable(self, request, pk=None):
        ser = TariffEnableSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        tariff = TariffService.set_enabled(
            tariff_id=pk,
            enabled=ser.validated_data["enabled"],
            actor_user_id=_actor(request),
        )
        return Response(TariffSerializer(tariff).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Tariffs"], responses={200: TariffStatsSerializer})
    @action(detail=True, methods=["get"])
    def stats(self, request, pk=None):
        return Response(TariffStatsSerializer(tariff_stats(tariff_id=pk)).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Price ledger"],
        request=PriceSetSerializer,
        responses={200: PriceEntrySerializer(many=True)},
        description="GET lists the tariff's prices; PUT upserts one (exam_id, price).",
    )
    @action(detail=True, methods=["get", "put"])
    def prices(self, request, pk=None):
        if request.method == "GET":
            qs = list_prices(tariff_id=pk)
            return paginate(request, qs, PriceEntrySerializer, paginator=self.paginator)

        ser = PriceSetSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        entry = PriceLedgerService.set_price(
            tariff_id=pk,
            exam_id=ser.validated_data["exam_id"],
            price=ser.validated_data["price"],
            actor_user_id=_actor(request),
        )
        return Response(PriceEntrySerializer(entry).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Price ledger"],
        responses={204: None},
        parameters=[OpenApiParameter(name="exam_id", type=OpenApiTypes.INT, location=OpenApiParameter.PATH)],
    )
    @action(detail=True, methods=["delete"], url_path=r"prices/(?P<exam_id>[0-9]+)")
    def delete_price(self, request, pk=None, exam_id=None):
        PriceLedgerService.delete_price(tariff_id=pk, exam_id=int(exam_id), actor_user_id=_actor(request))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(tags=["Price ledger"], request=BulkPriceSerializer, responses={200: PriceEntrySerializer(many=True)})
    @action(detail=False, methods=["post"], url_path="prices/bulk")
    def bulk_prices(self, request):
        ser = BulkPriceSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        entries = PriceLedgerService.set_prices(items=ser.validated_data["items"], actor_user_id=_actor(request))
        return Response(PriceEntrySerializer(entries, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Price ledger"], request=CopyPricesSerializer, responses={200: OpenApiTypes.OBJECT})
    @action(detail=True, methods=["post"])
    def copy_prices(self, request, pk=None):
        ser = CopyPricesSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        copied = PriceLedgerService.copy_prices(
            source_tariff_id=pk,
            target_tariff_id=ser.validated_data["target_tariff_id"],
            multiplier=ser.validated_data["multiplier"],
            actor_user_id=_actor(request),
        )
        return Response({"copied": copied}, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Price ledger"],
        responses={200: ExamPriceRowSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="tariff",
                type=OpenApiTypes.UUID,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Only prices of this tariff.",
            )
        ],
    )
    @action(detail=False, methods=["get"])
    def matrix(self, request):
        rows = price_matrix(tariff_id=request.query_params.get("tariff") or None)
        return Response(ExamPriceRowSerializer(rows, many=True).data, status=status.HTTP_200_OK)
