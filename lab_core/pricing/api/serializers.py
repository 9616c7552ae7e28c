# lab_core/pricing/api/serializers.py
from __future__ import annotations

from typing import Any, Dict

from rest_framework import serializers

from lab_core.catalog.models import Exam
from lab_core.pricing.results import NotFound, PriceQuote, PriceResult, Unavailable


def price_result_payload(exam_id: int, result: PriceResult | None) -> Dict[str, Any]:
    """Flat JSON shape shared by the catalog list and the resolve endpoints."""
    if isinstance(result, PriceQuote):
        return {
            "exam_id": exam_id,
            "status": "priced",
            "price": f"{result.price:.2f}",
            "tariff_id": str(result.tariff_id),
            "tariff_name": result.tariff_name,
            "is_taxable": result.is_taxable,
            "has_special_pricing": result.has_special_pricing,
            "reference_name": result.reference_name,
        }
    if isinstance(result, NotFound):
        return {"exam_id": exam_id, "status": "not_found"}
    if isinstance(result, Unavailable):
        return {"exam_id": exam_id, "status": "unavailable", "reason": result.reason.value}
    return {"exam_id": exam_id, "status": "unavailable", "reason": "error"}


class PriceResultSerializer(serializers.Serializer):
    """Schema-only description of price_result_payload()."""
    exam_id = serializers.IntegerField()
    status = serializers.ChoiceField(choices=["priced", "unavailable", "not_found"])
    price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    tariff_id = serializers.UUIDField(required=False)
    tariff_name = serializers.CharField(required=False)
    is_taxable = serializers.BooleanField(required=False)
    has_special_pricing = serializers.BooleanField(required=False)
    reference_name = serializers.CharField(required=False, allow_null=True)
    reason = serializers.CharField(required=False)


class CatalogExamSerializer(serializers.ModelSerializer):
    price = serializers.SerializerMethodField()

    class Meta:
        model = Exam
        fields = ["id", "name", "category", "is_public_visible", "price"]
        read_only_fields = fields

    def get_price(self, obj) -> Dict[str, Any]:
        prices = self.context.get("prices") or {}
        return price_result_payload(obj.id, prices.get(obj.id))


class PriceResolveRequestSerializer(serializers.Serializer):
    exam_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)


class PriceResolveResponseSerializer(serializers.Serializer):
    results = PriceResultSerializer(many=True)
