# lab_core/tariffs/api/serializers.py
from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from lab_core.tariffs.models import PriceEntry, Tariff, TariffKind


class TariffSerializer(serializers.ModelSerializer):
    # Present on list responses (annotated queryset)
    exam_count = serializers.IntegerField(read_only=True)
    avg_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True, allow_null=True)

    class Meta:
        model = Tariff
        fields = [
            "id",
            "name",
            "kind",
            "is_taxable",
            "is_enabled",
            "exam_count",
            "avg_price",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TariffWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    kind = serializers.ChoiceField(choices=TariffKind.choices, default=TariffKind.SALE)
    is_taxable = serializers.BooleanField(default=False)
    is_enabled = serializers.BooleanField(default=True)


class TariffEnableSerializer(serializers.Serializer):
    enabled = serializers.BooleanField()


class TariffStatsSerializer(serializers.Serializer):
    tariff_id = serializers.UUIDField()
    exam_count = serializers.IntegerField()
    avg_price = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)


class PriceEntrySerializer(serializers.ModelSerializer):
    tariff_id = serializers.UUIDField(read_only=True)
    tariff_name = serializers.CharField(source="tariff.name", read_only=True)
    exam_id = serializers.IntegerField(read_only=True)
    exam_name = serializers.CharField(source="exam.name", read_only=True)

    class Meta:
        model = PriceEntry
        fields = ["id", "tariff_id", "tariff_name", "exam_id", "exam_name", "price", "updated_at"]
        read_only_fields = fields


class PriceSetSerializer(serializers.Serializer):
    exam_id = serializers.IntegerField(min_value=1)
    # Range is checked by the ledger so negative prices get one error shape everywhere.
    price = serializers.DecimalField(max_digits=12, decimal_places=2)


class BulkPriceItemSerializer(PriceSetSerializer):
    tariff_id = serializers.UUIDField()


class BulkPriceSerializer(serializers.Serializer):
    items = BulkPriceItemSerializer(many=True, allow_empty=False)


class CopyPricesSerializer(serializers.Serializer):
    target_tariff_id = serializers.UUIDField()
    multiplier = serializers.DecimalField(max_digits=8, decimal_places=4, default=Decimal("1"))


class ExamPriceRowSerializer(serializers.Serializer):
    exam_id = serializers.IntegerField()
    name = serializers.CharField()
    category = serializers.CharField()
    is_public_visible = serializers.BooleanField()
    prices = serializers.DictField(child=serializers.DecimalField(max_digits=12, decimal_places=2))
