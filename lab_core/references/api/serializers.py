# lab_core/references/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from lab_core.references.models import Membership, Reference


class ReferenceSerializer(serializers.ModelSerializer):
    default_tariff_id = serializers.UUIDField(read_only=True, allow_null=True)
    default_tariff_name = serializers.CharField(source="default_tariff.name", read_only=True, default=None)
    # Present on list responses (annotated queryset)
    member_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Reference
        fields = [
            "id",
            "code",
            "name",
            "business_name",
            "default_tariff_id",
            "default_tariff_name",
            "active",
            "member_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReferenceWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    business_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    code = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    default_tariff_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    active = serializers.BooleanField(default=True)


class MemberSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=64)


class MembershipSerializer(serializers.ModelSerializer):
    reference_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Membership
        fields = ["user_id", "reference_id", "created_at"]
        read_only_fields = fields
