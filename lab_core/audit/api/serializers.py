# lab_core/audit/api/serializers.py
from rest_framework import serializers

from lab_core.audit.models import AuditEvent


class AuditEventSerializer(serializers.ModelSerializer):
    timestamp = serializers.DateTimeField(source="occurred_at", read_only=True)

    class Meta:
        model = AuditEvent
        fields = ["id", "timestamp", "event_code", "entity_type", "entity_id", "actor_user_id", "metadata"]
        read_only_fields = fields
