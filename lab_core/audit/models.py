# lab_core/audit/models.py
from django.db import models

from lab_core.common.models import UUIDModel


class AuditEvent(UUIDModel):
    """
    Immutable audit record of an admin mutation (price set, tariff disabled, ...).
    Price disputes are settled against this trail.
    """
    event_code = models.CharField(max_length=128, db_index=True)  # e.g. "price.set"
    entity_type = models.CharField(max_length=128, db_index=True)  # e.g. "Tariff"
    entity_id = models.CharField(max_length=64, db_index=True)

    # Opaque id of the admin who acted; None for commands and scripts.
    actor_user_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["entity_type", "entity_id"]),
            models.Index(fields=["event_code", "occurred_at"]),
        ]
