# lab_core/audit/admin.py
from django.contrib import admin

from lab_core.audit.models import AuditEvent


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = (
        "event_code",
        "entity_type",
        "entity_id",
        "actor_user_id",
        "occurred_at",
    )
    list_filter = ("event_code", "entity_type")
    search_fields = ("event_code", "entity_type", "entity_id", "actor_user_id")
    readonly_fields = ("occurred_at",)
    ordering = ("-occurred_at",)
