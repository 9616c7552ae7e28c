# lab_core/audit/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets

from lab_core.audit.api.serializers import AuditEventSerializer
from lab_core.audit.models import AuditEvent
from lab_core.audit.selectors import list_audit_events
from lab_core.common.api.pagination import paginate
from lab_core.common.permissions import AuditPermission


class AuditEventViewSet(viewsets.GenericViewSet):
    """
    Admin mutation trail (price changes, tariff switches, memberships).
    """
    permission_classes = [AuditPermission]

    # drf-spectacular needs these on GenericViewSet
    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="entity_type",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by entity type (e.g. Tariff, PriceEntry, Reference).",
            ),
            OpenApiParameter(
                name="entity_id",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
            ),
            OpenApiParameter(
                name="event_code",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by event code (e.g. price.set).",
            ),
            OpenApiParameter(
                name="actor_user_id",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
            ),
        ],
    )
    def list(self, request):
        qs = list_audit_events(
            entity_type=request.query_params.get("entity_type") or None,
            entity_id=request.query_params.get("entity_id") or None,
            event_code=request.query_params.get("event_code") or None,
            actor_user_id=request.query_params.get("actor_user_id") or None,
        )
        return paginate(request, qs, AuditEventSerializer, paginator=self.paginator)
