# lab_core/references/api/views.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from lab_core.common.api.pagination import paginate
from lab_core.common.permissions import CatalogAdminPermission
from lab_core.references.api.serializers import (
    MemberSerializer,
    MembershipSerializer,
    ReferenceSerializer,
    ReferenceWriteSerializer,
)
from lab_core.references.models import Reference
from lab_core.references.selectors import get_reference, list_references, reference_members
from lab_core.references.services import MembershipService, ReferenceService

UUID_RE = r"[0-9a-fA-F-]{36}"


def _actor(request):
    user = getattr(request, "user", None)
    return user.pk if user is not None and user.is_authenticated else None


class ReferenceViewSet(viewsets.GenericViewSet):
    """
    Admin API for references (client groups) and their members.
    """
    permission_classes = [CatalogAdminPermission]
    serializer_class = ReferenceSerializer
    queryset = Reference.objects.none()
    lookup_value_regex = UUID_RE
    filterset_fields = ["active", "default_tariff"]

    @extend_schema(tags=["References"], responses={200: ReferenceSerializer(many=True)})
    def list(self, request):
        search = (request.query_params.get("q") or "").strip() or None
        qs = self.filter_queryset(list_references(search=search))
        return paginate(request, qs, ReferenceSerializer, paginator=self.paginator)

    @extend_schema(tags=["References"], request=ReferenceWriteSerializer, responses={201: ReferenceSerializer})
    def create(self, request):
        ser = ReferenceWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        reference = ReferenceService.create_reference(actor_user_id=_actor(request), **ser.validated_data)
        return Response(ReferenceSerializer(reference).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["References"], responses={200: ReferenceSerializer})
    def retrieve(self, request, pk=None):
        reference = get_reference(reference_id=pk)
        return Response(ReferenceSerializer(reference).data, status=status.HTTP_200_OK)

    def _update(self, request, pk, *, partial: bool):
        ser = ReferenceWriteSerializer(data=request.data, partial=partial)
        ser.is_valid(raise_exception=True)
        reference = ReferenceService.update_reference(
            reference_id=pk,
            actor_user_id=_actor(request),
            **ser.validated_data,
        )
        return Response(ReferenceSerializer(reference).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["References"], request=ReferenceWriteSerializer, responses={200: ReferenceSerializer})
    def update(self, request, pk=None):
        return self._update(request, pk, partial=False)

    @extend_schema(tags=["References"], request=ReferenceWriteSerializer, responses={200: ReferenceSerializer})
    def partial_update(self, request, pk=None):
        return self._update(request, pk, partial=True)

    @extend_schema(tags=["References"], responses={204: None})
    def destroy(self, request, pk=None):
        ReferenceService.delete_reference(reference_id=pk, actor_user_id=_actor(request))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        tags=["References"],
        request=MemberSerializer,
        responses={200: MembershipSerializer(many=True), 201: MembershipSerializer, 204: None},
        description="GET lists members; POST assigns {user_id}; DELETE removes {user_id}. Both writes are idempotent.",
    )
    @action(detail=True, methods=["get", "post", "delete"])
    def members(self, request, pk=None):
        if request.method == "GET":
            get_reference(reference_id=pk)
            return paginate(request, reference_members(reference_id=pk), MembershipSerializer, paginator=self.paginator)

        payload = request.data if request.data else request.query_params
        ser = MemberSerializer(data=payload)
        ser.is_valid(raise_exception=True)

        if request.method == "POST":
            membership = MembershipService.assign_member(
                user_id=ser.validated_data["user_id"],
                reference_id=pk,
                actor_user_id=_actor(request),
            )
            return Response(MembershipSerializer(membership).data, status=status.HTTP_201_CREATED)

        MembershipService.remove_member(
            user_id=ser.validated_data["user_id"],
            reference_id=pk,
            actor_user_id=_actor(request),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)
