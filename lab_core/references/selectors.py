# lab_core/references/selectors.py
from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Count, QuerySet
from rest_framework.exceptions import NotFound

from lab_core.references.models import Membership, Reference

DEFAULT_PUBLIC_REFERENCE_NAME = "Público General"


def public_reference_name() -> str:
    return getattr(settings, "PRICING_PUBLIC_REFERENCE_NAME", DEFAULT_PUBLIC_REFERENCE_NAME)


def get_reference(*, reference_id) -> Reference:
    try:
        return Reference.objects.select_related("default_tariff").get(id=reference_id)
    except (Reference.DoesNotExist, DjangoValidationError, ValueError, TypeError):
        raise NotFound(f"Reference {reference_id} not found.")


def list_references(*, active: bool | None = None, search: str | None = None) -> QuerySet[Reference]:
    qs = Reference.objects.select_related("default_tariff").annotate(member_count=Count("memberships"))
    if active is not None:
        qs = qs.filter(active=active)
    if search:
        qs = qs.filter(name__icontains=search)
    return qs.order_by("name")


def list_user_references(*, user_id) -> list[Reference]:
    """
    References the user belongs to, in membership order (oldest first).
    Inactive references are included; callers decide what "active" means.
    """
    rows = (
        Membership.objects.filter(user_id=str(user_id))
        .select_related("reference", "reference__default_tariff")
        .order_by("created_at", "id")
    )
    return [m.reference for m in rows]


def reference_members(*, reference_id) -> QuerySet[Membership]:
    return Membership.objects.filter(reference_id=reference_id).order_by("created_at", "id")


def public_reference() -> Reference | None:
    return (
        Reference.objects.select_related("default_tariff")
        .filter(name=public_reference_name(), active=True)
        .first()
    )
