# lab_core/references/services.py
from __future__ import annotations

import logging

from django.db import IntegrityError, transaction
from rest_framework.exceptions import ValidationError

from lab_core.audit.services import AuditService
from lab_core.common.api.exceptions import ConflictError
from lab_core.references.models import Membership, Reference
from lab_core.references.selectors import get_reference
from lab_core.tariffs.selectors import get_tariff

logger = logging.getLogger(__name__)

REFERENCE_MUTABLE_FIELDS = ("name", "business_name", "default_tariff_id", "code", "active")


def _clean_user_id(user_id) -> str:
    value = "" if user_id is None else str(user_id).strip()
    if not value:
        raise ValidationError({"user_id": "This field is required."})
    if len(value) > 64:
        raise ValidationError({"user_id": "Must be at most 64 characters."})
    return value


class ReferenceService:
    """
    Reference (client group) CRUD. Deleting a reference removes its
    memberships in the same transaction.
    """

    @staticmethod
    def _save_unique(reference: Reference) -> Reference:
        if Reference.objects.filter(name=reference.name).exclude(id=reference.id).exists():
            raise ConflictError(f"A reference named '{reference.name}' already exists.")
        try:
            with transaction.atomic():
                reference.save()
        except IntegrityError:
            raise ConflictError(f"A reference named '{reference.name}' already exists.")
        return reference

    @staticmethod
    @transaction.atomic
    def create_reference(
        *,
        name: str,
        business_name: str | None = None,
        default_tariff_id=None,
        code: str | None = None,
        active: bool = True,
        actor_user_id=None,
    ) -> Reference:
        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": "This field is required."})

        tariff = get_tariff(tariff_id=default_tariff_id) if default_tariff_id else None

        reference = Reference(
            name=name,
            business_name=(business_name or "").strip(),
            code=(code or "").strip(),
            default_tariff=tariff,
            active=bool(active),
        )
        ReferenceService._save_unique(reference)

        AuditService.log(
            event_code="reference.created",
            entity_type="Reference",
            entity_id=reference.id,
            actor_user_id=actor_user_id,
            metadata={"name": reference.name, "default_tariff_id": str(tariff.id) if tariff else None},
        )
        return reference

    @staticmethod
    @transaction.atomic
    def update_reference(*, reference_id, actor_user_id=None, **fields) -> Reference:
        unknown = set(fields) - set(REFERENCE_MUTABLE_FIELDS)
        if unknown:
            raise ValidationError({k: "Unknown field." for k in sorted(unknown)})

        reference = get_reference(reference_id=reference_id)

        if "name" in fields:
            name = (fields["name"] or "").strip()
            if not name:
                raise ValidationError({"name": "This field is required."})
            reference.name = name
        if "business_name" in fields:
            reference.business_name = (fields["business_name"] or "").strip()
        if "code" in fields:
            reference.code = (fields["code"] or "").strip()
        if "active" in fields:
            reference.active = bool(fields["active"])
        if "default_tariff_id" in fields:
            tariff_id = fields["default_tariff_id"]
            reference.default_tariff = get_tariff(tariff_id=tariff_id) if tariff_id else None

        ReferenceService._save_unique(reference)

        AuditService.log(
            event_code="reference.updated",
            entity_type="Reference",
            entity_id=reference.id,
            actor_user_id=actor_user_id,
            metadata={k: None if v is None else str(v) for k, v in fields.items()},
        )
        return reference

    @staticmethod
    @transaction.atomic
    def delete_reference(*, reference_id, actor_user_id=None) -> int:
        """Deletes the reference and its memberships. Returns the number of memberships removed."""
        reference = get_reference(reference_id=reference_id)
        name = reference.name

        removed, _ = Membership.objects.filter(reference_id=reference.id).delete()
        reference.delete()

        AuditService.log(
            event_code="reference.deleted",
            entity_type="Reference",
            entity_id=reference_id,
            actor_user_id=actor_user_id,
            metadata={"name": name, "memberships_removed": removed},
        )
        logger.info("reference %s deleted, memberships removed=%d", reference_id, removed)
        return removed


class MembershipService:
    """
    Assigning and removing members is idempotent: a second assign or a remove
    of an absent membership is a no-op.
    """

    @staticmethod
    @transaction.atomic
    def assign_member(*, user_id, reference_id, actor_user_id=None) -> Membership:
        user_id = _clean_user_id(user_id)
        reference = get_reference(reference_id=reference_id)

        try:
            with transaction.atomic():
                membership, created = Membership.objects.get_or_create(user_id=user_id, reference=reference)
        except IntegrityError:
            # Concurrent assign of the same pair won the insert.
            membership = Membership.objects.get(user_id=user_id, reference=reference)
            created = False

        if created:
            AuditService.log(
                event_code="membership.assigned",
                entity_type="Reference",
                entity_id=reference.id,
                actor_user_id=actor_user_id,
                metadata={"user_id": user_id},
            )
        return membership

    @staticmethod
    @transaction.atomic
    def remove_member(*, user_id, reference_id, actor_user_id=None) -> bool:
        user_id = _clean_user_id(user_id)
        reference = get_reference(reference_id=reference_id)

        deleted, _ = Membership.objects.filter(user_id=user_id, reference=reference).delete()
        if deleted:
            AuditService.log(
                event_code="membership.removed",
                entity_type="Reference",
                entity_id=reference.id,
                actor_user_id=actor_user_id,
                metadata={"user_id": user_id},
            )
        return bool(deleted)
