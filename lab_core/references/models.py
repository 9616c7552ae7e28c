# lab_core/references/models.py
from __future__ import annotations

from django.db import models

from lab_core.common.models import TimeStampedModel, UUIDModel
from lab_core.tariffs.models import Tariff


class Reference(UUIDModel):
    """
    A client group (partner clinic, company, "Público General").

    default_tariff may be empty for groups created before pricing was agreed;
    such groups get no special pricing. active suspends the group without
    dropping its memberships.
    """
    code = models.CharField(max_length=64, blank=True, default="")
    name = models.CharField(max_length=255, unique=True)
    business_name = models.CharField(max_length=255, blank=True, default="")

    default_tariff = models.ForeignKey(
        Tariff,
        on_delete=models.PROTECT,
        related_name="references",
        null=True,
        blank=True,
    )

    active = models.BooleanField(default=True, db_index=True)

    class Meta:
        db_table = "references_reference"
        indexes = [
            models.Index(fields=["active", "name"]),
        ]

    def __str__(self) -> str:
        return self.name


class Membership(TimeStampedModel):
    """
    Assigns an externally authenticated user to a reference.
    Creation order is the membership order used for tariff tie-breaks.
    """
    user_id = models.CharField(max_length=64, db_index=True)
    reference = models.ForeignKey(Reference, on_delete=models.CASCADE, related_name="memberships")

    class Meta:
        db_table = "references_membership"
        constraints = [
            models.UniqueConstraint(fields=["user_id", "reference"], name="uq_membership_user_reference"),
        ]
        indexes = [
            models.Index(fields=["user_id", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} -> {self.reference_id}"
