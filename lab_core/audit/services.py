# lab_core/audit/services.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict

from django.db import transaction

from lab_core.audit.models import AuditEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecord:
    event_code: str
    entity_type: str
    entity_id: str
    actor_user_id: str | None = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class AuditService:
    """
    Writes the admin mutation trail. Services call it inside their own
    transaction, so an audit row never outlives a rolled-back change.
    """

    @staticmethod
    @transaction.atomic
    def log(*, event_code: str, entity_type: str, entity_id, actor_user_id=None, metadata=None) -> AuditRecord:
        record = AuditRecord(
            event_code=event_code,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor_user_id=None if actor_user_id is None else str(actor_user_id),
            metadata=dict(metadata or {}),
        )
        AuditEvent.objects.create(**asdict(record))
        logger.info(
            "audit %s %s=%s actor=%s",
            record.event_code,
            record.entity_type,
            record.entity_id,
            record.actor_user_id,
        )
        return record
