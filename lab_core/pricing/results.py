# lab_core/pricing/results.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Union
from uuid import UUID


class UnavailableReason(str, Enum):
    NO_CAPABILITY = "no_capability"
    NO_TARIFF = "no_tariff"
    NO_PRICE = "no_price"
    DEADLINE = "deadline"
    ERROR = "error"
    NOT_VISIBLE = "not_visible"


@dataclass(frozen=True)
class TariffRecord:
    id: UUID
    name: str
    kind: str
    is_taxable: bool


@dataclass(frozen=True)
class ReferenceSnapshot:
    """Read-only view of a reference as seen by the resolvers."""
    id: UUID
    name: str
    active: bool
    default_tariff_id: UUID | None


@dataclass(frozen=True)
class TariffChoice:
    reference: ReferenceSnapshot
    tariff: TariffRecord
    # False when the caller fell back to the public reference.
    has_special_pricing: bool


@dataclass(frozen=True)
class PriceQuote:
    exam_id: int
    price: Decimal
    tariff_id: UUID
    tariff_name: str
    is_taxable: bool
    has_special_pricing: bool
    reference_id: UUID | None = None
    reference_name: str | None = None


@dataclass(frozen=True)
class Unavailable:
    """No price for this caller. An expected outcome, not a failure."""
    exam_id: int
    reason: UnavailableReason


@dataclass(frozen=True)
class NotFound:
    entity: str
    id: object


PriceResult = Union[PriceQuote, Unavailable, NotFound]
