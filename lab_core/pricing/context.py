# lab_core/pricing/context.py
from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Iterable, Tuple

from django.conf import settings

from lab_core.common.permissions import is_admin_user
from lab_core.pricing.results import ReferenceSnapshot
from lab_core.references.selectors import list_user_references


class CallerRole(str, Enum):
    ANONYMOUS = "anonymous"
    MEMBER = "member"
    ADMIN = "admin"


class DeadlineExceeded(Exception):
    pass


@dataclass(frozen=True)
class Deadline:
    """Absolute point on the monotonic clock after which resolution gives up."""
    expires_at: float
    clock: Callable[[], float] = field(default=time.monotonic, compare=False, repr=False)

    @classmethod
    def after(cls, seconds: float, *, clock: Callable[[], float] = time.monotonic) -> "Deadline":
        return cls(expires_at=clock() + float(seconds), clock=clock)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self.clock())

    @property
    def expired(self) -> bool:
        return self.clock() >= self.expires_at

    def check(self) -> None:
        if self.expired:
            raise DeadlineExceeded("price resolution deadline exceeded")


@dataclass(frozen=True)
class CallerContext:
    role: CallerRole
    user_id: str | None = None
    # Membership order: the first qualifying reference wins.
    memberships: Tuple[ReferenceSnapshot, ...] = ()
    can_view_prices: bool = True
    deadline: Deadline | None = None

    @classmethod
    def anonymous(cls, *, can_view_prices: bool = True) -> "CallerContext":
        return cls(role=CallerRole.ANONYMOUS, can_view_prices=can_view_prices)

    @classmethod
    def member(
        cls,
        user_id,
        memberships: Iterable[ReferenceSnapshot] = (),
        *,
        can_view_prices: bool = True,
    ) -> "CallerContext":
        return cls(
            role=CallerRole.MEMBER,
            user_id=str(user_id),
            memberships=tuple(memberships),
            can_view_prices=can_view_prices,
        )

    @classmethod
    def admin(cls, user_id, memberships: Iterable[ReferenceSnapshot] = ()) -> "CallerContext":
        return cls(role=CallerRole.ADMIN, user_id=str(user_id), memberships=tuple(memberships))

    def with_deadline(self, deadline: Deadline | None) -> "CallerContext":
        return replace(self, deadline=deadline)

    def check_deadline(self) -> None:
        if self.deadline is not None:
            self.deadline.check()


def snapshot_reference(reference) -> ReferenceSnapshot:
    return ReferenceSnapshot(
        id=reference.id,
        name=reference.name,
        active=reference.active,
        default_tariff_id=reference.default_tariff_id,
    )


def build_caller_context(user, *, can_view_prices: bool | None = None, deadline: Deadline | None = None) -> CallerContext:
    """
    Maps an authenticated Django user (or AnonymousUser) to a CallerContext.

    ADMIN group / superuser -> admin, any other authenticated user -> member,
    everyone else -> anonymous. Memberships are loaded in membership order.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        if can_view_prices is None:
            can_view_prices = bool(getattr(settings, "PRICING_ANONYMOUS_CAN_VIEW_PRICES", True))
        return CallerContext.anonymous(can_view_prices=can_view_prices).with_deadline(deadline)

    user_id = str(user.pk)
    memberships = tuple(snapshot_reference(r) for r in list_user_references(user_id=user_id))
    role = CallerRole.ADMIN if is_admin_user(user) else CallerRole.MEMBER

    return CallerContext(
        role=role,
        user_id=user_id,
        memberships=memberships,
        can_view_prices=True if can_view_prices is None else bool(can_view_prices),
        deadline=deadline,
    )
