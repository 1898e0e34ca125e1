# vivasmart/entitlements.py
"""
Entitlement rules: who may run an analysis and how grants change a user.

Everything here is pure. Functions take an immutable ``Entitlement`` snapshot
and return a new one; callers in ``vivasmart.services`` own the reads and the
versioned writes. ``now`` is always passed in explicitly where time matters.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from vivasmart.errors import InvalidInput, TrialLimitReached
from vivasmart.models import ROLE_ADMIN

UTC = timezone.utc

PLAN_ONE_TIME = "one_time"
PLAN_MONTHLY = "monthly"
PLAN_COUPON = "coupon"

UNLIMITED_PLANS = (PLAN_ONE_TIME, PLAN_MONTHLY, PLAN_COUPON)

DEFAULT_MONTHLY_DAYS = 30


def now_utc() -> datetime:
    return datetime.now(tz=UTC).replace(tzinfo=None)  # SQLite sin TZ


@dataclass(frozen=True)
class Entitlement:
    role: str
    trials_total: int
    trials_used: int
    subscribed: bool = False
    sub_plan: Optional[str] = None
    sub_expires: Optional[datetime] = None

    @classmethod
    def of(cls, user: Any) -> "Entitlement":
        return cls(
            role=user.role,
            trials_total=int(user.trials_total or 0),
            trials_used=int(user.trials_used or 0),
            subscribed=bool(user.subscribed),
            sub_plan=user.sub_plan,
            sub_expires=user.sub_expires,
        )

    def apply_to(self, user: Any) -> None:
        """Copy the entitlement columns onto a User row (one UPDATE on flush)."""
        user.trials_total = self.trials_total
        user.trials_used = self.trials_used
        user.subscribed = self.subscribed
        user.sub_plan = self.sub_plan
        user.sub_expires = self.sub_expires

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_metered(self) -> bool:
        return not self.is_admin and not self.subscribed

    @property
    def trials_left(self) -> Optional[int]:
        """Remaining trials, or None when usage is not metered."""
        if not self.is_metered:
            return None
        return max(self.trials_total - self.trials_used, 0)


# ---------------------------------------------------------
# Lifecycle (lazy expiry)
# ---------------------------------------------------------
def is_expired(ent: Entitlement, now: datetime) -> bool:
    return (
        ent.subscribed
        and ent.sub_plan == PLAN_MONTHLY
        and ent.sub_expires is not None
        and now > ent.sub_expires
    )


def normalize(ent: Entitlement, now: datetime) -> Entitlement:
    """Demote an expired monthly subscriber back to trial-based access."""
    if not is_expired(ent, now):
        return ent
    return replace(ent, subscribed=False, sub_plan=None, sub_expires=None)


# ---------------------------------------------------------
# Decisions
# ---------------------------------------------------------
def can_analyze(ent: Entitlement) -> bool:
    # subscribed implica no caducado: normalize() ya corrió
    if ent.is_admin:
        return True
    if ent.subscribed:
        return True
    return ent.trials_used < ent.trials_total


def consume_analysis(ent: Entitlement) -> Entitlement:
    """Charge one successful analysis. Admins and subscribers are not metered."""
    if not can_analyze(ent):
        raise TrialLimitReached()
    if not ent.is_metered:
        return ent
    return replace(ent, trials_used=ent.trials_used + 1)


# ---------------------------------------------------------
# Grants
# ---------------------------------------------------------
def coerce_grant_count(raw: Any) -> int:
    """
    Trial-grant amount from admin input.

    Non-numeric, zero or negative values become 1. This leniency is a product
    decision kept from the admin tooling (a mistyped grant still grants one
    trial instead of failing); revisit it before exposing grants to non-admins.
    """
    try:
        n = int(raw)
    except (TypeError, ValueError):
        return 1
    return max(n, 1)


def grant_trials(ent: Entitlement, n: Any) -> Entitlement:
    return replace(ent, trials_total=ent.trials_total + coerce_grant_count(n))


def grant_unlimited(
    ent: Entitlement,
    plan: str,
    now: datetime,
    days: Optional[int] = None,
) -> Entitlement:
    if plan not in UNLIMITED_PLANS:
        raise InvalidInput(f"Unknown plan '{plan}'.")

    expires = None
    if plan == PLAN_MONTHLY:
        try:
            days = int(days) if days is not None else DEFAULT_MONTHLY_DAYS
        except (TypeError, ValueError):
            days = DEFAULT_MONTHLY_DAYS
        if days < 1:
            days = DEFAULT_MONTHLY_DAYS
        expires = now + timedelta(days=days)

    return replace(ent, subscribed=True, sub_plan=plan, sub_expires=expires)


def reset_used(ent: Entitlement) -> Entitlement:
    return replace(ent, trials_used=0)


def set_trials_total(ent: Entitlement, n: int) -> Entitlement:
    # cambiar la cuota reinicia el consumo
    return replace(ent, trials_total=max(int(n), 0), trials_used=0)


def revoke_all(ent: Entitlement, free_trials: int) -> Entitlement:
    """Full reset to the default free tier, not only "subscription off"."""
    return replace(
        ent,
        subscribed=False,
        sub_plan=None,
        sub_expires=None,
        trials_total=max(int(free_trials), 0),
        trials_used=0,
    )
