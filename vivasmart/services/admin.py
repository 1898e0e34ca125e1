from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import func, select

from vivasmart.config import Settings
from vivasmart.database import db, run_atomically
from vivasmart.entitlements import (
    PLAN_MONTHLY,
    PLAN_ONE_TIME,
    grant_trials,
    grant_unlimited,
    now_utc,
    reset_used,
    revoke_all,
    set_trials_total,
)
from vivasmart.errors import InvalidInput, UnknownAction
from vivasmart.models import Analysis, User
from vivasmart.models_coupon import Coupon
from vivasmart.models_payment import STATUS_PENDING, STATUS_REJECTED, STATUS_VERIFIED, Payment
from vivasmart.services import accounts
from vivasmart.services.payments import serialize_payment

log = logging.getLogger(__name__)


# ---------------------------------------------------------
# Acciones de admin sobre un usuario (conjunto cerrado)
# ---------------------------------------------------------
@dataclass(frozen=True)
class GrantMonthly:
    days: Optional[int] = None


@dataclass(frozen=True)
class GrantOneTime:
    pass


@dataclass(frozen=True)
class AddTrials:
    count: Any = 1


@dataclass(frozen=True)
class SetTrials:
    count: int = 0


@dataclass(frozen=True)
class ResetUsed:
    pass


@dataclass(frozen=True)
class RevokeAll:
    pass


@dataclass(frozen=True)
class UpdateName:
    name: str


AdminAction = Union[GrantMonthly, GrantOneTime, AddTrials, SetTrials, ResetUsed, RevokeAll, UpdateName]


def _optional_int(raw: Any, field: str) -> Optional[int]:
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field} must be a whole number.")


def parse_admin_action(action: Any, params: Optional[Mapping[str, Any]] = None) -> AdminAction:
    params = params or {}
    action = str(action or "").strip().lower()

    if action == "grant_monthly":
        return GrantMonthly(days=_optional_int(params.get("days"), "days"))
    if action == "grant_one_time":
        return GrantOneTime()
    if action == "add_trials":
        # leniencia clamp-to-1: ver entitlements.coerce_grant_count
        return AddTrials(count=params.get("count", params.get("trials")))
    if action == "set_trials":
        count = _optional_int(params.get("count", params.get("trials")), "count")
        if count is None:
            raise InvalidInput("count is required.")
        return SetTrials(count=count)
    if action == "reset_used":
        return ResetUsed()
    if action == "revoke_all":
        return RevokeAll()
    if action == "update_name":
        name = str(params.get("name") or "").strip()
        if not name:
            raise InvalidInput("name is required.")
        return UpdateName(name=name[:255])
    raise UnknownAction(f"Unknown action '{action}'." if action else "Action is required.")


def apply_admin_action(
    user_id: Any,
    action: AdminAction,
    settings: Settings,
    now: Optional[datetime] = None,
) -> User:
    at = now or now_utc()

    if isinstance(action, GrantMonthly):
        days = action.days if action.days is not None else settings.monthly_days
        recipe = partial(grant_unlimited, plan=PLAN_MONTHLY, now=at, days=days)
    elif isinstance(action, GrantOneTime):
        recipe = partial(grant_unlimited, plan=PLAN_ONE_TIME, now=at)
    elif isinstance(action, AddTrials):
        recipe = partial(grant_trials, n=action.count)
    elif isinstance(action, SetTrials):
        recipe = partial(set_trials_total, n=action.count)
    elif isinstance(action, ResetUsed):
        recipe = reset_used
    elif isinstance(action, RevokeAll):
        recipe = partial(revoke_all, free_trials=settings.free_trials)
    elif isinstance(action, UpdateName):
        return _update_name(user_id, action.name)
    else:
        raise UnknownAction()

    user = accounts.update_entitlement(user_id, recipe, now=at, op=f"admin_{type(action).__name__}")
    log.info("ADMIN_ACTION uid=%s action=%s", user.id, type(action).__name__)
    return user


def _update_name(user_id: Any, name: str) -> User:
    uid = accounts.coerce_user_id(user_id)

    def _rename() -> User:
        user = accounts.require_user(uid)
        user.name = name
        db.session.flush()
        return user

    user = run_atomically(_rename, op="admin_update_name")
    log.info("ADMIN_ACTION uid=%s action=UpdateName", user.id)
    return user


def update_user(
    user_id: Any,
    action: Any,
    params: Optional[Mapping[str, Any]],
    settings: Settings,
    now: Optional[datetime] = None,
) -> User:
    accounts.require_user(user_id)
    return apply_admin_action(user_id, parse_admin_action(action, params), settings, now)


# ---------------------------------------------------------
# Vistas de admin
# ---------------------------------------------------------
def list_users(now: Optional[datetime] = None) -> List[User]:
    users = db.session.execute(
        select(User).order_by(User.created_at.desc(), User.id.desc())
    ).scalars().all()
    return [accounts.normalize_user(u, now) for u in users]


def user_detail(user_id: Any, now: Optional[datetime] = None, recent: int = 20) -> Dict[str, Any]:
    user = accounts.get_normalized_user(user_id, now)

    payments = db.session.execute(
        select(Payment)
        .where((Payment.user_id == user.id) | (Payment.email == user.email))
        .order_by(Payment.submitted_at.desc())
    ).scalars().all()

    analyses = db.session.execute(
        select(Analysis)
        .where(Analysis.user_id == user.id)
        .order_by(Analysis.analyzed_at.desc())
        .limit(recent)
    ).scalars().all()

    return {
        "user": accounts.serialize_user(user),
        "payments": [serialize_payment(p) for p in payments],
        "analyses": [
            {
                "id": a.id,
                "project_title": a.project_title,
                "analyzed_at": a.analyzed_at.isoformat() if a.analyzed_at else None,
            }
            for a in analyses
        ],
    }


def _count(stmt) -> int:
    return int(db.session.execute(stmt).scalar() or 0)


def stats(now: Optional[datetime] = None) -> Dict[str, int]:
    at = now or now_utc()
    payments_by_status = dict(
        db.session.execute(
            select(Payment.status, func.count(Payment.id)).group_by(Payment.status)
        ).all()
    )
    return {
        "total_users": _count(select(func.count(User.id))),
        "subscribed_users": _count(select(func.count(User.id)).where(User.subscribed.is_(True))),
        "pending_payments": int(payments_by_status.get(STATUS_PENDING, 0)),
        "verified_payments": int(payments_by_status.get(STATUS_VERIFIED, 0)),
        "rejected_payments": int(payments_by_status.get(STATUS_REJECTED, 0)),
        "total_analyses": _count(select(func.count(Analysis.id))),
        "analyses_last_24h": _count(
            select(func.count(Analysis.id)).where(Analysis.analyzed_at >= at - timedelta(hours=24))
        ),
        "active_coupons": _count(select(func.count(Coupon.id)).where(Coupon.active.is_(True))),
    }
