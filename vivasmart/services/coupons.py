from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from vivasmart.config import Settings
from vivasmart.database import db, run_atomically
from vivasmart.entitlements import (
    PLAN_MONTHLY,
    PLAN_ONE_TIME,
    grant_trials,
    grant_unlimited,
    normalize,
    now_utc,
)
from vivasmart.errors import (
    AlreadyRedeemed,
    CouponExhausted,
    CouponExpired,
    CouponInactive,
    CouponNotFound,
    DuplicateCode,
    InvalidInput,
)
from vivasmart.models_coupon import Coupon, CouponRedemption
from vivasmart.services.accounts import apply_entitlement, coerce_user_id, require_user

log = logging.getLogger(__name__)

CODE_PREFIX = "VS-"
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # sin 0/O/1/I
CODE_LENGTH = 8
DEFAULT_MAX_USES = 100

_UNSET = object()

COUPON_PLANS = (PLAN_ONE_TIME, PLAN_MONTHLY)


def generate_coupon_code(rng: Optional[random.Random] = None) -> str:
    """Random ``VS-XXXXXXXX`` code; pass a seeded Random for repeatable output."""
    rng = rng or random.SystemRandom()
    return CODE_PREFIX + "".join(rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(code: Any) -> str:
    return str(code or "").strip().upper()


def find_coupon_by_code(code: str) -> Optional[Coupon]:
    code = normalize_code(code)
    if not code:
        return None
    return db.session.execute(
        select(Coupon).where(func.upper(Coupon.code) == code)
    ).scalars().first()


def require_coupon(coupon_id: Any) -> Coupon:
    try:
        cid = int(coupon_id)
    except (TypeError, ValueError):
        raise CouponNotFound("Coupon not found.")
    coupon = db.session.get(Coupon, cid)
    if coupon is None:
        raise CouponNotFound("Coupon not found.")
    return coupon


def _already_redeemed(coupon_id: int, user_id: int) -> bool:
    return db.session.execute(
        select(CouponRedemption.id).where(
            CouponRedemption.coupon_id == coupon_id,
            CouponRedemption.user_id == user_id,
        )
    ).first() is not None


# ---------------------------------------------------------
# Canje (CouponRedemptionWorkflow)
# ---------------------------------------------------------
def redeem_coupon(
    user_id: Any,
    code: Any,
    settings: Settings,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Validates and redeems ``code`` for ``user_id`` in one transaction.

    Validation order: not found, already redeemed by this user, exhausted,
    inactive, expired. The commit increments ``uses`` (deactivating at ``max_uses``),
    applies the grant and inserts the redemption row. A version conflict on
    the coupon or user re-runs the whole sequence against fresh rows; a
    unique-constraint hit on the redemption pair means AlreadyRedeemed.
    """
    uid = coerce_user_id(user_id)
    if not normalize_code(code):
        raise InvalidInput("Coupon code is required.")

    def _redeem() -> Dict[str, Any]:
        at = now or now_utc()

        # 1-5: validación
        coupon = find_coupon_by_code(code)
        if coupon is None:
            raise CouponNotFound()

        # el par (cupón, usuario) manda: repetir siempre es AlreadyRedeemed,
        # aunque el cupón se haya agotado con ese mismo canje
        user = require_user(uid)
        if _already_redeemed(coupon.id, user.id):
            raise AlreadyRedeemed()

        # agotado también implica inactivo; se informa el motivo concreto
        if coupon.is_exhausted():
            raise CouponExhausted()
        if not coupon.active:
            raise CouponInactive()
        if coupon.is_expired(at):
            raise CouponExpired()

        # 6: mutación (un único commit)
        coupon.uses = coupon.uses + 1
        if coupon.max_uses is not None and coupon.uses >= coupon.max_uses:
            coupon.active = False

        if coupon.grants_unlimited:
            plan = coupon.plan_grant if coupon.plan_grant in COUPON_PLANS else PLAN_ONE_TIME
            ent = apply_entitlement(
                user,
                lambda e: grant_unlimited(normalize(e, at), plan, at, days=settings.monthly_days),
            )
            message = "Coupon applied! You now have unlimited access."
        else:
            ent = apply_entitlement(user, lambda e: grant_trials(normalize(e, at), coupon.trial_grant))
            message = f"Coupon applied! {coupon.trial_grant} extra analyses added."

        db.session.add(CouponRedemption(coupon_id=coupon.id, user_id=user.id, redeemed_at=at))
        try:
            db.session.flush()
        except IntegrityError:
            # el par (coupon, user) ya existía: otro canje ganó la carrera
            raise AlreadyRedeemed()

        return {
            "message": message,
            "code": coupon.code,
            "plan": ent.sub_plan if coupon.grants_unlimited else None,
            "trials_added": 0 if coupon.grants_unlimited else coupon.trial_grant,
            "sub_expires": ent.sub_expires.isoformat() if ent.sub_expires else None,
            "coupon_active": coupon.active,
        }

    result = run_atomically(_redeem, op="redeem_coupon")
    log.info("COUPON_REDEEMED code=%s uid=%s plan=%s trials_added=%s", result["code"], uid, result["plan"], result["trials_added"])
    return result


# ---------------------------------------------------------
# Admin: alta / edición / toggle / baja
# ---------------------------------------------------------
def _parse_max_uses(data: Mapping[str, Any], default_when_missing: bool) -> Any:
    """
    ``maxUses`` semantics: key absent -> 100 on create; explicit null ->
    unlimited; non-numeric or < 1 -> 100.
    """
    if "maxUses" not in data:
        return DEFAULT_MAX_USES if default_when_missing else _UNSET
    raw = data.get("maxUses")
    if raw is None or (isinstance(raw, str) and raw.strip().lower() in ("", "unlimited", "null")):
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_MAX_USES
    return value if value >= 1 else DEFAULT_MAX_USES


def _parse_trial_grant(raw: Any) -> int:
    if raw in (None, ""):
        return 0
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise InvalidInput("trialGrant must be a whole number.")
    if value < 0:
        raise InvalidInput("trialGrant cannot be negative.")
    return value


def _parse_active(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw != 0
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in ("true", "1", "yes", "on"):
            return True
        if value in ("false", "0", "no", "off", ""):
            return False
    raise InvalidInput("active must be true or false.")


def _parse_plan_grant(raw: Any) -> str:
    return raw if raw in COUPON_PLANS else PLAN_ONE_TIME


def _parse_expiry(raw: Any) -> Optional[datetime]:
    if raw in (None, ""):
        return None
    if isinstance(raw, datetime):
        value = raw
    else:
        try:
            value = datetime.fromisoformat(str(raw).strip().replace("Z", "+00:00"))
        except ValueError:
            raise InvalidInput("expiryDate must be an ISO-8601 date.")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def create_coupon(
    data: Mapping[str, Any],
    created_by: Optional[str] = None,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> Coupon:
    code = normalize_code(data.get("code")) or generate_coupon_code(rng)

    coupon = Coupon(
        code=code,
        active=True,
        max_uses=_parse_max_uses(data, default_when_missing=True),
        uses=0,
        trial_grant=_parse_trial_grant(data.get("trialGrant")),
        plan_grant=_parse_plan_grant(data.get("planGrant")),
        expiry_date=_parse_expiry(data.get("expiryDate")),
        note=(data.get("note") or None),
        created_by=created_by,
        created_at=now or now_utc(),
    )

    def _insert() -> Coupon:
        if find_coupon_by_code(code) is not None:
            raise DuplicateCode()
        db.session.add(coupon)
        try:
            db.session.flush()
        except IntegrityError:
            raise DuplicateCode()
        return coupon

    created = run_atomically(_insert, op="create_coupon")
    log.info("COUPON_CREATED code=%s max_uses=%s trial_grant=%s plan=%s", created.code, created.max_uses, created.trial_grant, created.plan_grant)
    return created


def edit_coupon(coupon_id: Any, fields: Mapping[str, Any]) -> Coupon:
    """Sparse update: only the keys present in ``fields`` change."""

    def _edit() -> Coupon:
        coupon = require_coupon(coupon_id)

        if "code" in fields:
            new_code = normalize_code(fields.get("code"))
            if not new_code:
                raise InvalidInput("Coupon code cannot be blank.")
            if new_code != coupon.code:
                other = find_coupon_by_code(new_code)
                if other is not None and other.id != coupon.id:
                    raise DuplicateCode()
                coupon.code = new_code
        if "trialGrant" in fields:
            coupon.trial_grant = _parse_trial_grant(fields.get("trialGrant"))
        if "planGrant" in fields:
            coupon.plan_grant = _parse_plan_grant(fields.get("planGrant"))
        if "note" in fields:
            coupon.note = fields.get("note") or None
        if "expiryDate" in fields:
            coupon.expiry_date = _parse_expiry(fields.get("expiryDate"))
        if "active" in fields:
            coupon.active = _parse_active(fields.get("active"))

        max_uses = _parse_max_uses(fields, default_when_missing=False)
        if max_uses is not _UNSET:
            if max_uses is not None and max_uses < coupon.uses:
                raise InvalidInput(f"maxUses cannot be lower than current uses ({coupon.uses}).")
            coupon.max_uses = max_uses

        # invariante: agotado => inactivo
        if coupon.is_exhausted():
            coupon.active = False

        try:
            db.session.flush()
        except IntegrityError:
            raise DuplicateCode()
        return coupon

    coupon = run_atomically(_edit, op="edit_coupon")
    log.info("COUPON_EDITED id=%s fields=%s", coupon.id, sorted(fields.keys()))
    return coupon


def toggle_coupon(coupon_id: Any) -> Coupon:
    def _toggle() -> Coupon:
        coupon = require_coupon(coupon_id)
        if not coupon.active and coupon.is_exhausted():
            raise InvalidInput("Coupon is fully redeemed.")
        coupon.active = not coupon.active
        db.session.flush()
        return coupon

    coupon = run_atomically(_toggle, op="toggle_coupon")
    log.info("COUPON_TOGGLED id=%s active=%s", coupon.id, coupon.active)
    return coupon


def delete_coupon(coupon_id: Any) -> None:
    def _delete() -> int:
        coupon = require_coupon(coupon_id)
        cid = coupon.id
        db.session.delete(coupon)
        db.session.flush()
        return cid

    cid = run_atomically(_delete, op="delete_coupon")
    log.info("COUPON_DELETED id=%s", cid)


def list_coupons() -> List[Coupon]:
    return db.session.execute(
        select(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc())
    ).scalars().all()


def serialize_coupon(c: Coupon) -> Dict[str, Any]:
    return {
        "id": c.id,
        "code": c.code,
        "active": c.active,
        "max_uses": c.max_uses,
        "uses": c.uses,
        "trial_grant": c.trial_grant,
        "plan_grant": c.plan_grant,
        "expiry_date": c.expiry_date.isoformat() if c.expiry_date else None,
        "note": c.note,
        "created_by": c.created_by,
        "created_at": c.created_at.isoformat() if c.created_at else None,
    }
