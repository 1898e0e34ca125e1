from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from vivasmart.config import Settings
from vivasmart.database import db, run_atomically
from vivasmart.entitlements import (
    Entitlement,
    can_analyze,
    consume_analysis,
    normalize,
    now_utc,
)
from vivasmart.errors import InvalidInput, TrialLimitReached, UserNotFound
from vivasmart.models import ROLE_ADMIN, ROLE_STUDENT, Analysis, User

log = logging.getLogger(__name__)


# ---------------------------------------------------------
# Lectura
# ---------------------------------------------------------
def coerce_user_id(raw: Any) -> int:
    try:
        uid = int(str(raw).strip())
    except (TypeError, ValueError):
        raise InvalidInput("Invalid user id.")
    if uid <= 0:
        raise InvalidInput("Invalid user id.")
    return uid


def find_user(user_id: Any) -> Optional[User]:
    """An id that does not parse matches no user."""
    try:
        uid = coerce_user_id(user_id)
    except InvalidInput:
        return None
    return db.session.get(User, uid)


def find_user_by_email(email: str) -> Optional[User]:
    email = (email or "").strip().lower()
    if not email:
        return None
    return db.session.execute(
        select(User).where(func.lower(User.email) == email)
    ).scalars().first()


def require_user(user_id: Any) -> User:
    user = find_user(user_id)
    if user is None:
        raise UserNotFound()
    return user


# ---------------------------------------------------------
# Escritura versionada sobre la fila del usuario
# ---------------------------------------------------------
def apply_entitlement(
    user: User,
    recipe: Callable[[Entitlement], Entitlement],
) -> Entitlement:
    """
    Computes ``recipe`` over the row's current entitlement and stages the
    result on the row. Must run inside ``run_atomically``: the flush issues a
    single UPDATE guarded by ``version_id``.
    """
    before = Entitlement.of(user)
    after = recipe(before)
    if after != before:
        after.apply_to(user)
    return after


def update_entitlement(
    user_id: Any,
    recipe: Callable[[Entitlement], Entitlement],
    now: Optional[datetime] = None,
    op: str = "update_entitlement",
) -> User:
    """Normalize, apply ``recipe`` and commit as one versioned row update."""
    uid = coerce_user_id(user_id)

    def _write() -> User:
        at = now or now_utc()
        user = require_user(uid)
        apply_entitlement(user, lambda ent: recipe(normalize(ent, at)))
        db.session.flush()
        return user

    return run_atomically(_write, op=op)


# ---------------------------------------------------------
# SubscriptionLifecycle
# ---------------------------------------------------------
def normalize_user(user: User, now: Optional[datetime] = None) -> User:
    """
    Lazily clears an expired monthly subscription and persists the change.
    Returns the same (refreshed) row; a no-op when nothing expired.
    """
    at = now or now_utc()
    if Entitlement.of(user) == normalize(Entitlement.of(user), at):
        return user

    uid = user.id

    def _expire() -> User:
        fresh = require_user(uid)
        ent = Entitlement.of(fresh)
        cleared = normalize(ent, at)
        if cleared != ent:
            cleared.apply_to(fresh)
            db.session.flush()
            log.info("SUB_EXPIRED uid=%s expired_at=%s", uid, ent.sub_expires)
        return fresh

    return run_atomically(_expire, op="normalize_user")


def get_normalized_user(user_id: Any, now: Optional[datetime] = None) -> User:
    return normalize_user(require_user(user_id), now)


# ---------------------------------------------------------
# Operaciones expuestas
# ---------------------------------------------------------
def login(email: str, name: Optional[str], settings: Settings, now: Optional[datetime] = None) -> User:
    """Idempotent upsert by email, then lifecycle normalization."""
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise InvalidInput("Email is required.")
    name = (name or "").strip() or email.split("@")[0]

    def _upsert() -> User:
        at = now or now_utc()
        user = find_user_by_email(email)
        if user is None:
            user = User(
                email=email,
                name=name,
                role=ROLE_ADMIN if settings.admin_email and email == settings.admin_email else ROLE_STUDENT,
                trials_total=settings.free_trials,
                trials_used=0,
                subscribed=False,
                created_at=at,
            )
            db.session.add(user)
            try:
                db.session.flush()
            except IntegrityError:
                # otro request creó el mismo email en paralelo
                db.session.rollback()
                user = find_user_by_email(email)
                if user is None:
                    raise
            else:
                log.info("USER_CREATED uid=%s email=%s role=%s", user.id, email, user.role)

        user.last_login = at
        apply_entitlement(user, lambda ent: normalize(ent, at))
        db.session.flush()
        return user

    user = run_atomically(_upsert, op="login")
    log.info("LOGIN uid=%s subscribed=%s trials=%s/%s", user.id, user.subscribed, user.trials_used, user.trials_total)
    return user


def get_status(user_id: Any, now: Optional[datetime] = None) -> Dict[str, Any]:
    user = get_normalized_user(user_id, now)
    return serialize_user(user)


def pre_analyze(user_id: Any, now: Optional[datetime] = None) -> User:
    """Allow/deny an analysis. Raises TrialLimitReached on deny; never mutates quota."""
    user = get_normalized_user(user_id, now)
    if not can_analyze(Entitlement.of(user)):
        log.info("TRIAL_LIMIT uid=%s used=%s total=%s", user.id, user.trials_used, user.trials_total)
        raise TrialLimitReached()
    return user


def post_analyze(user_id: Any, project_title: Optional[str], now: Optional[datetime] = None) -> User:
    """
    Commits one successful analysis: meters the trial and appends the audit row
    in a single transaction. Only called after the Analyzer returned a result.
    """
    uid = coerce_user_id(user_id)
    title = (project_title or "").strip() or "Unknown"

    def _commit() -> User:
        at = now or now_utc()
        user = require_user(uid)
        ent = normalize(Entitlement.of(user), at)
        if can_analyze(ent):
            consume_analysis(ent).apply_to(user)
        else:
            # otra petición consumió la última prueba mientras corría el LLM;
            # no se supera trials_total
            ent.apply_to(user)
            log.warning("METER_SKIPPED uid=%s used=%s total=%s", uid, ent.trials_used, ent.trials_total)

        db.session.add(Analysis(user_id=user.id, email=user.email, project_title=title[:512], analyzed_at=at))
        db.session.flush()
        return user

    user = run_atomically(_commit, op="post_analyze")
    log.info("ANALYSIS_COMMITTED uid=%s trials=%s/%s", user.id, user.trials_used, user.trials_total)
    return user


# ---------------------------------------------------------
# Serialización
# ---------------------------------------------------------
def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_user(u: User) -> Dict[str, Any]:
    ent = Entitlement.of(u)
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "role": u.role,
        "trials_total": u.trials_total,
        "trials_used": u.trials_used,
        "trials_left": ent.trials_left,
        "can_analyze": can_analyze(ent),
        "subscribed": u.subscribed,
        "sub_plan": u.sub_plan,
        "sub_expires": _iso(u.sub_expires),
        "created_at": _iso(u.created_at),
        "last_login": _iso(u.last_login),
    }
