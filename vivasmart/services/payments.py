from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from vivasmart.config import Settings
from vivasmart.database import db, run_atomically
from vivasmart.entitlements import (
    PLAN_MONTHLY,
    coerce_grant_count,
    grant_trials,
    grant_unlimited,
    normalize,
    now_utc,
)
from vivasmart.errors import (
    AlreadyRejected,
    AlreadyVerified,
    DuplicateUpiRef,
    InvalidInput,
    PaymentNotFound,
)
from vivasmart.models import User
from vivasmart.models_payment import (
    PLAN_LABELS,
    PLAN_MONTHLY as PAYMENT_PLAN_MONTHLY,
    PLAN_TRIAL_PACK,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUS_VERIFIED,
    Payment,
)
from vivasmart.services.accounts import apply_entitlement, find_user, find_user_by_email

log = logging.getLogger(__name__)

MIN_UPI_REF_CHARS = 4
_MOBILE_RX = re.compile(r"^\+?[\d\s-]+$")


def _clean_mobile(raw: Any) -> Optional[str]:
    mobile = str(raw or "").strip()
    if not mobile:
        return None
    digits = re.sub(r"\D", "", mobile)
    if not _MOBILE_RX.match(mobile) or not 7 <= len(digits) <= 15:
        raise InvalidInput("Invalid mobile number.")
    return mobile


def require_payment(payment_id: Any) -> Payment:
    try:
        pid = int(payment_id)
    except (TypeError, ValueError):
        raise PaymentNotFound()
    payment = db.session.get(Payment, pid)
    if payment is None:
        raise PaymentNotFound()
    return payment


def _ensure_pending(payment: Payment) -> None:
    if payment.status == STATUS_VERIFIED:
        raise AlreadyVerified()
    if payment.status == STATUS_REJECTED:
        raise AlreadyRejected()


# ---------------------------------------------------------
# Usuario: enviar pago
# ---------------------------------------------------------
def submit_payment(
    user_id: Any,
    email: Optional[str],
    plan: Any,
    upi_ref: Any,
    mobile: Any = None,
    now: Optional[datetime] = None,
) -> Payment:
    plan = str(plan or "").strip()
    if plan not in PLAN_LABELS:
        raise InvalidInput("Invalid plan.")

    upi_ref = str(upi_ref or "").strip()
    if len(upi_ref) < MIN_UPI_REF_CHARS:
        raise InvalidInput("Invalid UPI reference number.")

    mobile = _clean_mobile(mobile)

    user: Optional[User] = None
    if user_id not in (None, ""):
        user = find_user(user_id)

    email = (email or "").strip().lower() or (user.email if user else "")
    if not email:
        raise InvalidInput("Missing required fields.")

    def _insert() -> Payment:
        dup = db.session.execute(select(Payment.id).where(Payment.upi_ref == upi_ref)).first()
        if dup is not None:
            raise DuplicateUpiRef()

        payment = Payment(
            user_id=user.id if user else None,
            email=email,
            mobile=mobile,
            plan=plan,
            plan_label=PLAN_LABELS[plan],
            upi_ref=upi_ref,
            status=STATUS_PENDING,
            submitted_at=now or now_utc(),
        )
        db.session.add(payment)
        try:
            db.session.flush()
        except IntegrityError:
            raise DuplicateUpiRef()
        return payment

    payment = run_atomically(_insert, op="submit_payment")
    log.info("PAYMENT_SUBMITTED id=%s email=%s plan=%s", payment.id, email, plan)
    return payment


# ---------------------------------------------------------
# Admin: verificar / rechazar (PaymentVerificationWorkflow)
# ---------------------------------------------------------
def _resolve_payer(payment: Payment) -> Optional[User]:
    if payment.user_id is not None:
        user = db.session.get(User, payment.user_id)
        if user is not None:
            return user
    return find_user_by_email(payment.email)


def verify_payment(
    payment_id: Any,
    settings: Settings,
    trials_to_grant: Any = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    pending -> verified, plus the matching grant, in one transaction.

    Plan '99' grants a monthly subscription (trials_granted stays None);
    plan '10' adds max(trials_to_grant, 1) trials on top of the user's
    current total, read inside the transaction. A payment whose user cannot
    be found still transitions; the grant is simply skipped.
    """

    def _verify() -> Dict[str, Any]:
        at = now or now_utc()
        payment = require_payment(payment_id)
        _ensure_pending(payment)
        user = _resolve_payer(payment)

        payment.status = STATUS_VERIFIED
        payment.verified_at = at
        payment.verified_by = settings.admin_email or None
        if notes:
            payment.notes = notes

        if payment.plan == PAYMENT_PLAN_MONTHLY:
            payment.trials_granted = None
            if user is not None:
                apply_entitlement(
                    user,
                    lambda e: grant_unlimited(normalize(e, at), PLAN_MONTHLY, at, days=settings.monthly_days),
                )
        elif payment.plan == PLAN_TRIAL_PACK:
            granted = coerce_grant_count(1 if trials_to_grant in (None, "") else trials_to_grant)
            payment.trials_granted = granted
            if user is not None:
                apply_entitlement(user, lambda e: grant_trials(normalize(e, at), granted))
        else:
            raise InvalidInput(f"Payment has an unknown plan '{payment.plan}'.")

        if user is not None and payment.user_id is None:
            payment.user_id = user.id

        db.session.flush()
        return {"payment": payment, "user": user}

    result = run_atomically(_verify, op="verify_payment")
    payment, user = result["payment"], result["user"]
    if user is None:
        log.warning("PAYMENT_VERIFIED_NO_USER id=%s email=%s", payment.id, payment.email)
    log.info(
        "PAYMENT_VERIFIED id=%s plan=%s uid=%s trials_granted=%s",
        payment.id, payment.plan, user.id if user else None, payment.trials_granted,
    )
    return result


def reject_payment(
    payment_id: Any,
    settings: Settings,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Payment:
    def _reject() -> Payment:
        payment = require_payment(payment_id)
        _ensure_pending(payment)
        payment.status = STATUS_REJECTED
        payment.verified_at = now or now_utc()
        payment.verified_by = settings.admin_email or None
        payment.notes = (notes or "").strip() or "Rejected by admin"
        db.session.flush()
        return payment

    payment = run_atomically(_reject, op="reject_payment")
    log.info("PAYMENT_REJECTED id=%s email=%s", payment.id, payment.email)
    return payment


# ---------------------------------------------------------
# Listados
# ---------------------------------------------------------
def list_payments(status: Optional[str] = None) -> List[Payment]:
    q = select(Payment).order_by(Payment.submitted_at.desc(), Payment.id.desc())
    if status:
        if status not in (STATUS_PENDING, STATUS_VERIFIED, STATUS_REJECTED):
            raise InvalidInput("Invalid payment status filter.")
        q = q.where(Payment.status == status)
    return db.session.execute(q).scalars().all()


def serialize_payment(p: Payment) -> Dict[str, Any]:
    return {
        "id": p.id,
        "user_id": p.user_id,
        "email": p.email,
        "mobile": p.mobile,
        "plan": p.plan,
        "plan_label": p.plan_label,
        "upi_ref": p.upi_ref,
        "status": p.status,
        "submitted_at": p.submitted_at.isoformat() if p.submitted_at else None,
        "verified_at": p.verified_at.isoformat() if p.verified_at else None,
        "verified_by": p.verified_by,
        "notes": p.notes,
        "trials_granted": p.trials_granted,
    }
