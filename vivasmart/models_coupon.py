# vivasmart/models_coupon.py
from __future__ import annotations

import datetime as dt

from vivasmart.database import db
from vivasmart.models import utcnow


class Coupon(db.Model):
    """
    Cupón emitido por el admin.

    - code: token visible, guardado en MAYÚSCULAS (único)
    - max_uses: None = ilimitado
    - uses: canjes realizados (nunca supera max_uses)
    - trial_grant: >0 suma N pruebas; 0 da acceso ilimitado según plan_grant
    - plan_grant: one_time / monthly (solo aplica si trial_grant == 0)
    - expiry_date: None = no caduca
    """

    __tablename__ = "coupons"
    __table_args__ = (
        db.CheckConstraint("uses >= 0", name="uses_non_negative"),
        db.CheckConstraint("max_uses IS NULL OR uses <= max_uses", name="uses_within_max"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)

    code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    active = db.Column(db.Boolean, nullable=False, default=True)

    max_uses = db.Column(db.Integer, nullable=True)
    uses = db.Column(db.Integer, nullable=False, default=0)

    trial_grant = db.Column(db.Integer, nullable=False, default=0)
    plan_grant = db.Column(db.String(16), nullable=False, default="one_time")

    expiry_date = db.Column(db.DateTime, nullable=True)
    note = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    redemptions = db.relationship(
        "CouponRedemption",
        back_populates="coupon",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def grants_unlimited(self) -> bool:
        return int(self.trial_grant or 0) == 0

    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.uses >= self.max_uses

    def is_expired(self, now: dt.datetime) -> bool:
        return self.expiry_date is not None and now >= self.expiry_date

    def __repr__(self) -> str:
        return f"<Coupon id={self.id} code={self.code} uses={self.uses}/{self.max_uses} active={self.active}>"


class CouponRedemption(db.Model):
    __tablename__ = "coupon_redemptions"
    __table_args__ = (
        # un usuario canjea un cupón como máximo una vez, para siempre
        db.UniqueConstraint("coupon_id", "user_id", name="uq_coupon_redemptions_coupon_user"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)

    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    redeemed_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    coupon = db.relationship("Coupon", back_populates="redemptions")

    def __repr__(self) -> str:
        return f"<CouponRedemption coupon={self.coupon_id} user={self.user_id}>"
