# vivasmart/models_payment.py
from __future__ import annotations

from vivasmart.database import db
from vivasmart.models import utcnow

PLAN_TRIAL_PACK = "10"
PLAN_MONTHLY = "99"

PLAN_LABELS = {
    PLAN_TRIAL_PACK: "Single Analysis",
    PLAN_MONTHLY: "Monthly Unlimited",
}

STATUS_PENDING = "pending"
STATUS_VERIFIED = "verified"
STATUS_REJECTED = "rejected"


class Payment(db.Model):
    """
    Pago UPI enviado por el usuario y conciliado a mano por el admin.

    - user_id: puede ser None (pago enviado solo con email)
    - plan: '10' (una prueba extra) o '99' (mensual ilimitado)
    - upi_ref: referencia UPI (única, evita reenvíos)
    - status: pending -> verified | rejected (una sola vez)
    - trials_granted: pruebas acreditadas al verificar (None en mensual)
    """

    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    email = db.Column(db.String(255), nullable=False, index=True)
    mobile = db.Column(db.String(32), nullable=True)

    plan = db.Column(db.String(8), nullable=False)
    plan_label = db.Column(db.String(64), nullable=True)
    upi_ref = db.Column(db.String(128), nullable=False, unique=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)

    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    verified_at = db.Column(db.DateTime, nullable=True)
    verified_by = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    trials_granted = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<Payment id={self.id} email={self.email} "
            f"plan={self.plan} upi_ref={self.upi_ref} status={self.status}>"
        )
