# vivasmart/models.py
from __future__ import annotations

import datetime as dt

from vivasmart.database import db


def utcnow():
    # naive UTC: SQLite no guarda tz
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"


# ---------------------------------------------------------
# USUARIOS
# ---------------------------------------------------------
class User(db.Model):
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("trials_used >= 0", name="trials_used_non_negative"),
        db.CheckConstraint("trials_total >= 0", name="trials_total_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)

    # siempre en minúsculas => unicidad case-insensitive
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(16), nullable=False, default=ROLE_STUDENT)

    # cuota de pruebas
    trials_total = db.Column(db.Integer, nullable=False, default=3)
    trials_used = db.Column(db.Integer, nullable=False, default=0)

    # suscripción: one_time / monthly / coupon
    subscribed = db.Column(db.Boolean, nullable=False, default=False)
    sub_plan = db.Column(db.String(16), nullable=True)
    sub_expires = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # control optimista: cada UPDATE lleva "WHERE version_id = <leído>"
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role} subscribed={self.subscribed}>"


# ---------------------------------------------------------
# ANÁLISIS (solo auditoría, append-only)
# ---------------------------------------------------------
class Analysis(db.Model):
    __tablename__ = "analyses"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    email = db.Column(db.String(255), nullable=True)
    project_title = db.Column(db.String(512), nullable=False, default="Unknown")

    analyzed_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self) -> str:
        return f"<Analysis id={self.id} user={self.user_id} title={self.project_title!r}>"
