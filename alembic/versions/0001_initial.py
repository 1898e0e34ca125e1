"""users, analyses, payments, coupons, coupon_redemptions

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.engine.reflection import Inspector

# Revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(inspector: Inspector, table: str) -> bool:
    return table in inspector.get_table_names()


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)

    # -----------------------------
    # USERS
    # -----------------------------
    if not _has_table(insp, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=True),
            sa.Column("role", sa.String(length=16), nullable=False, server_default="student"),
            sa.Column("trials_total", sa.Integer(), nullable=False, server_default="3"),
            sa.Column("trials_used", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("subscribed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("sub_plan", sa.String(length=16), nullable=True),
            sa.Column("sub_expires", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("last_login", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
            sa.CheckConstraint("trials_used >= 0", name="ck_users_trials_used_non_negative"),
            sa.CheckConstraint("trials_total >= 0", name="ck_users_trials_total_non_negative"),
            sa.UniqueConstraint("email", name="uq_users_email"),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=False)

    # -----------------------------
    # ANALYSES (auditoría)
    # -----------------------------
    if not _has_table(insp, "analyses"):
        op.create_table(
            "analyses",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                "user_id",
                sa.Integer(),
                sa.ForeignKey("users.id", ondelete="SET NULL", name="fk_analyses_user_id_users"),
                nullable=True,
            ),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("project_title", sa.String(length=512), nullable=False, server_default="Unknown"),
            sa.Column("analyzed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("ix_analyses_user_id", "analyses", ["user_id"], unique=False)
        op.create_index("ix_analyses_analyzed_at", "analyses", ["analyzed_at"], unique=False)

    # -----------------------------
    # PAYMENTS (UPI manual)
    # -----------------------------
    if not _has_table(insp, "payments"):
        op.create_table(
            "payments",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                "user_id",
                sa.Integer(),
                sa.ForeignKey("users.id", ondelete="SET NULL", name="fk_payments_user_id_users"),
                nullable=True,
            ),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("mobile", sa.String(length=32), nullable=True),
            sa.Column("plan", sa.String(length=8), nullable=False),
            sa.Column("plan_label", sa.String(length=64), nullable=True),
            sa.Column("upi_ref", sa.String(length=128), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
            sa.Column("submitted_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("verified_at", sa.DateTime(), nullable=True),
            sa.Column("verified_by", sa.String(length=255), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("trials_granted", sa.Integer(), nullable=True),
            sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
            sa.UniqueConstraint("upi_ref", name="uq_payments_upi_ref"),
        )
        op.create_index("ix_payments_user_id", "payments", ["user_id"], unique=False)
        op.create_index("ix_payments_email", "payments", ["email"], unique=False)
        op.create_index("ix_payments_status", "payments", ["status"], unique=False)

    # -----------------------------
    # COUPONS
    # -----------------------------
    if not _has_table(insp, "coupons"):
        op.create_table(
            "coupons",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("code", sa.String(length=64), nullable=False),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("max_uses", sa.Integer(), nullable=True),
            sa.Column("uses", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("trial_grant", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("plan_grant", sa.String(length=16), nullable=False, server_default="one_time"),
            sa.Column("expiry_date", sa.DateTime(), nullable=True),
            sa.Column("note", sa.String(length=255), nullable=True),
            sa.Column("created_by", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
            sa.CheckConstraint("uses >= 0", name="ck_coupons_uses_non_negative"),
            sa.CheckConstraint("max_uses IS NULL OR uses <= max_uses", name="ck_coupons_uses_within_max"),
            sa.UniqueConstraint("code", name="uq_coupons_code"),
        )
        op.create_index("ix_coupons_code", "coupons", ["code"], unique=False)

    if not _has_table(insp, "coupon_redemptions"):
        op.create_table(
            "coupon_redemptions",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                "coupon_id",
                sa.Integer(),
                sa.ForeignKey("coupons.id", ondelete="CASCADE", name="fk_coupon_redemptions_coupon_id_coupons"),
                nullable=False,
            ),
            sa.Column(
                "user_id",
                sa.Integer(),
                sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_coupon_redemptions_user_id_users"),
                nullable=False,
            ),
            sa.Column("redeemed_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("coupon_id", "user_id", name="uq_coupon_redemptions_coupon_user"),
        )
        op.create_index("ix_coupon_redemptions_coupon_id", "coupon_redemptions", ["coupon_id"], unique=False)
        op.create_index("ix_coupon_redemptions_user_id", "coupon_redemptions", ["user_id"], unique=False)


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)

    for table in ("coupon_redemptions", "coupons", "payments", "analyses", "users"):
        if _has_table(insp, table):
            op.drop_table(table)
