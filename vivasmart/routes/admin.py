# vivasmart/routes/admin.py
from __future__ import annotations

from flask import Blueprint, jsonify, request

from vivasmart.services import accounts, admin, coupons, payments
from vivasmart.utils_auth import admin_required, get_settings

bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# -------------------------
# Dashboard
# -------------------------
@bp.get("/stats")
@admin_required
def stats():
    return jsonify(success=True, stats=admin.stats())


# -------------------------
# Usuarios
# -------------------------
@bp.get("/users")
@admin_required
def list_users():
    users = admin.list_users()
    return jsonify(success=True, users=[accounts.serialize_user(u) for u in users])


@bp.get("/users/<user_id>")
@admin_required
def user_detail(user_id: str):
    return jsonify(success=True, **admin.user_detail(user_id))


@bp.post("/users/<user_id>/update")
@admin_required
def update_user(user_id: str):
    """
    Body: {"action": "grant_monthly"|"grant_one_time"|"add_trials"|"set_trials"|
                     "reset_used"|"revoke_all"|"update_name", ...params}
    Los parámetros pueden venir planos o dentro de "params".
    """
    data = request.get_json(silent=True) or {}
    params = data.get("params") if isinstance(data.get("params"), dict) else data
    user = admin.update_user(user_id, data.get("action"), params, get_settings())
    return jsonify(success=True, message="User updated.", user=accounts.serialize_user(user))


# -------------------------
# Pagos
# -------------------------
@bp.get("/payments")
@admin_required
def list_payments():
    status = (request.args.get("status") or "").strip().lower() or None
    items = payments.list_payments(status)
    return jsonify(success=True, payments=[payments.serialize_payment(p) for p in items])


@bp.post("/payments/<payment_id>/verify")
@admin_required
def verify_payment(payment_id: str):
    data = request.get_json(silent=True) or {}
    result = payments.verify_payment(
        payment_id,
        get_settings(),
        trials_to_grant=data.get("trialsToGrant"),
        notes=data.get("notes"),
    )
    user = result["user"]
    return jsonify(
        success=True,
        message="Payment verified and subscription activated.",
        payment=payments.serialize_payment(result["payment"]),
        user=accounts.serialize_user(user) if user is not None else None,
    )


@bp.post("/payments/<payment_id>/reject")
@admin_required
def reject_payment(payment_id: str):
    data = request.get_json(silent=True) or {}
    payment = payments.reject_payment(payment_id, get_settings(), notes=data.get("notes"))
    return jsonify(success=True, message="Payment rejected.", payment=payments.serialize_payment(payment))


# -------------------------
# Cupones
# -------------------------
@bp.get("/coupons")
@admin_required
def list_coupons():
    return jsonify(success=True, coupons=[coupons.serialize_coupon(c) for c in coupons.list_coupons()])


@bp.post("/coupons")
@admin_required
def create_coupon():
    data = request.get_json(silent=True) or {}
    coupon = coupons.create_coupon(data, created_by=get_settings().admin_email or None)
    return jsonify(success=True, coupon=coupons.serialize_coupon(coupon))


@bp.put("/coupons/<coupon_id>")
@admin_required
def edit_coupon(coupon_id: str):
    data = request.get_json(silent=True) or {}
    coupon = coupons.edit_coupon(coupon_id, data)
    return jsonify(success=True, coupon=coupons.serialize_coupon(coupon))


@bp.put("/coupons/<coupon_id>/toggle")
@admin_required
def toggle_coupon(coupon_id: str):
    coupon = coupons.toggle_coupon(coupon_id)
    return jsonify(success=True, active=coupon.active)


@bp.delete("/coupons/<coupon_id>")
@admin_required
def delete_coupon(coupon_id: str):
    coupons.delete_coupon(coupon_id)
    return jsonify(success=True)
