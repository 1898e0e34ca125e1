# vivasmart/routes/coupons.py
from __future__ import annotations

from flask import Blueprint, jsonify, request

from vivasmart.errors import InvalidInput
from vivasmart.services import coupons
from vivasmart.utils_auth import get_request_user_id, get_settings

bp = Blueprint("coupons", __name__, url_prefix="/api/coupons")


@bp.post("/redeem")
def redeem():
    data = request.get_json(silent=True) or {}
    user_id = get_request_user_id(data)
    if user_id is None:
        raise InvalidInput("userId is required.")

    result = coupons.redeem_coupon(user_id, data.get("code"), get_settings())
    return jsonify(success=True, **result)
