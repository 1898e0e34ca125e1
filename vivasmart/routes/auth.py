# vivasmart/routes/auth.py
from __future__ import annotations

from flask import Blueprint, jsonify, request, session

from vivasmart.services import accounts
from vivasmart.utils_auth import get_settings

bp = Blueprint("auth", __name__, url_prefix="/api/auth")


# ---------------------------------------------------------
# POST /api/auth/login
#   Body: {"email": "...", "name": "..."}
#   Alta idempotente por email + normalización de la suscripción.
# ---------------------------------------------------------
@bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    user = accounts.login(data.get("email"), data.get("name"), get_settings())

    session["user_id"] = user.id
    return jsonify(success=True, user=accounts.serialize_user(user))
