# vivasmart/routes/users.py
from __future__ import annotations

from flask import Blueprint, jsonify

from vivasmart.services import accounts

bp = Blueprint("users", __name__, url_prefix="/api/users")


@bp.get("/<user_id>/status")
def user_status(user_id: str):
    return jsonify(success=True, user=accounts.get_status(user_id))
