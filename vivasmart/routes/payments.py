# vivasmart/routes/payments.py
from __future__ import annotations

from flask import Blueprint, jsonify, request

from vivasmart.services import payments
from vivasmart.utils_auth import get_request_user_id

bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# ---------------------------------------------------------
# POST /api/payments/submit
#   Body: {"userId", "email", "mobile", "plan": "10"|"99", "upiRef"}
#   Queda en 'pending' hasta que el admin lo verifique.
# ---------------------------------------------------------
@bp.post("/submit")
def submit():
    data = request.get_json(silent=True) or {}
    payment = payments.submit_payment(
        user_id=get_request_user_id(data),
        email=data.get("email"),
        plan=data.get("plan"),
        upi_ref=data.get("upiRef"),
        mobile=data.get("mobile"),
    )
    return jsonify(
        success=True,
        paymentId=payment.id,
        message="Payment submitted! Admin will verify shortly.",
    )
