# vivasmart/routes/analyze.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from vivasmart.errors import InvalidInput
from vivasmart.services import accounts
from vivasmart.services.analyzer import validate_project_text
from vivasmart.utils_auth import get_request_user_id, get_settings

bp = Blueprint("analyze", __name__, url_prefix="/api")


# ---------------------------------------------------------
# POST /api/analyze
#   Body: {"text": "<texto del PDF>", "userId": 123}
#   1) pre_analyze  -> 403 TRIAL_LIMIT si no puede
#   2) Analyzer     -> 502 si falla (no se cobra la prueba)
#   3) post_analyze -> cobra la prueba + registra el análisis
# ---------------------------------------------------------
@bp.post("/analyze")
def analyze():
    data = request.get_json(silent=True) or {}
    settings = get_settings()

    text = validate_project_text(data.get("text"), settings.min_text_chars, settings.max_text_chars)

    user_id = get_request_user_id(data)
    if user_id is None:
        raise InvalidInput("userId is required.")

    user = accounts.pre_analyze(user_id)
    uid = user.id

    analyzer = current_app.extensions["vivasmart.analyzer"]
    current_app.logger.info("ANALYZE_START uid=%s chars=%s", uid, len(text))
    result = analyzer.analyze(text)

    user = accounts.post_analyze(uid, result.project_title)
    return jsonify(success=True, data=result.to_dict(), user=accounts.serialize_user(user))
