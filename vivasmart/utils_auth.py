# vivasmart/utils_auth.py
from __future__ import annotations

import hmac
from functools import wraps
from typing import Any, Optional

from flask import current_app, jsonify, request, session

from vivasmart.config import Settings


def get_request_user_id(body: Optional[dict] = None) -> Optional[Any]:
    """
    Obtiene el user_id de (prioridad):
    - body JSON {"userId": ...}
    - header X-User-Id (modo DEV / curl)
    - querystring ?user_id=
    - session['user_id'] / session['uid']
    Devuelve el valor crudo o None; la validación la hace accounts.coerce_user_id.
    """
    if body:
        raw = body.get("userId", body.get("user_id"))
        if raw not in (None, ""):
            return raw

    h = request.headers.get("X-User-Id")
    if h:
        return h.strip()

    qs = request.args.get("user_id")
    if qs:
        return qs.strip()

    for k in ("user_id", "uid"):
        if k in session:
            return session[k]

    return None


def get_settings() -> Settings:
    return current_app.extensions["vivasmart.settings"]


def admin_required(view):
    """
    Exige el header X-Admin-Secret igual a ADMIN_SECRET.
    Sin ADMIN_SECRET configurado, toda la API de admin responde 401.
    """

    @wraps(view)
    def wrapper(*args, **kwargs):
        expected = current_app.config.get("ADMIN_SECRET") or ""
        given = request.headers.get("X-Admin-Secret") or ""
        if not expected or not hmac.compare_digest(given.encode(), expected.encode()):
            current_app.logger.warning("ADMIN_DENIED path=%s", request.path)
            return jsonify(success=False, error="Admin access required."), 401
        return view(*args, **kwargs)

    return wrapper
