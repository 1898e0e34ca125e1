# vivasmart/__init__.py
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from flask import Flask, jsonify
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from vivasmart.config import Config, Settings, ensure_sqlite_dir
from vivasmart.database import db, init_db
from vivasmart.errors import VivaSmartError

# Extensiones globales
migrate = Migrate()


def create_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)

    # -----------------------------------------------------------
    # CONFIG GENERAL
    # -----------------------------------------------------------
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    ensure_sqlite_dir(app.config["SQLALCHEMY_DATABASE_URI"])

    logging.basicConfig(
        level=getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # -----------------------------------------------------------
    # INICIALIZACIÓN DE EXTENSIONES
    # -----------------------------------------------------------
    init_db(app)
    migrate.init_app(app, db)

    from vivasmart.services.analyzer import Analyzer

    app.extensions["vivasmart.settings"] = Settings.from_mapping(app.config)
    # los tests inyectan un analizador falso vía overrides["ANALYZER"]
    app.extensions["vivasmart.analyzer"] = app.config.get("ANALYZER") or Analyzer.from_config(app.config)

    # Importar modelos
    from vivasmart import models          # noqa: F401
    from vivasmart import models_coupon   # noqa: F401
    from vivasmart import models_payment  # noqa: F401

    # -----------------------------------------------------------
    # BLUEPRINTS
    # -----------------------------------------------------------
    from vivasmart.routes.auth import bp as auth_bp
    app.register_blueprint(auth_bp)

    from vivasmart.routes.users import bp as users_bp
    app.register_blueprint(users_bp)

    from vivasmart.routes.analyze import bp as analyze_bp
    app.register_blueprint(analyze_bp)

    from vivasmart.routes.payments import bp as payments_bp
    app.register_blueprint(payments_bp)

    from vivasmart.routes.coupons import bp as coupons_bp
    app.register_blueprint(coupons_bp)

    from vivasmart.routes.admin import bp as admin_bp
    app.register_blueprint(admin_bp)

    # -----------------------------------------------------------
    # ERRORES
    # -----------------------------------------------------------
    @app.errorhandler(VivaSmartError)
    def handle_domain_error(e: VivaSmartError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify(error="Route not found."), 404

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify(success=False, error=e.description), e.code
        app.logger.exception("UNHANDLED %s", e)
        return jsonify(success=False, error="Something went wrong."), 500

    # -----------------------------------------------------------
    # HEALTHCHECK
    # -----------------------------------------------------------
    @app.get("/")
    def index():
        return {"status": "VivaSmart backend running", "version": "2.0"}

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    # Crear tablas si no existen
    with app.app_context():
        db.create_all()

    return app
