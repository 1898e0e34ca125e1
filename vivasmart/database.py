# vivasmart/database.py
"""
Capa de base de datos.
Expone:
  - db: instancia global de SQLAlchemy
  - init_db(app): inicializa SQLAlchemy con la app
  - run_atomically(fn): ejecuta una escritura read-compute-write con commit,
    rollback y reintento ante conflicto de versión
"""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

from flask import current_app, has_app_context
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from vivasmart.errors import ConcurrentUpdate, StoreUnavailable, VivaSmartError

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_WRITE_ATTEMPTS = 3

# Naming conventions (migrations + SQLite batch mode)
metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

db = SQLAlchemy(metadata=metadata)


def init_db(app):
    """Inicializa la instancia global de SQLAlchemy con la app Flask."""
    db.init_app(app)


def _write_attempts() -> int:
    if has_app_context():
        return int(current_app.config.get("WRITE_ATTEMPTS", DEFAULT_WRITE_ATTEMPTS))
    return DEFAULT_WRITE_ATTEMPTS


def run_atomically(fn: Callable[[], T], op: str = "") -> T:
    """
    Runs ``fn`` and commits the session.

    ``fn`` must (re)load every row it mutates, because a version conflict on
    ``users``/``coupons``/``payments`` rolls the transaction back and calls it
    again from scratch. Domain errors roll back and propagate untouched; any
    other storage error rolls back and surfaces as StoreUnavailable.
    """
    op = op or getattr(fn, "__name__", "write")
    attempts = max(1, _write_attempts())

    for attempt in range(1, attempts + 1):
        # filas leídas antes (p.ej. antes de la llamada al LLM) se recargan
        db.session.expire_all()
        try:
            result = fn()
            db.session.commit()
            return result
        except StaleDataError:
            db.session.rollback()
            log.warning("WRITE_CONFLICT op=%s attempt=%s/%s", op, attempt, attempts)
        except VivaSmartError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            log.exception("STORE_ERROR op=%s: %s", op, e)
            raise StoreUnavailable() from e

    raise ConcurrentUpdate(details={"operation": op, "attempts": attempts})
