# scripts/doctor.py
import os
import sys

from dotenv import load_dotenv
from sqlalchemy import inspect, text


def fail(msg, code=1):
    print(f"[X] {msg}")
    sys.exit(code)


def main():
    load_dotenv()  # carga .env en dev

    provider = (os.getenv("LLM_PROVIDER") or "gemini").strip().lower()
    key_var = "OPENAI_API_KEY" if provider == "openai" else "GEMINI_API_KEY"

    required = ["SECRET_KEY", "ADMIN_EMAIL", "ADMIN_SECRET", key_var]
    ok = True
    for k in required:
        v = os.getenv(k)
        print(f"{k:>20}: {'OK' if v else 'MISSING'}")
        ok &= bool(v)
    if not ok:
        fail("Faltan variables en .env")

    # Comprobar base de datos y tablas
    from vivasmart import create_app
    from vivasmart.database import db

    app = create_app()
    try:
        with app.app_context():
            db.session.execute(text("SELECT 1"))
            tables = set(inspect(db.engine).get_table_names())
    except Exception as e:
        fail(f"DB error: {e}")

    expected = {"users", "analyses", "payments", "coupons", "coupon_redemptions"}
    missing = expected - tables
    if missing:
        fail(f"Faltan tablas: {', '.join(sorted(missing))}")
    print(f"DB OK: {app.config['SQLALCHEMY_DATABASE_URI']}")

    print("Doctor: OK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
