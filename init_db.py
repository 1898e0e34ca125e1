# init_db.py
# Crea las tablas que falten (equivalente rápido a `flask db upgrade` en dev).
from sqlalchemy import inspect

from vivasmart import create_app
from vivasmart.database import db

app = create_app()

with app.app_context():
    db.create_all()
    insp = inspect(db.engine)
    print("Tablas ahora:", insp.get_table_names())
