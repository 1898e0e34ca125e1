# run_waitress.py
# Sirve la app Flask con Waitress (producción / Windows).
import os

from waitress import serve

from vivasmart import create_app

if __name__ == "__main__":
    application = create_app()
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    threads = int(os.getenv("WAITRESS_THREADS", "8"))
    print(f"[Waitress] Sirviendo VivaSmart en http://{host}:{port}")
    serve(application, listen=f"{host}:{port}", threads=threads)
