import os

from school_portal.app import create_app
from school_portal.app.services.db_service import init_db


init_db()
app = create_app()


if __name__ == "__main__":
    from waitress import serve

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    serve(app, host=host, port=port)
