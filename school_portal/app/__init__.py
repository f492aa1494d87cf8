from flask import Flask

from .config import DB_PATH, SECRET_KEY, UPLOAD_DIR
from .extensions import init_extensions
from .services import db_service


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, template_folder="../../templates", static_folder="../../static")
    app.secret_key = SECRET_KEY
    app.config.update(
        DB_PATH=DB_PATH,
        UPLOAD_DIR=UPLOAD_DIR,
        MAX_CONTENT_LENGTH=16 * 1024 * 1024,
    )
    if overrides:
        app.config.update(overrides)
        if "SECRET_KEY" in overrides:
            app.secret_key = overrides["SECRET_KEY"]

    init_extensions(app)
    db_service.init_app(app)

    from .routes.site import bp as site_bp
    from .routes.auth import bp as auth_bp
    from .routes.portal import bp as portal_bp
    from .routes.admin import bp as admin_bp
    from .routes.api import bp as api_bp

    app.register_blueprint(site_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(portal_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(api_bp)

    return app
