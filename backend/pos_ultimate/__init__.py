# backend/pos_ultimate/__init__.py
from datetime import timedelta

from flask import Flask, jsonify, request

from .config import Config
from .errors import PosError
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    app.permanent_session_lifetime = timedelta(hours=12)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Synced store and login gate, one per app
    from .services.auth_service import AuthGate
    from .services.document_store import DocumentStore
    from .services.login_throttle_service import LoginThrottle
    from .services.sync_store import SyncedStore

    store = SyncedStore(
        DocumentStore(),
        bcrypt_rounds=app.config["BCRYPT_ROUNDS"],
        bootstrap_password=app.config["BOOTSTRAP_ADMIN_PASSWORD"],
    )
    throttle = LoginThrottle(
        max_attempts=app.config["MAX_LOGIN_ATTEMPTS"],
        lockout=timedelta(minutes=app.config["LOCKOUT_MINUTES"]),
    )
    app.extensions["pos_store"] = store
    app.extensions["pos_auth"] = AuthGate(store, throttle)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.locales import locales_bp
    from .routes.products import products_bp
    from .routes.sales import sales_bp
    from .routes.tasks import tasks_bp
    from .routes.notifications import notifications_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(locales_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(tasks_bp)
    app.register_blueprint(notifications_bp)

    @app.before_request
    def sync_snapshots():
        if request.endpoint == "system.health":
            return None
        if not store.listening:
            store.start()
        elif app.config.get("RESYNC_ON_REQUEST"):
            store.resync()
        return None

    @app.errorhandler(PosError)
    def handle_pos_error(error: PosError):
        return jsonify(error.to_dict()), error.status_code

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config.get("CORS_ALLOWED_ORIGINS", ()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
