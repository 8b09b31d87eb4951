# backend/posledger/__init__.py
from flask import Flask, jsonify

from .config import COMMISSION_MODE_DEFERRED, COMMISSION_MODE_ON_SALE, Config, engine_options_for
from .errors import PosError
from .extensions import db, migrate


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    if app.config["COMMISSION_CREDIT_MODE"] not in (COMMISSION_MODE_ON_SALE, COMMISSION_MODE_DEFERRED):
        raise ValueError(f"Unknown COMMISSION_CREDIT_MODE: {app.config['COMMISSION_CREDIT_MODE']}")

    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        engine_options_for(app.config["SQLALCHEMY_DATABASE_URI"], app.config["LOCK_TIMEOUT_SECONDS"]),
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Notification sinks receive SaleCreated after checkout commits
    from .services.notification_service import AdminNotificationSink, init_sinks
    init_sinks(app, [AdminNotificationSink()])

    # Register blueprints
    from .routes.system import system_bp
    from .routes.checkout import checkout_bp
    from .routes.commission_rates import commission_rates_bp
    from .routes.wallets import wallets_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(commission_rates_bp)
    app.register_blueprint(wallets_bp)

    @app.errorhandler(PosError)
    def handle_pos_error(error: PosError):
        return jsonify(error.to_dict()), error.http_status

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
