# backend/gestao/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(config: dict | None = None) -> Flask:
    """
    Application factory.

    config overrides Config before the extensions are bound (tests pass an
    in-memory database URI here).
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.sales import sales_bp
    from .routes.receipts import receipts_bp
    from .routes.inventory import inventory_bp
    from .routes.finance import finance_bp
    from .routes.customers import clients_bp, vendors_bp
    from .routes.baskets import baskets_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(receipts_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(vendors_bp)
    app.register_blueprint(baskets_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
