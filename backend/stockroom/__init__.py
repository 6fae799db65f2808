# backend/stockroom/__init__.py
from flask import Flask

from .config import Config, _sqlite_engine_options
from .extensions import db, migrate
from .logging_setup import configure_logging


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)

    if config_overrides:
        app.config.update(config_overrides)
        if "SQLALCHEMY_DATABASE_URI" in config_overrides and "SQLALCHEMY_ENGINE_OPTIONS" not in config_overrides:
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = _sqlite_engine_options(
                app.config["SQLALCHEMY_DATABASE_URI"]
            )

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.categories import categories_bp
    from .routes.warehouses import warehouses_bp
    from .routes.products import products_bp
    from .routes.stock import stock_bp
    from .routes.sales import sales_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(warehouses_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(reports_bp)

    from .error_handlers import register_error_handlers
    register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
