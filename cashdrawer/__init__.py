# cashdrawer/__init__.py
from __future__ import annotations

from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    """
    Application factory for the drawer engine.

    The engine has no HTTP surface of its own; the Flask app only carries
    configuration, the database session and the logger for the services.
    ``test_config`` is applied before the extensions bind to the app.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    return app
