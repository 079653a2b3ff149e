"""Flask application factory for the Adventure Check-in API.

Run locally with ``flask --app app run``; create tables with
``flask --app app init-db``.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import click
from flask import Flask, jsonify
from supabase import create_client
from werkzeug.exceptions import HTTPException
from werkzeug.routing import IntegerConverter

from checkins import checkins_bp
from config import Config
from errors import AdventureError
from extensions import db
from identity import ShopifyIdentityProvider, identity_bp
from photos import photos_bp
from points import points_bp
from quests import quests_bp
from request_parsing import MAX_DB_INT


def create_app(config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    db.init_app(app)
    app.url_map.converters["int"] = _DbIntConverter

    # Collaborators live on app.config so tests can swap in fakes.
    if "SUPABASE_CLIENT" not in app.config:
        app.config["SUPABASE_CLIENT"] = _build_supabase_client(app)
    if "IDENTITY_PROVIDER" not in app.config:
        app.config["IDENTITY_PROVIDER"] = _build_identity_provider(app)

    app.register_blueprint(identity_bp)
    app.register_blueprint(points_bp)
    app.register_blueprint(checkins_bp)
    app.register_blueprint(quests_bp)
    app.register_blueprint(photos_bp)

    _register_error_handlers(app)
    _register_cli(app)

    @app.get("/api/")
    def health():
        return jsonify({"name": "GeoApp Adventure Check-in API", "status": "healthy"})

    return app


class _DbIntConverter(IntegerConverter):
    """`<int:...>` that 404s on ids too large for an INTEGER column."""

    def __init__(self, map, *args, **kwargs):
        kwargs.setdefault("max", MAX_DB_INT)
        super().__init__(map, *args, **kwargs)


def _build_supabase_client(app: Flask):
    url = app.config.get("SUPABASE_URL")
    key = app.config.get("SUPABASE_KEY")
    if not (app.config.get("USE_SUPABASE") and url and key):
        return None
    try:
        return create_client(url, key)
    except Exception as exc:
        app.logger.warning("Could not init Supabase client: %s", exc)
        return None


def _build_identity_provider(app: Flask) -> Optional[ShopifyIdentityProvider]:
    domain = app.config.get("SHOPIFY_STORE_DOMAIN")
    token = app.config.get("SHOPIFY_ACCESS_TOKEN")
    if not (domain and token):
        app.logger.warning("Shopify credentials missing; customer sign-in is disabled.")
        return None
    return ShopifyIdentityProvider(
        domain,
        token,
        api_version=app.config.get("SHOPIFY_API_VERSION") or "2023-10",
        timeout=app.config.get("IDENTITY_TIMEOUT_SECONDS", 10),
    )


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AdventureError)
    def handle_adventure_error(exc: AdventureError):
        return jsonify(exc.payload), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.name.lower().replace(" ", "_"), "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        app.logger.exception("Unhandled error: %s", exc)
        db.session.rollback()
        return jsonify({"error": "internal_error", "message": "Something went wrong."}), 500


def _register_cli(app: Flask) -> None:
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("✅ Database tables created.")


if __name__ == "__main__":
    create_app().run(debug=os.environ.get("FLASK_DEBUG") == "1")
