"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with all blueprints, middleware, and configuration.

WSGI entry point: ``gexec_authn.flask_app:create_app()``
"""
from __future__ import annotations
import os
from tempfile import gettempdir
from typing import Optional

from flask import Flask
from flask_session import Session
from werkzeug.middleware.proxy_fix import ProxyFix

from gexec_authn.config import AppConfig, load_settings


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(cfg: Optional[AppConfig] = None) -> Flask:
    """Create and configure Flask application."""
    cfg = cfg or load_settings()

    app = Flask(__name__)

    # Store config for easy access in routes
    app.config["APP_CONFIG"] = cfg
    app.config["SECRET_KEY"] = cfg.secret_key

    # Server-side sessions hold OAuth state and PKCE verifiers only
    app.config["SESSION_TYPE"] = os.environ.get("FLASK_SESSION_TYPE", "filesystem")
    if app.config["SESSION_TYPE"] == "filesystem":
        session_dir = os.environ.get("FLASK_SESSION_DIR") or os.path.join(gettempdir(), "gexec_authn_session")
        os.makedirs(session_dir, exist_ok=True)
        app.config["SESSION_FILE_DIR"] = session_dir

    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_SECURE"] = not cfg.demo_mode

    Session(app)

    # Trust X-Forwarded-* headers from proxy (nginx)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    # Initialize OAuth clients and identity providers
    from gexec_authn.api import auth
    auth.init_oauth(app, cfg)

    # Register blueprints
    from gexec_authn.api import errors, health

    app.register_blueprint(auth.bp)
    app.register_blueprint(health.bp)

    errors.register_error_handlers(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    app.logger.info(f"[flask_app] Mode={mode_label}; providers={', '.join(cfg.providers) or '-'}")

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
