"""Error handlers for the application."""
from authlib.integrations.base_client import OAuthError
from authlib.jose.errors import JoseError
from flask import jsonify
from werkzeug.exceptions import HTTPException

from gexec_authn.core.exceptions import AuthnError


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(AuthnError)
    def authentication_failed(error):
        """Structural identity resolution failure; details stay in the logs."""
        app.logger.warning(f"Identity resolution failed ({type(error).__name__}): {error}")
        return jsonify({"error": "Unauthorized", "message": "Authentication failed"}), 401

    @app.errorhandler(OAuthError)
    def oauth_failed(error):
        """Authorization code exchange rejected by the provider."""
        app.logger.warning(f"OAuth exchange failed: {error.error} {error.description or ''}".rstrip())
        return jsonify({"error": "Unauthorized", "message": "Authentication failed"}), 401

    @app.errorhandler(JoseError)
    def id_token_rejected(error):
        """id_token returned with the code failed signature or claim checks."""
        app.logger.warning(f"id_token rejected: {error}")
        return jsonify({"error": "Unauthorized", "message": "Authentication failed"}), 401

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        return jsonify({"error": "Bad Request", "message": error.description}), 400

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        message = error.description
        if not message or message.startswith("The requested URL was not found"):
            message = "Resource not found"
        return jsonify({"error": "Not Found", "message": message}), 404

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        # Pass through HTTP errors
        if isinstance(error, HTTPException):
            return error

        # ALWAYS log the error (even in production) - logs are secure
        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"}), 500
