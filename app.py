"""
Business Card Scanning API - Flask Application Entry Point.

Extracts structured contact records from business card images and text.
"""

import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config import get_config
from api.routes import api_bp

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """Application factory for creating Flask app.

    Args:
        config_name: Configuration name (development, production, testing)

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    # Load configuration
    config_class = get_config(config_name)
    config_class.init_app(app)
    app.config["CARDSCAN_CONFIG"] = config_class

    # Enable CORS
    CORS(app, resources={
        r"/api/*": {
            "origins": "*",
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"]
        }
    })

    # Register blueprints
    app.register_blueprint(api_bp)

    @app.route("/")
    def index():
        """API information endpoint."""
        return jsonify({
            "name": "Business Card Scanning API",
            "version": "1.0.0",
            "description": "Extract structured contact records from business card images",
            "endpoints": {
                "health": "/api/health",
                "status": "/api/status",
                "process_single": "POST /api/process",
                "process_batch": "POST /api/batch",
                "parse_text": "POST /api/parse-text",
                "list_cards": "GET /api/cards",
                "get_card": "GET /api/cards/<card_id>"
            }
        })

    @app.route("/favicon.ico")
    def favicon():
        """Return empty response for favicon requests."""
        return "", 204

    # Global error handlers
    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 errors."""
        return jsonify({
            "success": False,
            "error": "Not found"
        }), 404

    @app.errorhandler(413)
    def request_entity_too_large(error):
        """Handle file too large errors."""
        limit_mb = config_class.MAX_CONTENT_LENGTH // (1024 * 1024)
        return jsonify({
            "success": False,
            "error_type": "IMAGE_TOO_LARGE",
            "error": f"File too large. Maximum size: {limit_mb}MB"
        }), 413

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        logger.error(f"Internal error: {str(error)}")
        return jsonify({
            "success": False,
            "error": "Internal server error"
        }), 500

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        if isinstance(error, HTTPException):
            return jsonify({
                "success": False,
                "error": error.description
            }), error.code
        logger.error(f"Uncaught exception: {str(error)}", exc_info=True)
        return jsonify({
            "success": False,
            "error": "An unexpected error occurred"
        }), 500

    logger.info(f"Application created with config: {config_class.__name__}")

    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.getenv("PORT", 5000))
    debug = app.config.get("DEBUG", False)

    logger.info(f"Starting server on port {port}, debug={debug}")

    app.run(
        host="0.0.0.0",
        port=port,
        debug=debug
    )
