"""
API gateway: combines auth, events, and user blueprints.
This is the local entrypoint for development.
"""

from flask import Flask, jsonify
from flask_cors import CORS
import os
import logging
from typing import Optional, Tuple
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from backend.activity_log import ActivityLog, EXTENSION_KEY as ACTIVITY_KEY
from backend.auth_service.routes import auth_bp
from backend.database.db_connection import InMemoryDb, EXTENSION_KEY as DB_KEY
from backend.errors import EventEchoError
from backend.events_service.routes import events_bp
from backend.events_service.service import EventLifecycleService, EXTENSION_KEY as EVENTS_KEY
from backend.gateway.logging_config import configure_logging
from backend.notification_service.dispatcher import NotificationDispatcher, EXTENSION_KEY as DISPATCHER_KEY
from backend.user_service.routes import user_bp

load_dotenv()

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5500",  # Local development (some editors)
    "http://localhost:5050",  # Local development gateway (if served from same host)
    "http://localhost:8080",  # Local static server
]


def create_app(
    db: Optional[InMemoryDb] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    activity: Optional[ActivityLog] = None,
) -> Flask:
    """
    Application factory for creating the Flask app.

    The in-memory database, notification dispatcher and activity log are
    built here unless supplied, and live as long as the app does.

    Returns:
        Flask: The configured Flask application.
    """
    configure_logging()

    app = Flask(__name__)
    origins = os.getenv("CORS_ORIGINS")
    CORS(app, resources={
        r"/*": {
            "origins": origins.split(",") if origins else DEFAULT_CORS_ORIGINS,
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
            "expose_headers": ["Content-Type", "Authorization"],
            "supports_credentials": True
        }
    })

    db = db or InMemoryDb()
    dispatcher = dispatcher or NotificationDispatcher()
    activity = activity or ActivityLog()

    app.extensions[DB_KEY] = db
    app.extensions[DISPATCHER_KEY] = dispatcher
    app.extensions[ACTIVITY_KEY] = activity
    app.extensions[EVENTS_KEY] = EventLifecycleService(db, dispatcher, activity)

    # --- REGISTER BLUEPRINTS ---
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(events_bp, url_prefix="/events")
    app.register_blueprint(user_bp, url_prefix="/user")
    logging.info("All blueprints registered successfully.")

    # --- ERROR HANDLERS ---
    @app.errorhandler(EventEchoError)
    def domain_error(error: EventEchoError) -> Tuple:
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException) -> Tuple:
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error: Exception) -> Tuple:
        logging.exception("Unhandled error while serving request")
        return jsonify({"error": "Internal Server Error", "message": str(error)}), 500

    # --- BASIC HEALTH CHECKPOINTS ---
    @app.route("/")
    def ping():
        """
        Root URL for simple 'online' check.
        """
        return jsonify({"status": "gateway_ok"}), 200

    @app.route("/health")
    def health():
        """
        Health check endpoint.
        """
        return jsonify({"status": "ok"}), 200

    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.getenv("GATEWAY_PORT", 5050))
    app.run(host="0.0.0.0", port=port, debug=True, threaded=True)
