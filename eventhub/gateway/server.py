"""
API gateway: builds the stores and token service, then combines the auth
and events blueprints. This is the local entrypoint for development.
"""

import logging
import os
from typing import Any, Dict, Optional, Tuple

from flask import Flask, Response, jsonify
from flask_cors import CORS

from eventhub.core import config
from eventhub.core.exceptions import (
    CapacityConflictError,
    DomainError,
    DuplicateKeyError,
    InternalError,
    InvalidCredentialsError,
    NotFoundError,
    RegistrationError,
    TokenError,
    UnauthorizedError,
    ValidationError,
)
from eventhub.core.services import EXTENSION_KEY, Services

# Basic console logging during API requests
logging.basicConfig(level=config.LOG_LEVEL, format="[%(levelname)s] %(asctime)s - %(message)s")

# Status code per domain error family; first match wins.
ERROR_STATUS = (
    (ValidationError, 400),
    (InvalidCredentialsError, 401),
    (TokenError, 401),
    (UnauthorizedError, 403),
    (NotFoundError, 404),
    (DuplicateKeyError, 409),
    (RegistrationError, 409),
    (CapacityConflictError, 409),
)


def status_for(error: DomainError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 400


def build_services(app_config: Dict[str, Any]) -> Services:
    """
    Construct the stores (with their JSON snapshots) and the token service.

    Args:
        app_config: Mapping holding the keys from config.defaults().

    Returns:
        Services: Explicit instances to be shared by the request handlers.
    """
    # Imported here so the stores are only built when an app is created.
    from eventhub.auth_service.store import UserStore
    from eventhub.auth_service.utils import TokenService
    from eventhub.database.snapshot import JsonFileSnapshot
    from eventhub.events_service.store import EventStore

    data_dir = app_config["DATA_DIR"]
    on_corrupt = app_config["SNAPSHOT_ON_CORRUPT"]

    users = UserStore(JsonFileSnapshot(os.path.join(data_dir, app_config["USERS_FILE"]), on_corrupt))
    events = EventStore(JsonFileSnapshot(os.path.join(data_dir, app_config["EVENTS_FILE"]), on_corrupt))
    tokens = TokenService(
        app_config["JWT_SECRET"],
        expires_minutes=int(app_config["TOKEN_EXPIRATION_MINUTES"]),
        issuer=app_config["JWT_ISSUER"],
        audience=app_config["JWT_AUDIENCE"],
    )
    return Services(users=users, events=events, tokens=tokens)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(error: DomainError) -> Tuple[Response, int]:
        status = status_for(error)
        logging.info(f"[Gateway] {error.code} -> {status}: {error.message}")
        return jsonify({"error": error.message}), status

    @app.errorhandler(InternalError)
    def handle_internal_error(error: InternalError) -> Tuple[Response, int]:
        logging.exception(f"[Gateway] Internal error: {error.message}")
        return jsonify({"error": "Internal Server Error"}), 500

    @app.errorhandler(404)
    def not_found(error: Exception) -> Tuple[Response, int]:
        return jsonify({"error": "Route not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error: Exception) -> Tuple[Response, int]:
        return jsonify({"error": "Method not allowed"}), 405


def create_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Application factory for creating the Flask app.

    Args:
        overrides: app.config values that replace the environment defaults
            (tests pass DATA_DIR and JWT_SECRET here).

    Returns:
        Flask: The configured Flask application.

    Raises:
        ConfigurationError: JWT_SECRET is missing.
        SnapshotCorruptError: A snapshot is unreadable and the policy is 'fail'.
    """
    app = Flask(__name__)
    app.config.update(config.defaults())
    if overrides:
        app.config.update(overrides)

    CORS(app, resources={
        r"/*": {
            "origins": app.config["CORS_ALLOWED_ORIGINS"],
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
            "expose_headers": ["Content-Type", "Authorization"],
            "supports_credentials": True
        }
    })

    app.extensions[EXTENSION_KEY] = build_services(app.config)

    # --- REGISTER BLUEPRINTS ---
    from eventhub.auth_service.routes import auth_bp
    from eventhub.events_service.routes import events_bp

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(events_bp, url_prefix="/events")
    register_error_handlers(app)

    logging.info("All blueprints registered successfully.")

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
        Health check endpoint with collection sizes.
        """
        services: Services = app.extensions[EXTENSION_KEY]
        return jsonify({
            "status": "ok",
            "users": services.users.count(),
            "events": services.events.count(),
        }), 200

    return app


def main() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=config.GATEWAY_PORT, debug=os.getenv("FLASK_DEBUG") == "1")


if __name__ == "__main__":
    main()
