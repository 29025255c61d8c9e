import logging
import time

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from .commands import register_commands
from models.db_storage import DBStorage
from models.refresh_token_store import RefreshTokenStore
from services.identity import IdentityProvider
from services.session_auth import AuthSettings, SessionAuthService
from utils.cookies import CookiePolicy

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
AUTH_PREFIX = "/api/v1/jwt"

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "JWT Session API",
        "version": "1.0.0",
        "description": "Short-lived JWT access tokens with rotating refresh tokens in HTTP-only cookies.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def _cors_origins(raw):
    if not raw or raw.strip() == "*":
        return "*"
    return [o.strip() for o in raw.split(",") if o.strip()]


def build_auth_service(config, storage, clock=time.time) -> SessionAuthService:
    """Wire store, identity provider and cookie policy from a config mapping."""
    settings = AuthSettings.from_mapping(config)
    store = RefreshTokenStore(storage, settings.secret, token_type=settings.token_type, clock=clock)
    cookies = CookiePolicy.for_environment(
        config.get("APP_ENV"),
        name=config.get("COOKIE_NAME"),
        path=config.get("COOKIE_PATH"),
        domain=config.get("COOKIE_DOMAIN"),
        secure=config.get("COOKIE_SECURE"),
        samesite=config.get("COOKIE_SAMESITE"),
    )
    return SessionAuthService(settings, store, IdentityProvider(storage), cookies, clock=clock)


def create_app(config_name: str | None = None, overrides: dict | None = None, clock=time.time) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    `overrides` are applied on top of the selected config class (tests use
    it for JWT_SECRET and DATABASE_URL); `clock` drives token timestamps.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # Cross-Origin Resource Sharing: credentials are needed for the refresh cookie
    CORS(
        app,
        resources={r"/api/*": {"origins": _cors_origins(app.config.get("CORS_ORIGINS", "*"))}},
        supports_credentials=True,
    )

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)
    register_commands(app)

    storage = DBStorage(app.config["DATABASE_URL"], echo=app.config.get("SQL_ECHO", False))
    storage.reload()
    service = build_auth_service(app.config, storage, clock=clock)
    app.extensions["storage"] = storage
    app.extensions["session_auth"] = service

    if not service.settings.secret:
        # the app still boots; token endpoints answer 500 jwt_secret_missing
        logger.warning("JWT_SECRET is not set; token endpoints are disabled until it is configured")

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .sessions import bp as sessions_bp

    app.register_blueprint(health_bp, url_prefix=API_PREFIX)
    app.register_blueprint(auth_bp, url_prefix=AUTH_PREFIX)
    app.register_blueprint(sessions_bp, url_prefix=AUTH_PREFIX)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # This calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to the JWT Session API",
            "docs": "/apidocs/",
            "health": f"{API_PREFIX}/health",
            "auth": AUTH_PREFIX,
        }, 200

    return app
