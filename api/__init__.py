import logging
import time

import click
from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models import DBStorage
from services.action_tokens import ActionTokenService, ActionType
from services.auth import AuthFacade
from services.email import EmailDispatcher, SMTPEmailDispatcher
from services.identity_provider import FirebaseIdentityProvider, IdentityProvider
from services.key_store import ActionKeyStore, SQLActionKeyStore

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Auth Gateway API",
        "version": "1.0.0",
        "description": "Registration, login, session tokens and email verification / password reset links.",
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


def create_app(config_name: str | None = None, *,
               identity_provider: IdentityProvider | None = None,
               key_store: ActionKeyStore | None = None,
               email_dispatcher: EmailDispatcher | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.

    The identity provider, action key store and email dispatcher are
    injected; any left out is built from configuration (Firebase, the
    SQLAlchemy document store and SMTP respectively).
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Cross-Origin Resource Sharing; credentials so the refresh cookie crosses origins
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=True,
    )

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Uniform {"error": {"message": ...}} envelope
    register_error_handlers(app)

    storage = None
    if key_store is None:
        storage = DBStorage(app.config["DATABASE_URL"])
        storage.reload()
        key_store = SQLActionKeyStore(storage)
    if identity_provider is None:
        identity_provider = FirebaseIdentityProvider.from_config(app.config)
    if email_dispatcher is None:
        email_dispatcher = SMTPEmailDispatcher.from_config(app.config)

    action_tokens = ActionTokenService(
        key_store,
        email_dispatcher,
        base_url=app.config["ACTION_BASE_URL"],
        ttls={
            ActionType.VERIFY_EMAIL: app.config["VERIFY_EMAIL_TOKEN_EXPIRES"],
            ActionType.RESET_PASSWORD: app.config["RESET_PASSWORD_TOKEN_EXPIRES"],
        },
        algorithm=app.config["ACTION_TOKEN_ALGORITHM"],
    )
    app.extensions["auth_gateway"] = {
        "facade": AuthFacade(identity_provider, action_tokens),
        "key_store": key_store,
        "storage": storage,
        "started_at": time.monotonic(),
    }

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    app.register_blueprint(health_bp, url_prefix="/auth")
    app.register_blueprint(auth_bp)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        if storage is not None:
            storage.close()

    @app.cli.command("purge-action-keys")
    def purge_action_keys():
        """Delete action signing keys whose links have expired."""
        removed = key_store.purge_expired()
        click.echo(f"Removed {removed} expired action keys")

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Auth Gateway API",
            "docs": "/apidocs/",
            "health": "/auth/health",
        }, 200

    return app
