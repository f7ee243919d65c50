import logging
import os

from flask import Flask, g, jsonify, request
from dotenv import load_dotenv

from app.fintrack.config import load_config
from app.fintrack.db import init_db, teardown_db_session
from app.fintrack.errors import register_error_handlers
from app.fintrack.routes import bp as routes_bp
from app.fintrack.auth import bp as auth_bp, load_current_user
from app.fintrack.modules.accounts.routes import bp as accounts_bp
from app.fintrack.modules.categories.routes import bp as categories_bp
from app.fintrack.modules.transactions.routes import bp as transactions_bp
from app.fintrack.modules.payees.routes import bp as payees_bp
from app.fintrack.modules.reminders.routes import bp as reminders_bp
from app.fintrack.modules.subscriptions.routes import bp as subscriptions_bp
from app.fintrack.modules.tags.routes import bp as tags_bp
from app.fintrack.modules.organizations.routes import bp as organizations_bp
from app.fintrack.modules.dashboard.routes import bp as dashboard_bp
from app.fintrack.modules.profile.routes import bp as profile_bp
from app.fintrack.modules.ai.routes import bp as ai_bp

_API_BLUEPRINTS = (
    accounts_bp,
    categories_bp,
    transactions_bp,
    payees_bp,
    reminders_bp,
    subscriptions_bp,
    tags_bp,
    organizations_bp,
    dashboard_bp,
    profile_bp,
    ai_bp,
)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = False

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    from app.fintrack.security import validate_csrf

    # Session must be loaded before the CSRF check can tell anonymous calls apart.
    app.before_request(load_current_user)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
            return None
        # Auth endpoints issue the token; anonymous calls are rejected with 401 by the handlers.
        if (request.endpoint or "").startswith("auth."):
            return None
        if not getattr(g, "current_user", None):
            return None
        if not validate_csrf(request):
            app.logger.warning(
                "CSRF check failed: path=%s user=%s request_id=%s",
                request.path,
                g.current_user.email,
                getattr(g, "request_id", None),
            )
            return jsonify({"error": "CSRF token missing or invalid."}), 400
        return None

    register_error_handlers(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    for bp in _API_BLUEPRINTS:
        app.register_blueprint(bp, url_prefix="/api")

    app.teardown_appcontext(teardown_db_session)

    # Startup logging
    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
