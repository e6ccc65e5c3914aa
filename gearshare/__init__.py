import os

import sentry_sdk
from dotenv import load_dotenv
from flask import Flask
from sentry_sdk.integrations.flask import FlaskIntegration
from werkzeug.middleware.proxy_fix import ProxyFix

from gearshare.cli import register_cli
from gearshare.config import config_by_env
from gearshare.errors import register_error_handlers
from gearshare.extensions import bcrypt, cache, db, limiter, login_manager, migrate
from gearshare.models import User
from gearshare.routes.api.v1 import api_v1_bp
from gearshare.services.payment_gateway import init_gateway


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


def create_app(config_object=None):
    load_dotenv()
    env = os.getenv("FLASK_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or config_by_env.get(env, config_by_env["development"]))
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if db_uri.startswith("sqlite:///") and not db_uri.startswith("sqlite:////") and db_uri != "sqlite:///:memory:":
        project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
        absolute_path = os.path.join(project_root, db_uri.replace("sqlite:///", "", 1))
        os.makedirs(os.path.dirname(absolute_path), exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{absolute_path}"

    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    cache.init_app(app)
    limiter.init_app(app)
    login_manager.init_app(app)
    _init_sentry(app)
    init_gateway(app)

    register_error_handlers(app)
    register_cli(app)

    app.register_blueprint(api_v1_bp, url_prefix="/api/v1")

    if env == "development" and config_object is None:
        with app.app_context():
            db.create_all()

    return app


def _init_sentry(app):
    dsn = app.config.get("SENTRY_DSN")
    if not dsn:
        return
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.05")),
        environment=os.getenv("FLASK_ENV", "production"),
    )
    app.logger.info("Sentry initialized.")
