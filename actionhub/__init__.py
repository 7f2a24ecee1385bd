"""
ActionHub: administration API for improvement actions.

    from actionhub import create_app
    app = create_app()            # APP_ENV, else "development"
    app = create_app("testing")
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as sa_engine
from sqlalchemy import event as sa_event
from sqlalchemy.exc import SQLAlchemyError

from actionhub.config import config
from actionhub.middleware.jwt_auth import init_jwt_middleware
from actionhub.middleware.logging_config import configure_logging
from actionhub.middleware.rate_limiter import init_rate_limits
from actionhub.middleware.request_log import init_request_logging
from actionhub.middleware.security_headers import init_security_headers
from actionhub.models import db

logger = logging.getLogger(__name__)

migrate = Migrate()
# Limits are attached per blueprint in init_rate_limits
limiter = Limiter(key_func=get_remote_address, storage_uri=os.getenv("REDIS_URL", "memory://"))


@sa_event.listens_for(sa_engine.Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, connection_record):
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(config_name=None):
    """Build the application for ``config_name`` (development, testing, production)."""
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # ProductionConfig validates the environment in __init__
    app.config.from_object(config[config_name]())
    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)

    configure_logging(app)
    # Before limiter.init_app so rate-limit keys can see g.jwt_user_id
    init_request_logging(app)
    init_jwt_middleware(app)
    _init_extensions(app)
    init_security_headers(app)

    _create_tables(app)
    _register_blueprints(app)
    init_rate_limits(app, limiter)
    _register_cli(app)
    _register_error_handlers(app)
    return app


def _init_extensions(app):
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    origins = [o.strip() for o in app.config.get("CORS_ORIGINS", "*").split(",") if o.strip()]
    if origins and origins != ["*"]:
        CORS(app, origins=origins)
    else:
        CORS(app)


def _create_tables(app):
    # Registers every table on db.metadata for create_all and `flask db migrate`
    from actionhub.models import action, master_data, user, workflow  # noqa: F401

    with app.app_context():
        os.makedirs(app.instance_path, exist_ok=True)
        try:
            db.create_all()
        except SQLAlchemyError as exc:
            logger.warning("create_all skipped: %s", exc)


def _register_blueprints(app):
    from actionhub.blueprints.actions_bp import actions_bp
    from actionhub.blueprints.admin_bp import admin_bp
    from actionhub.blueprints.auth_bp import auth_bp
    from actionhub.blueprints.groups_bp import groups_bp
    from actionhub.blueprints.health_bp import health_bp
    from actionhub.blueprints.master_data_bp import master_data_bp
    from actionhub.blueprints.reports_bp import reports_bp
    from actionhub.blueprints.shell_bp import shell_bp
    from actionhub.blueprints.workflow_bp import workflow_bp

    for blueprint in (
        auth_bp, admin_bp, groups_bp, workflow_bp, master_data_bp,
        actions_bp, reports_bp, shell_bp, health_bp,
    ):
        app.register_blueprint(blueprint)


def _register_cli(app):

    @app.cli.command("sync-groups")
    def sync_groups_command():
        """Re-sync every imported group with Google Workspace."""
        from actionhub.services.group_sync_service import sync_all_groups

        result = sync_all_groups()
        click.echo(
            f"{len(result.group_ids)} groups synced, {len(result.changed)} users changed, "
            f"{len(result.failed_groups)} groups failed"
        )


def _register_error_handlers(app):

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed", "code": "METHOD_NOT_ALLOWED"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "code": "RATE_LIMITED", "details": {"limit": str(e.description)}}, 429

    @app.errorhandler(500)
    def internal_error(e):
        logger.error("Unhandled error on %s %s", request.method, request.path, exc_info=True)
        return {"error": "Internal server error", "code": "INTERNAL"}, 500
