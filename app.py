# app.py - student portal backend (students, fees, units, documents, auth)
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path

import click
from flask import Flask, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config import BASE_DIR, Settings
from errors import StoreError, register_error_handlers
from extensions import cors, db

# models must be imported before the mappers configure
import models_academics  # noqa: F401
import models_documents  # noqa: F401
import models_students  # noqa: F401
from models_students import Admin
from routes_academics import bp_academics
from routes_auth import bp_auth
from routes_documents import bp_documents
from routes_records import bp_records
from routes_students import bp_students
from services_auth import hash_password
from services_documents import find_orphans
from services_storage import S3BlobStore

STARTED = time.time()


def create_app(settings=None, blob_store=None, test_config=None):
    """
    Settings are built once here (from the environment unless given) and
    handed to every component through app.extensions.
    """
    settings = settings or Settings.from_env()
    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=settings.secret_key,
        SQLALCHEMY_DATABASE_URI=settings.database_url,
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        SQLALCHEMY_ENGINE_OPTIONS={"pool_pre_ping": True},
        MAX_CONTENT_LENGTH=settings.max_request_bytes,
        MAX_FORM_MEMORY_SIZE=settings.max_form_upload_bytes,
    )
    if test_config:
        app.config.update(test_config)

    db.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": settings.cors_origins}}, supports_credentials=True,
                  expose_headers=["Content-Length", "X-Total-Count"], max_age=86400)
    _init_logging(app, settings)

    app.extensions["portal.settings"] = settings
    app.extensions["portal.blob_store"] = blob_store or S3BlobStore.from_settings(settings)

    register_error_handlers(app)
    app.register_blueprint(bp_auth)
    app.register_blueprint(bp_students)
    app.register_blueprint(bp_academics)
    app.register_blueprint(bp_documents)
    app.register_blueprint(bp_records)

    @app.get("/api/health")
    def health():
        body = {"status": "ok", "uptime": round(time.time() - STARTED, 1),
                "environment": settings.environment}
        try:
            t0 = time.time()
            db.session.execute(text("SELECT 1"))
            body["database"] = {"status": "connected", "responseTime": f"{int((time.time() - t0) * 1000)}ms"}
            return jsonify(body)
        except SQLAlchemyError as e:
            app.logger.warning("health check: database down: %s", e)
            body["status"] = "error"
            body["database"] = {"status": "disconnected", "error": str(e.__cause__ or e)}
            return jsonify(body), 503

    _register_cli(app)
    return app


def _init_logging(app, settings):
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    portal = logging.getLogger("portal")
    for lg in (app.logger, portal):
        lg.setLevel(logging.INFO)
    if getattr(portal, "_portal_ready", False):
        app.logger.handlers = list(portal.handlers)
        return

    handlers = [logging.StreamHandler()]
    logs_dir = Path(settings.log_dir) if settings.log_dir else BASE_DIR / "logs"
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(logs_dir / "backend.log", maxBytes=5_000_000,
                                            backupCount=3, encoding="utf-8"))
    except OSError as e:
        app.logger.warning("file logging disabled: %s", e)
    for h in handlers:
        h.setFormatter(fmt)
        portal.addHandler(h)
        app.logger.addHandler(h)
    portal._portal_ready = True
    app.logger.info("Logging ready")


def _register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("tables created")

    @app.cli.command("create-admin")
    @click.argument("username")
    @click.password_option()
    def create_admin(username, password):
        """Create or reset an admin account."""
        admin = Admin.query.filter_by(username=username).first()
        if admin is None:
            admin = Admin(username=username, password_hash=hash_password(password))
            db.session.add(admin)
        else:
            admin.password_hash = hash_password(password)
        db.session.commit()
        click.echo(f"admin {username} ready")

    @app.cli.command("reconcile-orphans")
    @click.option("--delete", is_flag=True, help="Remove the orphaned blobs instead of listing them.")
    def reconcile_orphans(delete):
        """List (or remove) stored blobs that no document row references."""
        store = app.extensions["portal.blob_store"]
        orphans = find_orphans(store)
        for key in orphans:
            if not delete:
                click.echo(key)
                continue
            try:
                store.remove(key)
                click.echo(f"removed {key}")
            except StoreError as e:
                click.echo(f"failed {key}: {e.details}", err=True)
        click.echo(f"{len(orphans)} orphaned blob(s)")


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "3000")), debug=not app.extensions["portal.settings"].production)
