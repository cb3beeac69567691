import logging
import os
from datetime import UTC
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate, upgrade

from .config import BASE_DIR, config_by_name
from .models import db

login_manager = LoginManager()
login_manager.session_protection = "strong"

# In-memory storage unless RATELIMIT_STORAGE_URI points at Redis; counters are per process.
limiter = Limiter(key_func=get_remote_address)
migrate = Migrate()
cors = CORS()


def create_app(config_name=None):
    # Load .env so gunicorn (production) picks up env vars too
    from dotenv import load_dotenv

    load_dotenv(BASE_DIR / ".env")

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    config_cls = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_cls)
    if hasattr(config_cls, "init_app"):
        config_cls.init_app(app)

    if app.config.get("TRUST_PROXY"):
        from werkzeug.middleware.proxy_fix import ProxyFix

        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    _configure_logging(app)

    # Init extensions
    db.init_app(app)
    login_manager.init_app(app)
    limiter.init_app(app)
    migrate.init_app(app, db, directory=str(BASE_DIR / "migrations"))
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": [app.config["FRONTEND_URL"]]}},
        supports_credentials=True,
    )

    from .models import User

    @login_manager.user_loader
    def load_user(user_id):
        user = db.session.get(User, int(user_id))
        # Deactivated accounts lose their existing sessions.
        if user is None or not user.is_active_account:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        return {"success": False, "error": "unauthorized", "message": "Authentication required."}, 401

    # Register blueprints
    from .admin.routes import admin_bp
    from .auth.routes import auth_bp
    from .membership.routes import membership_bp

    app.register_blueprint(membership_bp, url_prefix="/api/membership")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
    app.register_blueprint(auth_bp, url_prefix="/api/auth")

    from .errors import register_error_handlers

    register_error_handlers(app)

    # Security headers
    @app.after_request
    def set_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        if not app.debug:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
            response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response

    # Deliver queued notifications in the background
    if app.config.get("SCHEDULER_ENABLED"):
        from .scheduler import init_scheduler

        init_scheduler(app)

    # Health check endpoints
    @app.route("/ping")
    def ping():
        from datetime import datetime

        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
        }, 200

    @app.route("/health")
    def health():
        from datetime import datetime

        from .models import Notification

        result = {"timestamp": datetime.now(UTC).isoformat()}
        scheduler_ok = True

        scheduler = getattr(app, "scheduler", None)
        if scheduler is not None:
            try:
                running = scheduler.running
                jobs = []
                for job in scheduler.get_jobs():
                    jobs.append(
                        {"id": job.id, "next_run": job.next_run_time.isoformat() if job.next_run_time else None}
                    )
                threshold = max(1, int(app.config.get("SCHEDULER_MAX_CONSECUTIVE_FAILURES", 3)))
                state = getattr(app, "scheduler_state", None) or {}
                failing_jobs = sorted(
                    job_id
                    for job_id, entry in state.get("jobs", {}).items()
                    if int(entry.get("consecutive_failures", 0)) >= threshold
                )
                result["scheduler"] = {"running": running, "jobs": jobs, "failing_jobs": failing_jobs}
                scheduler_ok = running and not failing_jobs
            except Exception:
                app.logger.exception("Health check scheduler probe failed.")
                result["scheduler"] = {"running": False, "reason": "probe_failed"}
                scheduler_ok = False
        else:
            result["scheduler"] = {"running": False, "reason": "disabled"}

        try:
            db.session.execute(db.text("SELECT 1"))
            result["database"] = {"status": "ok"}
            result["notifications"] = {"pending": Notification.query.filter_by(status="pending").count()}
        except Exception:
            app.logger.exception("Health check database probe failed.")
            result["database"] = {"status": "error", "error": "unavailable"}

        all_ok = scheduler_ok and result["database"]["status"] == "ok"
        result["status"] = "ok" if all_ok else "degraded"
        return result, 200 if all_ok else 503

    # Apply pending Alembic migrations and seed admin on first run
    with app.app_context():
        upgrade(directory=str(BASE_DIR / "migrations"))

        _seed_admin_if_needed(app)

    return app


def _configure_logging(app):
    """Set up file-based logging with rotation for production."""
    if app.debug or app.testing:
        return

    log_dir = BASE_DIR / "logs"
    log_dir.mkdir(exist_ok=True)

    file_handler = RotatingFileHandler(
        log_dir / "kgp.log",
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=5,
    )
    file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    file_handler.setLevel(logging.INFO)
    app.logger.addHandler(file_handler)
    app.logger.setLevel(logging.INFO)


def _seed_admin_if_needed(app):
    import secrets

    from .models import User, password_is_strong

    admin = User.query.filter_by(role="admin").first()
    if admin is not None:
        return

    admin_email = os.environ.get("ADMIN_EMAIL", app.config["ADMIN_EMAIL"])
    admin_password = os.environ.get("ADMIN_PASSWORD")
    generated = False
    if not admin_password:
        if not app.debug:
            raise RuntimeError("ADMIN_PASSWORD must be set to create the first-run admin account.")
        admin_password = secrets.token_urlsafe(16)
        generated = True
    elif not app.debug and not password_is_strong(admin_password):
        raise RuntimeError(
            "ADMIN_PASSWORD for first-run admin account is too weak. Use at least 12 characters "
            "mixing upper case, lower case and digits, and avoid placeholder words."
        )

    admin = User(
        email=admin_email.strip().lower(),
        display_name="Administrator",
        role="admin",
    )
    admin.set_password(admin_password)
    db.session.add(admin)
    db.session.commit()
    app.logger.info("Default admin account created: %s", admin.email)
    if generated:
        app.logger.warning(
            "ADMIN_PASSWORD not set -- a random password was generated. Set ADMIN_PASSWORD env var before deploying."
        )
        # Write to a file instead of stdout
        pw_file = Path(app.instance_path) / ".admin_password"
        pw_file.parent.mkdir(parents=True, exist_ok=True)
        pw_file.write_text(f"Email:    {admin.email}\nPassword: {admin_password}\n")
        pw_file.chmod(0o600)
        app.logger.info("Generated admin credentials written to %s", pw_file)
