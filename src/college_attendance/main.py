from __future__ import annotations

import importlib
import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .config import get_settings_module
from .core.constants import DEFAULT_ATTENDANCE_EDIT_WINDOW_DAYS, DEFAULT_SESSION_DAYS
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_data, list_tables
from .database.connection import DBConfig

from .container import Container, build_container
from .academic_calendar.controller import register as register_calendar
from .attendance.controller import register as register_attendance
from .branches.controller import register as register_branches
from .common.web import ok, register_error_handlers
from .dashboard.controller import register as register_dashboard
from .subjects.controller import register as register_subjects
from .timetables.controller import register as register_timetables
from .users.controller import register as register_users

logger = logging.getLogger(__name__)

DATABASE_DIR = Path(__file__).resolve().parents[2] / "database"


def create_app(*, container: Optional[Container] = None) -> Flask:
    """Build the Flask app.

    With ``container`` given (tests), settings still load but the database
    bootstrap is skipped and the supplied services are used as-is.
    """
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.permanent_session_lifetime = timedelta(days=int(getattr(settings, "SESSION_DAYS", DEFAULT_SESSION_DAYS)))

    if container is None:
        logger.info("settings=%s db=%s", settings_module, DBConfig.from_dict(db_config).describe())

        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config, schema_path=DATABASE_DIR / "schema.sql")
            logger.info("schema ready (tables=%s)", len(list_tables(db_config)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)):
            apply_seed_sql(db_config, seed_path=DATABASE_DIR / "seed.sql")
            ensure_demo_data(db_config)
            logger.info("demo seed ready")

        container = build_container(
            db_config=db_config,
            timezone=getattr(settings, "TIMEZONE", ""),
            edit_window_days=int(getattr(settings, "ATTENDANCE_EDIT_WINDOW_DAYS", DEFAULT_ATTENDANCE_EDIT_WINDOW_DAYS)),
        )

    register_users(app, container)
    register_branches(app, container)
    register_subjects(app, container)
    register_timetables(app, container)
    register_attendance(app, container)
    register_calendar(app, container)
    register_dashboard(app, container)
    register_error_handlers(app)

    @app.get("/api/health", endpoint="health")
    def health():
        return ok({"status": "OK", "time": container.clock().isoformat()}, message="College attendance API is running")

    return app
