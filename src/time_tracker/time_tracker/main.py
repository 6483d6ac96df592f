from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .common.http import register_error_handlers
from .common.logger import configure_logging
from .container import Container, build_container
from .core.constants import DEFAULT_READ_RETRY_ATTEMPTS
from .database.bootstrap import apply_schema, list_tables
from .teams.controller import register as register_teams
from .time_entries.controller import register as register_time_entries
from .users.controller import register as register_users

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    """Build the Flask app. Pass ``container`` to run against prebuilt services."""
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.config["CROSS_TENANT_AS_NOT_FOUND"] = bool(getattr(settings, "CROSS_TENANT_AS_NOT_FOUND", False))

    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    if container is None:
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            schema_path = Path(__file__).resolve().parents[3] / "database" / "schema.sql"
            apply_schema(db_config, schema_path=schema_path)
            logger.info("schema ready (tables=%d)", len(list_tables(db_config)))

        container = build_container(
            db_config=db_config,
            read_retry_attempts=int(getattr(settings, "READ_RETRY_ATTEMPTS", DEFAULT_READ_RETRY_ATTEMPTS)),
        )

    register_error_handlers(app)
    register_users(app, container)
    register_time_entries(app, container)
    register_teams(app, container)

    return app
