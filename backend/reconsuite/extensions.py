# reconsuite/extensions.py
from __future__ import annotations

import logging
import os

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

db = SQLAlchemy()
migrate = Migrate()

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations")


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, _connection_record):
    # SQLite only: enforce ON DELETE CASCADE and let scan workers wait on the write lock
    module_name = type(dbapi_connection).__module__
    if "sqlite" in module_name.lower():
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()


def init_extensions(app, settings):
    """Bind the database and Alembic to `app`; optionally create the schema."""
    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR)

    if settings.auto_create_schema:
        with app.app_context():
            db.create_all()
        logger.info("Database schema created (RECON_AUTO_CREATE_SCHEMA)")
