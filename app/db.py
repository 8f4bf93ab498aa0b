from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
import logging
from utils import now_utc

# Retrieve main logger
logger = logging.getLogger("main")

db = SQLAlchemy()


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite pragmas: WAL for concurrent readers, enforce foreign keys"""
    import sqlite3

    if not isinstance(dbapi_connection, sqlite3.Connection):
        return

    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_db(app):
    """Bind the database to the app and create missing tables"""
    db.init_app(app)
    with app.app_context():
        # Import models so they register on the metadata
        import models  # noqa: F401

        db.create_all()
        logger.info(f"Database ready ({db.engine.dialect.name})")


def upsert_insert(model_or_table):
    """
    Dialect-specific INSERT supporting ON CONFLICT clauses.
    PostgreSQL in deployments, SQLite in tests and local runs.
    """
    if db.engine.dialect.name == "postgresql":
        return postgresql.insert(model_or_table)
    return sqlite.insert(model_or_table)

