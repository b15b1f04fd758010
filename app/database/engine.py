import logging
import sqlite3

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool

from app.config import Settings, get_settings


app_settings: Settings = get_settings()
logger = logging.getLogger(__name__)

_SQLITE_BUSY_TIMEOUT_SECONDS = 30
_SQLITE_BUSY_TIMEOUT_MS = _SQLITE_BUSY_TIMEOUT_SECONDS * 1000


def is_memory_sqlite(url) -> bool:
    db_url = make_url(url)
    if db_url.get_backend_name() != "sqlite":
        return False
    if db_url.database in (None, "", ":memory:"):
        return True
    return db_url.query.get("mode") == "memory"


def build_engine(url):
    db_url = make_url(url)
    sqlite_backend = db_url.get_backend_name() == "sqlite"
    sqlite_memory = is_memory_sqlite(db_url)

    connect_args = {}
    engine_kwargs: dict[str, object] = dict(pool_pre_ping=True)
    if sqlite_backend:
        connect_args = {"check_same_thread": False, "timeout": _SQLITE_BUSY_TIMEOUT_SECONDS}
        if sqlite_memory:
            engine_kwargs.update(poolclass=StaticPool)

    new_engine = create_engine(url, connect_args=connect_args, **engine_kwargs)

    if sqlite_backend:
        @event.listens_for(new_engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _connection_record):
            # Let SQLAlchemy emit BEGIN itself so SAVEPOINT and ROLLBACK behave.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.execute(f"PRAGMA busy_timeout={_SQLITE_BUSY_TIMEOUT_MS}")
                if not sqlite_memory:
                    try:
                        cursor.execute("PRAGMA journal_mode=WAL")
                        cursor.execute("PRAGMA synchronous=NORMAL")
                    except sqlite3.DatabaseError:
                        logger.warning("Unable to enable WAL journal for %s", db_url.database)
            finally:
                cursor.close()

        @event.listens_for(new_engine, "begin")
        def _begin_sqlite_transaction(conn):
            conn.exec_driver_sql("BEGIN")

    return new_engine


engine = build_engine(app_settings.DATABASE_URL)
