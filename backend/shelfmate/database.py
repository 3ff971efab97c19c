from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from shelfmate.core.config import settings
import logging
import time

logger = logging.getLogger(__name__)


def configure_sqlite(engine: Engine) -> None:
    """
    Make pysqlite honour SAVEPOINT and foreign keys.

    The driver defers BEGIN on its own, which breaks nested transactions, so
    we switch it to autocommit and emit BEGIN ourselves. Batch imports rely on
    a SAVEPOINT per statement.
    """
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str, **kwargs) -> Engine:
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        new_engine = create_engine(url, **kwargs)
        configure_sqlite(new_engine)
        return new_engine
    # Pre-ping to verify pooled connections
    return create_engine(url, pool_pre_ping=True, **kwargs)


logger.info("SHELFMATE DATABASE_URL = %s", settings.get_masked_database_url())

engine = build_engine(settings.DATABASE_URL, echo=False)

# Slow query logging (DEBUG mode only)
if settings.DEBUG:
    SLOW_QUERY_THRESHOLD_MS = 200.0

    @event.listens_for(engine, "before_cursor_execute")
    def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        context._query_start_time = time.perf_counter()

    @event.listens_for(engine, "after_cursor_execute")
    def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if hasattr(context, "_query_start_time"):
            elapsed_ms = (time.perf_counter() - context._query_start_time) * 1000
            if elapsed_ms >= SLOW_QUERY_THRESHOLD_MS:
                statement_first_line = statement.split("\n")[0].strip()[:100]
                logger.warning(
                    f"SLOW_QUERY: {elapsed_ms:.2f}ms - {statement_first_line}"
                )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Dev convenience: create the catalog tables when no migrations are present.

    WARNING: create_all() will NOT add missing columns to existing tables.
    Use Alembic migrations for schema changes.
    """
    import os
    alembic_versions_path = os.path.join(os.path.dirname(__file__), "..", "alembic", "versions")
    if os.path.exists(alembic_versions_path) and any(
        name.endswith(".py") for name in os.listdir(alembic_versions_path)
    ):
        logger.info("Alembic migrations detected, skipping create_all(); run 'alembic upgrade head'")
        return

    # Register every model with Base.metadata
    from shelfmate import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
