import logging

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(database_url: str | None = None):
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _set_sqlite_pragmas)
        return engine
    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
    )


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Columns added to `jobs` after the first release. Rows that predate them keep
# approval_status NULL and are read back as legacy-approved.
LEGACY_JOB_COLUMNS = {
    "approval_status": "VARCHAR(20)",
    "approved_by": "INTEGER REFERENCES users(id)",
    "approved_at": "TIMESTAMP",
    "rejection_reason": "TEXT",
}


def run_migrations(bind=None):
    bind = bind or engine
    inspector = inspect(bind)
    if "jobs" not in inspector.get_table_names():
        return
    existing = {column["name"] for column in inspector.get_columns("jobs")}
    with bind.begin() as conn:
        for name, ddl in LEGACY_JOB_COLUMNS.items():
            if name not in existing:
                logger.info("Adding missing column jobs.%s", name)
                conn.execute(text(f"ALTER TABLE jobs ADD COLUMN {name} {ddl}"))


def init_db(bind=None):
    from . import models  # noqa: F401  registers models with this Base

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    run_migrations(bind)


def check_connection(bind=None) -> bool:
    bind = bind or engine
    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as exc:
        logger.error("Database connection failed: %s", exc)
        return False
