from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.core.settings import config_settings
from app.models.orm.base import Base

DATABASE_URL = config_settings.DATABASE_URL


def enable_sqlite_foreign_keys(bind: Engine) -> None:
    """SQLite ignores foreign keys unless each connection turns them on."""

    @event.listens_for(bind, "connect")
    def _set_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# 1. SQLAlchemy Engine
# Owns the connection pool shared by every request.
engine = create_engine(
    DATABASE_URL,
    # Only needed for SQLite to handle concurrent requests
    connect_args={"check_same_thread": False} if "sqlite" in DATABASE_URL else {},
)
if engine.dialect.name == "sqlite":
    enable_sqlite_foreign_keys(engine)

# 2. SessionLocal
# Each request gets its own session (a unit of work).
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = engine) -> None:
    """Creates the experiments, treatments and overrides tables if missing."""
    # Import for side effect: registers the tables on Base.metadata
    from app.models.orm import assignment, experiment  # noqa: F401

    Base.metadata.create_all(bind=bind)


def get_db():
    """
    Dependency that yields a database session for a single request,
    and ensures the session is closed afterward.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        # Ensures the session is closed even if an exception occurs
        db.close()
