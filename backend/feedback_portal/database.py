"""SQLAlchemy database engine, session factory, and connection management.

Provides the shared engine, session factory, and declarative base for all
ORM models. SQLite connections (local development and tests) enable foreign
keys via an event listener; production runs against Postgres.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from feedback_portal.config import get_settings


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


def enable_sqlite_foreign_keys(engine) -> None:
    """Turn on FK enforcement so cascades and SET NULL behave as on Postgres."""
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.close()


def _get_engine():
    settings = get_settings()
    connect_args = {}
    if settings.DATABASE_URL.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args=connect_args,
        echo=settings.DEBUG,
        pool_pre_ping=not settings.DATABASE_URL.startswith("sqlite"),
    )
    if settings.DATABASE_URL.startswith("sqlite"):
        enable_sqlite_foreign_keys(engine)
    return engine


engine = _get_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """FastAPI dependency that yields a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create all tables from ORM metadata (dev convenience)."""
    import feedback_portal.models  # noqa: F401  register mappers

    Base.metadata.create_all(bind=engine)
