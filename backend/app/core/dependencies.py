from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import get_settings
from app.models.water_service_request import Base

settings = get_settings()


def build_engine(database_url: str) -> Engine:
    connect_args: dict[str, object] = {}

    if database_url.startswith("sqlite"):
        # The form handler may run sync DB work in FastAPI's threadpool.
        connect_args = {"check_same_thread": False, "timeout": 30}

    built = create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)

    if database_url.startswith("sqlite"):
        @event.listens_for(built, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA busy_timeout=30000")
            cursor.close()

    return built


engine = build_engine(settings.database_url) if settings.database_url else None

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine) if engine else None


def create_schema(bind: Engine | None = None) -> None:
    """Create missing tables. Intended for SQLite/dev; hosted databases are provisioned separately."""
    target = bind if bind is not None else engine
    if target is None:
        raise RuntimeError("DATABASE_URL is not configured")
    Base.metadata.create_all(target)


def get_db() -> Generator[Session, None, None]:
    if SessionLocal is None:
        raise RuntimeError("DATABASE_URL is not configured")
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
