import os
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy import create_engine, event
from .config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite:///") and url != "sqlite:///:memory:":
        folder = os.path.dirname(url[len("sqlite:///"):])
        if folder:
            os.makedirs(folder, exist_ok=True)
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": 0,
        "pool_recycle": 3600,  # MariaDB drops idle connections after wait_timeout
        "connect_args": {"connect_timeout": 10},
    }


engine = create_engine(
    settings.sqlalchemy_url,
    future=True,
    pool_pre_ping=True,
    **_engine_kwargs(settings.sqlalchemy_url),
)


def enable_sqlite_foreign_keys(target_engine) -> None:
    """SQLite ignores ON DELETE CASCADE/SET NULL unless foreign_keys is on per connection."""
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def _fk_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


enable_sqlite_foreign_keys(engine)

# One session per request; never share across threads
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
