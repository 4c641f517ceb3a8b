from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from flowdash.core.config import settings
import os
from flowdash.core.logging_config import get_logger

logger = get_logger("database")

db_url = make_url(settings.DATABASE_URL)
engine_kw = {
    "pool_pre_ping": True,
    "echo": settings.DEBUG,
}

if db_url.get_backend_name() == "sqlite":
    # Ensure the database directory exists for file-backed SQLite
    if db_url.database and db_url.database != ":memory:":
        db_dir = os.path.dirname(os.path.abspath(db_url.database))
        os.makedirs(db_dir, exist_ok=True)
        if not os.access(db_dir, os.W_OK):
            raise PermissionError(f"Database directory is not writable: {db_dir}")
    engine_kw["connect_args"] = {
        "check_same_thread": False,
        "timeout": 20.0,  # Wait up to 20 seconds for locks
    }

engine = create_engine(settings.DATABASE_URL, **engine_kw)


def enable_sqlite_foreign_keys(target_engine) -> None:
    """SQLite ignores ON DELETE rules unless the pragma is set on every connection."""
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Create all tables. Models must be imported so their metadata is registered."""
    import flowdash.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured at %s", db_url.render_as_string(hide_password=True))
