from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Iterator
import tempfile
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, Session
from app.config.settings import settings
import structlog

logger = structlog.get_logger()

FALLBACK_DB_NAME = "testgen_fallback.db"


def _is_sqlite(db_url: str) -> bool:
    return make_url(db_url).drivername.startswith("sqlite")


def _prepare_sqlite_file(db_url: str) -> str:
    """Make sure the sqlite file can be created, else use a temp-dir fallback.

    Fresh deploys have no ./data directory, which sqlite reports as
    "unable to open database file".
    """
    url = make_url(db_url)
    if not url.database or url.database == ":memory:":
        return db_url

    db_path = Path(url.database)
    if not db_path.is_absolute():
        db_path = (Path.cwd() / db_path).resolve()

    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        marker = db_path.parent / ".writable_test"
        marker.write_text("ok")
        marker.unlink()
    except OSError as e:
        fallback = Path(tempfile.gettempdir()) / FALLBACK_DB_NAME
        logger.error(
            "Configured sqlite path not writable, using fallback",
            path=str(db_path),
            fallback=str(fallback),
            error=str(e),
        )
        return f"sqlite:///{fallback.as_posix()}"

    logger.info("Resolved sqlite path", path=str(db_path))
    return db_url


def build_engine(db_url: str, **engine_options) -> Engine:
    if not _is_sqlite(db_url):
        return create_engine(db_url, pool_pre_ping=True, **engine_options)

    sqlite_engine = create_engine(db_url, connect_args={"check_same_thread": False}, **engine_options)

    # Threads reference their assistant; sqlite only checks that with the pragma on
    @event.listens_for(sqlite_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


resolved_db_url = (
    _prepare_sqlite_file(settings.database_url) if _is_sqlite(settings.database_url) else settings.database_url
)
engine = build_engine(resolved_db_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_database() -> Generator[Session, None, None]:
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()



def commit_or_rollback(db: Session) -> None:
    """Commit, or roll back so the shared request session stays usable"""
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise

@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for code running outside a request, such as maintenance scripts"""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_tables():
    """Create the session, audit and collaborator tables"""
    from app.models.database import Base

    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.error("Failed to create database tables", error=str(e), database_url=resolved_db_url)
        raise
    logger.info("Database tables created successfully", tables=len(Base.metadata.tables))
