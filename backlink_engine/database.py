"""Database connection and session management."""

from contextlib import contextmanager

from loguru import logger
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from .config import get_settings, DATA_DIR


Base = declarative_base()


def _enable_sqlite_savepoints(engine):
    """Let SQLAlchemy own BEGIN so SAVEPOINTs work on pysqlite."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_engine(database_url: str = None, **engine_kwargs):
    """Create database engine."""
    db_url = database_url or get_settings().database_url

    # Handle relative SQLite paths
    if db_url.startswith("sqlite:///") and not db_url.startswith("sqlite:////"):
        db_path = db_url.replace("sqlite:///", "")
        full_path = DATA_DIR.parent / db_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        db_url = f"sqlite:///{full_path}"

    is_sqlite = db_url.startswith("sqlite")
    engine = create_engine(
        db_url,
        echo=False,
        connect_args={"check_same_thread": False} if is_sqlite else {},
        **engine_kwargs
    )
    if is_sqlite:
        _enable_sqlite_savepoints(engine)
    return engine


def get_session_factory(engine=None):
    """Create session factory."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine or get_engine())


@contextmanager
def get_db_session(session_factory=None) -> Session:
    """Context manager for database sessions."""
    SessionLocal = session_factory or get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _register_models():
    # Import models to register them with Base
    from .models import website, opportunity, backlink, acquired, outreach, activity  # noqa: F401


def init_db(engine=None):
    """Initialize the database (create all tables)."""
    _register_models()
    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized at: {}", engine.url)
    return engine


def reset_db(engine=None):
    """Reset the database (drop and recreate all tables)."""
    _register_models()
    engine = engine or get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    logger.info("Database reset complete.")
    return engine
