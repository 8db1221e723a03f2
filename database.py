import logging
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)


def create_engine_for(db_file_path: str, echo: bool = False) -> Engine:
    """Create a SQLite engine for the graph database file."""
    path = Path(db_file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        f"sqlite:///{path}",
        echo=echo,
        pool_pre_ping=True,
        connect_args={"check_same_thread": False},
    )

    # Enable WAL and reasonable SQLite pragmas to improve concurrent access
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute("PRAGMA busy_timeout=5000;")
        except Exception as exc:
            # Best-effort; do not crash if pragmas fail
            logger.warning(f"Could not apply SQLite pragmas: {exc}")
        finally:
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to the given engine"""
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


def create_tables(engine: Engine) -> None:
    """Create all database tables"""
    from models import Base  # Import here to avoid circular dependency
    try:
        Base.metadata.create_all(bind=engine)
    except OperationalError as exc:
        message = str(exc).lower()
        # Ignore concurrent creation attempts when tables already exist
        if "already exists" in message:
            logger.info(f"Ignoring table creation race condition: {exc}")
        else:
            raise
