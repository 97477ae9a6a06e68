# database.py

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from ballotbox.config import app_config


def create_db_engine(url, **engine_kwargs):
    """Create an engine for ``url``; SQLite connections get WAL and foreign keys."""
    is_sqlite = url.startswith("sqlite")
    connect_args = {}
    if is_sqlite:
        connect_args = {
            "check_same_thread": False,  # Needed for SQLite
            "timeout": 30,               # Increase timeout to prevent 'database is locked' errors
        }

    engine = create_engine(
        url,
        connect_args=connect_args,
        pool_pre_ping=True,             # Check connections before using them
        **engine_kwargs,
    )

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            # Cascading deletes of candidates and votes rely on this
            cursor.execute("PRAGMA foreign_keys=ON;")
            if ":memory:" not in url and url.rstrip("/") != "sqlite:":
                cursor.execute("PRAGMA journal_mode=WAL;")
                cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.close()

    return engine


# Use DATABASE_URL from configuration
SQLALCHEMY_DATABASE_URL = app_config.DATABASE_URL

engine = create_db_engine(SQLALCHEMY_DATABASE_URL)

# Create a configured "SessionLocal" class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create a base class for declarative class definitions
Base = declarative_base()
