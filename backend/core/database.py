# backend/core/database.py

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings

DATABASE_URL = settings.database_url

# Statements that outlive the store timeout are cancelled server-side
STATEMENT_TIMEOUT_MS = int(settings.STORE_TIMEOUT_SECONDS * 1000)

engine_kwargs = {
    "echo": False,
    "pool_pre_ping": True,
}

if DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    if DATABASE_URL in {"sqlite://", "sqlite:///:memory:"}:
        engine_kwargs["poolclass"] = StaticPool
else:
    engine_kwargs["pool_size"] = 10
    engine_kwargs["max_overflow"] = 20
    engine_kwargs["connect_args"] = {
        "options": f"-c statement_timeout={STATEMENT_TIMEOUT_MS}"
    }

engine = create_engine(
    DATABASE_URL,
    **engine_kwargs,
)

if DATABASE_URL.startswith("sqlite"):
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINTs; let SQLAlchemy emit it
    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN")

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


_test_session = None


def set_test_db(session) -> None:
    """Register the session factories should use while tests run."""
    global _test_session
    _test_session = session


def get_test_db():
    """Yield the session registered by the test suite."""
    if _test_session is None:
        raise RuntimeError("No test database session registered")
    yield _test_session
