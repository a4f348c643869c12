"""
Pytest configuration file for backend testing.
"""
import os
import sys
from pathlib import Path

# Add the backend directory to Python path so imports work correctly
backend_dir = Path(__file__).parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Tests run against an in-memory SQLite database and an in-process cache
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest

from core.database import Base, SessionLocal, engine, set_test_db
from core.cache import MemoryCache

# Import all models to register them with SQLAlchemy
from core import restaurant_models, menu_models  # noqa: F401
from modules.orders.models import order_models  # noqa: F401
from modules.payments.models import payment_models  # noqa: F401
from modules.pos.models import pos_integration, pos_order_mapping, pos_sync_log  # noqa: F401
from modules.webhooks.models import webhook_models  # noqa: F401


class FakeClock:
    """Manually advanced clock for TTL and cool-down tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def db_session():
    """Fresh schema per test; factories share this session."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    set_test_db(session)
    try:
        yield session
    finally:
        session.close()
        set_test_db(None)
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_cache(clock):
    return MemoryCache(clock=clock)
