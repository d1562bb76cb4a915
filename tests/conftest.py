"""
Pytest configuration and fixtures for modledger tests.
"""

import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))
sys.path.insert(0, str(Path(__file__).parent))

from modledger.database.database import Database  # noqa: E402
from modledger.database.db_connection import ConnectionManager  # noqa: E402

from fakes import FakeClock  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start=1_700_000_000.0)


@pytest_asyncio.fixture
async def test_db(tmp_path: Path, clock: FakeClock):
    """A fresh ledger in a temporary SQLite file, using the fake clock."""
    db = Database(ConnectionManager(), clock=clock)
    assert await db.initialize(tmp_path / "test.db")
    yield db
    await db.shutdown()


@pytest.fixture
def cases(test_db):
    return test_db.cases
