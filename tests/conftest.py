"""Pytest configuration for the ledger tests.

Puts the src directory on sys.path so the suite runs from a plain checkout,
and provides SQLite-backed repositories under tmp_path.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from sqlalchemy.orm import sessionmaker  # noqa: E402

from monthly_ledger.dashboard import Ledger  # noqa: E402
from monthly_ledger.persistence.database import build_engine  # noqa: E402
from monthly_ledger.persistence.models import Base  # noqa: E402
from monthly_ledger.persistence.repository import SqlAlchemyLedgerRepository  # noqa: E402

USER_ID = "user-alice"
OTHER_USER_ID = "user-bob"


class TickingClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self._current = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._current += timedelta(seconds=1)
        return self._current


@pytest.fixture
def session_factory(tmp_path: Path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def repository(db_session) -> SqlAlchemyLedgerRepository:
    return SqlAlchemyLedgerRepository(db_session)


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def ledger(repository, clock) -> Ledger:
    return Ledger(repository, clock=clock)


@pytest.fixture
def month(ledger):
    result = ledger.months.get_or_create_month(USER_ID, 2024, 3)
    assert result.ok
    return result.data
