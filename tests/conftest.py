import random

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from nethermind.ingest.database.migrations import migrate_up


@pytest.fixture(name="random_address")
def fixture_random_address():
    def _generate_random_address():
        return "0x" + random.randbytes(20).hex()

    return _generate_random_address


@pytest.fixture(name="db_engine")
def fixture_db_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'ingest.db'}")
    migrate_up(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="db_session")
def fixture_db_session(db_engine):
    with Session(db_engine) as session:
        yield session


@pytest.fixture(name="clock")
def fixture_clock():
    """Deterministic clock that advances one second per reading"""

    class _Clock:
        def __init__(self):
            self.now = 1_700_000_000

        def __call__(self) -> float:
            self.now += 1
            return float(self.now)

    return _Clock()
