import pytest

from pocket_ledger.database import Database
from pocket_ledger.reconciliation import ReconciliationEngine
from pocket_ledger.statistics import StatisticsAggregator


@pytest.fixture
def db(tmp_path):
    """An open ledger database in a temporary file."""
    database = Database(f"sqlite:///{tmp_path / 'ledger.db'}")
    database.open()
    yield database
    database.close()


@pytest.fixture
def engine(db):
    return ReconciliationEngine(db)


@pytest.fixture
def stats(db):
    return StatisticsAggregator(db)
