import os
import time
import tempfile
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

from pocket_ledger.database import Database
from pocket_ledger.models import EXPENSE, INCOME, NewTransaction
from pocket_ledger.reconciliation import ReconciliationEngine
from pocket_ledger.repositories import AccountRepository
from pocket_ledger.statistics import StatisticsAggregator


def build_database(n_days: int, events_per_day: int):
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(db_fd)
    db = Database(f"sqlite:///{db_path}").open()
    engine = ReconciliationEngine(db)
    with db.begin() as session:
        ref = AccountRepository(session).add_bank_account("Bench", balance=Decimal("0")).ref
        start = datetime(2023, 1, 1)
        for day in range(n_days):
            for ev in range(events_per_day):
                kind = INCOME if ev == 0 else EXPENSE
                new = NewTransaction(
                    amount=Decimal("1.25"),
                    kind=kind,
                    category="Salary" if kind == INCOME else "Food",
                    payment_method=ref,
                    occurred_at=start + timedelta(days=day, minutes=ev),
                )
                engine.record_transaction(session, new)
    return db, Path(db_path)


def run():
    db, path = build_database(365, 3)
    try:
        stats = StatisticsAggregator(db)
        start = time.perf_counter()
        months = stats.yearly_summary(2023)
        duration = time.perf_counter() - start
        print(f"Summarized {len(months)} months in {duration:.4f}s")
    finally:
        db.close()
        path.unlink()


if __name__ == "__main__":
    run()
