import os
import sys
import tempfile
from datetime import datetime
from decimal import Decimal
from pathlib import Path

# Ensure the project root is on the Python path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from pocket_ledger.database import Database
from pocket_ledger.models import EXPENSE, INCOME, NewTransaction
from pocket_ledger.repositories import AccountRepository, LedgerRepository
from pocket_ledger.reconciliation import signed_amount


def get_temp_database():
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(db_fd)
    db = Database(f"sqlite:///{db_path}").open()
    return db, Path(db_path)


def make_prompt(responses):
    iterator = iter(responses)

    def _prompt(*args, **kwargs):
        return next(iterator)

    return _prompt


def add_account(db, name="A", balance="0", **kwargs):
    with db.begin() as session:
        account = AccountRepository(session).add_bank_account(
            name=name, balance=Decimal(balance), **kwargs
        )
        return account.ref


def add_card(db, name="Card", balance="0", limit="5000", **kwargs):
    with db.begin() as session:
        card = AccountRepository(session).add_credit_card(
            name=name,
            credit_balance=Decimal(balance),
            credit_limit=Decimal(limit),
            **kwargs,
        )
        return card.ref


def balance(db, ref):
    with db.session() as session:
        return AccountRepository(session).balance_of(ref)


def expense(ref, amount, when=None, category="Food", note=None):
    return NewTransaction(
        amount=Decimal(amount),
        kind=EXPENSE,
        category=category,
        payment_method=ref,
        note=note,
        occurred_at=when or datetime(2024, 3, 10, 12, 0),
    )


def income(ref, amount, when=None, category="Salary", note=None):
    return NewTransaction(
        amount=Decimal(amount),
        kind=INCOME,
        category=category,
        payment_method=ref,
        note=note,
        occurred_at=when or datetime(2024, 3, 10, 12, 0),
    )


def ledger_balance(db, ref, initial):
    """Opening balance plus the signed sum of the transactions on ``ref``."""
    with db.session() as session:
        txns = LedgerRepository(session).list_by_payment_method(ref)
    return Decimal(initial) + sum(
        (signed_amount(tx.kind, tx.amount) for tx in txns), Decimal("0")
    )
