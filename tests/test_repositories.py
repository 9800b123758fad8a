from datetime import date, datetime
from decimal import Decimal

import pytest

from tests.helpers import add_account, add_card, expense
from pocket_ledger.exceptions import ReferenceNotFoundError, ValidationError
from pocket_ledger.models import PaymentMethodRef, Transaction, TransactionPatch
from pocket_ledger.repositories import AccountRepository, CategoryRepository, LedgerRepository


def test_ledger_insert_defaults_date(db):
    with db.begin() as session:
        tx = Transaction(amount=Decimal("3"), kind="expense", category="Food")
        tx.payment_method = PaymentMethodRef.bank("a")
        LedgerRepository(session).insert(tx)
    assert tx.occurred_at is not None
    assert len(tx.id) == 32


def test_ledger_date_range_and_order(db, engine):
    a = add_account(db, "A", "0")
    for day in (1, 15, 31):
        engine.add_transaction(expense(a, "1", when=datetime(2024, 1, day, 18, 0)))
    engine.add_transaction(expense(a, "1", when=datetime(2024, 2, 1)))

    with db.session() as session:
        txns = LedgerRepository(session).list_by_date_range(date(2024, 1, 15), date(2024, 1, 31))
    assert [tx.occurred_at.day for tx in txns] == [31, 15]


def test_ledger_update_without_balance_changes(db, engine):
    a = add_account(db, "A", "0")
    tx = engine.add_transaction(expense(a, "5"))
    with db.begin() as session:
        ledger = LedgerRepository(session)
        ledger.update(tx.id, TransactionPatch(category="Bills"))
        assert ledger.update("missing", TransactionPatch(category="Bills")) is None
    with db.session() as session:
        assert LedgerRepository(session).get_by_id(tx.id).category == "Bills"


def test_money_is_lossless(db):
    ref = add_account(db, "A", "0.1")
    with db.begin() as session:
        AccountRepository(session).adjust_balance(ref, Decimal("0.2"))
    with db.session() as session:
        assert AccountRepository(session).balance_of(ref) == Decimal("0.3")


def test_adjust_missing_reference(db):
    with db.begin() as session:
        with pytest.raises(ReferenceNotFoundError, match="Credit card with ID x not found"):
            AccountRepository(session).adjust_balance(PaymentMethodRef.card("x"), Decimal("1"))


def test_edit_accounts_keep_balance(db):
    a = add_account(db, "A", "50")
    card = add_card(db, "Visa", "-5", limit="100")
    with db.begin() as session:
        accounts = AccountRepository(session)
        accounts.edit_bank_account(a.id, name="Everyday", type="savings")
        accounts.edit_credit_card(card.id, card_number="9876", credit_limit="2500")
        with pytest.raises(ValidationError):
            accounts.edit_bank_account(a.id, type="pension")
        assert accounts.edit_bank_account("missing", name="x") is None
    with db.session() as session:
        accounts = AccountRepository(session)
        account = accounts.get_by_id(a)
        assert (account.name, account.type, account.balance) == ("Everyday", "savings", Decimal("50"))
        details = accounts.describe(card)
        assert details.masked_number == "•••• 9876"
        assert accounts.get_by_id(card).credit_limit == Decimal("2500")
        assert [x.name for x in accounts.list()] == ["Everyday", "Visa"]


def test_describe_deleted_account(db):
    a = add_account(db, "A", "0", account_number="")
    with db.begin() as session:
        accounts = AccountRepository(session)
        assert accounts.describe(a).masked_number == "XXXX"
        assert accounts.delete_bank_account(a.id) is True
        assert accounts.delete_bank_account(a.id) is False
        assert accounts.describe(a).label() == "(deleted account)"


def test_add_bank_account_validation(db):
    with db.begin() as session:
        accounts = AccountRepository(session)
        with pytest.raises(ValidationError):
            accounts.add_bank_account("A", type="pension")
        with pytest.raises(ValidationError):
            accounts.add_credit_card("  ")


def test_categories(db):
    with db.begin() as session:
        categories = CategoryRepository(session)
        assert categories.add("income", " Bonus ") is True
        assert categories.add("income", "Bonus") is False
        assert categories.ensure_defaults() == 0
        with pytest.raises(ValidationError):
            categories.add("transfer", "X")
        with pytest.raises(ValidationError):
            categories.add("expense", "")
        assert "Bonus" in categories.all()["income"]
