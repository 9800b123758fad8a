import json
from datetime import datetime
from decimal import Decimal

from tests.helpers import add_account, add_card, balance, expense, make_prompt
from pocket_ledger import cli
from pocket_ledger.models import EXPENSE, INCOME
from pocket_ledger.repositories import AccountRepository, CategoryRepository, LedgerRepository


def test_add_transaction(db, monkeypatch, capsys):
    a = add_account(db, "Main", "100")
    monkeypatch.setattr(cli, "select", make_prompt([EXPENSE, "Food", a]))
    monkeypatch.setattr(cli, "text", make_prompt(["25.50", "2024-03-01", "coffee"]))

    cli.add_transaction(db)

    assert "Transaction saved." in capsys.readouterr().out
    with db.session() as session:
        (tx,) = LedgerRepository(session).list_all()
    assert tx.amount == Decimal("25.50")
    assert tx.note == "coffee"
    assert tx.occurred_at.date() == datetime(2024, 3, 1).date()
    assert balance(db, a) == Decimal("74.50")


def test_add_transaction_invalid_amount(db, monkeypatch, capsys):
    a = add_account(db, "Main", "100")
    monkeypatch.setattr(cli, "select", make_prompt([INCOME, "Salary", a]))
    monkeypatch.setattr(cli, "text", make_prompt(["-4", "", ""]))

    cli.add_transaction(db)

    assert "Failed to save transaction" in capsys.readouterr().out
    assert balance(db, a) == Decimal("100")


def test_add_transaction_without_accounts(db, monkeypatch, capsys):
    monkeypatch.setattr(cli, "select", make_prompt([EXPENSE, "Food"]))

    cli.add_transaction(db)

    assert "Add a bank account or credit card first." in capsys.readouterr().out


def test_edit_transaction_amount(db, engine, monkeypatch, capsys):
    a = add_account(db, "Main", "1000")
    tx = engine.add_transaction(expense(a, "200"))
    monkeypatch.setattr(cli, "select", make_prompt(["amount", "save"]))
    monkeypatch.setattr(cli, "text", make_prompt(["500"]))

    cli.edit_transaction(db, tx)

    assert "Transaction updated." in capsys.readouterr().out
    assert balance(db, a) == Decimal("500")


def test_edit_transaction_move_to_card(db, engine, monkeypatch):
    a = add_account(db, "Main", "1000")
    card = add_card(db, "Visa", "0")
    tx = engine.add_transaction(expense(a, "300"))
    monkeypatch.setattr(cli, "select", make_prompt(["payment_method", card, "save"]))

    cli.edit_transaction(db, tx)

    assert balance(db, a) == Decimal("1000")
    assert balance(db, card) == Decimal("-300")


def test_edit_transaction_cancel(db, engine, monkeypatch):
    a = add_account(db, "Main", "1000")
    tx = engine.add_transaction(expense(a, "200"))
    monkeypatch.setattr(cli, "select", make_prompt(["amount", "cancel"]))
    monkeypatch.setattr(cli, "text", make_prompt(["1"]))

    cli.edit_transaction(db, tx)

    assert balance(db, a) == Decimal("800")


def test_change_kind_picks_new_category(db, engine, monkeypatch):
    a = add_account(db, "Main", "1000")
    tx = engine.add_transaction(expense(a, "200"))
    monkeypatch.setattr(cli, "select", make_prompt(["kind", INCOME, "Gifts", "save"]))

    cli.edit_transaction(db, tx)

    with db.session() as session:
        stored = LedgerRepository(session).get_by_id(tx.id)
    assert (stored.kind, stored.category) == (INCOME, "Gifts")
    assert balance(db, a) == Decimal("1200")


def test_delete_transaction(db, engine, monkeypatch, capsys):
    a = add_account(db, "Main", "1000")
    tx = engine.add_transaction(expense(a, "200"))
    monkeypatch.setattr(cli, "confirm", lambda message: True)

    cli.delete_transaction(db, tx)
    cli.delete_transaction(db, tx)

    out = capsys.readouterr().out
    assert "Transaction deleted." in out
    assert "Transaction no longer exists." in out
    assert balance(db, a) == Decimal("1000")


def test_add_bank_account_and_card(db, monkeypatch):
    monkeypatch.setattr(cli, "select", make_prompt(["savings"]))
    monkeypatch.setattr(
        cli,
        "text",
        make_prompt(["Main", "Acme", "1234", "1,000.50", "Visa", "4111", "5000", "-20"]),
    )

    cli.add_bank_account(db)
    cli.add_credit_card(db)

    with db.session() as session:
        accounts = AccountRepository(session)
        (account,) = accounts.list_bank_accounts()
        (card,) = accounts.list_credit_cards()
    assert (account.name, account.bank_name, account.type) == ("Main", "Acme", "savings")
    assert account.balance == Decimal("1000.50")
    assert card.credit_limit == Decimal("5000")
    assert card.credit_balance == Decimal("-20")


def test_add_bank_account_requires_name(db, monkeypatch, capsys):
    monkeypatch.setattr(cli, "select", make_prompt(["checking"]))
    monkeypatch.setattr(cli, "text", make_prompt(["", "Acme", "1234", "0"]))

    cli.add_bank_account(db)

    assert "Failed to save bank account" in capsys.readouterr().out


def test_account_menu_set_balance(db, monkeypatch):
    a = add_account(db, "Main", "100")
    monkeypatch.setattr(cli, "select", make_prompt(["Set balance", "Back"]))
    monkeypatch.setattr(cli, "text", make_prompt(["42"]))

    cli.account_menu(db, a)

    assert balance(db, a) == Decimal("42")


def test_account_menu_delete_keeps_transactions(db, engine, monkeypatch):
    a = add_account(db, "Main", "100")
    engine.add_transaction(expense(a, "10"))
    monkeypatch.setattr(cli, "select", make_prompt(["Delete"]))
    monkeypatch.setattr(cli, "confirm", lambda message: True)

    cli.account_menu(db, a)

    with db.session() as session:
        assert AccountRepository(session).get_by_id(a) is None
        assert len(LedgerRepository(session).list_by_payment_method(a)) == 1


def test_categories_menu_adds_category(db, monkeypatch):
    monkeypatch.setattr(cli, "select", make_prompt(["Add category", EXPENSE, "Back"]))
    monkeypatch.setattr(cli, "text", make_prompt(["Pets"]))

    cli.categories_menu(db)

    with db.session() as session:
        assert "Pets" in CategoryRepository(session).list_by_kind(EXPENSE)


def test_monthly_statistics_output(db, engine, monkeypatch, capsys):
    a = add_account(db, "Main", "0")
    engine.add_transaction(expense(a, "12.5", when=datetime(2024, 3, 3)))
    monkeypatch.setattr(cli, "select", make_prompt([3]))
    monkeypatch.setattr(cli, "text", make_prompt(["2024"]))

    cli.monthly_statistics(db)

    out = capsys.readouterr().out
    assert "March 2024" in out
    assert "Expense: 12.50" in out
    assert "1 transactions" in out


def test_yearly_statistics_invalid_year(db, monkeypatch, capsys):
    monkeypatch.setattr(cli, "text", make_prompt(["soon"]))

    cli.yearly_statistics(db)

    assert "Invalid year." in capsys.readouterr().out


def test_backup_menu_export(db, monkeypatch, tmp_path):
    add_account(db, "Main", "5")
    target = tmp_path / "out.json"
    monkeypatch.setattr(cli, "select", make_prompt(["Export"]))
    monkeypatch.setattr(cli, "text", make_prompt([str(target)]))

    cli.backup_menu(db)

    assert json.loads(target.read_text())["bankAccounts"][0]["name"] == "Main"


def test_main_quits(monkeypatch, tmp_path):
    monkeypatch.setenv("POCKET_LEDGER_DB", str(tmp_path / "ledger.db"))
    monkeypatch.delenv("POCKET_LEDGER_LOG_FILE", raising=False)
    monkeypatch.setattr(cli, "select", make_prompt(["Quit"]))

    cli.main()

    assert (tmp_path / "ledger.db").exists()


def test_account_menu_edit_details(db, monkeypatch):
    a = add_account(db, "Main", "100")
    monkeypatch.setattr(cli, "select", make_prompt(["Edit details", "investment", "Back"]))
    monkeypatch.setattr(cli, "text", make_prompt(["Broker", "Acme", "5555"]))

    cli.account_menu(db, a)

    with db.session() as session:
        account = AccountRepository(session).get_by_id(a)
    assert (account.name, account.type, account.account_number) == ("Broker", "investment", "5555")
    assert account.balance == Decimal("100")


def test_cancelled_credit_limit_keeps_limit(db, monkeypatch):
    card = add_card(db, "Visa", "0", limit="5000", card_number="1111")
    monkeypatch.setattr(cli, "text", make_prompt(["Visa Gold", "2222", None]))

    cli.edit_account(db, card)

    with db.session() as session:
        stored = AccountRepository(session).get_by_id(card)
    assert (stored.name, stored.card_number) == ("Visa Gold", "2222")
    assert stored.credit_limit == Decimal("5000")


def test_backup_menu_export_bad_path(db, monkeypatch, tmp_path, capsys):
    target = tmp_path / "missing-dir" / "out.json"
    monkeypatch.setattr(cli, "select", make_prompt(["Export"]))
    monkeypatch.setattr(cli, "text", make_prompt([str(target)]))

    cli.backup_menu(db)

    assert "Export failed" in capsys.readouterr().out
    assert not target.exists()
