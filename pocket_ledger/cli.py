"""Interactive terminal front end for pocket ledger."""
from __future__ import annotations

import calendar
from datetime import date, datetime
from pathlib import Path

import questionary

from .backup import export_to_file, import_from_file
from .config import Settings
from .database import Database
from .exceptions import LedgerError
from .logging_config import setup_logging
from .models import ACCOUNT_TYPES, EXPENSE, INCOME, KINDS, TransactionPatch
from .reconciliation import ReconciliationEngine
from .repositories import AccountRepository, CategoryRepository, LedgerRepository
from .statistics import StatisticsAggregator
from .validation import (
    DATE_FORMAT,
    build_transaction,
    parse_amount,
    parse_balance,
    parse_date,
    validate_patch,
)


def select(message, choices):
    """Ask the user to pick one of ``choices``.

    ``choices`` may be strings or ``(title, value)`` pairs; the value of the
    picked entry is returned, or ``None`` if the prompt was cancelled.
    """
    options = [
        questionary.Choice(choice[0], value=choice[1]) if isinstance(choice, tuple) else choice
        for choice in choices
    ]
    return questionary.select(message, choices=options).ask()


def text(message, default=None):
    return questionary.text(message, default="" if default is None else str(default)).ask()


def confirm(message) -> bool:
    return bool(questionary.confirm(message, default=False).ask())


def money(value) -> str:
    return f"{value:,.2f}"


def describe_transaction(tx, details) -> str:
    sign = "+" if tx.kind == INCOME else "-"
    return (
        f"{tx.occurred_at:%Y-%m-%d} | {tx.category:<12} | {sign}{money(tx.amount):>12} | "
        f"{details.label()}"
    )


def choose_payment_method(db):
    """Pick a bank account or credit card; ``None`` if there are none or cancelled."""
    with db.session() as session:
        accounts = AccountRepository(session)
        choices = [
            (f"{a.name} ({a.bank_name}) {money(a.balance)}", a.ref)
            for a in accounts.list_bank_accounts()
        ] + [
            (f"{c.name} [card] {money(c.credit_balance)}", c.ref)
            for c in accounts.list_credit_cards()
        ]
    if not choices:
        print("Add a bank account or credit card first.")
        return None
    return select("Payment method", choices)


def choose_category(db, kind: str):
    with db.session() as session:
        names = CategoryRepository(session).list_by_kind(kind)
    if not names:
        return None
    return select("Category", names)


def load_categories(db) -> dict[str, list[str]]:
    with db.session() as session:
        return CategoryRepository(session).all()


def add_transaction(db) -> None:
    """Prompt for a new transaction and record it."""
    kind = select("Type", [EXPENSE, INCOME])
    if kind is None:
        return
    category = choose_category(db, kind)
    payment_method = choose_payment_method(db)
    if payment_method is None:
        return
    amount_str = text("Amount")
    date_str = text("Date (YYYY-MM-DD)", default=date.today().strftime(DATE_FORMAT))
    note = text("Note")
    try:
        new = build_transaction(
            load_categories(db),
            amount_str,
            kind,
            category,
            payment_method,
            note=note,
            occurred_at=parse_date(date_str, default=datetime.now()),
        )
        ReconciliationEngine(db).add_transaction(new)
    except LedgerError as exc:
        print(f"Failed to save transaction: {exc}\n")
        return
    print("Transaction saved.\n")


def transaction_form(db, tx) -> TransactionPatch | None:
    """Collect edits for ``tx``; ``None`` if the user cancels."""
    patch = TransactionPatch()
    while True:
        kind = patch.kind or tx.kind
        category = patch.category or tx.category
        amount = patch.amount if patch.amount is not None else tx.amount
        when = patch.occurred_at or tx.occurred_at
        note = patch.note if patch.note is not None else (tx.note or "")
        choice = select(
            "Select field to edit",
            [
                (f"Type: {kind}", "kind"),
                (f"Category: {category}", "category"),
                (f"Amount: {money(amount)}", "amount"),
                (f"Date: {when:%Y-%m-%d}", "date"),
                (f"Note: {note}", "note"),
                ("Payment method", "payment_method"),
                ("Save", "save"),
                ("Cancel", "cancel"),
            ],
        )
        if choice == "kind":
            new_kind = select("Type", list(KINDS))
            if new_kind is not None and new_kind != kind:
                patch.kind = new_kind
                new_category = choose_category(db, new_kind)
                if new_category is not None:
                    patch.category = new_category
        elif choice == "category":
            new_category = choose_category(db, kind)
            if new_category is not None:
                patch.category = new_category
        elif choice == "amount":
            amount_str = text("Amount", default=amount)
            try:
                patch.amount = parse_amount(amount_str)
            except LedgerError as exc:
                print(exc)
        elif choice == "date":
            date_str = text("Date (YYYY-MM-DD)", default=when.strftime(DATE_FORMAT))
            try:
                patch.occurred_at = parse_date(date_str, default=when)
            except LedgerError as exc:
                print(exc)
        elif choice == "note":
            new_note = text("Note", default=note)
            if new_note is not None:
                patch.note = new_note
        elif choice == "payment_method":
            ref = choose_payment_method(db)
            if ref is not None:
                patch.payment_method = ref
        elif choice == "save":
            return patch
        else:
            return None


def edit_transaction(db, tx) -> None:
    patch = transaction_form(db, tx)
    if patch is None or patch.is_empty():
        return
    try:
        validate_patch(load_categories(db), tx, patch)
        ReconciliationEngine(db).update_transaction(tx.id, patch)
    except LedgerError as exc:
        print(f"Failed to update transaction: {exc}\n")
        return
    print("Transaction updated.\n")


def delete_transaction(db, tx) -> None:
    if not confirm("Delete this transaction?"):
        return
    try:
        deleted = ReconciliationEngine(db).delete_transaction(tx.id)
    except LedgerError as exc:
        print(f"Failed to delete transaction: {exc}\n")
        return
    print("Transaction deleted.\n" if deleted else "Transaction no longer exists.\n")


def pick_transaction(db, transactions, header: str):
    with db.session() as session:
        accounts = AccountRepository(session)
        entries = [
            (describe_transaction(tx, accounts.describe(tx.payment_method)), tx)
            for tx in transactions
        ]
    if not entries:
        print("No transactions recorded.\n")
        return None
    entries.append(("Back", None))
    return select(header, entries)


def list_transactions(db) -> None:
    """List all transactions and allow editing or deleting one."""
    while True:
        with db.session() as session:
            txns = LedgerRepository(session).list_all()
        tx = pick_transaction(db, txns, "Select transaction")
        if tx is None:
            return
        action = select("Action", ["Edit", "Delete", "Back"])
        if action == "Edit":
            edit_transaction(db, tx)
        elif action == "Delete":
            delete_transaction(db, tx)


def ask_year(default: int | None = None) -> int | None:
    value = text("Year", default=default or date.today().year)
    try:
        return int(value)
    except (TypeError, ValueError):
        print("Invalid year.")
        return None


def monthly_statistics(db) -> None:
    today = date.today()
    month = select(
        "Month",
        [(calendar.month_name[m], m) for m in range(1, 13)],
    )
    if month is None:
        return
    year = ask_year(today.year)
    if year is None:
        return
    stats = StatisticsAggregator(db)
    summary = stats.monthly_summary(month, year)
    print(f"{calendar.month_name[month]} {year}")
    print(f"  Income:  {money(summary.income)}")
    print(f"  Expense: {money(summary.expense)}")
    print(f"  Balance: {money(summary.balance)}")
    for category, total in stats.category_breakdown(month, year):
        print(f"    {category:<16} {money(total):>12}")
    print(f"  {len(summary.transactions)} transactions\n")


def yearly_statistics(db) -> None:
    year = ask_year()
    if year is None:
        return
    stats = StatisticsAggregator(db)
    for data in stats.yearly_summary(year):
        print(
            f"{calendar.month_abbr[data.month]}  {money(data.income):>12}  "
            f"{money(data.expense):>12}  {money(data.balance):>12}"
        )
    totals = stats.yearly_totals(year)
    print(f"Year {money(totals.income):>12}  {money(totals.expense):>12}  {money(totals.balance):>12}\n")


def add_bank_account(db) -> None:
    name = text("Account name")
    bank_name = text("Bank name")
    account_number = text("Account number")
    account_type = select("Account type", list(ACCOUNT_TYPES))
    balance_str = text("Opening balance", default="0")
    try:
        with db.begin() as session:
            AccountRepository(session).add_bank_account(
                name=name,
                account_number=account_number,
                bank_name=bank_name,
                type=account_type or "checking",
                balance=parse_balance(balance_str),
            )
    except LedgerError as exc:
        print(f"Failed to save bank account: {exc}\n")
        return
    print("Bank account saved.\n")


def add_credit_card(db) -> None:
    name = text("Card name")
    card_number = text("Card number")
    limit_str = text("Credit limit", default="0")
    balance_str = text("Current balance", default="0")
    try:
        with db.begin() as session:
            AccountRepository(session).add_credit_card(
                name=name,
                card_number=card_number,
                credit_limit=parse_balance(limit_str),
                credit_balance=parse_balance(balance_str),
            )
    except LedgerError as exc:
        print(f"Failed to save credit card: {exc}\n")
        return
    print("Credit card saved.\n")


def edit_account(db, ref) -> None:
    """Edit the display fields of an account or card; balances are left alone."""
    with db.session() as session:
        account = AccountRepository(session).get_by_id(ref)
    if account is None:
        return
    name = text("Name", default=account.name) or None
    try:
        if ref.is_card:
            card_number = text("Card number", default=account.card_number)
            limit_str = text("Credit limit", default=account.credit_limit)
            fields = {
                "card_number": card_number,
                "credit_limit": None if limit_str is None else parse_balance(limit_str),
            }
        else:
            fields = {
                "bank_name": text("Bank name", default=account.bank_name),
                "account_number": text("Account number", default=account.account_number),
                "type": select("Account type", list(ACCOUNT_TYPES)),
            }
        with db.begin() as session:
            accounts = AccountRepository(session)
            if ref.is_card:
                accounts.edit_credit_card(ref.id, name=name, **fields)
            else:
                accounts.edit_bank_account(ref.id, name=name, **fields)
    except LedgerError as exc:
        print(f"Failed to update account: {exc}\n")
        return
    print("Account updated.\n")


def account_menu(db, ref) -> None:
    """Statement, balance correction and deletion for one account or card."""
    while True:
        with db.session() as session:
            accounts = AccountRepository(session)
            details = accounts.describe(ref)
            if not details.exists:
                return
            balance = accounts.balance_of(ref)
            txns = LedgerRepository(session).list_by_payment_method(ref)
        print(f"{details.label()}  balance {money(balance)}")
        choice = select("Account", ["Statement", "Edit details", "Set balance", "Delete", "Back"])
        if choice == "Statement":
            tx = pick_transaction(db, txns, "Statement")
            if tx is not None:
                edit_transaction(db, tx)
        elif choice == "Edit details":
            edit_account(db, ref)
        elif choice == "Set balance":
            value = text("Current balance", default=balance)
            try:
                ReconciliationEngine(db).set_balance(ref, parse_balance(value))
            except LedgerError as exc:
                print(f"Failed to update balance: {exc}\n")
        elif choice == "Delete":
            if confirm("Delete this account? Its transactions are kept."):
                with db.begin() as session:
                    accounts = AccountRepository(session)
                    if ref.is_card:
                        accounts.delete_credit_card(ref.id)
                    else:
                        accounts.delete_bank_account(ref.id)
                return
        else:
            return


def accounts_menu(db) -> None:
    while True:
        totals = StatisticsAggregator(db).account_totals()
        print(f"Bank total: {money(totals.bank_total)}  Credit total: {money(totals.credit_total)}")
        choice = select(
            "Accounts",
            ["Open account", "Add bank account", "Add credit card", "Back"],
        )
        if choice == "Open account":
            ref = choose_payment_method(db)
            if ref is not None:
                account_menu(db, ref)
        elif choice == "Add bank account":
            add_bank_account(db)
        elif choice == "Add credit card":
            add_credit_card(db)
        else:
            return


def categories_menu(db) -> None:
    while True:
        for kind, names in load_categories(db).items():
            print(f"{kind}: {', '.join(names)}")
        choice = select("Categories", ["Add category", "Back"])
        if choice != "Add category":
            return
        kind = select("Type", [EXPENSE, INCOME])
        name = text("Category name")
        try:
            with db.begin() as session:
                added = CategoryRepository(session).add(kind, name)
        except LedgerError as exc:
            print(f"Failed to add category: {exc}\n")
            continue
        print("Category added.\n" if added else "Category already exists.\n")


def backup_menu(db) -> None:
    choice = select("Backup", ["Export", "Import", "Back"])
    if choice == "Export":
        path = text("Export to", default="pocket_ledger_backup.json")
        if not path:
            return
        try:
            export_to_file(db, Path(path))
        except (LedgerError, OSError) as exc:
            print(f"Export failed: {exc}\n")
            return
        print(f"Exported to {path}\n")
    elif choice == "Import":
        path = text("Import from")
        if not path or not confirm("Replace all data with this backup?"):
            return
        try:
            result = import_from_file(db, Path(path))
        except (LedgerError, OSError) as exc:
            print(f"Import failed: {exc}\n")
            return
        print(
            f"Imported {result.transactions} transactions, {result.bank_accounts} accounts, "
            f"{result.credit_cards} cards ({result.skipped} skipped).\n"
        )


def run(db) -> None:
    """Main menu loop against an open database."""
    while True:
        choice = select(
            "Choose an option:",
            [
                "Add transaction",
                "List transactions",
                "Monthly statistics",
                "Yearly statistics",
                "Accounts and cards",
                "Categories",
                "Backup",
                "Quit",
            ],
        )
        if choice == "Add transaction":
            add_transaction(db)
        elif choice == "List transactions":
            list_transactions(db)
        elif choice == "Monthly statistics":
            monthly_statistics(db)
        elif choice == "Yearly statistics":
            yearly_statistics(db)
        elif choice == "Accounts and cards":
            accounts_menu(db)
        elif choice == "Categories":
            categories_menu(db)
        elif choice == "Backup":
            backup_menu(db)
        else:
            break


def main() -> None:
    """Entry point for the pocket ledger CLI."""
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_file)
    with Database(settings.database_url) as db:
        run(db)


if __name__ == "__main__":
    main()
