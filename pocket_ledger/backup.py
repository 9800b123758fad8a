"""JSON backup and restore.

The document layout is the mobile app's backup format::

    {"transactions": [...], "categories": {"expense": [...], "income": [...]},
     "bankAccounts": [...], "creditCards": [...], "exportDate": "..."}
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from .exceptions import InvariantViolationError, StorageError, ValidationError
from .logging_config import get_logger
from .models import ACCOUNT_TYPES, EXPENSE, KINDS, NewTransaction, PaymentMethodRef, to_decimal
from .reconciliation import ReconciliationEngine
from .repositories import AccountRepository, CategoryRepository, LedgerRepository

logger = get_logger(__name__)


@dataclass
class ImportResult:
    categories: int = 0
    bank_accounts: int = 0
    credit_cards: int = 0
    transactions: int = 0
    skipped: int = 0


def _number(value: Decimal):
    """JSON number when a float holds ``value`` exactly, else its decimal string."""
    as_float = float(value)
    if Decimal(repr(as_float)) == value:
        return as_float
    return str(value)


def _parse_timestamp(value) -> datetime:
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # keep the wall-clock time as written so the calendar date is unchanged
    return datetime.fromisoformat(text).replace(tzinfo=None)


def _payment_method_json(accounts: AccountRepository, tx) -> dict:
    details = accounts.describe(tx.payment_method)
    data = {
        "id": tx.payment_method_id,
        "name": details.name,
        "type": details.type,
        "isCard": bool(tx.is_card),
    }
    if tx.is_card:
        data["cardNumber"] = details.number
    else:
        data["accountNumber"] = details.number
        data["bankName"] = details.bank_name
    return data


def build_backup(session) -> dict:
    accounts = AccountRepository(session)
    return {
        "transactions": [
            {
                "id": tx.id,
                "type": tx.kind,
                "amount": _number(tx.amount),
                "category": tx.category,
                "paymentMethod": _payment_method_json(accounts, tx),
                "note": tx.note or "",
                "date": tx.occurred_at.isoformat(),
            }
            for tx in LedgerRepository(session).list_all()
        ],
        "categories": CategoryRepository(session).all(),
        "bankAccounts": [
            {
                "id": a.id,
                "name": a.name,
                "accountNumber": a.account_number,
                "bankName": a.bank_name,
                "balance": _number(a.balance),
                "type": a.type,
            }
            for a in accounts.list_bank_accounts()
        ],
        "creditCards": [
            {
                "id": c.id,
                "name": c.name,
                "cardNumber": c.card_number,
                "creditLimit": _number(c.credit_limit),
                "creditBalance": _number(c.credit_balance),
            }
            for c in accounts.list_credit_cards()
        ],
        "exportDate": datetime.now().isoformat(),
    }


def export_data(db) -> str:
    """Serialize the whole database to a JSON string."""
    with db.session() as session:
        data = build_backup(session)
    logger.info(
        "Exported %d transactions, %d accounts, %d cards",
        len(data["transactions"]),
        len(data["bankAccounts"]),
        len(data["creditCards"]),
    )
    return json.dumps(data)


def _money_field(item, key: str) -> Decimal:
    try:
        return to_decimal(item.get(key) or 0)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"invalid {key}: {item.get(key)!r}") from exc


def _restore_categories(repo: CategoryRepository, categories, result: ImportResult) -> None:
    for kind, names in categories.items():
        if kind not in KINDS:
            logger.warning("Ignoring categories of unknown type %r", kind)
            continue
        for name in names or []:
            if not isinstance(name, str) or not name.strip():
                result.skipped += 1
                continue
            if repo.add(kind, name):
                result.categories += 1


def _restore_bank_accounts(accounts: AccountRepository, items, result: ImportResult) -> None:
    for item in items or []:
        if not item or not item.get("id") or accounts.get_by_id(
            PaymentMethodRef.bank(str(item["id"]))
        ):
            result.skipped += 1
            continue
        try:
            if item.get("type") not in ACCOUNT_TYPES or not item.get("name"):
                raise ValidationError("invalid type or missing name")
            accounts.add_bank_account(
                id=str(item["id"]),
                name=item["name"],
                account_number=item.get("accountNumber") or "",
                bank_name=item.get("bankName") or "",
                type=item["type"],
                balance=_money_field(item, "balance"),
            )
        except ValidationError as exc:
            logger.warning("Skipping bank account %s: %s", item.get("id"), exc)
            result.skipped += 1
            continue
        result.bank_accounts += 1


def _restore_credit_cards(accounts: AccountRepository, items, result: ImportResult) -> None:
    for item in items or []:
        if not item or not item.get("id") or accounts.get_by_id(
            PaymentMethodRef.card(str(item["id"]))
        ):
            result.skipped += 1
            continue
        try:
            accounts.add_credit_card(
                id=str(item["id"]),
                name=item.get("name") or "",
                card_number=item.get("cardNumber") or "",
                credit_limit=_money_field(item, "creditLimit"),
                credit_balance=_money_field(item, "creditBalance"),
            )
        except ValidationError as exc:
            logger.warning("Skipping credit card %s: %s", item.get("id"), exc)
            result.skipped += 1
            continue
        result.credit_cards += 1


def _transaction_from_json(item) -> NewTransaction:
    method = item.get("paymentMethod") or {}
    if not method.get("id"):
        raise ValidationError("missing payment method")
    if not item.get("category"):
        raise ValidationError("missing category")
    kind = item.get("type")
    if kind not in KINDS:
        kind = EXPENSE
    try:
        occurred_at = _parse_timestamp(item["date"]) if item.get("date") else None
        amount = to_decimal(item.get("amount"))
    except (TypeError, ValueError) as exc:
        raise ValidationError(str(exc)) from exc
    return NewTransaction(
        id=str(item["id"]),
        amount=amount,
        kind=kind,
        category=item["category"],
        payment_method=PaymentMethodRef(str(method["id"]), bool(method.get("isCard"))),
        note=item.get("note") or None,
        occurred_at=occurred_at,
    )


def _restore_transactions(session, engine: ReconciliationEngine, items, result) -> None:
    seen = set()
    for item in items or []:
        if not item or not item.get("id") or str(item["id"]) in seen:
            result.skipped += 1
            continue
        try:
            new = _transaction_from_json(item)
            # balances were restored as exported, so history is replayed without adjustments
            engine.record_transaction(session, new, skip_balance_update=True)
        except (ValidationError, InvariantViolationError) as exc:
            logger.warning("Skipping transaction %s: %s", item.get("id"), exc)
            result.skipped += 1
            continue
        seen.add(new.id)
        result.transactions += 1


def import_data(db, text: str) -> ImportResult:
    """Replace all data with the contents of a backup document.

    Everything is restored in one database transaction; on failure nothing
    changes. Individual malformed entries are skipped and counted.
    """
    try:
        data = json.loads(text, parse_float=Decimal)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid backup data format. Could not parse JSON.") from exc

    if not isinstance(data, dict) or not data.get("categories") or "transactions" not in data:
        raise ValidationError("Backup data is missing required fields (categories, transactions)")

    engine = ReconciliationEngine(db)
    result = ImportResult()
    try:
        with db.begin() as session:
            ledger = LedgerRepository(session)
            accounts = AccountRepository(session)
            categories = CategoryRepository(session)
            ledger.clear()
            accounts.clear()
            categories.clear()

            _restore_categories(categories, data["categories"], result)
            _restore_bank_accounts(accounts, data.get("bankAccounts"), result)
            _restore_credit_cards(accounts, data.get("creditCards"), result)
            _restore_transactions(session, engine, data["transactions"], result)
    except SQLAlchemyError as exc:
        logger.error("Error importing data: %s", exc)
        raise StorageError(f"Import failed: {exc}") from exc

    logger.info("Import completed: %s", result)
    return result


def export_to_file(db, path: Path) -> Path:
    path = Path(path)
    path.write_text(export_data(db), encoding="utf-8")
    return path


def import_from_file(db, path: Path) -> ImportResult:
    return import_data(db, Path(path).read_text(encoding="utf-8"))
