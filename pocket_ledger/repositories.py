"""Session-bound data access for the ledger, accounts and categories.

Repositories never commit. Callers own the unit of work (see
:meth:`pocket_ledger.database.Database.begin`).
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from .exceptions import ReferenceNotFoundError, ValidationError
from .logging_config import get_logger
from .models import (
    ACCOUNT_TYPES,
    DEFAULT_CATEGORIES,
    EXPENSE,
    INCOME,
    KINDS,
    ZERO,
    BankAccount,
    Category,
    CreditCard,
    NewTransaction,
    PaymentMethodDetails,
    PaymentMethodRef,
    Transaction,
    TransactionPatch,
    to_decimal,
)

logger = get_logger(__name__)


def day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """Half-open datetime bounds covering calendar days ``start``..``end``."""
    return (
        datetime.combine(start, time.min),
        datetime.combine(end + timedelta(days=1), time.min),
    )


class LedgerRepository:
    """Reads and writes :class:`Transaction` rows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def insert(self, tx: Transaction) -> Transaction:
        if tx.occurred_at is None:
            tx.occurred_at = datetime.now()
        self.session.add(tx)
        self.session.flush()
        return tx

    def insert_new(self, new: NewTransaction) -> Transaction:
        tx = Transaction(
            amount=to_decimal(new.amount),
            kind=new.kind,
            category=new.category,
            note=new.note,
            occurred_at=new.occurred_at,
        )
        if new.id:
            tx.id = new.id
        tx.payment_method = new.payment_method
        return self.insert(tx)

    def get_by_id(self, tx_id: str) -> Transaction | None:
        return self.session.get(Transaction, tx_id)

    def update(self, tx_id: str, patch: TransactionPatch) -> Transaction | None:
        """Apply the fields set on ``patch``; absent fields keep their values."""
        tx = self.get_by_id(tx_id)
        if tx is None:
            return None
        for name, value in patch.changes().items():
            if name == "amount":
                value = to_decimal(value)
            setattr(tx, name, value)
        self.session.flush()
        return tx

    def delete(self, tx_id: str) -> bool:
        tx = self.get_by_id(tx_id)
        if tx is None:
            return False
        self.session.delete(tx)
        self.session.flush()
        return True

    def _ordered(self, query):
        return query.order_by(Transaction.occurred_at.desc(), Transaction.id)

    def list_all(self) -> list[Transaction]:
        return self._ordered(self.session.query(Transaction)).all()

    def list_by_date_range(self, start: date, end: date) -> list[Transaction]:
        """Transactions dated ``start``..``end`` inclusive, newest first."""
        lo, hi = day_bounds(start, end)
        query = self.session.query(Transaction).filter(
            Transaction.occurred_at >= lo, Transaction.occurred_at < hi
        )
        return self._ordered(query).all()

    def list_by_payment_method(self, ref: PaymentMethodRef) -> list[Transaction]:
        query = self.session.query(Transaction).filter(
            Transaction.payment_method_id == ref.id,
            Transaction.is_card == ref.is_card,
        )
        return self._ordered(query).all()

    def clear(self) -> int:
        return self.session.query(Transaction).delete()


class AccountRepository:
    """Bank accounts and credit cards addressed through :class:`PaymentMethodRef`."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_id(self, ref: PaymentMethodRef) -> BankAccount | CreditCard | None:
        model = CreditCard if ref.is_card else BankAccount
        return self.session.get(model, ref.id)

    def balance_of(self, ref: PaymentMethodRef) -> Decimal:
        account = self.get_by_id(ref)
        if account is None:
            raise ReferenceNotFoundError(ref)
        return account.credit_balance if ref.is_card else account.balance

    def adjust_balance(self, ref: PaymentMethodRef, delta: Decimal) -> Decimal:
        """Add ``delta`` to the referenced balance and return the new balance."""
        account = self.get_by_id(ref)
        if account is None:
            raise ReferenceNotFoundError(ref)
        delta = to_decimal(delta)
        if ref.is_card:
            account.credit_balance = account.credit_balance + delta
            new_balance = account.credit_balance
        else:
            account.balance = account.balance + delta
            new_balance = account.balance
        self.session.flush()
        return new_balance

    def list_bank_accounts(self) -> list[BankAccount]:
        return self.session.query(BankAccount).order_by(BankAccount.name).all()

    def list_credit_cards(self) -> list[CreditCard]:
        return self.session.query(CreditCard).order_by(CreditCard.name).all()

    def list(self) -> list[BankAccount | CreditCard]:
        return [*self.list_bank_accounts(), *self.list_credit_cards()]

    def add_bank_account(
        self,
        name: str,
        account_number: str = "",
        bank_name: str = "",
        type: str = "checking",
        balance=ZERO,
        id: str | None = None,
    ) -> BankAccount:
        if type not in ACCOUNT_TYPES:
            raise ValidationError(f"Invalid account type: {type}")
        if not name or not name.strip():
            raise ValidationError("Bank account name cannot be empty")
        account = BankAccount(
            name=name.strip(),
            account_number=account_number or "",
            bank_name=bank_name or "",
            type=type,
            balance=to_decimal(balance),
        )
        if id:
            account.id = id
        self.session.add(account)
        self.session.flush()
        return account

    def add_credit_card(
        self,
        name: str,
        card_number: str = "",
        credit_limit=ZERO,
        credit_balance=ZERO,
        id: str | None = None,
    ) -> CreditCard:
        if not name or not name.strip():
            raise ValidationError("Credit card name cannot be empty")
        card = CreditCard(
            name=name.strip(),
            card_number=card_number or "",
            credit_limit=to_decimal(credit_limit),
            credit_balance=to_decimal(credit_balance),
        )
        if id:
            card.id = id
        self.session.add(card)
        self.session.flush()
        return card

    def edit_bank_account(
        self,
        account_id: str,
        name: str | None = None,
        account_number: str | None = None,
        bank_name: str | None = None,
        type: str | None = None,
    ) -> BankAccount | None:
        # balance is written only by ReconciliationEngine
        account = self.session.get(BankAccount, account_id)
        if account is None:
            return None
        if type is not None and type not in ACCOUNT_TYPES:
            raise ValidationError(f"Invalid account type: {type}")
        if name is not None:
            account.name = name
        if account_number is not None:
            account.account_number = account_number
        if bank_name is not None:
            account.bank_name = bank_name
        if type is not None:
            account.type = type
        self.session.flush()
        return account

    def edit_credit_card(
        self,
        card_id: str,
        name: str | None = None,
        card_number: str | None = None,
        credit_limit=None,
    ) -> CreditCard | None:
        card = self.session.get(CreditCard, card_id)
        if card is None:
            return None
        if name is not None:
            card.name = name
        if card_number is not None:
            card.card_number = card_number
        if credit_limit is not None:
            card.credit_limit = to_decimal(credit_limit)
        self.session.flush()
        return card

    def _delete(self, model, key: str) -> bool:
        obj = self.session.get(model, key)
        if obj is None:
            return False
        self.session.delete(obj)
        self.session.flush()
        logger.info("Deleted %s %s; its transactions are kept", model.__tablename__, key)
        return True

    def delete_bank_account(self, account_id: str) -> bool:
        return self._delete(BankAccount, account_id)

    def delete_credit_card(self, card_id: str) -> bool:
        return self._delete(CreditCard, card_id)

    def describe(self, ref: PaymentMethodRef) -> PaymentMethodDetails:
        account = self.get_by_id(ref)
        if account is None:
            return PaymentMethodDetails(ref=ref, exists=False)
        if ref.is_card:
            return PaymentMethodDetails(
                ref=ref, name=account.name, number=account.card_number, type="credit"
            )
        return PaymentMethodDetails(
            ref=ref,
            name=account.name,
            number=account.account_number,
            bank_name=account.bank_name,
            type=account.type,
        )

    def clear(self) -> None:
        self.session.query(BankAccount).delete()
        self.session.query(CreditCard).delete()


class CategoryRepository:
    """Flat list of ``(kind, name)`` labels."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_by_kind(self, kind: str) -> list[str]:
        rows = (
            self.session.query(Category.name)
            .filter(Category.kind == kind)
            .order_by(Category.name)
            .all()
        )
        return [name for (name,) in rows]

    def all(self) -> dict[str, list[str]]:
        return {kind: self.list_by_kind(kind) for kind in (EXPENSE, INCOME)}

    def exists(self, kind: str, name: str) -> bool:
        return self.session.get(Category, (kind, name)) is not None

    def add(self, kind: str, name: str) -> bool:
        """Add a category; return ``False`` if it already exists."""
        if kind not in KINDS:
            raise ValidationError(f"Invalid category type: {kind}. Must be 'income' or 'expense'.")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name cannot be empty")
        if self.exists(kind, name):
            return False
        self.session.add(Category(kind=kind, name=name))
        self.session.flush()
        return True

    def ensure_defaults(self) -> int:
        """Seed the default categories if none exist; return rows added."""
        if self.session.query(Category).count():
            return 0
        added = 0
        for kind, names in DEFAULT_CATEGORIES.items():
            for name in names:
                self.session.add(Category(kind=kind, name=name))
                added += 1
        self.session.flush()
        logger.info("Inserted %d default categories", added)
        return added

    def clear(self) -> int:
        return self.session.query(Category).delete()
