from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Boolean,
    Text,
    Index,
    CheckConstraint,
)
from sqlalchemy.types import TypeDecorator

from .database import Base

INCOME = "income"
EXPENSE = "expense"
KINDS = (INCOME, EXPENSE)

ACCOUNT_TYPES = ("checking", "savings", "credit", "investment")

DEFAULT_CATEGORIES = {
    EXPENSE: ["Food", "Transport", "Entertainment", "Bills", "Shopping", "Other"],
    INCOME: ["Salary", "Gifts", "Investments", "Side Hustle", "Other"],
}

ZERO = Decimal("0")


def new_id() -> str:
    return uuid.uuid4().hex


def to_decimal(value) -> Decimal:
    """Convert ``value`` to :class:`Decimal` without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a money value")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        # repr() is the shortest string that round-trips, so 0.1 stays 0.1
        return Decimal(repr(value))
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"not a decimal value: {value!r}") from exc


def mask_number(number: str | None) -> str:
    if not number:
        return "XXXX"
    return f"•••• {number[-4:]}"


class Money(TypeDecorator):
    """Decimal stored as text so amounts survive SQLite without rounding."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(to_decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


@dataclass(frozen=True)
class PaymentMethodRef:
    """Points at a bank account (``is_card=False``) or a credit card."""

    id: str
    is_card: bool = False

    @classmethod
    def bank(cls, account_id: str) -> "PaymentMethodRef":
        return cls(account_id, False)

    @classmethod
    def card(cls, card_id: str) -> "PaymentMethodRef":
        return cls(card_id, True)


@dataclass(frozen=True)
class TransactionState:
    """The fields of a transaction that move balances."""

    amount: Decimal
    kind: str
    payment_method: PaymentMethodRef


@dataclass
class NewTransaction:
    amount: Decimal
    kind: str
    category: str
    payment_method: PaymentMethodRef
    note: str | None = None
    occurred_at: datetime | None = None
    id: str | None = None

    def state(self) -> TransactionState:
        return TransactionState(self.amount, self.kind, self.payment_method)


@dataclass
class TransactionPatch:
    """Fields to change on a transaction. ``None`` leaves a field as it is."""

    occurred_at: datetime | None = None
    amount: Decimal | None = None
    kind: str | None = None
    category: str | None = None
    note: str | None = None
    payment_method: PaymentMethodRef | None = None

    def changes(self) -> dict:
        return {
            name: value
            for name, value in (
                ("occurred_at", self.occurred_at),
                ("amount", self.amount),
                ("kind", self.kind),
                ("category", self.category),
                ("note", self.note),
                ("payment_method", self.payment_method),
            )
            if value is not None
        }

    def is_empty(self) -> bool:
        return not self.changes()

    def apply_to(self, state: TransactionState) -> TransactionState:
        return replace(
            state,
            amount=self.amount if self.amount is not None else state.amount,
            kind=self.kind if self.kind is not None else state.kind,
            payment_method=self.payment_method or state.payment_method,
        )


@dataclass
class PaymentMethodDetails:
    """Display fields for a payment method, resolved at read time."""

    ref: PaymentMethodRef
    name: str | None = None
    number: str | None = None
    bank_name: str | None = None
    type: str | None = None
    exists: bool = True

    @property
    def masked_number(self) -> str:
        return mask_number(self.number)

    def label(self) -> str:
        if not self.exists:
            return f"(deleted {'card' if self.ref.is_card else 'account'})"
        return f"{self.name} ({self.masked_number})"


class Category(Base):
    """An allowed label for income or expense transactions."""

    __tablename__ = "categories"

    kind = Column(String(16), primary_key=True)
    name = Column(String, primary_key=True)

    __table_args__ = (
        CheckConstraint("kind IN ('income', 'expense')", name="category_kind_check"),
    )


class BankAccount(Base):
    """A bank account; ``balance`` is maintained by the reconciliation engine."""

    __tablename__ = "bank_accounts"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    account_number = Column(String, nullable=False, default="")
    bank_name = Column(String, nullable=False, default="")
    type = Column(String(16), nullable=False, default="checking")
    balance = Column(Money, nullable=False, default=ZERO)

    __table_args__ = (
        CheckConstraint(
            "type IN ('checking', 'savings', 'credit', 'investment')",
            name="account_type_check",
        ),
    )

    @property
    def ref(self) -> PaymentMethodRef:
        return PaymentMethodRef.bank(self.id)


class CreditCard(Base):
    """A credit card; ``credit_balance`` is maintained by the reconciliation engine."""

    __tablename__ = "credit_cards"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    card_number = Column(String, nullable=False, default="")
    credit_limit = Column(Money, nullable=False, default=ZERO)
    credit_balance = Column(Money, nullable=False, default=ZERO)

    @property
    def ref(self) -> PaymentMethodRef:
        return PaymentMethodRef.card(self.id)


class Transaction(Base):
    """An income or expense recorded against one payment method."""

    __tablename__ = "transactions"

    id = Column(String(32), primary_key=True, default=new_id)
    occurred_at = Column(DateTime, nullable=False, default=datetime.now)
    amount = Column(Money, nullable=False)
    kind = Column(String(16), nullable=False)
    category = Column(String, nullable=False)
    note = Column(Text)
    payment_method_id = Column(String(32), nullable=False)
    is_card = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        CheckConstraint("kind IN ('income', 'expense')", name="transaction_kind_check"),
        Index("ix_transactions_occurred_at", "occurred_at"),
        Index("ix_transactions_kind", "kind"),
        Index("ix_transactions_payment_method", "is_card", "payment_method_id"),
    )

    @property
    def payment_method(self) -> PaymentMethodRef:
        return PaymentMethodRef(self.payment_method_id, bool(self.is_card))

    @payment_method.setter
    def payment_method(self, ref: PaymentMethodRef) -> None:
        self.payment_method_id = ref.id
        self.is_card = ref.is_card

    def state(self) -> TransactionState:
        return TransactionState(self.amount, self.kind, self.payment_method)

    def __repr__(self) -> str:
        when = self.occurred_at.strftime("%Y-%m-%d") if self.occurred_at else "-"
        return f"<Transaction {self.id} {when} {self.kind} {self.amount} {self.category}>"
