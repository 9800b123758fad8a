"""Keep account and card balances in step with the transaction ledger.

Every stored balance equals its opening balance plus the signed sum of the
transactions that currently reference it. Income adds ``amount``, expense
subtracts it; credit cards follow the same convention as bank accounts.

The balance changes for a write are applied incrementally and share one
database transaction with the ledger write, so a failure part way leaves
neither behind.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from .exceptions import InvariantViolationError, ReferenceNotFoundError, StorageError
from .logging_config import get_logger
from .models import (
    EXPENSE,
    INCOME,
    NewTransaction,
    PaymentMethodRef,
    Transaction,
    TransactionPatch,
    TransactionState,
    to_decimal,
)
from .repositories import AccountRepository, LedgerRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class Adjustment:
    ref: PaymentMethodRef
    delta: Decimal
    # reversals of an earlier effect may target an account that no longer exists
    reversal: bool = False


def signed_amount(kind: str, amount) -> Decimal:
    """Return the balance effect of a transaction: ``+amount`` or ``-amount``."""
    try:
        value = to_decimal(amount)
    except (TypeError, ValueError) as exc:
        raise InvariantViolationError(f"amount is not numeric: {amount!r}") from exc
    if not value.is_finite() or value <= 0:
        raise InvariantViolationError(f"amount must be a positive number, got {amount!r}")
    if kind == INCOME:
        return value
    if kind == EXPENSE:
        return -value
    raise InvariantViolationError(f"Invalid transaction type: {kind!r}")


def effect(state: TransactionState) -> Decimal:
    return signed_amount(state.kind, state.amount)


def plan_adjustments(before: TransactionState, after: TransactionState) -> list[Adjustment]:
    """Balance changes that turn the effect of ``before`` into that of ``after``.

    * payment method changed: reverse ``before`` in full on its old payment
      method, then apply ``after`` in full on the new one;
    * same payment method, amount or kind changed: one net delta;
    * nothing relevant changed: no adjustments.
    """
    old_effect = effect(before)
    new_effect = effect(after)

    if before.payment_method != after.payment_method:
        return [
            Adjustment(before.payment_method, -old_effect, reversal=True),
            Adjustment(after.payment_method, new_effect),
        ]

    delta = new_effect - old_effect
    if delta == 0:
        return []
    return [Adjustment(after.payment_method, delta)]


def _state_of(tx) -> TransactionState:
    if isinstance(tx, TransactionState):
        return tx
    return tx.state()


class ReconciliationEngine:
    """Write path for the ledger: the only code that changes balances."""

    def __init__(self, db) -> None:
        self.db = db

    @contextmanager
    def _unit_of_work(self, action: str):
        try:
            with self.db.begin() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("%s failed: %s", action, exc)
            raise StorageError(f"{action} failed: {exc}") from exc

    def _apply(self, session, adjustment: Adjustment) -> None:
        accounts = AccountRepository(session)
        try:
            new_balance = accounts.adjust_balance(adjustment.ref, adjustment.delta)
        except ReferenceNotFoundError:
            if not adjustment.reversal:
                raise
            logger.warning(
                "Skipping reversal of %s against missing payment method %s",
                adjustment.delta,
                adjustment.ref.id,
            )
            return
        logger.debug(
            "Adjusted %s %s by %s to %s",
            "card" if adjustment.ref.is_card else "account",
            adjustment.ref.id,
            adjustment.delta,
            new_balance,
        )

    def apply_new_transaction(self, session, tx) -> Decimal:
        """Add the effect of ``tx`` to its payment method; return the delta."""
        state = _state_of(tx)
        delta = effect(state)
        self._apply(session, Adjustment(state.payment_method, delta))
        return delta

    def reverse_transaction(self, session, tx) -> Decimal:
        """Remove the effect of ``tx`` from its payment method; return the delta."""
        state = _state_of(tx)
        delta = -effect(state)
        self._apply(session, Adjustment(state.payment_method, delta, reversal=True))
        return delta

    def add_transaction(
        self, new: NewTransaction, skip_balance_update: bool = False
    ) -> Transaction:
        """Record ``new`` and apply its effect.

        ``skip_balance_update`` is for replaying history whose balances are
        restored separately, e.g. a backup import.
        """
        with self._unit_of_work("Adding transaction") as session:
            tx = self.record_transaction(session, new, skip_balance_update)
        logger.info("Added %s %s (%s)", tx.kind, tx.amount, tx.id)
        return tx

    def record_transaction(
        self, session, new: NewTransaction, skip_balance_update: bool = False
    ) -> Transaction:
        """Insert ``new`` inside the caller's unit of work."""
        signed_amount(new.kind, new.amount)
        tx = LedgerRepository(session).insert_new(new)
        if not skip_balance_update:
            self.apply_new_transaction(session, tx)
        return tx

    def update_transaction(self, tx_id: str, patch: TransactionPatch) -> Transaction | None:
        """Apply ``patch`` to a transaction and reconcile the affected balances.

        Returns ``None`` when no transaction has ``tx_id``.
        """
        with self._unit_of_work("Updating transaction") as session:
            ledger = LedgerRepository(session)
            tx = ledger.get_by_id(tx_id)
            if tx is None:
                return None
            before = tx.state()
            after = patch.apply_to(before)
            for adjustment in plan_adjustments(before, after):
                self._apply(session, adjustment)
            ledger.update(tx_id, patch)
        logger.info("Updated transaction %s: %s", tx_id, sorted(patch.changes()))
        return tx

    def delete_transaction(self, tx_id: str) -> bool:
        """Reverse and remove a transaction; ``False`` if it does not exist."""
        with self._unit_of_work("Deleting transaction") as session:
            ledger = LedgerRepository(session)
            tx = ledger.get_by_id(tx_id)
            if tx is None:
                return False
            self.reverse_transaction(session, tx)
            ledger.delete(tx_id)
        logger.info("Deleted transaction %s", tx_id)
        return True

    def set_balance(self, ref: PaymentMethodRef, new_balance) -> Decimal:
        """Correct a stored balance to ``new_balance``; return the applied delta."""
        target = to_decimal(new_balance)
        if not target.is_finite():
            raise InvariantViolationError(f"balance must be finite, got {new_balance!r}")
        with self._unit_of_work("Setting balance") as session:
            accounts = AccountRepository(session)
            delta = target - accounts.balance_of(ref)
            if delta:
                accounts.adjust_balance(ref, delta)
        logger.info("Balance of %s set to %s (delta %s)", ref.id, target, delta)
        return delta
