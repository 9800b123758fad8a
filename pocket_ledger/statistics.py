"""Read-only monthly and yearly summaries of the ledger.

Summaries are for display, so storage failures are logged and reported as
empty (all-zero) results instead of raising.
"""
from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from .exceptions import StorageError
from .logging_config import get_logger
from .models import EXPENSE, INCOME, ZERO, Transaction
from .repositories import AccountRepository, LedgerRepository

logger = get_logger(__name__)


@dataclass
class MonthData:
    month: int
    income: Decimal = ZERO
    expense: Decimal = ZERO

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


@dataclass
class MonthlySummary:
    income: Decimal = ZERO
    expense: Decimal = ZERO
    transactions: list[Transaction] = field(default_factory=list)

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


@dataclass
class AccountTotals:
    bank_total: Decimal = ZERO
    credit_total: Decimal = ZERO


def month_range(month: int, year: int) -> tuple[date, date]:
    """First and last calendar day of ``month`` (1-12) in ``year``."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def totals(transactions) -> tuple[Decimal, Decimal]:
    income = expense = ZERO
    for tx in transactions:
        if tx.kind == INCOME:
            income += tx.amount
        elif tx.kind == EXPENSE:
            expense += tx.amount
    return income, expense


class StatisticsAggregator:
    def __init__(self, db) -> None:
        self.db = db

    def _read(self, what: str, fn, default):
        try:
            with self.db.session() as session:
                return fn(session)
        except (SQLAlchemyError, StorageError) as exc:
            logger.error("Error getting %s: %s", what, exc)
            return default

    def monthly_summary(self, month: int, year: int) -> MonthlySummary:
        """Income, expense and transactions for one calendar month.

        ``month`` is 1-12 (January is 1), not the 0-11 numbering of the mobile
        app's statistics API.
        """
        start, end = month_range(month, year)

        def run(session):
            txns = LedgerRepository(session).list_by_date_range(start, end)
            income, expense = totals(txns)
            return MonthlySummary(income=income, expense=expense, transactions=txns)

        return self._read("monthly stats", run, MonthlySummary())

    def yearly_summary(self, year: int) -> list[MonthData]:
        """Twelve buckets, index 0 for January; empty months are all zero."""

        def run(session):
            months = [MonthData(month=m) for m in range(1, 13)]
            txns = LedgerRepository(session).list_by_date_range(
                date(year, 1, 1), date(year, 12, 31)
            )
            for tx in txns:
                bucket = months[tx.occurred_at.month - 1]
                if tx.kind == INCOME:
                    bucket.income += tx.amount
                elif tx.kind == EXPENSE:
                    bucket.expense += tx.amount
            return months

        return self._read(
            "yearly stats", run, [MonthData(month=m) for m in range(1, 13)]
        )

    def yearly_totals(self, year: int) -> MonthlySummary:
        """Totals for the whole year; ``transactions`` is left empty."""

        def run(session):
            txns = LedgerRepository(session).list_by_date_range(
                date(year, 1, 1), date(year, 12, 31)
            )
            income, expense = totals(txns)
            return MonthlySummary(income=income, expense=expense)

        return self._read("yearly totals", run, MonthlySummary())

    def category_breakdown(
        self, month: int, year: int, kind: str = EXPENSE
    ) -> list[tuple[str, Decimal]]:
        """Per-category totals of ``kind`` for a month, largest first."""
        start, end = month_range(month, year)

        def run(session):
            sums: dict[str, Decimal] = defaultdict(lambda: ZERO)
            for tx in LedgerRepository(session).list_by_date_range(start, end):
                if tx.kind == kind:
                    sums[tx.category] += tx.amount
            return sorted(sums.items(), key=lambda item: (-item[1], item[0]))

        return self._read("category breakdown", run, [])

    def account_totals(self) -> AccountTotals:
        def run(session):
            accounts = AccountRepository(session)
            return AccountTotals(
                bank_total=sum((a.balance for a in accounts.list_bank_accounts()), ZERO),
                credit_total=sum(
                    (c.credit_balance for c in accounts.list_credit_cards()), ZERO
                ),
            )

        return self._read("account totals", run, AccountTotals())
