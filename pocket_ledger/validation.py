"""Input checks applied before anything reaches the reconciliation engine."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation

from .exceptions import ValidationError
from .models import KINDS, NewTransaction, PaymentMethodRef, TransactionPatch

DATE_FORMAT = "%Y-%m-%d"


def parse_amount(text) -> Decimal:
    """Parse a positive, finite amount entered by the user."""
    if isinstance(text, Decimal):
        value = text
    else:
        cleaned = str(text if text is not None else "").strip().replace(",", "")
        if not cleaned:
            raise ValidationError("Please enter an amount")
        try:
            value = Decimal(cleaned)
        except InvalidOperation as exc:
            raise ValidationError(f"Invalid amount: {text!r}") from exc
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than zero")
    return value


def parse_date(text: str | None, default: datetime | None = None) -> datetime:
    """Parse ``YYYY-MM-DD``; an empty answer falls back to ``default``."""
    if text is None or not text.strip():
        if default is None:
            raise ValidationError("Please enter a date")
        return default
    try:
        return datetime.strptime(text.strip(), DATE_FORMAT)
    except ValueError as exc:
        raise ValidationError(f"Invalid date {text!r}, expected YYYY-MM-DD") from exc


def _check_category(categories: dict[str, list[str]], kind: str, category: str | None) -> None:
    if kind not in KINDS:
        raise ValidationError(f"Invalid transaction type: {kind}. Must be 'income' or 'expense'.")
    if not category:
        raise ValidationError("Please select a category")
    if category not in categories.get(kind, []):
        raise ValidationError(f"Unknown {kind} category: {category}")


def build_transaction(
    categories: dict[str, list[str]],
    amount,
    kind: str,
    category: str | None,
    payment_method: PaymentMethodRef | None,
    note: str | None = None,
    occurred_at: datetime | None = None,
) -> NewTransaction:
    """Validate raw form values and return a :class:`NewTransaction`."""
    value = parse_amount(amount)
    _check_category(categories, kind, category)
    if payment_method is None or not payment_method.id:
        raise ValidationError("Please select a payment method")
    return NewTransaction(
        amount=value,
        kind=kind,
        category=category,
        payment_method=payment_method,
        note=note or None,
        occurred_at=occurred_at,
    )


def validate_patch(categories: dict[str, list[str]], tx, patch: TransactionPatch) -> TransactionPatch:
    """Check ``patch`` against the transaction it will be applied to."""
    if patch.amount is not None:
        patch.amount = parse_amount(patch.amount)
    if patch.payment_method is not None and not patch.payment_method.id:
        raise ValidationError("Please select a payment method")
    kind = patch.kind if patch.kind is not None else tx.kind
    category = patch.category if patch.category is not None else tx.category
    if patch.kind is not None or patch.category is not None:
        _check_category(categories, kind, category)
    return patch


def parse_balance(text) -> Decimal:
    """Parse an opening balance or limit; zero and negative values are allowed."""
    cleaned = str(text if text is not None else "").strip().replace(",", "") or "0"
    try:
        value = Decimal(cleaned)
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid balance: {text!r}") from exc
    if not value.is_finite():
        raise ValidationError(f"Invalid balance: {text!r}")
    return value
