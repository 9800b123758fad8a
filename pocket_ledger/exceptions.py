"""Exceptions raised by the ledger."""


class LedgerError(Exception):
    """Base exception for ledger errors."""

    pass


class ValidationError(LedgerError):
    """User input or an imported document failed validation."""

    pass


class ReferenceNotFoundError(LedgerError):
    """A payment method id does not resolve to a bank account or credit card."""

    def __init__(self, ref):
        self.ref = ref
        kind = "Credit card" if ref.is_card else "Bank account"
        super().__init__(f"{kind} with ID {ref.id} not found")


class InvariantViolationError(LedgerError):
    """The engine was handed a transaction it cannot reconcile."""

    pass


class StorageError(LedgerError):
    """The underlying database rejected or failed a write."""

    pass
