"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as rewriting an append-only record."""


class UnresolvedReferenceError(DomainError):
    """A record names an account or transaction that cannot be resolved."""


class TransportError(Exception):
    """A sync batch never reached the remote store or never came back.

    The whole batch is treated as not applied and is safe to retry.
    """


def account_not_found(account_id: str) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def transaction_not_found(transaction_id: str) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def non_positive_amount(amount) -> str:
    """Return message for a zero or negative monetary amount."""
    return f"Amount must be positive, got {amount}"


def append_only_rewrite(entity_class: str, client_id: str) -> str:
    """Return message when an append-only record would be replaced."""
    return f"{entity_class} record '{client_id}' already exists and is append-only"
