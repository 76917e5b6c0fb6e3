from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    DUPLICATE_TRANSACTION = "duplicate_transaction"
    ACCOUNT_LOCKED = "account_locked"
    INVALID_DEPOSIT = "invalid_deposit"
    INVALID_WITHDRAWAL = "invalid_withdrawal"
    INVALID_DISPUTE = "invalid_dispute"
    INVALID_RESOLVE = "invalid_resolve"
    INVALID_CHARGEBACK = "invalid_chargeback"


_MESSAGES = {
    ErrorKind.DUPLICATE_TRANSACTION: "Duplicate transaction id {tx}",
    ErrorKind.ACCOUNT_LOCKED: "Account {client} is locked",
    ErrorKind.INVALID_DEPOSIT: "Deposit error for tx {tx}",
    ErrorKind.INVALID_WITHDRAWAL: "Withdrawal error for tx {tx}",
    ErrorKind.INVALID_DISPUTE: "Dispute error for tx {tx}",
    ErrorKind.INVALID_RESOLVE: "Resolve error for tx {tx}",
    ErrorKind.INVALID_CHARGEBACK: "Chargeback error for tx {tx}",
}


class TransactionError(Exception):
    """
    An event rejected by the engine.
    ACCOUNT_LOCKED carries the client id, every other kind carries the transaction id.
    """

    def __init__(self, kind: ErrorKind, transaction_id: Optional[int] = None, client_id: Optional[int] = None):
        self.kind = kind
        self.transaction_id = transaction_id
        self.client_id = client_id
        super().__init__(_MESSAGES[kind].format(tx=transaction_id, client=client_id))

    @classmethod
    def duplicate(cls, transaction_id: int) -> "TransactionError":
        return cls(ErrorKind.DUPLICATE_TRANSACTION, transaction_id=transaction_id)

    @classmethod
    def locked(cls, client_id: int) -> "TransactionError":
        return cls(ErrorKind.ACCOUNT_LOCKED, client_id=client_id)


class MalformedRowError(ValueError):
    """Input row that cannot be turned into a Transaction."""


class InputUnavailableError(Exception):
    """Input file cannot be opened or read. Fatal for the run."""
