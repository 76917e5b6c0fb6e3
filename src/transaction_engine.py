import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from errors import ErrorKind, TransactionError
from message_queue import BoundedQueue
from models import (
    AccountSnapshot,
    ClientAccount,
    ProcessingResult,
    ProcessingStats,
    Transaction,
    TransactionRecord,
    TransactionState,
    TransactionType,
)

logger = logging.getLogger(__name__)


class TransactionEngine:
    """
    Applies transactions to the account table, one at a time.

    Deposits and withdrawals are kept in separate ledgers keyed by transaction id,
    so ids are only unique within a ledger. Disputes look in the deposit ledger first.
    Every handler validates before it mutates: a rejected transaction leaves
    balances and ledgers untouched.

    Not thread-safe. The engine owns its state and expects a single caller.
    """

    def __init__(self, stats: Optional[ProcessingStats] = None):
        self._deposits: Dict[int, TransactionRecord] = {}
        self._withdrawals: Dict[int, TransactionRecord] = {}
        self._accounts: Dict[int, ClientAccount] = {}
        self.stats = stats or ProcessingStats()

    def run(self, queue: BoundedQueue) -> List[AccountSnapshot]:
        """Consume the queue until it is closed, then return the final account table."""
        logger.info("Starting transaction processing")
        while True:
            transaction = queue.consume_message()
            if transaction is None:
                break
            self.apply(transaction)
        logger.info(f"Transaction processing complete: {self.stats}")
        return self.accounts()

    def apply(self, transaction: Transaction) -> ProcessingResult:
        """
        Apply a single transaction.

        Returns:
            SUCCESS: Applied
            FAILED: Rejected with a TransactionError, state unchanged
            SKIPPED: Unknown transaction type, nothing to do
        """
        logger.debug(f"Applying {transaction}")

        if transaction.transaction_type == TransactionType.UNKNOWN:
            logger.warning(f"Skipping unknown transaction type for tx {transaction.transaction_id}")
            self.stats.record_skipped()
            return ProcessingResult.SKIPPED

        try:
            match transaction.transaction_type:
                case TransactionType.DEPOSIT:
                    self.process_deposit(transaction)
                case TransactionType.WITHDRAWAL:
                    self.process_withdrawal(transaction)
                case TransactionType.DISPUTE:
                    self.process_dispute(transaction)
                case TransactionType.RESOLVE:
                    self.process_resolve(transaction)
                case TransactionType.CHARGEBACK:
                    self.process_chargeback(transaction)
        except TransactionError as e:
            logger.warning(f"Failed to apply {transaction.transaction_type.value}: {e}")
            self.stats.record_failure()
            return ProcessingResult.FAILED

        self.stats.record_success()
        return ProcessingResult.SUCCESS

    def process_deposit(self, transaction: Transaction) -> None:
        account = self._get_or_create_account(transaction.client_id)

        if transaction.transaction_id in self._deposits:
            raise TransactionError.duplicate(transaction.transaction_id)
        if not self._is_positive(transaction.amount):
            raise TransactionError(ErrorKind.INVALID_DEPOSIT, transaction_id=transaction.transaction_id)
        if account.locked:
            raise TransactionError.locked(account.client_id)

        account.credit(transaction.amount)
        self._deposits[transaction.transaction_id] = self._new_record(transaction)

    def process_withdrawal(self, transaction: Transaction) -> None:
        account = self._get_or_create_account(transaction.client_id)

        if transaction.transaction_id in self._withdrawals:
            raise TransactionError.duplicate(transaction.transaction_id)
        if account.locked:
            raise TransactionError.locked(account.client_id)
        if not self._is_positive(transaction.amount) or transaction.amount > account.available:
            raise TransactionError(ErrorKind.INVALID_WITHDRAWAL, transaction_id=transaction.transaction_id)

        account.debit(transaction.amount)
        self._withdrawals[transaction.transaction_id] = self._new_record(transaction)

    def process_dispute(self, transaction: Transaction) -> None:
        account = self._get_unlocked_account(transaction.client_id)
        origin, record = self._find_record(transaction, TransactionState.NORMAL, ErrorKind.INVALID_DISPUTE)

        if origin == TransactionType.DEPOSIT:
            if account.available < record.amount:
                raise TransactionError(ErrorKind.INVALID_DISPUTE, transaction_id=transaction.transaction_id)
            account.hold(record.amount)
        else:
            # The client contests a debit: the amount comes back as held until settled.
            account.add_held(record.amount)

        record.state = TransactionState.DISPUTED

    def process_resolve(self, transaction: Transaction) -> None:
        account = self._get_unlocked_account(transaction.client_id)
        origin, record = self._find_settleable(account, transaction, ErrorKind.INVALID_RESOLVE)

        if origin == TransactionType.DEPOSIT:
            account.release_hold(record.amount)
        else:
            # The debit stands.
            account.remove_held(record.amount)

        record.state = TransactionState.RESOLVED

    def process_chargeback(self, transaction: Transaction) -> None:
        account = self._get_unlocked_account(transaction.client_id)
        origin, record = self._find_settleable(account, transaction, ErrorKind.INVALID_CHARGEBACK)

        if origin == TransactionType.DEPOSIT:
            account.remove_held(record.amount)
        else:
            # The debit is reversed.
            account.release_hold(record.amount)

        record.state = TransactionState.CHARGED_BACK
        account.lock()
        logger.info(f"Account {account.client_id} locked after chargeback of tx {record.transaction_id}")

    def accounts(self) -> List[AccountSnapshot]:
        """Snapshot of every known account. Order is not guaranteed."""
        return [account.snapshot() for account in self._accounts.values()]

    def get_account(self, client_id: int) -> Optional[AccountSnapshot]:
        account = self._accounts.get(client_id)
        return account.snapshot() if account else None

    def get_transaction(
        self, transaction_id: int, origin: TransactionType = TransactionType.DEPOSIT
    ) -> Optional[TransactionRecord]:
        """Look up a stored record in the deposit or withdrawal ledger."""
        if origin == TransactionType.DEPOSIT:
            return self._deposits.get(transaction_id)
        if origin == TransactionType.WITHDRAWAL:
            return self._withdrawals.get(transaction_id)
        raise ValueError(f"Only deposits and withdrawals are stored, got {origin.value}")

    def ledger_sizes(self) -> Tuple[int, int]:
        """Number of stored (deposits, withdrawals)."""
        return len(self._deposits), len(self._withdrawals)

    def _get_or_create_account(self, client_id: int) -> ClientAccount:
        if client_id not in self._accounts:
            self._accounts[client_id] = ClientAccount(client_id=client_id)
        return self._accounts[client_id]

    def _get_unlocked_account(self, client_id: int) -> ClientAccount:
        account = self._get_or_create_account(client_id)
        if account.locked:
            raise TransactionError.locked(client_id)
        return account

    def _find_record(
        self, transaction: Transaction, expected_state: TransactionState, error_kind: ErrorKind
    ) -> Tuple[TransactionType, TransactionRecord]:
        """Find the referenced record owned by the same client and in the expected state."""
        if transaction.transaction_id in self._deposits:
            origin = TransactionType.DEPOSIT
            record = self._deposits[transaction.transaction_id]
        elif transaction.transaction_id in self._withdrawals:
            origin = TransactionType.WITHDRAWAL
            record = self._withdrawals[transaction.transaction_id]
        else:
            logger.debug(f"{transaction.transaction_type.value} for tx {transaction.transaction_id}: transaction not found")
            raise TransactionError(error_kind, transaction_id=transaction.transaction_id)

        if record.client_id != transaction.client_id:
            logger.debug(
                f"{transaction.transaction_type.value} for tx {transaction.transaction_id}: "
                f"client mismatch (expected {record.client_id}, got {transaction.client_id})"
            )
            raise TransactionError(error_kind, transaction_id=transaction.transaction_id)

        if record.state != expected_state:
            logger.debug(
                f"{transaction.transaction_type.value} for tx {transaction.transaction_id}: "
                f"transaction is {record.state.value}, expected {expected_state.value}"
            )
            raise TransactionError(error_kind, transaction_id=transaction.transaction_id)

        return origin, record

    def _find_settleable(
        self, account: ClientAccount, transaction: Transaction, error_kind: ErrorKind
    ) -> Tuple[TransactionType, TransactionRecord]:
        origin, record = self._find_record(transaction, TransactionState.DISPUTED, error_kind)
        if account.held < record.amount:
            raise TransactionError(error_kind, transaction_id=transaction.transaction_id)
        return origin, record

    @staticmethod
    def _is_positive(amount: Optional[Decimal]) -> bool:
        return amount is not None and amount > 0

    @staticmethod
    def _new_record(transaction: Transaction) -> TransactionRecord:
        return TransactionRecord(
            client_id=transaction.client_id,
            transaction_id=transaction.transaction_id,
            amount=transaction.amount,
        )
