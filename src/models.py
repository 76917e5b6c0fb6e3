import threading
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN
from enum import Enum
from typing import Optional

AMOUNT_PRECISION = Decimal("0.0001")


def round_amount(value: Decimal) -> Decimal:
    """Round to the ledger's fixed 4 fractional digits."""
    return value.quantize(AMOUNT_PRECISION, rounding=ROUND_HALF_EVEN)


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"
    UNKNOWN = "unknown"

    @classmethod
    def from_token(cls, token: str) -> "TransactionType":
        """Map a CSV type token to a TransactionType; unrecognized tokens become UNKNOWN."""
        try:
            member = cls(token.strip().lower())
        except ValueError:
            return cls.UNKNOWN
        return member


class TransactionState(Enum):
    NORMAL = "normal"
    DISPUTED = "disputed"
    RESOLVED = "resolved"
    CHARGED_BACK = "charged_back"


class ProcessingResult(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class TransactionRecord:
    """A stored deposit or withdrawal. Only `state` changes after creation."""

    client_id: int
    transaction_id: int
    amount: Decimal
    state: TransactionState = TransactionState.NORMAL


@dataclass(frozen=True)
class AccountSnapshot:
    client: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        self.available += amount

    def debit(self, amount: Decimal) -> None:
        self.available -= amount

    def hold(self, amount: Decimal) -> None:
        self.available -= amount
        self.held += amount

    def release_hold(self, amount: Decimal) -> None:
        self.held -= amount
        self.available += amount

    def add_held(self, amount: Decimal) -> None:
        self.held += amount

    def remove_held(self, amount: Decimal) -> None:
        self.held -= amount

    def lock(self) -> None:
        self.locked = True

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            client=self.client_id,
            available=self.available,
            held=self.held,
            total=self.total,
            locked=self.locked,
        )


class ProcessingStats:
    """Counters for a single run. `malformed` is written by the publisher thread."""

    def __init__(self):
        self._lock = threading.Lock()
        self.processed = 0
        self.failed = 0
        self.skipped = 0
        self.malformed = 0

    def record_success(self):
        with self._lock:
            self.processed += 1

    def record_failure(self):
        with self._lock:
            self.failed += 1

    def record_skipped(self):
        with self._lock:
            self.skipped += 1

    def record_malformed(self):
        with self._lock:
            self.malformed += 1

    def __repr__(self) -> str:
        return (
            f"Processed: {self.processed}, Failed: {self.failed}, "
            f"Skipped: {self.skipped}, Malformed: {self.malformed}"
        )
