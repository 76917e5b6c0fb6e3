import csv
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional, TextIO

from errors import InputUnavailableError, MalformedRowError
from message_queue import BoundedQueue
from models import ProcessingStats, Transaction, TransactionType, round_amount

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1


def _parse_unsigned(value: str, name: str, upper: int) -> int:
    if not (value.isascii() and value.isdigit()):
        raise MalformedRowError(f"{name} is not an unsigned integer: {value!r}")
    number = int(value)
    if number > upper:
        raise MalformedRowError(f"{name} out of range: {number}")
    return number


def _parse_amount(value: str) -> Optional[Decimal]:
    if not value:
        return None
    try:
        amount = Decimal(value)
        if not amount.is_finite():
            raise MalformedRowError(f"amount is not finite: {value!r}")
        return round_amount(amount)
    except InvalidOperation:
        # Also raised by rounding when the value has too many digits for the decimal context.
        raise MalformedRowError(f"amount is not a representable decimal: {value!r}") from None


def parse_row(fields: List[str]) -> Transaction:
    """
    Build a Transaction from the positional fields `type, client, tx[, amount]`.

    Every field is trimmed before parsing. The type token is matched
    case-insensitively and unrecognized tokens become UNKNOWN, but the row must
    otherwise be well formed. Amounts are rounded to 4 fractional digits.

    Raises:
        MalformedRowError: wrong field count or unparsable client, tx or amount.
    """
    if len(fields) < 3 or len(fields) > 4:
        raise MalformedRowError(f"expected 3 or 4 fields, got {len(fields)}")

    fields = [field.strip() for field in fields]
    transaction_type = TransactionType.from_token(fields[0])
    client_id = _parse_unsigned(fields[1], "client", MAX_CLIENT_ID)
    transaction_id = _parse_unsigned(fields[2], "tx", MAX_TRANSACTION_ID)
    amount = _parse_amount(fields[3]) if len(fields) == 4 else None

    return Transaction(
        transaction_type=transaction_type,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=amount,
    )


class EventSource:
    """
    Reads the input CSV and publishes well-formed transactions in file order.
    Malformed rows are logged and dropped; they never reach the engine.
    """

    def __init__(self, filepath: str, stats: Optional[ProcessingStats] = None):
        self._filepath = filepath
        self._stats = stats or ProcessingStats()
        self._file: Optional[TextIO] = None

    def open(self) -> None:
        """Open the input file. Raises InputUnavailableError if it cannot be opened."""
        try:
            self._file = open(self._filepath, "r", encoding="utf-8-sig", newline="")
        except OSError as e:
            raise InputUnavailableError(f"Cannot open input file {self._filepath}: {e}") from e

    def publish(self, queue: BoundedQueue) -> None:
        """Publish every well-formed row to the queue, then close it."""
        try:
            if self._file is None:
                self.open()
            with self._file as f:
                reader = csv.reader(f)
                header = next(reader, None)
                if header is None:
                    logger.warning(f"Input file {self._filepath} is empty")
                    return
                logger.debug(f"Header: {[column.strip() for column in header]}")

                for fields in reader:
                    if not fields:
                        continue
                    try:
                        transaction = parse_row(fields)
                    except MalformedRowError as e:
                        self._stats.record_malformed()
                        logger.warning(f"Skipping malformed row at line {reader.line_num} {fields}: {e}")
                        continue
                    queue.publish_message(transaction)
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            raise InputUnavailableError(f"Failed reading input file {self._filepath}: {e}") from e
        finally:
            queue.shutdown()
