import logging
import sys
import threading
from typing import Dict, Optional, TextIO

from csv_parser import EventSource
from message_queue import QUEUE_CAPACITY, BoundedQueue
from models import AccountSnapshot, ProcessingStats
from report import ReportWriter
from transaction_engine import TransactionEngine

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Orchestrates a run with the publisher-consumer pattern.
    One publisher thread feeds a bounded queue; the transaction engine consumes it
    on the calling thread, so events are applied strictly in file order.
    """

    def __init__(self, queue_capacity: int = QUEUE_CAPACITY):
        self._queue_capacity = queue_capacity
        # Shared by the publisher thread (malformed rows) and the engine, hence its internal lock.
        self._stats = ProcessingStats()
        self._publisher_error: Optional[Exception] = None

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    def process_file(self, filepath: str, output: TextIO = None) -> Dict[int, AccountSnapshot]:
        """
        Process CSV file, write the report to `output` (stdout by default) and
        return final account states.

        Raises:
            InputUnavailableError: the file cannot be opened or read. No report is written.
            Any other exception raised while publishing is re-raised here, also without a report.
        """
        self._stats = ProcessingStats()
        self._publisher_error = None

        source = EventSource(filepath, stats=self._stats)
        source.open()

        queue = BoundedQueue(self._queue_capacity)
        engine = TransactionEngine(stats=self._stats)

        logger.info("Starting main processing phase")

        publisher_thread = threading.Thread(target=self._publish_transactions, args=(source, queue), daemon=True)
        publisher_thread.start()

        snapshots = engine.run(queue)

        publisher_thread.join()
        if self._publisher_error is not None:
            raise self._publisher_error

        logger.info("Main processing phase complete")

        ReportWriter(output or sys.stdout).write(snapshots)
        logger.info(f"Processing report: {self._stats}")

        return {snapshot.client: snapshot for snapshot in snapshots}

    def _publish_transactions(self, source: EventSource, queue: BoundedQueue) -> None:
        """Publisher thread body. Failures are handed back to the calling thread."""
        try:
            source.publish(queue)
        except Exception as e:
            logger.error(f"Publisher stopped: {e}")
            self._publisher_error = e
