import threading
from queue import Queue
from typing import Optional

from models import Transaction

# Channel size between publisher and engine; tune against benchmarks.
QUEUE_CAPACITY = 10000

_CLOSED = object()


class BoundedQueue:
    """
    Fixed-capacity FIFO between the CSV publisher and the transaction engine.
    Publishing blocks while the queue is full. All synchronization is internal.
    """

    def __init__(self, capacity: int = QUEUE_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"Queue capacity must be positive, got {capacity}")
        self._main_queue: Queue = Queue(maxsize=capacity)
        self._shutdown_event = threading.Event()
        self._drained = False
        self.capacity = capacity

    def publish_message(self, message: Transaction) -> None:
        """Add message to the queue, waiting for a free slot. Thread-safe."""
        if self._shutdown_event.is_set():
            raise RuntimeError("Cannot publish to a closed queue")
        self._main_queue.put(message)

    def consume_message(self) -> Optional[Transaction]:
        """
        Wait for the next message.
        Returns None once the queue has been closed and everything before the close is consumed.
        """
        if self._drained:
            return None
        message = self._main_queue.get()
        if message is _CLOSED:
            self._drained = True
            return None
        return message

    def shutdown(self) -> None:
        """Signal no more messages will be published."""
        if self._shutdown_event.is_set():
            return
        self._shutdown_event.set()
        self._main_queue.put(_CLOSED)
