import logging
import threading
from collections import deque
from contextlib import contextmanager
from typing import Deque, Iterator

logger = logging.getLogger(__name__)


class ConcurrencyGate:
    """
    Counting gate with a FIFO wait queue.

    - At most ``capacity`` holders at a time.
    - Waiters are admitted strictly in the order they asked; a released permit
      is handed straight to the oldest waiter.
    - No cancellation: once queued, a caller waits until admitted.
    """

    def __init__(self, capacity: int = 5) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._lock = threading.Lock()
        self._active = 0
        self._waiters: Deque[threading.Event] = deque()

    @property
    def active(self) -> int:
        with self._lock:
            return self._active

    @property
    def waiting(self) -> int:
        with self._lock:
            return len(self._waiters)

    def acquire(self) -> None:
        with self._lock:
            if self._active < self.capacity and not self._waiters:
                self._active += 1
                return
            ticket = threading.Event()
            self._waiters.append(ticket)
            logger.debug("Gate full (%d active), queued at position %d", self._active, len(self._waiters))
        # The releasing thread keeps _active unchanged and passes its permit to us.
        ticket.wait()

    def release(self) -> None:
        with self._lock:
            if self._waiters:
                self._waiters.popleft().set()
                return
            if self._active == 0:
                raise RuntimeError("release() called without a held permit")
            self._active -= 1

    @contextmanager
    def permit(self) -> Iterator[None]:
        self.acquire()
        try:
            yield
        finally:
            self.release()
