"""
In-flight connection counter for graceful shutdown.

The accept loop adds one before handing a connection to its thread, the
thread marks itself done when it exits, and shutdown waits until the count
drops back to zero:

    group.add()
    threading.Thread(target=serve, args=(conn,)).start()   # calls group.done()
    ...
    group.wait()    # blocks until every serve() has returned
"""

from typing import Optional
import threading
import time


class WaitGroup:
    """
    A counter that can be waited on until it reaches zero.

    A threading.Condition guards the count; done() notifies waiters when
    the last task finishes.
    """

    def __init__(self):
        self._count = 0
        self._cond = threading.Condition(threading.Lock())

    def add(self, n: int = 1) -> None:
        with self._cond:
            if self._count + n < 0:
                raise ValueError("WaitGroup counter would go negative")
            self._count += n
            if self._count == 0:
                self._cond.notify_all()

    def done(self) -> None:
        self.add(-1)

    @property
    def count(self) -> int:
        with self._cond:
            return self._count

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the counter is zero.

        Args:
            timeout: Seconds to wait at most. None waits forever.

        Returns:
            True if the counter reached zero, False on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._count > 0:
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True
