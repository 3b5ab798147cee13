"""
=============================================================================
I/O THREAD
=============================================================================

A single worker thread that owns all socket I/O of one client connection.

=============================================================================
WHY ONE THREAD PER CONNECTION?
=============================================================================

The caller must be able to give up on a handshake (timeout) without the
socket being read or written from two threads at once. So every blocking
socket call happens on the connection's I/O thread, and the caller only
ever WAITS:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   caller thread               IoThread                              │
    │   ─────────────               ────────                              │
    │   execute(task) ──► queue ──► task.func(*args)                      │
    │   wait on event               ... send / recv ...                   │
    │        ▲                      completion callback                   │
    │        └──────────────────────── event.set()                        │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

Tasks run one at a time, in submission order. A task that raises is
logged and does not kill the thread.

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class IoThreadState(Enum):
    """I/O thread states, for monitoring and debugging."""
    IDLE = "idle"        # Waiting for a task
    BUSY = "busy"        # Executing a task
    STOPPED = "stopped"  # Thread exited


@dataclass
class Task:
    """
    A deferred function call: "call func(*args, **kwargs) on the I/O thread".

    Attributes:
        func: The function to execute.
        args: Positional arguments.
        kwargs: Keyword arguments.
        submitted_at: Time the task was queued.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class IoThread(threading.Thread):
    """
    Daemon thread executing tasks from a queue, one at a time.

    Example:
        io = IoThread(name="conn-1")
        io.start()
        io.execute(sock.sendall, data)
        io.shutdown()
    """

    def __init__(self, name: str = "io", poll_interval: float = 1.0):
        # daemon=True: a stuck socket never keeps the process alive
        super().__init__(name=f"IoThread-{name}", daemon=True)

        self.poll_interval = poll_interval
        self.state = IoThreadState.IDLE

        self._tasks: "queue.Queue[Optional[Task]]" = queue.Queue()
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    @property
    def is_current(self) -> bool:
        """True when called from this I/O thread."""
        return threading.current_thread() is self

    def execute(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """
        Queue a call to run on this thread.

        Raises:
            RuntimeError: If the thread is not running or is shutting down.
        """
        if self._shutdown.is_set():
            raise RuntimeError(f"{self.name} is shutting down")
        if not self.is_alive():
            raise RuntimeError(f"{self.name} is not running")

        self._tasks.put(Task(func=func, args=args, kwargs=kwargs))

    def run(self):
        logger.debug(f"{self.name} started")

        while not self._shutdown.is_set():
            try:
                task = self._tasks.get(timeout=self.poll_interval)
            except queue.Empty:
                continue

            # None is the poison pill
            if task is None:
                break

            self._execute_task(task)

        self.state = IoThreadState.STOPPED
        logger.debug(f"{self.name} stopped")

    def _execute_task(self, task: Task):
        self.state = IoThreadState.BUSY
        start_time = time.time()

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(f"{self.name} completed task in {time.time() - start_time:.3f}s")
        except Exception as e:
            # Keep the thread alive for later tasks (e.g. close)
            self.tasks_failed += 1
            logger.exception(f"{self.name} task failed after {time.time() - start_time:.3f}s: {e}")
        finally:
            self.state = IoThreadState.IDLE

    def shutdown(self, wait: bool = False, timeout: Optional[float] = None):
        """
        Stop the thread after the task currently running (if any).

        Queued tasks that have not started are dropped.

        Args:
            wait: Join the thread before returning.
            timeout: Maximum seconds to wait when joining.
        """
        self._shutdown.set()
        self._tasks.put(None)

        if wait and self.is_alive() and not self.is_current:
            self.join(timeout)
