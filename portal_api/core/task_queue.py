"""
In-process notification dispatcher.

A bounded queue drained by a small pool of daemon threads. Delivery is
at-most-once: jobs submitted to a full queue are dropped and logged, and a
job that raises is logged and discarded. Callers never block on submit().
"""

import logging
import queue
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

_STOP = object()


class NotificationDispatcher:
    """Fire-and-forget job runner for email fan-out."""

    def __init__(self, workers: int = 2, maxsize: int = 100, name: str = "notify"):
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._workers = max(1, workers)
        self._name = name
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()
        self._closed = False
        self.dropped = 0

    def _ensure_started(self) -> None:
        with self._lock:
            if self._threads or self._closed:
                return
            for i in range(self._workers):
                thread = threading.Thread(
                    target=self._run, name=f"{self._name}-{i}", daemon=True
                )
                thread.start()
                self._threads.append(thread)

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
        """
        Queue a job. Returns False when the job was dropped.

        Never raises and never blocks.
        """
        if self._closed:
            logger.warning("Dispatcher closed; dropping job %s", getattr(fn, "__name__", fn))
            self.dropped += 1
            return False
        self._ensure_started()
        try:
            self._queue.put_nowait((fn, args, kwargs))
        except queue.Full:
            self.dropped += 1
            logger.warning(
                "Notification queue full; dropping job %s", getattr(fn, "__name__", fn)
            )
            return False
        return True

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                fn, args, kwargs = item
                try:
                    fn(*args, **kwargs)
                except Exception:
                    logger.exception(
                        "Notification job %s failed", getattr(fn, "__name__", fn)
                    )
            finally:
                self._queue.task_done()

    def join(self) -> None:
        """Block until every queued job has been processed."""
        self._queue.join()

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs and stop the workers after the queue drains."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            threads = list(self._threads)
        for _ in threads:
            self._queue.put(_STOP)
        if wait:
            for thread in threads:
                thread.join(timeout=10)


class InlineDispatcher(NotificationDispatcher):
    """Runs jobs synchronously in the caller's thread (CLI and tests)."""

    def __init__(self):
        super().__init__(workers=1, maxsize=0, name="inline")

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception("Notification job %s failed", getattr(fn, "__name__", fn))
        return True

    def join(self) -> None:
        return None

    def shutdown(self, wait: bool = True) -> None:
        return None
