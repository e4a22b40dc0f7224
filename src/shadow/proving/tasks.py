"""Background proof tasks with progress reporting and cancellation."""

import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional

from shadow.exceptions import ProofCancelledError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """One progress report from a running task."""

    stage: str
    percent: int
    message: str


ProgressCallback = Callable[[ProgressEvent], None]


class CancellationToken:
    """Cooperative cancellation flag checked by long-running synthesis."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ProofCancelledError("Proof generation was cancelled")


class ProgressReporter:
    """Collects events and forwards them to an optional callback."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self._callback = callback
        self._lock = threading.Lock()
        self.events: List[ProgressEvent] = []

    def __call__(self, stage: str, percent: int, message: str) -> None:
        event = ProgressEvent(stage=stage, percent=percent, message=message)
        with self._lock:
            self.events.append(event)
        logger.debug(f"[{stage}] {percent}% {message}")
        if self._callback is not None:
            self._callback(event)


class ProofTask:
    """
    Runs a proof job on a worker thread.

    The job receives a CancellationToken and a ProgressReporter. Calling
    cancel() sets the token; the job raises ProofCancelledError at its next
    check and result() re-raises it.

    Example Usage:
        >>> task = client.start_withdrawal(note, recipient, on_progress=print)
        >>> package = task.result()
    """

    def __init__(
        self,
        job: Callable[[CancellationToken, ProgressReporter], object],
        on_progress: Optional[ProgressCallback] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self._job = job
        self._executor = executor
        self._future: Optional[Future] = None
        self.token = CancellationToken()
        self.progress = ProgressReporter(on_progress)

    def start(self) -> "ProofTask":
        if self._future is not None:
            raise RuntimeError("Task already started")

        if self._executor is None:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="shadow-prover")
            self._future = executor.submit(self._job, self.token, self.progress)
            # Lets the worker finish, then releases the thread
            executor.shutdown(wait=False)
        else:
            self._future = self._executor.submit(self._job, self.token, self.progress)
        return self

    def cancel(self) -> None:
        self.token.cancel()
        if self._future is not None:
            self._future.cancel()

    def result(self, timeout: Optional[float] = None):
        """
        Wait for the job's return value.

        Raises:
            ProofCancelledError: If the task was cancelled
            concurrent.futures.TimeoutError: If timeout elapses first
        """
        if self._future is None:
            raise RuntimeError("Task not started")
        try:
            return self._future.result(timeout)
        except CancelledError as e:
            raise ProofCancelledError("Proof generation was cancelled") from e

    def done(self) -> bool:
        return self._future is not None and self._future.done()

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled
