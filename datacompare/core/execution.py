"""
Execution strategies for the comparator.
Single responsibility: run the one comparison algorithm inline, on an event
loop, or on a worker thread that posts messages back to the caller.
"""

import asyncio
import queue
import threading
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence, Union

from ..utils.logger import get_logger
from .comparator import (
    CancellationToken,
    ComparisonResult,
    DataComparator,
    ProgressCallback,
    run_inline,
)
from .rows import as_dataset


logger = get_logger()


async def compare_async(dataset1: Any, dataset2: Any,
                        key_columns: Sequence[str],
                        source_label1: Optional[str] = None,
                        source_label2: Optional[str] = None,
                        compare_columns: Optional[Sequence[str]] = None,
                        on_progress: Optional[ProgressCallback] = None,
                        cancel_token: Optional[CancellationToken] = None,
                        comparator: Optional[DataComparator] = None) -> ComparisonResult:
    """
    Compare on the running event loop, yielding control after every tick.

    Args are the same as DataComparator.compare, plus an optional
    comparator carrying custom settings.
    """
    comparator = comparator or DataComparator()
    steps = comparator.iter_compare(
        dataset1, dataset2, key_columns,
        source_label1=source_label1,
        source_label2=source_label2,
        compare_columns=compare_columns,
        cancel_token=cancel_token,
    )
    while True:
        try:
            event = next(steps)
        except StopIteration as stop:
            return stop.value
        if on_progress is not None:
            on_progress(event.percent, event.phase)
        await asyncio.sleep(0)


@dataclass(frozen=True)
class ProgressMessage:
    """Progress posted by a worker."""

    percent: int
    phase: str


@dataclass(frozen=True)
class ResultMessage:
    """Final result posted by a worker."""

    result: ComparisonResult


@dataclass(frozen=True)
class ErrorMessage:
    """Failure posted by a worker; error is the raised exception."""

    error: BaseException


WorkerMessage = Union[ProgressMessage, ResultMessage, ErrorMessage]


class ComparisonTask:
    """
    Run one comparison on a background thread.

    The worker posts ProgressMessage items while it runs and exactly one
    ResultMessage or ErrorMessage at the end. Inputs are copied before the
    worker starts so the caller keeps ownership of its rows.

    Example:
        task = ComparisonTask(rows1, rows2, ["id"]).start()
        for message in task.iter_messages():
            ...
        result = task.result()
    """

    def __init__(self, dataset1: Any, dataset2: Any,
                 key_columns: Sequence[str],
                 source_label1: Optional[str] = None,
                 source_label2: Optional[str] = None,
                 compare_columns: Optional[Sequence[str]] = None,
                 comparator: Optional[DataComparator] = None,
                 on_progress: Optional[ProgressCallback] = None):
        """
        Validate inputs; raises InvalidInput here rather than on the worker.

        Args:
            on_progress: Optional callback, invoked on the worker thread
        """
        self.comparator = comparator or DataComparator()
        self.cancel_token = CancellationToken()
        self.on_progress = on_progress
        self.messages: "queue.Queue[WorkerMessage]" = queue.Queue()

        self._steps = self.comparator.iter_compare(
            as_dataset(dataset1, "Dataset 1").copy(),
            as_dataset(dataset2, "Dataset 2").copy(),
            key_columns,
            source_label1=source_label1,
            source_label2=source_label2,
            compare_columns=compare_columns,
            cancel_token=self.cancel_token,
        )
        self._thread: Optional[threading.Thread] = None
        self._done = threading.Event()
        self._result: Optional[ComparisonResult] = None
        self._error: Optional[BaseException] = None

    def start(self) -> "ComparisonTask":
        """Start the worker thread. Returns self."""
        if self._thread is not None:
            raise RuntimeError("ComparisonTask already started")
        self._thread = threading.Thread(target=self._work,
                                        name="comparison-worker",
                                        daemon=True)
        self._thread.start()
        return self

    def _post_progress(self, percent: int, phase: str):
        self.messages.put(ProgressMessage(percent, phase))
        if self.on_progress is not None:
            self.on_progress(percent, phase)

    def _work(self):
        try:
            result = run_inline(self._steps, self._post_progress)
        except Exception as e:
            logger.error("comparison_task.failed",
                        error_type=type(e).__name__,
                        error=str(e))
            self._error = e
            self.messages.put(ErrorMessage(e))
        else:
            self._result = result
            self.messages.put(ResultMessage(result))
        finally:
            self._done.set()

    def cancel(self):
        """Ask the worker to stop at its next progress tick."""
        self.cancel_token.cancel()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def result(self, timeout: Optional[float] = None) -> ComparisonResult:
        """
        Wait for the worker and return its result.

        Args:
            timeout: Seconds to wait; None waits forever

        Raises:
            TimeoutError: If the worker has not finished in time
            Exception: Whatever the worker raised
        """
        if self._thread is None:
            raise RuntimeError("ComparisonTask was not started")
        if not self._done.wait(timeout):
            raise TimeoutError(f"Comparison did not finish within {timeout}s")
        self._thread.join()
        if self._error is not None:
            raise self._error
        return self._result

    def iter_messages(self, timeout: Optional[float] = None) -> Iterator[WorkerMessage]:
        """
        Yield messages in order until the terminal result or error message.

        Args:
            timeout: Seconds to wait for each message

        Raises:
            queue.Empty: If no message arrives within timeout
        """
        while True:
            message = self.messages.get(timeout=timeout)
            yield message
            if isinstance(message, (ResultMessage, ErrorMessage)):
                return
