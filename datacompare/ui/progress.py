"""
Progress monitoring and user interface.
Single responsibility: provide user feedback during comparisons.
"""

import sys
import time
from contextlib import contextmanager
from typing import Any, Callable, Optional


class ProgressMonitor:
    """
    Simple progress monitoring for console output.

    Progress is expressed as a percentage with a phase label, which is what
    the comparator reports.
    """

    def __init__(self, verbose: bool = True, stream=None):
        """
        Initialize progress monitor.

        Args:
            verbose: Whether to show detailed progress
            stream: Output stream (defaults to stdout)
        """
        self.verbose = verbose
        self.stream = stream or sys.stdout
        self.current_task: Optional[str] = None
        self.start_time: Optional[float] = None
        self.percent = 0
        self.phase = ""

    def start_task(self, task_name: str):
        """
        Start a new task.

        Args:
            task_name: Name of task
        """
        self.current_task = task_name
        self.percent = 0
        self.phase = ""
        self.start_time = time.time()

        if self.verbose:
            print(f"\n[START] {task_name}", file=self.stream)

    def update(self, percent: int, phase: Optional[str] = None):
        """
        Update progress.

        Args:
            percent: Completion percentage, 0-100
            phase: Optional status message
        """
        if self.start_time is None:
            self.start_task(phase or "Comparison")

        self.percent = percent
        if phase:
            self.phase = phase

        if self.verbose:
            elapsed = time.time() - self.start_time
            status = f"  [{percent:3d}%] {self.phase}"
            status += f" - Elapsed: {self._format_time(elapsed)}"
            # Carriage return keeps updates on one line
            print(f"\r{status}", end="", flush=True, file=self.stream)

    def complete_task(self, message: Optional[str] = None):
        """
        Mark current task as complete.

        Args:
            message: Optional completion message
        """
        if self.verbose and self.current_task:
            elapsed = time.time() - self.start_time
            print(file=self.stream)

            status = f"[DONE] {self.current_task}"
            status += f" - Time: {self._format_time(elapsed)}"
            if message:
                status += f" - {message}"

            print(status, file=self.stream)

        self.current_task = None
        self.start_time = None

    def progress_callback(self, task_name: str) -> Callable[[int, str], None]:
        """
        Build an on_progress callable for the comparator.

        The task is started on the first event and completed when the
        progress reaches 100.

        Args:
            task_name: Name shown for the task

        Returns:
            on_progress(percent, phase)
        """
        def on_progress(percent: int, phase: str):
            if self.current_task != task_name:
                self.start_task(task_name)
            self.update(percent, phase)
            if percent >= 100:
                self.complete_task()

        return on_progress

    def show_comparison_results(self, summary: dict):
        """Print the partition counts of a comparison summary."""
        if not self.verbose:
            return
        for label, key in (("Matches", "matches"),
                           ("Mismatches", "mismatches"),
                           ("Unique to first", "unique_to_first"),
                           ("Unique to second", "unique_to_second")):
            print(f"  {label}: {summary.get(key, 0):,}", file=self.stream)
        print(f"  Match rate: {summary.get('match_rate', 0):.1f}%", file=self.stream)

    def show_history(self, summary: dict, records: list):
        """Print history totals followed by one line per stored run."""
        print(f"  Comparisons: {summary.get('total_comparisons', 0):,}", file=self.stream)
        print(f"  Rows processed: {summary.get('total_rows_processed', 0):,}", file=self.stream)
        print(f"  Average time: "
              f"{self._format_time(summary.get('average_processing_seconds', 0))}",
              file=self.stream)
        for record in records:
            print(f"  {record.id}  {record.timestamp:%Y-%m-%d %H:%M}  "
                  f"{record.source_label1} vs {record.source_label2}  "
                  f"{record.matches} matched, {record.mismatches} mismatched",
                  file=self.stream)

    def error(self, message: str):
        """
        Show error message.

        Args:
            message: Error message
        """
        print(f"\n[ERROR] {message}", file=sys.stderr)

    def warning(self, message: str):
        """
        Show warning message.

        Args:
            message: Warning message
        """
        if self.verbose:
            print(f"\n[WARNING] {message}", file=sys.stderr)

    def info(self, message: str):
        """
        Show info message.

        Args:
            message: Info message
        """
        if self.verbose:
            print(f"[INFO] {message}", file=self.stream)

    @contextmanager
    def task(self, task_name: str):
        """
        Context manager for task progress.

        Example:
            with progress.task("Comparing") as monitor:
                compare(a, b, ["id"], on_progress=monitor.update)
        """
        self.start_task(task_name)
        try:
            yield self
        finally:
            self.complete_task()

    def _format_time(self, seconds: float) -> str:
        """
        Format time duration.

        Args:
            seconds: Time in seconds

        Returns:
            Formatted time string
        """
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            minutes = seconds / 60
            return f"{minutes:.1f}m"
        else:
            hours = seconds / 3600
            return f"{hours:.1f}h"


def get_progress_monitor(use_rich: bool = True, verbose: bool = True) -> Any:
    """
    Get appropriate progress monitor.

    Args:
        use_rich: Whether to use Rich progress bars
        verbose: Whether the plain monitor prints progress

    Returns:
        Progress monitor instance
    """
    if use_rich:
        from .rich_progress import RichProgressMonitor
        return RichProgressMonitor()
    return ProgressMonitor(verbose=verbose)
