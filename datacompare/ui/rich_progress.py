"""
Rich progress monitoring.
Single responsibility: provide a rich terminal UI for comparison progress.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from ..utils.logger import get_logger


logger = get_logger()


class RichProgressMonitor:
    """
    Progress monitoring using the Rich library.
    """

    def __init__(self, console: Optional[Console] = None):
        """
        Args:
            console: Console to draw on (a new stdout console when omitted)
        """
        self.console = console or Console()
        self.progress: Optional[Progress] = None
        self.tasks: Dict[str, Any] = {}
        self.start_time: Optional[datetime] = None

    def start_pipeline(self, title: str = "Data Compare"):
        """
        Start monitoring with a header panel.

        Args:
            title: Header title
        """
        self.start_time = datetime.now()

        header = Panel(
            Text(title, justify="center", style="bold cyan"),
            box=box.DOUBLE,
            style="cyan"
        )
        self.console.print(header)
        self.console.print()

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=self.console,
            refresh_per_second=10
        )
        self.progress.start()

    def add_task(self, name: str, description: Optional[str] = None) -> Any:
        """
        Add a percentage task.

        Args:
            name: Task identifier
            description: Task description

        Returns:
            Task ID
        """
        if not self.progress:
            self.start_pipeline()

        task_id = self.progress.add_task(description or name, total=100)
        self.tasks[name] = task_id

        logger.debug("rich_progress.task.added", name=name)
        return task_id

    def update_task(self, name: str, completed: int,
                    description: Optional[str] = None):
        """
        Set task progress.

        Args:
            name: Task name
            completed: Percentage completed
            description: New description
        """
        if name not in self.tasks:
            return

        kwargs: Dict[str, Any] = {"completed": completed}
        if description:
            kwargs["description"] = description
        self.progress.update(self.tasks[name], **kwargs)

    def complete_task(self, name: str, message: Optional[str] = None):
        """
        Mark task as complete.

        Args:
            name: Task name
            message: Completion message
        """
        if name not in self.tasks:
            return

        task_id = self.tasks[name]
        if message:
            self.progress.update(task_id, description=f"✓ {message}")
        self.progress.update(task_id, completed=100)

        logger.info("rich_progress.task.completed", name=name)

    def progress_callback(self, task_name: str) -> Callable[[int, str], None]:
        """
        Build an on_progress callable for the comparator.

        Args:
            task_name: Task identifier shown next to the bar

        Returns:
            on_progress(percent, phase)
        """
        def on_progress(percent: int, phase: str):
            if task_name not in self.tasks:
                self.add_task(task_name, f"{task_name}: {phase}")
            self.update_task(task_name, percent, f"{task_name}: {phase}")
            if percent >= 100:
                self.complete_task(task_name, f"{task_name}: {phase}")

        return on_progress

    def show_comparison_results(self, summary: Dict[str, Any]):
        """
        Display comparison results in a formatted table.

        Args:
            summary: ComparisonResult.summary() output
        """
        table = Table(title="Comparison Results", box=box.ROUNDED)

        table.add_column("Metric", style="cyan", no_wrap=True)
        table.add_column("Value", style="magenta")
        table.add_column("Percentage", style="green")

        total_first = summary.get("total_first", 0)
        total_second = summary.get("total_second", 0)

        metrics = [
            ("Rows in First", total_first, None),
            ("Rows in Second", total_second, None),
            ("Matches", summary.get("matches", 0), summary.get("match_rate", 0)),
            ("Mismatches", summary.get("mismatches", 0),
             summary.get("difference_rate", 0)),
            ("Unique to First", summary.get("unique_to_first", 0),
             (100 * summary.get("unique_to_first", 0) / total_first)
             if total_first else 0),
            ("Unique to Second", summary.get("unique_to_second", 0),
             (100 * summary.get("unique_to_second", 0) / total_second)
             if total_second else 0),
        ]

        for metric, value, percentage in metrics:
            if percentage is not None:
                table.add_row(metric, f"{value:,}", f"{percentage:.1f}%")
            else:
                table.add_row(metric, f"{value:,}", "—")

        self.console.print()
        self.console.print(table)
        self.console.print()

    def show_metrics(self, metrics: Dict[str, Any]):
        """
        Display performance metrics.

        Args:
            metrics: Flat metrics dictionary
        """
        table = Table(title="Performance Metrics", box=box.SIMPLE)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="magenta")

        for key, value in metrics.items():
            if isinstance(value, float):
                table.add_row(key, f"{value:.2f}")
            elif isinstance(value, int):
                table.add_row(key, f"{value:,}")
            else:
                table.add_row(key, str(value))

        self.console.print(table)

    def show_history(self, summary: Dict[str, Any], records: List[Any]):
        """
        Display stored comparison runs, newest first.

        Args:
            summary: ComparisonHistory.summary() output
            records: ComparisonRecord list
        """
        table = Table(title="Comparison History", box=box.ROUNDED)
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("When", style="cyan")
        table.add_column("First")
        table.add_column("Second")
        table.add_column("Matches", style="green", justify="right")
        table.add_column("Mismatches", style="red", justify="right")
        table.add_column("Unique", justify="right")
        table.add_column("Seconds", justify="right")

        for record in records:
            table.add_row(
                record.id,
                record.timestamp.strftime("%Y-%m-%d %H:%M"),
                record.source_label1,
                record.source_label2,
                f"{record.matches:,}",
                f"{record.mismatches:,}",
                f"{record.unique_to_first + record.unique_to_second:,}",
                f"{record.processing_seconds:.2f}",
            )

        self.console.print(table)
        self.console.print(
            f"Comparisons: {summary['total_comparisons']:,}  "
            f"Rows processed: {summary['total_rows_processed']:,}  "
            f"Average time: {summary['average_processing_seconds']:.2f}s"
        )

    def error(self, message: str, details: Optional[Dict] = None):
        """
        Display error message.

        Args:
            message: Error message
            details: Additional error details
        """
        error_text = Text(f"✗ {message}", style="bold red")

        if details:
            self.console.print(Panel(error_text, title="Error",
                                     border_style="red", expand=False))
            for key, value in details.items():
                self.console.print(f"  {key}: {value}", style="dim")
        else:
            self.console.print(error_text)

    def warning(self, message: str):
        self.console.print(f"⚠ {message}", style="yellow")

    def info(self, message: str):
        self.console.print(f"✓ {message}", style="green")

    def stop(self):
        """Stop progress monitoring and show elapsed time."""
        if self.progress:
            self.progress.stop()
            self.progress = None
            self.tasks = {}

        if self.start_time:
            elapsed = datetime.now() - self.start_time
            self.console.print()
            self.console.print(Panel(
                Text(f"Completed in {elapsed.total_seconds():.1f} seconds",
                     justify="center", style="bold green"),
                box=box.DOUBLE,
                style="green"
            ))
            self.start_time = None

    @contextmanager
    def task(self, task_name: str):
        """
        Context manager yielding an on_progress callable for task_name.

        Example:
            with monitor.task("orders") as on_progress:
                compare(a, b, ["id"], on_progress=on_progress)
        """
        on_progress = self.progress_callback(task_name)
        try:
            yield on_progress
        except Exception as e:
            self.error(f"Task {task_name} failed: {e}")
            raise
