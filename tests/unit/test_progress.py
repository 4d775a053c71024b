"""
Unit tests for the console and Rich progress monitors.
"""

import io
import sys
from pathlib import Path

from rich.console import Console

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from datacompare.core.comparator import compare
from datacompare.ui.progress import ProgressMonitor, get_progress_monitor
from datacompare.ui.rich_progress import RichProgressMonitor
from datacompare.utils.history import ComparisonRecord


class TestProgressMonitor:

    def setup_method(self):
        self.stream = io.StringIO()
        self.monitor = ProgressMonitor(verbose=True, stream=self.stream)

    def test_callback_starts_and_completes_task(self):
        on_progress = self.monitor.progress_callback("orders")
        compare([{"id": 1}], [{"id": 1}], ["id"], on_progress=on_progress)

        out = self.stream.getvalue()
        assert "[START] orders" in out
        assert "Building lookup table..." in out
        assert "[100%] Complete!" in out
        assert "[DONE] orders" in out
        assert self.monitor.current_task is None

    def test_quiet_monitor_prints_nothing(self):
        monitor = ProgressMonitor(verbose=False, stream=self.stream)
        monitor.progress_callback("orders")(50, "halfway")
        monitor.info("hello")
        assert self.stream.getvalue() == ""

    def test_show_comparison_results(self):
        result = compare([{"id": 1}, {"id": 2}], [{"id": 1}], ["id"])
        self.monitor.show_comparison_results(result.summary())

        out = self.stream.getvalue()
        assert "Matches: 1" in out
        assert "Unique to first: 1" in out
        assert "Match rate: 50.0%" in out

    def test_show_history(self):
        record = ComparisonRecord.from_result(
            compare([{"id": 1}], [{"id": 1}], ["id"], source_label1="a.csv",
                    source_label2="b.csv"),
            duration_seconds=2.0,
        )
        self.monitor.show_history(
            {"total_comparisons": 1, "total_rows_processed": 2,
             "average_processing_seconds": 2.0},
            [record],
        )

        out = self.stream.getvalue()
        assert "Comparisons: 1" in out
        assert "Average time: 2.0s" in out
        assert f"{record.id}" in out
        assert "a.csv vs b.csv" in out

    def test_task_context(self):
        with self.monitor.task("export") as monitor:
            monitor.update(40, "writing")
        out = self.stream.getvalue()
        assert "[START] export" in out
        assert "[ 40%] writing" in out
        assert "[DONE] export" in out

    def test_format_time(self):
        assert self.monitor._format_time(5) == "5.0s"
        assert self.monitor._format_time(90) == "1.5m"
        assert self.monitor._format_time(5400) == "1.5h"

    def test_errors_go_to_stderr(self, capsys):
        self.monitor.error("broken")
        assert "[ERROR] broken" in capsys.readouterr().err


class TestRichProgressMonitor:

    def setup_method(self):
        self.output = io.StringIO()
        self.monitor = RichProgressMonitor(
            console=Console(file=self.output, force_terminal=False, width=120)
        )

    def test_callback_drives_task_to_completion(self):
        on_progress = self.monitor.progress_callback("orders")
        compare([{"id": 1}], [{"id": 2}], ["id"], on_progress=on_progress)

        task = self.monitor.progress.tasks[self.monitor.tasks["orders"]]
        assert task.completed == 100
        self.monitor.stop()
        assert self.monitor.progress is None
        assert "Completed in" in self.output.getvalue()

    def test_show_comparison_results(self):
        result = compare([{"id": 1}, {"id": 2}], [{"id": 1}, {"id": 3}], ["id"])
        self.monitor.show_comparison_results(result.summary())

        out = self.output.getvalue()
        assert "Comparison Results" in out
        assert "Unique to Second" in out
        assert "33.3%" in out

    def test_show_metrics(self):
        self.monitor.show_metrics({"rows": 1200, "seconds": 1.5, "name": "x"})
        out = self.output.getvalue()
        assert "1,200" in out
        assert "1.50" in out

    def test_show_history(self):
        record = ComparisonRecord.from_result(
            compare([{"id": 1}], [{"id": 2}], ["id"], source_label1="a.csv",
                    source_label2="b.csv"),
        )
        self.monitor.show_history(
            {"total_comparisons": 1, "total_rows_processed": 1234,
             "average_processing_seconds": 0.5},
            [record],
        )

        out = self.output.getvalue()
        assert "Comparison History" in out
        assert "a.csv" in out
        assert "Rows processed: 1,234" in out
        assert "Average time: 0.50s" in out

    def test_update_unknown_task_is_ignored(self):
        self.monitor.update_task("missing", 50)
        self.monitor.complete_task("missing")
        assert self.monitor.tasks == {}


class TestGetProgressMonitor:

    def test_plain(self):
        assert isinstance(get_progress_monitor(use_rich=False), ProgressMonitor)

    def test_rich(self):
        assert isinstance(get_progress_monitor(use_rich=True), RichProgressMonitor)
