"""
Performance metrics collection.
Single responsibility: track and report performance metrics.
"""

import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import psutil

from .logger import get_logger


logger = get_logger()


@dataclass
class OperationMetrics:
    """Metrics for a single operation."""

    name: str
    start_time: float
    end_time: Optional[float] = None
    duration_seconds: Optional[float] = None
    rows_processed: int = 0
    memory_mb_start: float = 0
    memory_mb_end: float = 0
    success: bool = True
    error: Optional[str] = None


@dataclass
class RunMetrics:
    """Metrics for a whole run of comparisons."""

    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    total_duration_seconds: float = 0
    operations: List[OperationMetrics] = field(default_factory=list)
    memory_mb_peak: float = 0
    total_rows_processed: int = 0
    comparisons_completed: int = 0
    errors_encountered: int = 0


class MetricsCollector:
    """
    Collect and track performance metrics.
    """

    def __init__(self):
        self.run_metrics = RunMetrics()
        self.current_operations: Dict[str, OperationMetrics] = {}
        self.process = psutil.Process(os.getpid())

    def start_operation(self, name: str) -> None:
        """
        Start tracking an operation.

        Args:
            name: Operation name
        """
        memory_mb = self._get_memory_usage()
        self.current_operations[name] = OperationMetrics(
            name=name,
            start_time=time.time(),
            memory_mb_start=memory_mb
        )

        logger.debug("metrics.operation.start",
                    operation=name,
                    memory_mb=round(memory_mb, 2))

    def end_operation(self, name: str, rows_processed: int = 0,
                      success: bool = True,
                      error: Optional[str] = None) -> Optional[OperationMetrics]:
        """
        End tracking an operation.

        Args:
            name: Operation name
            rows_processed: Number of rows processed
            success: Whether operation succeeded
            error: Error message if failed

        Returns:
            The finished operation, or None if it was never started
        """
        if name not in self.current_operations:
            logger.warning("metrics.operation.not_found", operation=name)
            return None

        operation = self.current_operations.pop(name)
        operation.end_time = time.time()
        operation.duration_seconds = operation.end_time - operation.start_time
        operation.rows_processed = rows_processed
        operation.memory_mb_end = self._get_memory_usage()
        operation.success = success
        operation.error = error

        metrics = self.run_metrics
        metrics.operations.append(operation)
        metrics.total_rows_processed += rows_processed
        if not success:
            metrics.errors_encountered += 1
        metrics.memory_mb_peak = max(metrics.memory_mb_peak,
                                     operation.memory_mb_start,
                                     operation.memory_mb_end)

        logger.info("metrics.operation.end",
                   operation=name,
                   duration=round(operation.duration_seconds, 2),
                   rows=rows_processed,
                   memory_mb=round(operation.memory_mb_end, 2),
                   success=success)
        return operation

    def record_comparison(self, first: str, second: str,
                          matches: int, mismatches: int) -> None:
        """
        Record comparison completion.

        Args:
            first: First source label
            second: Second source label
            matches: Number of matched rows
            mismatches: Number of mismatched rows
        """
        self.run_metrics.comparisons_completed += 1

        logger.debug("metrics.comparison.recorded",
                    first=first,
                    second=second,
                    matches=matches,
                    mismatches=mismatches)

    def finalize(self) -> RunMetrics:
        """
        Finalize metrics collection.

        Returns:
            Final run metrics
        """
        metrics = self.run_metrics
        metrics.end_time = datetime.now()
        metrics.total_duration_seconds = (
            metrics.end_time - metrics.start_time
        ).total_seconds()

        logger.info("metrics.run.finalized",
                   duration=round(metrics.total_duration_seconds, 2),
                   comparisons=metrics.comparisons_completed,
                   rows=metrics.total_rows_processed,
                   memory_mb_peak=round(metrics.memory_mb_peak, 2),
                   errors=metrics.errors_encountered)

        return metrics

    def generate_report(self) -> Dict[str, Any]:
        """
        Generate metrics report.

        Returns:
            Flat summary plus the slowest operations
        """
        metrics = self.finalize()

        if metrics.total_duration_seconds > 0:
            rows_per_second = (
                metrics.total_rows_processed / metrics.total_duration_seconds
            )
        else:
            rows_per_second = 0

        slowest_ops = sorted(
            metrics.operations,
            key=lambda x: x.duration_seconds or 0,
            reverse=True
        )[:5]

        return {
            "summary": {
                "total_duration_seconds": round(metrics.total_duration_seconds, 2),
                "total_duration_formatted": self._format_duration(
                    metrics.total_duration_seconds
                ),
                "comparisons_completed": metrics.comparisons_completed,
                "total_rows_processed": metrics.total_rows_processed,
                "rows_per_second": round(rows_per_second, 0),
                "memory_mb_peak": round(metrics.memory_mb_peak, 2),
                "errors_encountered": metrics.errors_encountered
            },
            "slowest_operations": [
                {
                    "name": op.name,
                    "duration_seconds": round(op.duration_seconds or 0, 2),
                    "rows": op.rows_processed
                }
                for op in slowest_ops
            ],
        }

    def _get_memory_usage(self) -> float:
        """Resident memory of this process in MB."""
        return self.process.memory_info().rss / (1024 * 1024)

    def _format_duration(self, seconds: float) -> str:
        if seconds < 60:
            return f"{seconds:.1f} seconds"
        elif seconds < 3600:
            return f"{seconds / 60:.1f} minutes"
        return f"{seconds / 3600:.1f} hours"
