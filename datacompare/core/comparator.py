"""
Core record comparison logic.
Single responsibility: partition two datasets into matches, mismatches and
rows unique to each side with a linear-time hash join.
"""

import math
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generator, List, Optional, Sequence, Tuple

from ..utils.logger import get_logger
from .keys import CompositeKeyBuilder
from .rows import Dataset, Row, as_dataset, column_overlap, to_text


logger = get_logger()


SOURCE_FIELD = "_source"
DIFFERENCES_FIELD = "_differences"

PHASE_START = "Starting comparison..."
PHASE_BUILD = "Building lookup table..."
PHASE_PROBE = "Comparing records..."
PHASE_UNIQUE = "Finding unique records..."
PHASE_COMPLETE = "Complete!"

# Probe progress is spread over [PROBE_START, PROBE_END]
PROBE_START = 60
PROBE_END = 85

DEFAULT_PROGRESS_INTERVAL = 1000
DEFAULT_LARGE_DATASET_THRESHOLD = 100_000

ProgressCallback = Callable[[int, str], None]


class ComparisonError(Exception):
    """Base exception for comparison failures."""
    pass


class InvalidInput(ComparisonError):
    """Raised when the comparison cannot start, e.g. no key columns selected."""
    pass


class ComparisonCancelled(ComparisonError):
    """Raised when a run is cancelled; no partial result exists."""
    pass


@dataclass(frozen=True)
class ProgressEvent:
    """Progress tick: monotonic percentage in [0, 100] and a phase label."""

    percent: int
    phase: str


class CancellationToken:
    """
    Cooperative cancellation flag shared between a caller and a run.
    Runs only look at it between progress ticks.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class ComparisonResult:
    """Four-way partition produced by one comparison run."""

    matches: Tuple[Dict[str, Any], ...] = ()
    mismatches: Tuple[Dict[str, Any], ...] = ()
    unique_to_first: Tuple[Dict[str, Any], ...] = ()
    unique_to_second: Tuple[Dict[str, Any], ...] = ()
    key_columns: Tuple[str, ...] = ()
    compare_columns: Tuple[str, ...] = ()
    source_label1: str = ""
    source_label2: str = ""
    total_first: int = 0
    total_second: int = 0
    valid_first: int = 0
    valid_second: int = 0

    @classmethod
    def empty(cls, key_columns: Sequence[str] = (),
              compare_columns: Sequence[str] = (),
              source_label1: str = "", source_label2: str = "",
              total_first: int = 0, total_second: int = 0) -> "ComparisonResult":
        """Result with all four partitions empty."""
        return cls(
            key_columns=tuple(key_columns),
            compare_columns=tuple(compare_columns),
            source_label1=source_label1,
            source_label2=source_label2,
            total_first=total_first,
            total_second=total_second,
        )

    def partitions(self) -> Dict[str, Tuple[Dict[str, Any], ...]]:
        """Partitions keyed by name, in display order."""
        return {
            "matches": self.matches,
            "mismatches": self.mismatches,
            "unique_to_first": self.unique_to_first,
            "unique_to_second": self.unique_to_second,
        }

    def counts(self) -> Dict[str, int]:
        """Row count per partition."""
        return {name: len(rows) for name, rows in self.partitions().items()}

    @property
    def total_rows(self) -> int:
        """Rows across all four partitions."""
        return sum(self.counts().values())

    @property
    def is_empty(self) -> bool:
        return self.total_rows == 0

    def summary(self) -> Dict[str, Any]:
        """
        Summary statistics.

        Returns:
            Dictionary with counts, match rate, per-side coverage and
            difference rate (percentages rounded to two places)
        """
        counts = self.counts()
        paired = counts["matches"] + counts["mismatches"]
        total_unique = self.valid_first + self.valid_second - paired

        match_rate = 0
        if total_unique > 0:
            match_rate = round(100 * counts["matches"] / total_unique, 2)

        return {
            **counts,
            "source_label1": self.source_label1,
            "source_label2": self.source_label2,
            "key_columns": list(self.key_columns),
            "compare_columns": list(self.compare_columns),
            "total_first": self.total_first,
            "total_second": self.total_second,
            "valid_first": self.valid_first,
            "valid_second": self.valid_second,
            "match_rate": match_rate,
            "total_unique_records": total_unique,
            "first_coverage": round(
                100 * (paired / self.valid_first)
                if self.valid_first > 0 else 0, 2
            ),
            "second_coverage": round(
                100 * (paired / self.valid_second)
                if self.valid_second > 0 else 0, 2
            ),
            "difference_rate": round(
                100 * (counts["mismatches"] / paired)
                if paired > 0 else 0, 2
            ),
        }


def _validate_columns(columns: Any, what: str) -> List[str]:
    """
    Check a column list is non-empty, made of names, and free of duplicates.

    Raises:
        InvalidInput: If the list is unusable
    """
    if columns is None or isinstance(columns, str):
        raise InvalidInput(
            f"{what} must be a list of column names. "
            "Suggestion: select one or more columns to compare."
        )
    columns = list(columns)
    if not columns:
        raise InvalidInput(
            f"No {what} selected. "
            "Suggestion: select one or more columns to compare."
        )
    for col in columns:
        if not isinstance(col, str) or not col:
            raise InvalidInput(f"Invalid column name in {what}: {col!r}")
    duplicates = sorted({col for col in columns if columns.count(col) > 1})
    if duplicates:
        raise InvalidInput(f"Duplicate column(s) in {what}: {duplicates}")
    return columns


def run_inline(steps: Generator[ProgressEvent, None, "ComparisonResult"],
               on_progress: Optional[ProgressCallback] = None) -> "ComparisonResult":
    """
    Drive a step generator to completion on the calling thread.

    Args:
        steps: Generator from DataComparator.iter_compare
        on_progress: Optional callback receiving (percent, phase)

    Returns:
        The generator's result
    """
    while True:
        try:
            event = next(steps)
        except StopIteration as stop:
            return stop.value
        if on_progress is not None:
            on_progress(event.percent, event.phase)


def _decorate(row: Row, label: str,
              differences: Optional[List[str]] = None) -> Dict[str, Any]:
    """Copy of row annotated with its source and, for mismatches, differences."""
    out = dict(row)
    out[SOURCE_FIELD] = label
    if differences is not None:
        out[DIFFERENCES_FIELD] = differences
    return out


@dataclass
class _ComparisonRun:
    """Validated inputs of one run."""

    dataset1: Dataset
    dataset2: Dataset
    key_columns: List[str]
    compare_columns: List[str]
    label1: str
    label2: str
    keys: CompositeKeyBuilder = field(init=False)

    def __post_init__(self):
        self.keys = CompositeKeyBuilder(self.key_columns)


class DataComparator:
    """
    Compare two datasets record by record.

    The algorithm is written once, as a generator yielding ProgressEvent
    ticks and returning the ComparisonResult. compare() drives it inline;
    datacompare.core.execution drives it cooperatively or on a worker.
    """

    def __init__(self, progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
                 large_dataset_threshold: int = DEFAULT_LARGE_DATASET_THRESHOLD):
        """
        Initialize comparator.

        Args:
            progress_interval: Minimum probed rows between progress ticks
            large_dataset_threshold: Row count above which a warning is logged
        """
        if progress_interval < 1:
            raise ValueError("progress_interval must be at least 1")
        self.progress_interval = progress_interval
        self.large_dataset_threshold = large_dataset_threshold

    def compare(self, dataset1: Any, dataset2: Any,
                key_columns: Sequence[str],
                source_label1: Optional[str] = None,
                source_label2: Optional[str] = None,
                compare_columns: Optional[Sequence[str]] = None,
                on_progress: Optional[ProgressCallback] = None,
                cancel_token: Optional[CancellationToken] = None) -> ComparisonResult:
        """
        Compare two datasets on the calling thread.

        Args:
            dataset1: First Dataset or sequence of rows
            dataset2: Second Dataset or sequence of rows
            key_columns: Ordered join key columns
            source_label1: Label for rows from dataset1 (defaults to its name)
            source_label2: Label for rows from dataset2 (defaults to its name)
            compare_columns: Columns checked for equality (defaults to key_columns)
            on_progress: Optional callback receiving (percent, phase)
            cancel_token: Optional cancellation token

        Returns:
            Comparison result

        Raises:
            InvalidInput: If key_columns is empty or malformed
            ComparisonCancelled: If cancel_token was triggered
        """
        steps = self.iter_compare(
            dataset1, dataset2, key_columns,
            source_label1=source_label1,
            source_label2=source_label2,
            compare_columns=compare_columns,
            cancel_token=cancel_token,
        )
        return run_inline(steps, on_progress)

    def iter_compare(self, dataset1: Any, dataset2: Any,
                     key_columns: Sequence[str],
                     source_label1: Optional[str] = None,
                     source_label2: Optional[str] = None,
                     compare_columns: Optional[Sequence[str]] = None,
                     cancel_token: Optional[CancellationToken] = None
                     ) -> Generator[ProgressEvent, None, ComparisonResult]:
        """
        Validate inputs and return the comparison as a step generator.

        Input errors are raised here, before any step runs. The generator
        yields ProgressEvent ticks; its return value is the result.

        Raises:
            InvalidInput: If key_columns or compare_columns are malformed
        """
        run = self.prepare(dataset1, dataset2, key_columns,
                           source_label1, source_label2, compare_columns)
        return self._steps(run, cancel_token)

    def prepare(self, dataset1: Any, dataset2: Any,
                key_columns: Sequence[str],
                source_label1: Optional[str] = None,
                source_label2: Optional[str] = None,
                compare_columns: Optional[Sequence[str]] = None) -> _ComparisonRun:
        """Validate arguments and resolve labels and column lists."""
        key_columns = _validate_columns(key_columns, "key columns")
        if compare_columns:
            compare_columns = _validate_columns(compare_columns, "compare columns")
        else:
            compare_columns = list(key_columns)

        dataset1 = as_dataset(dataset1, "Dataset 1")
        dataset2 = as_dataset(dataset2, "Dataset 2")

        return _ComparisonRun(
            dataset1=dataset1,
            dataset2=dataset2,
            key_columns=key_columns,
            compare_columns=compare_columns,
            label1=source_label1 if source_label1 is not None else dataset1.name,
            label2=source_label2 if source_label2 is not None else dataset2.name,
        )

    def _check_cancelled(self, cancel_token: Optional[CancellationToken],
                         phase: str):
        if cancel_token is not None and cancel_token.is_cancelled:
            logger.info("comparator.cancelled", phase=phase)
            raise ComparisonCancelled(f"Comparison cancelled during: {phase}")

    def _tick(self, percent: int, phase: str,
              cancel_token: Optional[CancellationToken]) -> ProgressEvent:
        self._check_cancelled(cancel_token, phase)
        return ProgressEvent(percent=percent, phase=phase)

    def _probe_interval(self, total: int) -> int:
        """Rows between probe ticks: progress_interval or 1% of total, whichever is coarser."""
        return max(self.progress_interval, math.ceil(total / 100))

    def _steps(self, run: _ComparisonRun,
               cancel_token: Optional[CancellationToken]
               ) -> Generator[ProgressEvent, None, ComparisonResult]:
        """The hash join, one generator step per progress tick."""
        dataset1, dataset2 = run.dataset1, run.dataset2

        logger.info("comparator.starting",
                   first=run.label1,
                   second=run.label2,
                   first_rows=len(dataset1),
                   second_rows=len(dataset2),
                   key_columns=run.key_columns)

        if dataset1.is_empty or dataset2.is_empty:
            logger.warning("comparator.empty_dataset",
                          first_rows=len(dataset1),
                          second_rows=len(dataset2))
            return ComparisonResult.empty(
                key_columns=run.key_columns,
                compare_columns=run.compare_columns,
                source_label1=run.label1,
                source_label2=run.label2,
                total_first=len(dataset1),
                total_second=len(dataset2),
            )

        if max(len(dataset1), len(dataset2)) > self.large_dataset_threshold:
            logger.warning("comparator.large_dataset",
                          first_rows=len(dataset1),
                          second_rows=len(dataset2),
                          threshold=self.large_dataset_threshold)

        common, _, _ = column_overlap(dataset1, dataset2)
        missing = [col for col in run.key_columns if col not in common]
        if missing:
            logger.warning("comparator.key_columns_not_common",
                          missing=missing,
                          common_columns=common)

        yield self._tick(10, PHASE_START, cancel_token)

        # Build: composite key -> row over valid dataset-2 rows
        yield self._tick(30, PHASE_BUILD, cancel_token)
        valid_second: List[Tuple[str, Row]] = []
        lookup: Dict[str, Row] = {}
        for row in dataset2:
            key = run.keys.valid_key(row)
            if key is None:
                continue
            valid_second.append((key, row))
            lookup[key] = row

        valid_first: List[Tuple[str, Row]] = []
        for row in dataset1:
            key = run.keys.valid_key(row)
            if key is not None:
                valid_first.append((key, row))

        logger.debug("comparator.filtered",
                    first_rows=len(dataset1),
                    first_valid=len(valid_first),
                    second_rows=len(dataset2),
                    second_valid=len(valid_second),
                    distinct_second_keys=len(lookup))

        # Probe
        yield self._tick(PROBE_START, PHASE_PROBE, cancel_token)
        matches: List[Dict[str, Any]] = []
        mismatches: List[Dict[str, Any]] = []
        unique_to_first: List[Dict[str, Any]] = []
        seen_first = set()

        total = len(valid_first)
        interval = self._probe_interval(total)
        last_percent = PROBE_START

        for processed, (key, row1) in enumerate(valid_first, start=1):
            seen_first.add(key)
            row2 = lookup.get(key)

            if row2 is None:
                unique_to_first.append(_decorate(row1, run.label1))
            else:
                differences = [
                    col for col in run.compare_columns
                    if to_text(row1.get(col)) != to_text(row2.get(col))
                ]
                if differences:
                    mismatches.append(_decorate(row1, run.label1, differences))
                else:
                    matches.append(_decorate(row1, run.label1))

            if processed % interval == 0 or processed == total:
                percent = PROBE_START + round(
                    (processed / total) * (PROBE_END - PROBE_START))
                last_percent = max(last_percent, percent)
                yield self._tick(last_percent,
                                 f"{PHASE_PROBE} {processed}/{total}",
                                 cancel_token)

        # Second pass over dataset 2
        yield self._tick(PROBE_END, PHASE_UNIQUE, cancel_token)
        unique_to_second = [
            _decorate(row2, run.label2)
            for key, row2 in valid_second
            if key not in seen_first
        ]

        result = ComparisonResult(
            matches=tuple(matches),
            mismatches=tuple(mismatches),
            unique_to_first=tuple(unique_to_first),
            unique_to_second=tuple(unique_to_second),
            key_columns=tuple(run.key_columns),
            compare_columns=tuple(run.compare_columns),
            source_label1=run.label1,
            source_label2=run.label2,
            total_first=len(dataset1),
            total_second=len(dataset2),
            valid_first=len(valid_first),
            valid_second=len(valid_second),
        )

        yield self._tick(100, PHASE_COMPLETE, cancel_token)

        logger.info("comparator.complete",
                   matches=len(result.matches),
                   mismatches=len(result.mismatches),
                   unique_to_first=len(result.unique_to_first),
                   unique_to_second=len(result.unique_to_second))

        return result


def compare(dataset1: Any, dataset2: Any, key_columns: Sequence[str],
            source_label1: Optional[str] = None,
            source_label2: Optional[str] = None,
            compare_columns: Optional[Sequence[str]] = None,
            on_progress: Optional[ProgressCallback] = None,
            cancel_token: Optional[CancellationToken] = None) -> ComparisonResult:
    """
    Compare two datasets with a default DataComparator.

    See DataComparator.compare for arguments.
    """
    return DataComparator().compare(
        dataset1, dataset2, key_columns,
        source_label1=source_label1,
        source_label2=source_label2,
        compare_columns=compare_columns,
        on_progress=on_progress,
        cancel_token=cancel_token,
    )
