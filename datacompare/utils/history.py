"""
Comparison history.
Single responsibility: keep a bounded JSON log of past comparison runs.
"""

import json
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from ..core.comparator import ComparisonResult
from .logger import get_logger


logger = get_logger()


# Flat record fields written by ComparisonHistory.export_csv
CSV_COLUMNS = [
    "id", "timestamp", "source_label1", "source_label2",
    "rows1", "rows2", "original_rows1", "original_rows2",
    "columns", "compare_columns",
    "matches", "mismatches", "unique_to_first", "unique_to_second",
    "processing_seconds",
]


@dataclass
class ComparisonRecord:
    """One finished comparison, with a capped sample of each partition."""

    id: str
    timestamp: datetime
    source_label1: str
    source_label2: str
    rows1: int
    rows2: int
    original_rows1: int
    original_rows2: int
    columns: List[str]
    matches: int
    mismatches: int
    unique_to_first: int
    unique_to_second: int
    processing_seconds: float = 0.0
    compare_columns: List[str] = field(default_factory=list)
    detailed_results: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    @classmethod
    def from_result(cls, result: ComparisonResult, duration_seconds: float = 0.0,
                    sample_rows: int = 100) -> "ComparisonRecord":
        """Build a record from a finished result."""
        now = datetime.now()
        counts = result.counts()
        return cls(
            id=f"{now:%Y%m%d%H%M%S}-{uuid.uuid4().hex[:6]}",
            timestamp=now,
            source_label1=result.source_label1,
            source_label2=result.source_label2,
            rows1=result.valid_first,
            rows2=result.valid_second,
            original_rows1=result.total_first,
            original_rows2=result.total_second,
            columns=list(result.key_columns),
            matches=counts["matches"],
            mismatches=counts["mismatches"],
            unique_to_first=counts["unique_to_first"],
            unique_to_second=counts["unique_to_second"],
            processing_seconds=round(duration_seconds, 3),
            compare_columns=list(result.compare_columns),
            detailed_results={
                name: [dict(row) for row in rows[:sample_rows]]
                for name, rows in result.partitions().items()
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComparisonRecord":
        data = dict(data)
        data["timestamp"] = datetime.fromisoformat(data["timestamp"])
        return cls(**data)


class ComparisonHistory:
    """
    Newest-first history of comparison runs stored in a JSON file.

    Failing to write history never fails the comparison that produced it.
    """

    def __init__(self, history_file: Path, limit: int = 50,
                 sample_rows: int = 100):
        """
        Args:
            history_file: JSON file holding the history
            limit: Records kept, newest first
            sample_rows: Rows kept per partition in each record
        """
        self.history_file = Path(history_file)
        self.limit = limit
        self.sample_rows = sample_rows

    def load(self) -> List[ComparisonRecord]:
        """
        Load stored records, newest first.

        Returns:
            Records, or an empty list when the file is missing or unreadable
        """
        if not self.history_file.exists():
            return []

        try:
            with open(self.history_file, "r", encoding="utf-8") as f:
                raw = json.load(f)
            return [ComparisonRecord.from_dict(item) for item in raw]
        except (OSError, ValueError, TypeError, KeyError) as e:
            logger.error("history.load_failed",
                        file=str(self.history_file),
                        error=str(e))
            return []

    def _save(self, records: List[ComparisonRecord]):
        self.history_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.history_file, "w", encoding="utf-8") as f:
            json.dump([r.to_dict() for r in records], f, indent=2, default=str)

    def record(self, result: ComparisonResult,
               duration_seconds: float = 0.0) -> Optional[ComparisonRecord]:
        """
        Prepend a record for result and trim the history to the limit.

        Args:
            result: Finished comparison result
            duration_seconds: How long the comparison took

        Returns:
            The stored record, or None when it could not be written
        """
        entry = ComparisonRecord.from_result(result, duration_seconds,
                                             self.sample_rows)
        records = [entry] + self.load()
        records = records[:self.limit]

        try:
            self._save(records)
        except OSError as e:
            logger.warning("history.save_failed",
                          file=str(self.history_file),
                          error=str(e))
            return None

        logger.debug("history.recorded",
                    file=str(self.history_file),
                    id=entry.id,
                    records=len(records))
        return entry

    def remove(self, record_id: str) -> bool:
        """
        Delete one record by id.

        Args:
            record_id: Id of the record to delete

        Returns:
            True if a record was removed
        """
        records = self.load()
        kept = [r for r in records if r.id != record_id]
        if len(kept) == len(records):
            logger.warning("history.record_not_found", id=record_id)
            return False

        self._save(kept)
        logger.info("history.record_removed", id=record_id, records=len(kept))
        return True

    def summary(self, records: Optional[List[ComparisonRecord]] = None) -> Dict[str, Any]:
        """
        Aggregate statistics over stored runs.

        Args:
            records: Records to summarize (defaults to the stored history)

        Returns:
            Dictionary with total_comparisons, total_rows_processed and
            average_processing_seconds
        """
        if records is None:
            records = self.load()

        total = len(records)
        average = 0.0
        if total > 0:
            average = round(sum(r.processing_seconds for r in records) / total, 3)

        return {
            "total_comparisons": total,
            "total_rows_processed": sum(r.rows1 + r.rows2 for r in records),
            "average_processing_seconds": average,
        }

    def export_csv(self, output_path: Path) -> Path:
        """
        Write one CSV line per stored run, without the row samples.

        Args:
            output_path: Target CSV file

        Returns:
            Path written
        """
        output_path = Path(output_path)
        rows = []
        for record in self.load():
            row = record.to_dict()
            row["columns"] = ", ".join(record.columns)
            row["compare_columns"] = ", ".join(record.compare_columns)
            rows.append(row)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        pd.DataFrame(rows, columns=CSV_COLUMNS).to_csv(output_path, index=False)

        logger.info("history.exported", file=str(output_path), records=len(rows))
        return output_path

    def clear(self):
        """Remove the history file."""
        if self.history_file.exists():
            self.history_file.unlink()
            logger.info("history.cleared", file=str(self.history_file))
