"""
Comparison result export.
Single responsibility: write result partitions to Excel workbooks or CSV files.
"""

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import pandas as pd

from ..core.comparator import ComparisonResult, DIFFERENCES_FIELD, SOURCE_FIELD
from ..utils.logger import get_logger


logger = get_logger()


MAX_SHEET_NAME_LENGTH = 31
DEFAULT_MAX_ROWS_PER_SHEET = 100_000
MAX_COLUMN_WIDTH = 30
MIN_COLUMN_WIDTH = 10

PARTITION_SHEETS = [
    ("matches", "Matches"),
    ("mismatches", "Mismatches"),
    ("unique_to_first", "Unique to First"),
    ("unique_to_second", "Unique to Second"),
]


class NothingToExportError(Exception):
    """Raised when every partition of a result is empty."""
    pass


def default_export_name(today: Optional[date] = None) -> str:
    """Default export base name, e.g. comparison-results-2024-05-01."""
    today = today or date.today()
    return f"comparison-results-{today.isoformat()}"


class SheetNamer:
    """
    Hand out unique worksheet names within the 31 character limit.
    Collisions get a _1, _2, ... suffix.
    """

    def __init__(self):
        self.used: Set[str] = set()

    def unique(self, base_name: str) -> str:
        name = base_name[:MAX_SHEET_NAME_LENGTH]
        counter = 1
        while name in self.used:
            suffix = f"_{counter}"
            name = base_name[:MAX_SHEET_NAME_LENGTH - len(suffix)] + suffix
            counter += 1
        self.used.add(name)
        return name


def chunk_rows(rows: Sequence[Any], chunk_size: int) -> List[Sequence[Any]]:
    """Split rows into consecutive chunks of at most chunk_size."""
    return [rows[i:i + chunk_size] for i in range(0, len(rows), chunk_size)]


def rows_to_frame(rows: Sequence[Dict[str, Any]]) -> pd.DataFrame:
    """
    Build a DataFrame from result rows.

    Columns are the union of row keys in first-seen order with _source and
    _differences last; difference lists become comma separated text.
    """
    columns: List[str] = []
    seen = set()
    for row in rows:
        for col in row:
            if col not in seen:
                seen.add(col)
                columns.append(col)
    trailing = [col for col in (SOURCE_FIELD, DIFFERENCES_FIELD) if col in seen]
    columns = [col for col in columns if col not in trailing] + trailing

    df = pd.DataFrame.from_records(list(rows), columns=columns)
    if DIFFERENCES_FIELD in df.columns:
        df[DIFFERENCES_FIELD] = df[DIFFERENCES_FIELD].map(
            lambda value: ", ".join(value) if isinstance(value, (list, tuple)) else value
        )
    return df


class ResultExporter:
    """
    Export a ComparisonResult.
    """

    def __init__(self, max_rows_per_sheet: int = DEFAULT_MAX_ROWS_PER_SHEET):
        """
        Args:
            max_rows_per_sheet: Partitions above this size are split across sheets
        """
        if max_rows_per_sheet < 1:
            raise ValueError("max_rows_per_sheet must be at least 1")
        self.max_rows_per_sheet = max_rows_per_sheet

    def _non_empty_partitions(self, result: ComparisonResult) -> List[Tuple[str, str, Sequence[Dict[str, Any]]]]:
        partitions = result.partitions()
        sheets = [
            (key, title, partitions[key])
            for key, title in PARTITION_SHEETS
            if len(partitions[key]) > 0
        ]
        if not sheets:
            raise NothingToExportError(
                "No data to export. Run a comparison that produces results first."
            )
        return sheets

    def plan_sheets(self, result: ComparisonResult) -> List[Tuple[str, Sequence[Dict[str, Any]]]]:
        """
        Work out worksheet names and the rows each one holds.

        Returns:
            (sheet name, rows) pairs in write order, Summary excluded

        Raises:
            NothingToExportError: If every partition is empty
        """
        namer = SheetNamer()
        namer.unique("Summary")
        plan = []
        for _, title, rows in self._non_empty_partitions(result):
            chunks = chunk_rows(rows, self.max_rows_per_sheet)
            for index, chunk in enumerate(chunks):
                base = f"{title}_{index + 1}" if len(chunks) > 1 else title
                plan.append((namer.unique(base), chunk))
        return plan

    def _summary_frame(self, result: ComparisonResult) -> pd.DataFrame:
        summary = result.summary()
        metrics = [
            ["first_source", result.source_label1],
            ["second_source", result.source_label2],
            ["key_columns", ", ".join(result.key_columns)],
            ["compare_columns", ", ".join(result.compare_columns)],
            ["rows_first", result.total_first],
            ["rows_second", result.total_second],
            ["valid_rows_first", result.valid_first],
            ["valid_rows_second", result.valid_second],
            ["matches", summary["matches"]],
            ["mismatches", summary["mismatches"]],
            ["unique_to_first", summary["unique_to_first"]],
            ["unique_to_second", summary["unique_to_second"]],
            ["match_rate", summary["match_rate"]],
            ["difference_rate", summary["difference_rate"]],
            ["timestamp_utc", datetime.now(timezone.utc).isoformat()],
        ]
        return pd.DataFrame(metrics, columns=["Metric", "Value"])

    def _write_sheet(self, writer: pd.ExcelWriter, df: pd.DataFrame,
                     sheet_name: str, header_format):
        """Write df with a styled header row, frozen header and capped widths."""
        df.to_excel(writer, sheet_name=sheet_name, index=False,
                    header=False, startrow=1)
        ws = writer.sheets[sheet_name]
        ws.write_row(0, 0, [str(col) for col in df.columns], header_format)
        ws.freeze_panes(1, 0)

        nrows, ncols = df.shape
        if ncols:
            ws.autofilter(0, 0, max(nrows, 1), ncols - 1)
        for idx, col in enumerate(df.columns):
            width = min(max(len(str(col)) + 2, MIN_COLUMN_WIDTH), MAX_COLUMN_WIDTH)
            ws.set_column(idx, idx, width)

    def export_excel(self, result: ComparisonResult, output_path: Path) -> Path:
        """
        Write the result to an Excel workbook.

        Args:
            result: Comparison result
            output_path: Workbook path; .xlsx is appended when missing

        Returns:
            Path written

        Raises:
            NothingToExportError: If every partition is empty
        """
        output_path = Path(output_path)
        if output_path.suffix.lower() != ".xlsx":
            output_path = output_path.with_name(output_path.name + ".xlsx")
        output_path.parent.mkdir(parents=True, exist_ok=True)

        plan = self.plan_sheets(result)

        logger.info("exporter.excel.start",
                   file=str(output_path),
                   sheets=len(plan) + 1,
                   rows=result.total_rows)

        with pd.ExcelWriter(output_path, engine="xlsxwriter") as writer:
            header_format = writer.book.add_format({
                "bold": True,
                "bg_color": "#E0E0E0",
            })
            self._write_sheet(writer, self._summary_frame(result), "Summary", header_format)
            for sheet_name, rows in plan:
                self._write_sheet(writer, rows_to_frame(rows), sheet_name, header_format)
                logger.debug("exporter.excel.sheet_written",
                            sheet=sheet_name,
                            rows=len(rows))

        logger.info("exporter.excel.complete", file=str(output_path))
        return output_path

    def export_csv(self, result: ComparisonResult, output_dir: Path,
                   base_name: Optional[str] = None) -> Dict[str, Path]:
        """
        Write one CSV file per non-empty partition.

        Args:
            result: Comparison result
            output_dir: Target directory
            base_name: File name prefix (defaults to default_export_name())

        Returns:
            Partition name -> path written

        Raises:
            NothingToExportError: If every partition is empty
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        base_name = base_name or default_export_name()

        outputs: Dict[str, Path] = {}
        for key, _, rows in self._non_empty_partitions(result):
            path = output_dir / f"{base_name}__{key}.csv"
            rows_to_frame(rows).to_csv(path, index=False, encoding="utf-8")
            outputs[key] = path
            logger.info("exporter.csv.written", file=str(path), rows=len(rows))

        return outputs
