"""
Unit tests for ResultExporter.
"""

import sys
from datetime import date
from pathlib import Path

import pandas as pd
import pytest
from openpyxl import load_workbook

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from datacompare.core.comparator import ComparisonResult, compare
from datacompare.export.exporter import (
    NothingToExportError,
    ResultExporter,
    SheetNamer,
    chunk_rows,
    default_export_name,
    rows_to_frame,
)


def _result():
    return compare(
        [{"id": 1, "v": "a"}, {"id": 2, "v": "b"}, {"id": 3, "v": "c"}],
        [{"id": 1, "v": "a"}, {"id": 2, "v": "x"}, {"id": 4, "v": "d", "extra": 1}],
        ["id"], compare_columns=["id", "v"],
        source_label1="left.csv", source_label2="right.csv",
    )


class TestHelpers:

    def test_default_export_name(self):
        assert default_export_name(date(2024, 5, 1)) == "comparison-results-2024-05-01"
        assert default_export_name().startswith("comparison-results-")

    def test_sheet_names_truncated(self):
        namer = SheetNamer()
        name = namer.unique("x" * 40)
        assert name == "x" * 31

    def test_sheet_name_collisions_get_suffix(self):
        namer = SheetNamer()
        base = "y" * 40
        first = namer.unique(base)
        second = namer.unique(base)
        third = namer.unique(base)

        assert second == "y" * 29 + "_1"
        assert third == "y" * 29 + "_2"
        assert len({first, second, third}) == 3
        assert all(len(n) <= 31 for n in (first, second, third))

    def test_chunk_rows(self):
        assert chunk_rows([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert chunk_rows([], 2) == []

    def test_rows_to_frame_column_order(self):
        df = rows_to_frame([
            {"id": 1, "_source": "a", "v": 2, "_differences": ["v", "w"]},
            {"id": 2, "w": 3, "_source": "a", "_differences": ["w"]},
        ])

        assert list(df.columns) == ["id", "v", "w", "_source", "_differences"]
        assert df.loc[0, "_differences"] == "v, w"
        assert pd.isna(df.loc[1, "v"])

    def test_max_rows_must_be_positive(self):
        with pytest.raises(ValueError):
            ResultExporter(max_rows_per_sheet=0)


class TestExcelExport:

    def setup_method(self):
        self.exporter = ResultExporter()

    def test_workbook_sheets(self, tmp_path):
        path = self.exporter.export_excel(_result(), tmp_path / "report")

        assert path == tmp_path / "report.xlsx"
        wb = load_workbook(path)
        assert wb.sheetnames == [
            "Summary", "Matches", "Mismatches", "Unique to First", "Unique to Second"
        ]

        mismatches = wb["Mismatches"]
        header = [cell.value for cell in mismatches[1]]
        assert header == ["id", "v", "_source", "_differences"]
        assert [cell.value for cell in mismatches[2]] == [2, "b", "left.csv", "v"]
        assert mismatches.freeze_panes == "A2"
        assert mismatches["A1"].font.bold

        unique_second = wb["Unique to Second"]
        assert [cell.value for cell in unique_second[1]] == ["id", "v", "extra", "_source"]

    def test_summary_sheet(self, tmp_path):
        path = self.exporter.export_excel(_result(), tmp_path / "report.xlsx")
        ws = load_workbook(path)["Summary"]

        values = {row[0]: row[1] for row in ws.iter_rows(min_row=2, values_only=True)}
        assert values["first_source"] == "left.csv"
        assert values["matches"] == 1
        assert values["mismatches"] == 1
        assert values["key_columns"] == "id"

    def test_empty_partitions_have_no_sheet(self, tmp_path):
        result = compare([{"id": 1}], [{"id": 1}], ["id"])
        path = self.exporter.export_excel(result, tmp_path / "only_matches.xlsx")
        assert load_workbook(path).sheetnames == ["Summary", "Matches"]

    def test_large_partitions_split(self, tmp_path):
        rows = [{"id": i} for i in range(5)]
        result = compare(rows, rows, ["id"])
        exporter = ResultExporter(max_rows_per_sheet=2)

        path = exporter.export_excel(result, tmp_path / "split.xlsx")
        wb = load_workbook(path)

        assert wb.sheetnames == ["Summary", "Matches_1", "Matches_2", "Matches_3"]
        assert wb["Matches_1"].max_row == 3
        assert wb["Matches_3"].max_row == 2
        assert exporter.plan_sheets(result)[2][1][0]["id"] == 4

    def test_nothing_to_export(self, tmp_path):
        with pytest.raises(NothingToExportError):
            self.exporter.export_excel(ComparisonResult.empty(["id"]), tmp_path / "x.xlsx")
        assert not (tmp_path / "x.xlsx").exists()


class TestCsvExport:

    def test_one_file_per_partition(self, tmp_path):
        outputs = ResultExporter().export_csv(_result(), tmp_path, "run")

        assert set(outputs) == {"matches", "mismatches", "unique_to_first", "unique_to_second"}
        assert outputs["mismatches"] == tmp_path / "run__mismatches.csv"

        df = pd.read_csv(outputs["mismatches"], dtype=str)
        assert df.loc[0, "_differences"] == "v"
        assert df.loc[0, "_source"] == "left.csv"

    def test_default_base_name(self, tmp_path):
        result = compare([{"id": 1}], [{"id": 2}], ["id"])
        outputs = ResultExporter().export_csv(result, tmp_path / "out")

        assert set(outputs) == {"unique_to_first", "unique_to_second"}
        assert outputs["unique_to_first"].name.startswith("comparison-results-")

    def test_nothing_to_export(self, tmp_path):
        with pytest.raises(NothingToExportError):
            ResultExporter().export_csv(ComparisonResult.empty(), tmp_path)
