"""
Unit tests for the row model and text coercion.
"""

import sys
from decimal import Decimal
from pathlib import Path

import numpy as np
import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from datacompare.core.rows import (
    Dataset,
    as_dataset,
    column_overlap,
    common_columns,
    get_text,
    get_value,
    to_text,
)


class TestToText:
    """Coercion of cell values to comparison text."""

    @pytest.mark.parametrize("value,expected", [
        ("abc", "abc"),
        ("", ""),
        ("  padded ", "  padded "),
        (1, "1"),
        (-42, "-42"),
        (10.0, "10"),
        (1.5, "1.5"),
        (-0.0, "0"),
        (0.1 + 0.2, "0.30000000000000004"),
        (True, "true"),
        (False, "false"),
        (None, ""),
        (float("nan"), ""),
        (float("inf"), "Infinity"),
        (float("-inf"), "-Infinity"),
        (1e21, "1e+21"),
        (1e-7, "1e-7"),
        (1e-5, "0.00001"),
        (1e16, "10000000000000000"),
    ])
    def test_python_values(self, value, expected):
        assert to_text(value) == expected

    def test_numpy_scalars_use_python_rules(self):
        assert to_text(np.int64(5)) == "5"
        assert to_text(np.float64(2.0)) == "2"
        assert to_text(np.float64("nan")) == ""
        assert to_text(np.bool_(True)) == "true"

    def test_decimal(self):
        assert to_text(Decimal("10")) == "10"
        assert to_text(Decimal("2.5")) == "2.5"

    def test_strings_are_not_trimmed_or_case_folded(self):
        """Coercion is exact: 'A' and 'a', 'x' and 'x ' stay different."""
        assert to_text("A") != to_text("a")
        assert to_text("x") != to_text("x ")

    def test_numeric_and_text_forms_agree(self):
        """Values with the same text form compare equal."""
        assert to_text(1) == to_text("1")
        assert to_text(10.0) == to_text("10")
        assert to_text(None) == to_text("")

    def test_integral_text_is_not_its_float_text(self):
        """Only real floats drop the fraction; "10.0" as text stays as written."""
        assert to_text("10") != to_text("10.0")
        assert to_text(10.0) != to_text("10.0")


class TestRowAccess:

    def test_get_value_absent_column_returns_default(self):
        row = {"id": 1}
        assert get_value(row, "id") == 1
        assert get_value(row, "missing") is None
        assert get_value(row, "missing", "x") == "x"

    def test_get_text_treats_absent_as_empty(self):
        assert get_text({"id": 7}, "id") == "7"
        assert get_text({"id": 7}, "name") == ""


class TestDataset:

    def setup_method(self):
        self.rows = [
            {"id": 1, "name": "a"},
            {"id": 2, "name": "b", "extra": True},
        ]

    def test_columns_come_from_first_row(self):
        dataset = Dataset(self.rows, name="left")
        assert dataset.columns == ["id", "name"]
        assert len(dataset) == 2
        assert not dataset.is_empty

    def test_declared_columns_win(self):
        dataset = Dataset(self.rows, columns=["name", "id", "extra"])
        assert dataset.columns == ["name", "id", "extra"]

    def test_columns_skip_leading_empty_rows(self):
        dataset = Dataset([None, {}, {"id": 1, "name": "a"}])
        assert dataset.columns == ["id", "name"]
        assert dataset.copy().rows[0] is None

    def test_empty_dataset(self):
        dataset = Dataset([])
        assert dataset.columns == []
        assert dataset.is_empty

    def test_copy_owns_its_rows(self):
        dataset = Dataset(self.rows, name="left")
        copied = dataset.copy()
        self.rows[0]["name"] = "changed"
        assert copied.rows[0]["name"] == "a"
        assert copied.name == "left"

    def test_as_dataset_wraps_sequences(self):
        dataset = as_dataset(self.rows, "Dataset 1")
        assert isinstance(dataset, Dataset)
        assert dataset.name == "Dataset 1"
        assert as_dataset(dataset, "other") is dataset
        assert as_dataset(None, "none").is_empty


class TestColumnOverlap:

    def test_overlap_order(self):
        first = Dataset([{"id": 1, "name": "a", "city": "x"}])
        second = Dataset([{"name": "a", "zip": "1", "id": 1}])
        common, first_only, second_only = column_overlap(first, second)
        assert common == ["id", "name"]
        assert first_only == ["city"]
        assert second_only == ["zip"]
        assert common_columns(first, second) == ["id", "name"]

    def test_empty_side_has_no_common_columns(self):
        first = Dataset([{"id": 1}])
        second = Dataset([], columns=["id"])
        assert common_columns(first, second) == []
