"""
Unit tests for composite key construction.
"""

import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from datacompare.core.keys import CompositeKeyBuilder, KEY_SEPARATOR


class TestCompositeKeyBuilder:

    def setup_method(self):
        self.single = CompositeKeyBuilder(["id"])
        self.pair = CompositeKeyBuilder(["id", "name"])

    def test_segments_follow_key_order(self):
        row = {"name": "a", "id": 1}
        assert self.pair.segments(row) == ["1", "a"]
        assert CompositeKeyBuilder(["name", "id"]).build(row) == "a|1"

    def test_build_joins_with_separator(self):
        assert KEY_SEPARATOR == "|"
        assert self.pair.build({"id": 1, "name": "a"}) == "1|a"

    def test_numeric_and_text_values_build_same_key(self):
        assert self.single.build({"id": 1}) == self.single.build({"id": "1"})
        assert self.single.build({"id": 10.0}) == self.single.build({"id": "10"})

    def test_absent_and_none_segments_are_empty(self):
        assert self.pair.build({"id": 1}) == "1|"
        assert self.pair.build({"id": 1, "name": None}) == "1|"

    def test_all_empty_segments_are_invalid(self):
        assert self.single.valid_key({"id": ""}) is None
        assert self.pair.valid_key({"id": "", "name": ""}) is None
        assert self.pair.valid_key({"id": None}) is None

    def test_whitespace_only_segments_are_invalid(self):
        """Emptiness is judged per segment regardless of how many key columns there are."""
        assert self.single.valid_key({"id": "   "}) is None
        assert self.pair.valid_key({"id": " ", "name": "\t"}) is None
        assert CompositeKeyBuilder(["a", "b", "c"]).valid_key({"a": "", "b": " "}) is None

    def test_partially_empty_key_is_valid(self):
        assert self.pair.valid_key({"id": "", "name": "x"}) == "|x"
        assert self.pair.is_valid({"id": 0})

    def test_empty_row_is_invalid(self):
        assert self.single.valid_key({}) is None
        assert not self.single.is_valid({})

    def test_whitespace_kept_in_valid_key(self):
        assert self.single.valid_key({"id": " 7 "}) == " 7 "

    def test_custom_separator(self):
        builder = CompositeKeyBuilder(["a", "b"], separator="::")
        assert builder.build({"a": 1, "b": 2}) == "1::2"
