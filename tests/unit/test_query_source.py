"""
Unit tests for QuerySource over an in-memory DuckDB connection.
"""

import sys
from pathlib import Path

import duckdb
import pandas as pd
import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from datacompare.adapters.query_source import QuerySource, qident, strip_trailing_semicolon
from datacompare.core.comparator import compare


class TestHelpers:

    def test_qident(self):
        assert qident("orders") == '"orders"'
        assert qident('we"ird') == '"we""ird"'
        assert qident("") == ""

    def test_strip_trailing_semicolon(self):
        assert strip_trailing_semicolon("SELECT 1;") == "SELECT 1"
        assert strip_trailing_semicolon("SELECT 1 ;  \n") == "SELECT 1"
        assert strip_trailing_semicolon("SELECT ';'") == "SELECT ';'"
        assert strip_trailing_semicolon("") == ""


class TestQuerySource:

    def setup_method(self):
        self.con = duckdb.connect(":memory:")
        self.source = QuerySource(self.con)
        self.con.execute("CREATE TABLE orders (id INTEGER, status VARCHAR)")
        self.con.execute("INSERT INTO orders VALUES (1, 'open'), (2, NULL)")

    def teardown_method(self):
        self.con.close()

    def test_read_dataset(self):
        dataset = self.source.read_dataset("SELECT * FROM orders ORDER BY id;", name="orders")

        assert dataset.name == "orders"
        assert dataset.columns == ["id", "status"]
        assert len(dataset) == 2
        assert dataset.rows[0]["status"] == "open"
        assert "status" not in dataset.rows[1]
        assert dataset.metadata["query"] == "SELECT * FROM orders ORDER BY id"

    def test_read_table(self):
        dataset = self.source.read_table("orders")
        assert dataset.name == "orders"
        assert len(dataset) == 2

    def test_register_dataframe(self):
        df = pd.DataFrame({"id": [1, 3], "status": ["open", "closed"]})
        self.source.register_dataframe("incoming", df)

        incoming = self.source.read_table("incoming")
        orders = self.source.read_table("orders")
        result = compare(orders, incoming, ["id"], compare_columns=["status"])

        assert len(result.matches) == 1
        assert [r["id"] for r in result.unique_to_first] == [2]
        assert [r["id"] for r in result.unique_to_second] == [3]

    def test_empty_query(self):
        with pytest.raises(ValueError):
            self.source.read_dataset("  ;")

    def test_sql_errors_propagate(self):
        with pytest.raises(duckdb.Error):
            self.source.read_dataset("SELECT * FROM no_such_table")

    def test_private_connection_when_none_given(self):
        source = QuerySource()
        dataset = source.read_dataset("SELECT 42 AS answer")
        assert dataset.rows == [{"answer": 42}]
