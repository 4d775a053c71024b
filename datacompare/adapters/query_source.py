"""
SQL query dataset source.
Single responsibility: run a caller-supplied query on a caller-owned DuckDB
connection and hand the result back as a dataset.
"""

from typing import Optional

import duckdb
import pandas as pd

from ..core.rows import Dataset
from ..utils.logger import get_logger
from .file_reader import dataframe_to_dataset


logger = get_logger()


def qident(name: str) -> str:
    """
    Quote an SQL identifier for DuckDB.

    Args:
        name: Table or column name

    Returns:
        Double-quoted identifier with embedded quotes doubled
    """
    if not name:
        return name
    return '"' + name.replace('"', '""') + '"'


def strip_trailing_semicolon(sql: str) -> str:
    """
    Strip a trailing semicolon so the query can be wrapped or executed alone.

    Args:
        sql: Query text

    Returns:
        Query without the trailing semicolon
    """
    if not sql:
        return sql
    sql_stripped = sql.rstrip()
    if sql_stripped.endswith(';'):
        sql_stripped = sql_stripped[:-1].rstrip()
    return sql_stripped


class QuerySource:
    """
    Produce datasets from SQL query results.

    The connection belongs to the caller; this class never opens, caches or
    closes connections and does not interpret the SQL it is given.
    """

    def __init__(self, con: Optional[duckdb.DuckDBPyConnection] = None):
        """
        Args:
            con: DuckDB connection; a private in-memory one when omitted
        """
        self.con = con if con is not None else duckdb.connect(":memory:")

    def register_dataframe(self, name: str, df: pd.DataFrame) -> str:
        """
        Expose a DataFrame to queries under name.

        Returns:
            The registered view name
        """
        self.con.register(name, df)
        logger.debug("query_source.registered", view=name, rows=len(df))
        return name

    def read_dataframe(self, sql: str) -> pd.DataFrame:
        """
        Execute sql and fetch the whole result as a DataFrame.

        Raises:
            ValueError: If sql is empty
            duckdb.Error: Whatever DuckDB raises for the query
        """
        sql = strip_trailing_semicolon(sql or "")
        if not sql.strip():
            raise ValueError("Query is empty")

        logger.info("query_source.executing", sql=sql)
        df = self.con.execute(sql).df()
        logger.info("query_source.loaded",
                   rows=len(df),
                   columns=len(df.columns))
        return df

    def read_dataset(self, sql: str, name: str = "Query result") -> Dataset:
        """
        Execute sql and return its rows as a Dataset.

        Args:
            sql: Query text
            name: Dataset name, used as the provenance label

        Returns:
            Dataset
        """
        df = self.read_dataframe(sql)
        return dataframe_to_dataset(df, name, metadata={"query": strip_trailing_semicolon(sql)})

    def read_table(self, table: str, name: Optional[str] = None) -> Dataset:
        """Read every row of a table or view."""
        return self.read_dataset(f"SELECT * FROM {qident(table)}", name or table)
