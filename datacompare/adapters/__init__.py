"""Dataset sources."""

from .file_reader import UniversalFileReader, dataframe_to_dataset
from .query_source import QuerySource

__all__ = ["UniversalFileReader", "dataframe_to_dataset", "QuerySource"]
