"""
Data Compare - key-based comparison of two tabular datasets.
"""

__version__ = "1.0.0"

from .core.comparator import (
    DataComparator,
    ComparisonResult,
    ComparisonError,
    InvalidInput,
    ComparisonCancelled,
    CancellationToken,
    compare,
)
from .core.execution import ComparisonTask, compare_async
from .core.rows import Dataset, to_text, common_columns
from .config.manager import ConfigManager, DatasetConfig, ComparisonConfig
from .adapters.file_reader import UniversalFileReader
from .adapters.query_source import QuerySource
from .export.exporter import ResultExporter, NothingToExportError
from .ui.progress import ProgressMonitor, get_progress_monitor
from .utils.history import ComparisonHistory
from .utils.logger import get_logger

__all__ = [
    "DataComparator",
    "ComparisonResult",
    "ComparisonError",
    "InvalidInput",
    "ComparisonCancelled",
    "CancellationToken",
    "compare",
    "ComparisonTask",
    "compare_async",
    "Dataset",
    "to_text",
    "common_columns",
    "ConfigManager",
    "DatasetConfig",
    "ComparisonConfig",
    "UniversalFileReader",
    "QuerySource",
    "ResultExporter",
    "NothingToExportError",
    "ProgressMonitor",
    "get_progress_monitor",
    "ComparisonHistory",
    "get_logger",
]
