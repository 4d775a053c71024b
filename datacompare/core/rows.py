"""
Row and dataset model.
Single responsibility: give rows a stable accessor and a single text coercion.
"""

import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np


Row = Mapping[str, Any]

EMPTY = ""


def _format_float(value: float) -> str:
    """
    Render a float the way a spreadsheet or browser would show it.

    Integral values drop the fractional part (10.0 -> "10"); plain decimals
    are used between 1e-6 and 1e21, exponent form outside that range.
    """
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    magnitude = abs(value)
    if value.is_integer() and magnitude < 1e21:
        return str(int(value))

    text = repr(value)
    if 1e-6 <= magnitude < 1e21:
        if "e" in text:
            text = format(Decimal(text), "f")
        return text

    mantissa, exponent = text.split("e")
    if mantissa.endswith(".0"):
        mantissa = mantissa[:-2]
    sign = "-" if exponent.startswith("-") else "+"
    return f"{mantissa}e{sign}{exponent.lstrip('+-').lstrip('0') or '0'}"


def to_text(value: Any) -> str:
    """
    Coerce a cell value to the text used for keys and equality checks.

    Args:
        value: Raw cell value

    Returns:
        Text form; None, absent and NaN values become the empty string
    """
    if value is None:
        return EMPTY
    if isinstance(value, str):
        return value
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return EMPTY
        return _format_float(value)
    if isinstance(value, Decimal):
        if value.is_nan():
            return EMPTY
        return _format_float(float(value)) if value == value.to_integral_value() else str(value)
    return str(value)


def get_value(row: Row, column: str, default: Any = None) -> Any:
    """
    Get a column value, or default when the row lacks the column.

    Args:
        row: Source row
        column: Column name
        default: Value returned for absent columns

    Returns:
        Cell value or default
    """
    return row.get(column, default)


def get_text(row: Row, column: str) -> str:
    """Get a column value already coerced with to_text."""
    return to_text(row.get(column))


@dataclass
class Dataset:
    """
    Ordered rows plus the label used to annotate provenance.

    Columns are enumerated once: from the declared schema when given,
    otherwise from the first non-empty row.
    """

    rows: Sequence[Row]
    name: str = "Dataset"
    columns: Optional[List[str]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.columns is None:
            first = next((row for row in self.rows if row), {})
            self.columns = list(first.keys())
        else:
            self.columns = list(self.columns)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    @property
    def is_empty(self) -> bool:
        return len(self.rows) == 0

    def copy(self) -> "Dataset":
        """Shallow copy of rows so another thread can own them."""
        return Dataset(
            rows=[dict(row) if row else row for row in self.rows],
            name=self.name,
            columns=list(self.columns),
            metadata=dict(self.metadata),
        )


def as_dataset(data: Any, default_name: str) -> Dataset:
    """
    Wrap a plain row sequence in a Dataset; pass Dataset objects through.

    Args:
        data: Dataset or sequence of row mappings
        default_name: Name used for bare sequences

    Returns:
        Dataset
    """
    if isinstance(data, Dataset):
        return data
    if data is None:
        return Dataset(rows=[], name=default_name)
    return Dataset(rows=list(data), name=default_name)


def column_overlap(dataset1: Dataset,
                   dataset2: Dataset) -> Tuple[List[str], List[str], List[str]]:
    """
    Split both datasets' columns into common, first-only and second-only.

    Order follows dataset 1 for common and first-only columns, dataset 2
    for second-only columns.
    """
    if dataset1.is_empty or dataset2.is_empty:
        return [], list(dataset1.columns), list(dataset2.columns)

    second = set(dataset2.columns)
    first = set(dataset1.columns)
    common = [col for col in dataset1.columns if col in second]
    first_only = [col for col in dataset1.columns if col not in second]
    second_only = [col for col in dataset2.columns if col not in first]
    return common, first_only, second_only


def common_columns(dataset1: Dataset, dataset2: Dataset) -> List[str]:
    """Columns present in both datasets, in dataset-1 order."""
    return column_overlap(dataset1, dataset2)[0]
