"""
Universal file reader.
Single responsibility: turn CSV, Excel, Parquet and JSON files into datasets.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import pandas as pd

from ..core.rows import Dataset
from ..utils.logger import get_logger


logger = get_logger()


SUPPORTED_SUFFIXES = {
    ".csv": "csv",
    ".tsv": "csv",
    ".txt": "csv",
    ".xlsx": "excel",
    ".xls": "excel",
    ".parquet": "parquet",
    ".json": "json",
}


def dataframe_to_dataset(df: pd.DataFrame, name: str,
                         metadata: Optional[Dict[str, Any]] = None) -> Dataset:
    """
    Convert a DataFrame into a Dataset.

    Missing cells (NaN, None, NaT) are left out of the row, so a row only
    carries the cells that hold a value. Columns come from the frame header.

    Args:
        df: Source frame
        name: Dataset name, used as the provenance label
        metadata: Optional extra metadata

    Returns:
        Dataset
    """
    columns = [str(col) for col in df.columns]
    frame = df.copy()
    frame.columns = columns
    frame = frame.astype(object).where(pd.notna(frame), None)

    rows: List[Dict[str, Any]] = []
    for record in frame.to_dict(orient="records"):
        rows.append({col: value for col, value in record.items() if value is not None})

    return Dataset(rows=rows, name=name, columns=columns,
                   metadata=dict(metadata or {}))


class UniversalFileReader:
    """
    Handles reading of various file formats.
    """

    def __init__(self, encodings: Optional[List[str]] = None):
        """
        Initialize file reader.

        Args:
            encodings: CSV encodings to try, in order
        """
        self.encodings = encodings or [
            'utf-8', 'utf-8-sig', 'latin-1', 'cp1252'
        ]

    def file_type(self, file_path: Path) -> str:
        """
        Map a file suffix to a reader type.

        Raises:
            ValueError: If file type is not supported
        """
        suffix = Path(file_path).suffix.lower()
        if suffix not in SUPPORTED_SUFFIXES:
            raise ValueError(
                f"Unsupported file type: {suffix}. "
                f"Supported: {sorted(SUPPORTED_SUFFIXES)}"
            )
        return SUPPORTED_SUFFIXES[suffix]

    def read_excel(self, file_path: Path, sheet_name: Union[int, str] = 0) -> pd.DataFrame:
        """
        Read Excel file.

        Args:
            file_path: Path to Excel file
            sheet_name: Sheet to read

        Returns:
            DataFrame
        """
        logger.info("file_reader.excel.reading",
                   file=str(file_path),
                   sheet=sheet_name)

        df = pd.read_excel(file_path, sheet_name=sheet_name)
        # Drop rows without any data
        df = df.dropna(how="all")

        logger.info("file_reader.excel.loaded",
                   rows=len(df),
                   columns=len(df.columns))

        return df

    def read_csv(self, file_path: Path) -> pd.DataFrame:
        """
        Read CSV file as text, trying encodings in order.

        Every cell is kept as the string found in the file; empty cells are
        empty strings.

        Args:
            file_path: Path to CSV file

        Returns:
            DataFrame of strings
        """
        logger.info("file_reader.csv.reading", file=str(file_path))

        sep = "\t" if Path(file_path).suffix.lower() == ".tsv" else ","
        df = None
        successful_encoding = None

        for encoding in self.encodings:
            try:
                df = pd.read_csv(file_path, encoding=encoding, dtype=str,
                                 keep_default_na=False, sep=sep,
                                 on_bad_lines='skip')
                successful_encoding = encoding
                break
            except (UnicodeDecodeError, UnicodeError):
                continue
            except pd.errors.EmptyDataError:
                logger.warning("file_reader.csv.empty", file=str(file_path))
                return pd.DataFrame()

        if df is None:
            logger.warning("file_reader.csv.encoding_fallback", file=str(file_path))
            df = pd.read_csv(file_path, encoding='utf-8', encoding_errors='replace',
                             dtype=str, keep_default_na=False, sep=sep,
                             on_bad_lines='skip')
            successful_encoding = 'utf-8 (with replacements)'

        logger.info("file_reader.csv.loaded",
                   rows=len(df),
                   columns=len(df.columns),
                   encoding=successful_encoding)

        return df

    def read_parquet(self, file_path: Path) -> pd.DataFrame:
        """
        Read Parquet file.

        Args:
            file_path: Path to Parquet file

        Returns:
            DataFrame
        """
        logger.info("file_reader.parquet.reading", file=str(file_path))

        df = pd.read_parquet(file_path)

        logger.info("file_reader.parquet.loaded",
                   rows=len(df),
                   columns=len(df.columns))

        return df

    def read_json(self, file_path: Path) -> pd.DataFrame:
        """
        Read a JSON array of records.

        Args:
            file_path: Path to JSON file

        Returns:
            DataFrame
        """
        logger.info("file_reader.json.reading", file=str(file_path))

        df = pd.read_json(file_path, orient="records", dtype=False)

        logger.info("file_reader.json.loaded",
                   rows=len(df),
                   columns=len(df.columns))

        return df

    def read(self, file_path: Path, sheet_name: Union[int, str] = 0,
             kind: Optional[str] = None) -> pd.DataFrame:
        """
        Read any supported file type.

        Args:
            file_path: Path to file
            sheet_name: Sheet for Excel files
            kind: Reader type (csv, excel, parquet, json); inferred from the
                suffix when omitted

        Returns:
            DataFrame

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If file type is not supported
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        kind = kind or self.file_type(file_path)
        if kind not in ("csv", "excel", "parquet", "json"):
            raise ValueError(f"Unsupported file type: {kind}")

        if kind == "excel":
            return self.read_excel(file_path, sheet_name=sheet_name)
        if kind == "csv":
            return self.read_csv(file_path)
        if kind == "parquet":
            return self.read_parquet(file_path)
        return self.read_json(file_path)

    def read_dataset(self, file_path: Path, name: Optional[str] = None,
                     sheet_name: Union[int, str] = 0,
                     kind: Optional[str] = None) -> Dataset:
        """
        Read a file into a Dataset.

        Args:
            file_path: Path to file
            name: Dataset name (defaults to the file name)
            sheet_name: Sheet for Excel files
            kind: Reader type, inferred from the suffix when omitted

        Returns:
            Dataset whose name labels the rows' provenance
        """
        file_path = Path(file_path)
        kind = kind or self.file_type(file_path)
        df = self.read(file_path, sheet_name=sheet_name, kind=kind)
        dataset = dataframe_to_dataset(
            df,
            name or file_path.name,
            metadata={"path": str(file_path), "type": kind},
        )

        logger.info("file_reader.dataset.ready",
                   dataset=dataset.name,
                   rows=len(dataset),
                   columns=len(dataset.columns))

        return dataset
