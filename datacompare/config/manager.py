"""
Configuration management.
Single responsibility: load, validate, and manage configuration.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field, asdict

from ..adapters.file_reader import SUPPORTED_SUFFIXES
from ..utils.logger import get_logger


logger = get_logger()


DATASET_TYPES = ("csv", "excel", "parquet", "json", "query")
OUTPUT_FORMATS = ("excel", "csv", "none")


@dataclass
class DatasetConfig:
    """Configuration for a single dataset source."""

    name: str
    path: Optional[str] = None
    type: Optional[str] = None
    sheet: Any = 0
    query: Optional[str] = None
    label: Optional[str] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.name:
            raise ValueError("Dataset name is required")
        if self.type is None:
            self.type = self._infer_type()
        if self.type not in DATASET_TYPES:
            raise ValueError(
                f"Unsupported dataset type '{self.type}' for {self.name}. "
                f"Expected one of {list(DATASET_TYPES)}"
            )
        if self.type == "query":
            if not self.query:
                raise ValueError(f"Dataset {self.name} of type 'query' needs a query")
        elif not self.path:
            raise ValueError(f"Dataset path is required for {self.name}")

    @property
    def display_name(self) -> str:
        """Label used as the rows' _source."""
        if self.label:
            return self.label
        if self.path:
            return Path(self.path).name
        return self.name

    def _infer_type(self) -> str:
        """Dataset type from the query or the path suffix, csv by default."""
        if self.query:
            return "query"
        if self.path:
            return SUPPORTED_SUFFIXES.get(Path(self.path).suffix.lower(), "csv")
        return "csv"


@dataclass
class ComparisonConfig:
    """Configuration for one dataset comparison."""

    left_dataset: str
    right_dataset: str
    comparison_keys: List[str] = field(default_factory=list)
    value_columns: List[str] = field(default_factory=list)
    output_format: str = "excel"
    output_name: Optional[str] = None
    output_dir: str = "data/reports"

    def __post_init__(self):
        if not self.left_dataset or not self.right_dataset:
            raise ValueError("Comparison needs both 'left' and 'right' datasets")
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"Unsupported output format '{self.output_format}'. "
                f"Expected one of {list(OUTPUT_FORMATS)}"
            )


@dataclass
class ComparatorSettings:
    """Tunables shared by every comparison in a run."""

    progress_interval: int = 1000
    large_dataset_threshold: int = 100_000
    max_rows_per_sheet: int = 100_000
    history_file: Optional[str] = "data/history/comparison_history.json"
    history_limit: int = 50
    history_sample_rows: int = 100
    log_file: Optional[str] = None

    def __post_init__(self):
        if self.progress_interval < 1:
            raise ValueError("progress_interval must be at least 1")
        if self.max_rows_per_sheet < 1:
            raise ValueError("max_rows_per_sheet must be at least 1")


class ConfigManager:
    """
    Manage application configuration.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize config manager.

        Args:
            config_path: Path to configuration file
        """
        self.config_path = Path(config_path or "datasets.yaml")
        self.config: Dict[str, Any] = {}
        self.settings = ComparatorSettings()
        self.datasets: Dict[str, DatasetConfig] = {}
        self.comparisons: List[ComparisonConfig] = []

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from file.

        Returns:
            Configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If config is invalid YAML
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config not found: {self.config_path}")

        logger.info("config.loading", file=str(self.config_path))

        with open(self.config_path, encoding="utf-8") as f:
            self.config = yaml.safe_load(f) or {}

        self._parse_settings()
        self._parse_datasets()
        self._parse_comparisons()

        logger.info("config.loaded",
                   datasets=len(self.datasets),
                   comparisons=len(self.comparisons))

        return self.config

    def _parse_settings(self):
        """Parse run-wide settings."""
        settings = self.config.get("settings") or {}
        known = set(ComparatorSettings.__dataclass_fields__)
        unknown = sorted(set(settings) - known)
        if unknown:
            logger.warning("config.settings.unknown_keys", keys=unknown)
        self.settings = ComparatorSettings(
            **{k: v for k, v in settings.items() if k in known}
        )

    def _parse_datasets(self):
        """Parse dataset configurations."""
        self.datasets = {}
        for name, cfg in (self.config.get("datasets") or {}).items():
            cfg = cfg or {}
            try:
                dataset_cfg = DatasetConfig(
                    name=name,
                    path=cfg.get("path"),
                    type=cfg.get("type"),
                    sheet=cfg.get("sheet", 0),
                    query=cfg.get("query"),
                    label=cfg.get("label"),
                )
                self.datasets[name] = dataset_cfg
            except Exception as e:
                logger.error("config.dataset.invalid",
                           dataset=name,
                           error=str(e))
                raise

    def _parse_comparisons(self):
        """Parse comparison configurations."""
        self.comparisons = []
        for cmp in self.config.get("comparisons") or []:
            try:
                comparison_cfg = ComparisonConfig(
                    left_dataset=cmp.get("left"),
                    right_dataset=cmp.get("right"),
                    comparison_keys=cmp.get("keys", []),
                    value_columns=cmp.get("columns", []) or [],
                    output_format=cmp.get("output_format", "excel"),
                    output_name=cmp.get("output_name"),
                    output_dir=cmp.get("output_dir", "data/reports"),
                )
                self.comparisons.append(comparison_cfg)
            except Exception as e:
                logger.error("config.comparison.invalid",
                           comparison=cmp,
                           error=str(e))
                raise

    def get_dataset(self, name: str) -> DatasetConfig:
        """
        Get dataset configuration by name.

        Args:
            name: Dataset name

        Returns:
            Dataset configuration

        Raises:
            KeyError: If dataset not found
        """
        if name not in self.datasets:
            raise KeyError(f"Dataset not found: {name}")
        return self.datasets[name]

    def save(self, path: Optional[Path] = None):
        """
        Save configuration to file.

        Args:
            path: Output path (uses original path if not specified)
        """
        output_path = Path(path or self.config_path)

        logger.info("config.saving", file=str(output_path))

        config_dict = {
            "settings": asdict(self.settings),
            "datasets": {},
            "comparisons": []
        }

        for name, dataset in self.datasets.items():
            entry = {"type": dataset.type}
            if dataset.path:
                entry["path"] = dataset.path
            if dataset.query:
                entry["query"] = dataset.query
            if dataset.sheet != 0:
                entry["sheet"] = dataset.sheet
            if dataset.label:
                entry["label"] = dataset.label
            config_dict["datasets"][name] = entry

        for comparison in self.comparisons:
            entry = {
                "left": comparison.left_dataset,
                "right": comparison.right_dataset,
                "keys": comparison.comparison_keys,
                "columns": comparison.value_columns,
                "output_format": comparison.output_format,
                "output_dir": comparison.output_dir,
            }
            if comparison.output_name:
                entry["output_name"] = comparison.output_name
            config_dict["comparisons"].append(entry)

        with open(output_path, 'w', encoding="utf-8") as f:
            yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

        logger.info("config.saved", file=str(output_path))


SAMPLE_CONFIG = """# Data Compare Configuration
# ==========================

settings:
  progress_interval: 1000        # rows between progress updates
  large_dataset_threshold: 100000
  max_rows_per_sheet: 100000     # larger partitions are split across sheets
  history_file: "data/history/comparison_history.json"
  history_limit: 50
  history_sample_rows: 100

datasets:
  customers_crm:
    path: "data/raw/customers_crm.csv"
    type: "csv"

  customers_billing:
    path: "data/raw/customers_billing.xlsx"
    type: "excel"
    sheet: 0
    label: "billing export"

comparisons:
  - left: "customers_crm"
    right: "customers_billing"
    keys: ["customer_id"]
    columns: []                  # empty means compare the key columns
    output_format: "excel"       # excel, csv or none
    output_dir: "data/reports"
"""


def create_sample_config(output_path: Path) -> Path:
    """
    Create a sample configuration file.

    Args:
        output_path: Where to save the config

    Returns:
        Path written
    """
    output_path = Path(output_path)
    output_path.write_text(SAMPLE_CONFIG, encoding="utf-8")
    logger.info("config.sample_created", file=str(output_path))
    return output_path
