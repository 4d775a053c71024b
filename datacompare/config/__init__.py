"""Configuration management."""

from .manager import ConfigManager, DatasetConfig, ComparisonConfig, ComparatorSettings

__all__ = ["ConfigManager", "DatasetConfig", "ComparisonConfig", "ComparatorSettings"]
