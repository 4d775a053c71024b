"""Result export."""

from .exporter import ResultExporter, NothingToExportError, default_export_name

__all__ = ["ResultExporter", "NothingToExportError", "default_export_name"]
