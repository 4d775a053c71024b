#!/usr/bin/env python3
"""
Data Compare - Main Entry Point
Key-based comparison of two tabular datasets.
"""

import argparse
import sys
import time
import traceback
from pathlib import Path
from typing import List, Optional

import duckdb

from datacompare import (
    __version__,
    ComparisonHistory,
    ConfigManager,
    DataComparator,
    DatasetConfig,
    ComparisonConfig,
    InvalidInput,
    NothingToExportError,
    QuerySource,
    ResultExporter,
    UniversalFileReader,
    get_logger,
    get_progress_monitor,
)
from datacompare.config.manager import create_sample_config
from datacompare.core.comparator import ComparisonResult
from datacompare.core.rows import Dataset
from datacompare.export.exporter import default_export_name
from datacompare.utils.metrics import MetricsCollector


logger = get_logger()


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_INPUT = 2


class DataComparePipeline:
    """
    Main pipeline orchestrator.
    """

    def __init__(self, config_file: Optional[Path] = None,
                 verbose: bool = False,
                 use_rich: bool = True,
                 config_manager: Optional[ConfigManager] = None):
        """
        Initialize pipeline.

        Args:
            config_file: YAML configuration; None when config_manager is
                already populated
            verbose: Enable verbose logging
            use_rich: Use Rich for progress bars
            config_manager: Pre-built configuration
        """
        self.config_file = Path(config_file) if config_file else None
        self.verbose = verbose
        self.progress = get_progress_monitor(use_rich)

        self.config_manager = config_manager or ConfigManager(self.config_file)
        self.reader = UniversalFileReader()
        self.metrics = MetricsCollector()

        self.con = None
        self.query_source: Optional[QuerySource] = None
        self.comparator: Optional[DataComparator] = None
        self.exporter: Optional[ResultExporter] = None
        self.history: Optional[ComparisonHistory] = None

        self.results: List[ComparisonResult] = []
        self.outputs: List[Path] = []

    @classmethod
    def adhoc(cls, left: str, right: str, keys: List[str],
              columns: Optional[List[str]] = None,
              output_dir: str = "data/reports",
              output_format: str = "excel",
              output_name: Optional[str] = None,
              **kwargs) -> "DataComparePipeline":
        """
        Build a pipeline for one comparison given on the command line.

        Args:
            left: First file
            right: Second file
            keys: Join key columns
            columns: Columns checked for equality (defaults to keys)
            output_dir: Export directory
            output_format: excel, csv or none
            output_name: Export base name
            **kwargs: Passed to the constructor

        Returns:
            Pipeline with an in-memory configuration
        """
        manager = ConfigManager()
        manager.datasets = {
            "left": DatasetConfig(name="left", path=left),
            "right": DatasetConfig(name="right", path=right),
        }
        manager.comparisons = [
            ComparisonConfig(
                left_dataset="left",
                right_dataset="right",
                comparison_keys=list(keys or []),
                value_columns=list(columns or []),
                output_format=output_format,
                output_name=output_name,
                output_dir=output_dir,
            )
        ]
        return cls(config_file=None, config_manager=manager, **kwargs)

    def run(self) -> int:
        """
        Run the complete pipeline.

        Returns:
            Exit code: 0 on success, 2 for invalid input, 1 otherwise
        """
        try:
            logger.info("pipeline.starting",
                       config=str(self.config_file) if self.config_file else "adhoc")

            if self.config_file is not None:
                self.config_manager.load()
                self.progress.info("Configuration loaded")

            self._setup()
            self._run_comparisons()

            report = self.metrics.generate_report()
            if self.verbose and hasattr(self.progress, "show_metrics"):
                self.progress.show_metrics(report["summary"])

            logger.info("pipeline.completed",
                       comparisons=len(self.results),
                       outputs=[str(p) for p in self.outputs])
            return EXIT_OK

        except InvalidInput as e:
            logger.error("pipeline.invalid_input", error=str(e))
            self.progress.error(f"Invalid comparison input: {e}")
            return EXIT_INVALID_INPUT

        except Exception as e:
            logger.error("pipeline.failed",
                        error=str(e),
                        traceback=traceback.format_exc())
            self.progress.error(f"Pipeline failed: {e}")
            return EXIT_FAILURE

        finally:
            if hasattr(self.progress, "stop"):
                self.progress.stop()
            if self.con:
                self.con.close()
                self.con = None

    def _setup(self):
        """Create the comparator, exporter, history and DuckDB connection from settings."""
        settings = self.config_manager.settings

        if settings.log_file:
            logger.set_log_file(Path(settings.log_file))

        self.comparator = DataComparator(
            progress_interval=settings.progress_interval,
            large_dataset_threshold=settings.large_dataset_threshold,
        )
        self.exporter = ResultExporter(max_rows_per_sheet=settings.max_rows_per_sheet)

        if settings.history_file:
            self.history = ComparisonHistory(
                Path(settings.history_file),
                limit=settings.history_limit,
                sample_rows=settings.history_sample_rows,
            )

        self.con = duckdb.connect(":memory:")
        self.query_source = QuerySource(self.con)
        logger.debug("pipeline.duckdb.initialized")

    def _load_dataset(self, config: DatasetConfig) -> Dataset:
        """
        Load one configured dataset.

        Args:
            config: Dataset configuration

        Returns:
            Dataset labelled with the configuration's display name
        """
        operation = f"load:{config.name}"
        self.metrics.start_operation(operation)
        try:
            if config.type == "query":
                dataset = self.query_source.read_dataset(
                    config.query, name=config.display_name
                )
            else:
                dataset = self.reader.read_dataset(
                    Path(config.path),
                    name=config.display_name,
                    sheet_name=config.sheet,
                    kind=config.type,
                )
        except Exception as e:
            self.metrics.end_operation(operation, success=False, error=str(e))
            raise

        self.metrics.end_operation(operation, rows_processed=len(dataset))
        return dataset

    def _run_comparisons(self):
        """Run all configured comparisons."""
        comparisons = self.config_manager.comparisons

        if not comparisons:
            logger.warning("pipeline.no_comparisons")
            self.progress.warning("No comparisons configured")
            return

        for comp_config in comparisons:
            self._run_comparison(comp_config, several=len(comparisons) > 1)

    def _run_comparison(self, comp_config: ComparisonConfig, several: bool = False):
        """Load, compare, record and export one comparison."""
        left_config = self.config_manager.get_dataset(comp_config.left_dataset)
        right_config = self.config_manager.get_dataset(comp_config.right_dataset)

        left = self._load_dataset(left_config)
        right = self._load_dataset(right_config)

        task_name = f"{comp_config.left_dataset} vs {comp_config.right_dataset}"
        operation = f"compare:{task_name}"
        self.metrics.start_operation(operation)
        started = time.time()

        try:
            result = self.comparator.compare(
                left, right,
                comp_config.comparison_keys,
                compare_columns=comp_config.value_columns or None,
                on_progress=self.progress.progress_callback(task_name),
            )
        except Exception as e:
            self.metrics.end_operation(operation, success=False, error=str(e))
            raise

        duration = time.time() - started
        self.metrics.end_operation(operation,
                                   rows_processed=len(left) + len(right))
        self.metrics.record_comparison(result.source_label1,
                                       result.source_label2,
                                       len(result.matches),
                                       len(result.mismatches))
        self.results.append(result)

        self._report_results(task_name, result)

        if self.history is not None:
            self.history.record(result, duration_seconds=duration)

        self._export(comp_config, result, several)

    def _export(self, comp_config: ComparisonConfig, result: ComparisonResult,
                several: bool):
        """Write the result in the configured output format."""
        if comp_config.output_format == "none":
            return

        base_name = comp_config.output_name or default_export_name()
        if several and not comp_config.output_name:
            base_name = (f"{base_name}_{comp_config.left_dataset}"
                         f"_vs_{comp_config.right_dataset}")
        output_dir = Path(comp_config.output_dir)

        try:
            if comp_config.output_format == "excel":
                path = self.exporter.export_excel(result, output_dir / base_name)
                self.outputs.append(path)
            else:
                paths = self.exporter.export_csv(result, output_dir, base_name)
                self.outputs.extend(paths.values())
        except NothingToExportError as e:
            logger.warning("pipeline.export.skipped",
                          comparison=f"{comp_config.left_dataset} vs {comp_config.right_dataset}",
                          reason=str(e))
            self.progress.warning(str(e))
            return

        self.progress.info(f"Results exported to {output_dir}")

    def _report_results(self, task_name: str, result: ComparisonResult):
        """
        Report comparison results.

        Args:
            task_name: Comparison display name
            result: Comparison result
        """
        summary = result.summary()

        logger.info("comparison.results",
                   comparison=task_name,
                   matches=summary["matches"],
                   mismatches=summary["mismatches"],
                   unique_to_first=summary["unique_to_first"],
                   unique_to_second=summary["unique_to_second"],
                   match_rate=summary["match_rate"])

        self.progress.show_comparison_results(summary)


def build_parser() -> argparse.ArgumentParser:
    """Command line parser."""
    parser = argparse.ArgumentParser(
        description="Data Compare - key-based comparison of two datasets"
    )

    parser.add_argument(
        "config",
        nargs="?",
        default="datasets.yaml",
        help="Configuration file (default: datasets.yaml)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--no-rich",
        action="store_true",
        help="Disable Rich progress bars"
    )

    parser.add_argument(
        "--create-sample",
        action="store_true",
        help="Create sample configuration file"
    )

    adhoc = parser.add_argument_group("ad-hoc comparison")
    adhoc.add_argument("--left", help="First dataset file")
    adhoc.add_argument("--right", help="Second dataset file")
    adhoc.add_argument("--keys", nargs="+", default=[],
                       help="Join key columns")
    adhoc.add_argument("--columns", nargs="+", default=[],
                       help="Columns to compare (default: the key columns)")
    adhoc.add_argument("--output-dir", default="data/reports",
                       help="Export directory (default: data/reports)")
    adhoc.add_argument("--format", dest="output_format",
                       choices=["excel", "csv", "none"], default="excel",
                       help="Export format (default: excel)")

    history = parser.add_argument_group("comparison history")
    history.add_argument("--history", action="store_true",
                         help="Show stored comparison runs and totals")
    history.add_argument("--history-remove", metavar="ID",
                         help="Delete one stored run by id")
    history.add_argument("--history-export", metavar="PATH",
                         help="Export stored runs as CSV")

    parser.add_argument(
        "--version",
        action="version",
        version=f"Data Compare v{__version__}"
    )

    return parser


def run_history_command(args: argparse.Namespace) -> int:
    """
    Show, prune or export the comparison history.

    The history file comes from the configuration's settings when the
    config file exists, otherwise from the default settings.

    Returns:
        Exit code
    """
    manager = ConfigManager(Path(args.config))
    if manager.config_path.exists():
        manager.load()

    history_file = manager.settings.history_file
    progress = get_progress_monitor(not args.no_rich)
    if not history_file:
        progress.error("History is disabled in the configuration")
        return EXIT_FAILURE

    history = ComparisonHistory(Path(history_file),
                                limit=manager.settings.history_limit)

    if args.history_remove:
        if not history.remove(args.history_remove):
            progress.error(f"No comparison with id {args.history_remove}")
            return EXIT_FAILURE
        progress.info(f"Removed comparison {args.history_remove}")

    if args.history_export:
        path = history.export_csv(Path(args.history_export))
        progress.info(f"History exported to {path}")

    if args.history:
        records = history.load()
        progress.show_history(history.summary(records), records)

    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logger.set_level("DEBUG")

    # Create sample config if requested
    if args.create_sample:
        path = create_sample_config(Path("datasets_sample.yaml"))
        print(f"Sample configuration created: {path}")
        return EXIT_OK

    if args.history or args.history_remove or args.history_export:
        return run_history_command(args)

    if args.left or args.right:
        if not (args.left and args.right):
            parser.error("--left and --right must be given together")
        pipeline = DataComparePipeline.adhoc(
            args.left, args.right, args.keys,
            columns=args.columns,
            output_dir=args.output_dir,
            output_format=args.output_format,
            verbose=args.verbose,
            use_rich=not args.no_rich,
        )
        return pipeline.run()

    # Check if config exists
    config_path = Path(args.config)
    if not config_path.exists():
        print(f"Error: Configuration file not found: {config_path}", file=sys.stderr)
        print("Use --create-sample to create a sample configuration", file=sys.stderr)
        return EXIT_FAILURE

    pipeline = DataComparePipeline(
        config_path,
        verbose=args.verbose,
        use_rich=not args.no_rich
    )
    return pipeline.run()


if __name__ == "__main__":
    sys.exit(main())
