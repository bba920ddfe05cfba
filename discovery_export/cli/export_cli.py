"""
Command-line interface for catalog discovery exports.

Usage:
    discovery-export --config config/organizations.yaml [--org NAME] [--full | --since TIMESTAMP]
"""

import argparse
import sys

from dotenv import load_dotenv

from discovery_export.catalog.connection import DatabaseConnectionPool
from discovery_export.core.config import load_export_config, select_profiles
from discovery_export.core.exceptions import ConfigurationError
from discovery_export.core.scope import resolve_window
from discovery_export.export.pipeline import ExportPipeline
from discovery_export.observability import metrics
from discovery_export.observability.logger import get_logger, setup_logger
from discovery_export.transfer.sftp import SftpUploader

EXIT_OK = 0
EXIT_BATCH_FAILURES = 1
EXIT_CONFIGURATION_ERROR = 2

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="discovery-export",
        description="Export catalog records for a discovery index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Default run: full export on quarter start days, otherwise the last 24 hours
  discovery-export --config config/organizations.yaml

  # Full export for one organization, keeping the file locally
  discovery-export --config config/organizations.yaml --org "Example Library" --full --no-upload

  # Incremental export since an explicit point in time
  discovery-export --config config/organizations.yaml --since 2024-01-01T06:00:00
        """
    )
    parser.add_argument(
        "--config",
        required=True,
        help="Path to the organizations YAML file"
    )
    parser.add_argument(
        "--org",
        default=None,
        help="Only process the organization with this name"
    )
    parser.add_argument(
        "--full",
        action="store_true",
        help="Export every record with holdings in scope"
    )
    parser.add_argument(
        "--since",
        default=None,
        help="Incremental lower bound (ISO date or timestamp)"
    )
    parser.add_argument(
        "--no-upload",
        action="store_true",
        help="Write export files but do not transfer them"
    )
    parser.add_argument(
        "--metrics-file",
        default=None,
        help="Write Prometheus metrics to this file when the run ends"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: LOG_LEVEL or INFO)"
    )
    return parser


def run(args: argparse.Namespace) -> int:
    """
    Execute an export run.

    Returns:
        Process exit code
    """
    try:
        window = resolve_window(full=args.full, since=args.since)
        config = load_export_config(args.config)
        profiles = select_profiles(config, args.org)
        pool = DatabaseConnectionPool.from_settings(config.database)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}", extra={"error_category": "configuration"})
        return EXIT_CONFIGURATION_ERROR

    uploader = None if args.no_upload else SftpUploader()

    try:
        with pool:
            pipeline = ExportPipeline(
                pool=pool,
                uploader=uploader,
                holdings_chunk_size=config.holdings_chunk_size,
            )
            outcomes = pipeline.run(profiles, window)
    finally:
        if args.metrics_file:
            metrics.write_metrics(args.metrics_file)

    for outcome in outcomes:
        logger.info(
            f"{outcome.organization} {outcome.kind.value}: {outcome.status.value} ({outcome.record_count} records)",
            extra={
                "organization": outcome.organization,
                "batch_kind": outcome.kind.value,
                "status": outcome.status.value,
                "record_count": outcome.record_count,
                "file_path": str(outcome.file_path) if outcome.file_path else None,
            },
        )

    if all(outcome.succeeded for outcome in outcomes):
        return EXIT_OK
    return EXIT_BATCH_FAILURES


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logger(level=args.log_level)

    try:
        code = run(args)
    except Exception as e:
        logger.error(f"Export run aborted: {e}", exc_info=True)
        code = EXIT_BATCH_FAILURES
    sys.exit(code)


if __name__ == "__main__":
    main()
