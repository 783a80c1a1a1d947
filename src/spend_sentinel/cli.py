"""Command-line interface for spend-sentinel."""

import argparse
import mimetypes
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from spend_sentinel import __version__
from spend_sentinel.config import Config, ConfigError, load_config
from spend_sentinel.models.report import AnomalyScanResult, CategoryAnalysisResult, IngestResult
from spend_sentinel.parsers.detector import StatementParser
from spend_sentinel.processing.anomaly_detector import PERIODS, SEVERITY_LEVELS, AnomalyEngine
from spend_sentinel.processing.ingestion import StatementIngestor
from spend_sentinel.storage.base import StoreError
from spend_sentinel.storage.sql import SqlTransactionStore
from spend_sentinel.utils.decimal_utils import format_currency
from spend_sentinel.utils.logging_config import get_logger, setup_logging

# Load environment variables from .env file (if it exists)
load_dotenv()

console = Console()
logger = get_logger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="spend-sentinel",
        description="Ingest bank statements and flag unusual spending",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s ingest --user alice statement.csv
  %(prog)s scan --user alice --period last-30-days
  %(prog)s scan --user alice --severity major
  %(prog)s categories --user alice --period this-week
  %(prog)s dismiss --user alice 3f2a...
  %(prog)s validate-config
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to settings.yaml (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=Path("config"),
        help="Configuration directory (default: ./config)",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL, overrides settings and SPEND_SENTINEL_DATABASE_URL",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest one or more statement files")
    ingest.add_argument("files", type=Path, nargs="+", help="Statement files (CSV or PDF)")
    ingest.add_argument("-u", "--user", required=True, help="Owner of the statements")
    ingest.add_argument(
        "--mime-type",
        default=None,
        help="Declared MIME type (default: guessed from the file name)",
    )
    ingest.add_argument(
        "--strict",
        action="store_true",
        help="Fail on the first malformed CSV row instead of skipping it",
    )

    scan = subparsers.add_parser("scan", help="Run the anomaly scan for a user")
    scan.add_argument("-u", "--user", required=True, help="Owner of the ledger")
    add_window_arguments(scan)
    scan.add_argument("--severity", choices=SEVERITY_LEVELS, default="all", help="Only show this severity")

    categories = subparsers.add_parser("categories", help="Break down spending by category")
    categories.add_argument("-u", "--user", required=True, help="Owner of the ledger")
    add_window_arguments(categories)

    dismiss = subparsers.add_parser("dismiss", help="Mark a flagged transaction as reviewed and normal")
    dismiss.add_argument("-u", "--user", required=True, help="Owner of the transaction")
    dismiss.add_argument("transaction_id", help="Transaction id")

    reset = subparsers.add_parser("reset", help="Return a transaction to the never-analyzed state")
    reset.add_argument("-u", "--user", required=True, help="Owner of the transaction")
    reset.add_argument("transaction_id", help="Transaction id")

    subparsers.add_parser("validate-config", help="Check configuration files and exit")

    return parser


def add_window_arguments(subparser: argparse.ArgumentParser) -> None:
    """Add the analysis window options shared by scan and categories."""
    subparser.add_argument("--period", choices=PERIODS, default="this-month", help="Analysis period")
    subparser.add_argument(
        "--start-date",
        type=lambda s: date.fromisoformat(s),
        default=None,
        help="Explicit window start (YYYY-MM-DD), overrides --period",
    )
    subparser.add_argument(
        "--end-date",
        type=lambda s: date.fromisoformat(s),
        default=None,
        help="Explicit window end (YYYY-MM-DD)",
    )


def get_log_level(verbosity: int) -> str:
    """Convert verbosity count to log level.

    Args:
        verbosity: Number of -v flags.

    Returns:
        Log level string.
    """
    if verbosity >= 2:
        return "DEBUG"
    elif verbosity >= 1:
        return "INFO"
    else:
        return "WARNING"


def resolve_log_level(verbosity: int, configured: str) -> str:
    """Pick the log level: -v flags win over the configured level."""
    if verbosity:
        return get_log_level(verbosity)
    return configured.upper()


def validate_config(args: argparse.Namespace) -> int:
    """Validate configuration files.

    Args:
        args: Parsed command-line arguments.

    Returns:
        0 if valid, 1 if errors found.
    """
    console.print("[bold]Validating configuration files...[/bold]\n")

    errors = []
    warnings = []

    config_dir = args.config_dir
    if not config_dir.exists():
        warnings.append(f"Config directory not found: {config_dir}")

    settings_path = args.config or (config_dir / "settings.yaml")
    if settings_path.exists():
        console.print(f"[green]✓[/green] Settings: {settings_path}")
    else:
        warnings.append(f"Settings file not found: {settings_path}")

    try:
        config = load_config(settings_path=args.config, config_dir=config_dir)
        console.print("\n[green]✓[/green] Configuration loaded successfully")
        console.print(f"  - baseline history: {config.anomaly.history_months} months")
        console.print(f"  - scoring workers: {config.anomaly.workers}")
        console.print(f"  - upload limit: {config.ingest.max_upload_bytes:,} bytes")
    except (ConfigError, FileNotFoundError) as e:
        errors.append(f"Failed to load configuration: {e}")

    if warnings:
        console.print("\n[yellow]Warnings:[/yellow]")
        for w in warnings:
            console.print(f"  - {w}")

    if errors:
        console.print("\n[red]Errors:[/red]")
        for err in errors:
            console.print(f"  - {err}")
        return 1

    console.print("\n[green]Configuration is valid.[/green]")
    return 0


def display_ingest_result(filename: str, result: IngestResult) -> None:
    """Display the outcome of one ingestion."""
    if not result.success:
        console.print(f"[red]✗ {filename}: {result.message}[/red]")
        return

    console.print(f"[green]✓[/green] {filename}: {result.message}")
    if result.rows_skipped:
        console.print(f"  [yellow]{result.rows_skipped} malformed rows skipped[/yellow]")


def display_scan_result(result: AnomalyScanResult) -> None:
    """Display anomalies as a table followed by the summary."""
    summary = result.summary
    console.print(
        f"\n[bold]Anomaly scan ({result.period})[/bold]: "
        f"{result.analyzed_count} transactions analyzed, {summary.total} anomalies"
    )
    console.print(f"  Major: {summary.major}  Moderate: {summary.moderate}  Minor: {summary.minor}")
    if result.failed_count:
        console.print(f"  [yellow]{result.failed_count} transactions could not be analyzed[/yellow]")

    if not result.anomalies:
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Date")
    table.add_column("Merchant")
    table.add_column("Category")
    table.add_column("Amount", justify="right")
    table.add_column("Severity")
    table.add_column("Reason")
    table.add_column("Id", style="dim")

    colors = {"major": "red", "moderate": "yellow", "minor": "cyan"}
    for record in result.anomalies:
        txn = record.transaction
        severity = record.details.severity.value if record.details.severity else ""
        table.add_row(
            txn.date.isoformat(),
            txn.merchant,
            txn.category,
            format_currency(txn.amount),
            f"[{colors.get(severity, 'white')}]{severity}[/]",
            record.details.reason,
            txn.id,
        )
    console.print(table)


def display_category_analysis(result: CategoryAnalysisResult) -> None:
    """Display the per-category spending breakdown."""
    console.print(
        f"\n[bold]Spending by category ({result.start_date} to {result.end_date})[/bold]: "
        f"{format_currency(result.total_spending)} total"
    )
    if not result.categories:
        console.print("  No spending in this period")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Category")
    table.add_column("Amount", justify="right")
    table.add_column("Share", justify="right")
    table.add_column("Count", justify="right")
    table.add_column("Average", justify="right")

    for category in result.categories:
        table.add_row(
            category.display_name,
            format_currency(category.amount),
            f"{category.percentage}%",
            str(category.transaction_count),
            format_currency(category.average),
        )
    console.print(table)


def open_store(config: Config, database_url: Optional[str]) -> SqlTransactionStore:
    """Open the ledger named by the CLI flag or the configuration."""
    url = database_url or config.database.url
    return SqlTransactionStore(url=url, echo=config.database.echo)


def run_ingest(args: argparse.Namespace, config: Config, store: SqlTransactionStore) -> int:
    """Ingest every file given on the command line.

    Returns:
        0 if every file was read, 1 otherwise.
    """
    ingestor = StatementIngestor(
        store,
        config=config.ingest,
        parser=StatementParser(config.ingest, strict=args.strict),
    )

    exit_code = 0
    for path in args.files:
        if not path.is_file():
            console.print(f"[red]Error: File not found: {path}[/red]")
            exit_code = 1
            continue

        mime_type = args.mime_type or mimetypes.guess_type(path.name)[0]
        result = ingestor.ingest(args.user, path.read_bytes(), path.name, mime_type)
        display_ingest_result(path.name, result)
        if not result.success:
            exit_code = 1
    return exit_code


def run_scan(args: argparse.Namespace, config: Config, store: SqlTransactionStore) -> int:
    """Run the anomaly scan and print the results."""
    engine = AnomalyEngine(store, config.anomaly)
    try:
        result = engine.detect_anomalies(
            args.user,
            period=args.period,
            severity_level=args.severity,
            start_date=args.start_date,
            end_date=args.end_date,
        )
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    display_scan_result(result)
    return 0


def run_categories(args: argparse.Namespace, config: Config, store: SqlTransactionStore) -> int:
    """Print the category breakdown for the requested window."""
    engine = AnomalyEngine(store, config.anomaly)
    try:
        result = engine.category_analysis(
            args.user,
            period=args.period,
            start_date=args.start_date,
            end_date=args.end_date,
        )
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    display_category_analysis(result)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Arguments to parse (default: sys.argv).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    log_level = get_log_level(args.verbose)
    setup_logging(level=log_level, console_output=args.verbose > 0)

    if args.command == "validate-config":
        return validate_config(args)

    try:
        config = load_config(settings_path=args.config, config_dir=args.config_dir)
    except (ConfigError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("Run validate-config to check configuration files.")
        return 1

    log_level = resolve_log_level(args.verbose, config.logging.level)
    setup_logging(level=log_level, log_file=config.logging.file, console_output=args.verbose > 0)

    try:
        store = open_store(config, args.database_url)

        if args.command == "ingest":
            return run_ingest(args, config, store)
        if args.command == "scan":
            return run_scan(args, config, store)
        if args.command == "categories":
            return run_categories(args, config, store)

        engine = AnomalyEngine(store, config.anomaly)
        if args.command == "dismiss":
            engine.dismiss(args.user, args.transaction_id)
            console.print(f"[green]Transaction {args.transaction_id} dismissed[/green]")
        elif args.command == "reset":
            engine.reset(args.user, args.transaction_id)
            console.print(f"[green]Transaction {args.transaction_id} reset[/green]")
    except StoreError as e:
        logger.error(f"{args.command} failed: {e}")
        console.print(f"[red]Error: {e}[/red]")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
