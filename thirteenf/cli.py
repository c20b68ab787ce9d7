#!/usr/bin/env python3
"""
ThirteenF CLI - 13F Holdings Pipeline Operations

Usage:
    thirteenf process-all                    # Mandatory targets, then discovery
    thirteenf process-company 0001517137     # One filer
    thirteenf status                         # Database statistics
    thirteenf holdings 0001517137 [24Q3]     # Show a quarter's holdings
    thirteenf refresh-tickers                # Re-download SEC ticker index
    thirteenf config show|validate           # Configuration
"""

import argparse
import sys
from typing import Optional

import pandas as pd

from .ingestion.sec_api import SECApi
from .pipeline.orchestrator import build_pipeline
from .resolution.ticker_index import TickerIndex
from .storage.connection import Database
from .utils.config import get_absolute_path, get_config
from .utils.logger import get_logger, setup_logging

logger = get_logger("thirteenf.cli")


class ThirteenFCLI:
    """Command-line front end for the holdings pipeline."""

    def __init__(self):
        self.config = get_config()
        self._db: Optional[Database] = None

    @property
    def db(self) -> Database:
        if self._db is None:
            self._db = Database(str(self.config.database_path))
            self._db.initialize_schema()
        return self._db

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def cmd_process_all(self, args):
        """Run the full campaign."""
        with build_pipeline(self.config, db=self.db, show_progress=not args.quiet) as pipeline:
            result = pipeline.process_all_companies(args.start_year, args.end_year)
        self._db = None

        stats = result["stats"]
        print("\n" + "=" * 70)
        print(f"  {'SUCCESS' if result['success'] else 'FAILED'}: {result['message']}")
        print("=" * 70)
        for key, value in stats.items():
            print(f"  {key.replace('_', ' ').title():.<30} {value:>10,}")
        print()
        return 0 if result["success"] else 1

    def cmd_process_company(self, args):
        """Process one filer."""
        with build_pipeline(self.config, db=self.db, show_progress=not args.quiet) as pipeline:
            result = pipeline.process_single_company(
                args.cik, args.start_year, args.end_year, args.name
            )
        self._db = None

        print(f"\n{result['company']}")
        print(f"  Processed: {result['processed']}")
        print(f"  Skipped:   {result['skipped']}")
        print(f"  Failed:    {result['failed']}\n")
        return 0

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def cmd_status(self, args):
        """Show database statistics."""
        print("\n" + "=" * 70)
        print("  THIRTEENF STATUS")
        print("=" * 70 + "\n")
        print(f"Environment: {self.config.environment.value}")
        print(f"Database: {self.config.database_path}\n")

        filers = self.db.filers.list_filers()
        print("DATABASE STATISTICS:")
        print(f"  {'Filers':.<30} {len(filers):>10,}")
        print(f"  {'Quarterly reports':.<30} {self.db.filers.count_reports():>10,}")
        print()

        if filers:
            rows = [
                {
                    "cik": f.cik,
                    "filer": f.filer_name[:40],
                    "last_quarter": f.latest_activity.last_reported_quarter,
                    "holdings": f.latest_activity.current_holdings_count,
                    "market_value": f.latest_activity.current_market_value,
                }
                for f in filers
            ]
            df = pd.DataFrame(rows).sort_values("market_value", ascending=False)
            print(df.head(args.limit).to_string(index=False))
            print()
        return 0

    def cmd_holdings(self, args):
        """Show one quarter's holdings (latest by default)."""
        cik = args.cik.zfill(10)
        quarter = args.quarter
        if quarter is None:
            quarters = self.db.holdings.list_quarters(cik)
            if not quarters:
                print(f"\nNo holdings stored for CIK {cik}\n")
                return 1
            filer = self.db.filers.get_filer(cik)
            latest = filer.latest_report if filer else None
            quarter = latest.quarter if latest else quarters[-1]

        df = self.db.holdings.get_holdings_frame(cik, quarter)
        if df.empty:
            print(f"\nNo holdings stored for CIK {cik} in {quarter}\n")
            return 1

        print(f"\nCIK {cik} - {quarter} ({len(df)} positions)\n")
        print(df.head(args.limit).to_string(index=False))
        print()
        return 0

    def cmd_refresh_tickers(self, args):
        """Force a download of SEC's company ticker index."""
        storage = self.config.settings.storage
        with SECApi(config=self.config.settings.sec_api) as sec_api:
            index = TickerIndex(
                fetch=sec_api.get_company_tickers,
                path=get_absolute_path(storage.ticker_index_path),
                ttl_hours=storage.ticker_index_ttl_hours,
            )
            index.refresh()
        print(f"\nIndexed {len(index):,} SEC tickers\n")
        return 0

    def cmd_config(self, args):
        """Configuration operations."""
        if args.action == "show":
            print("\nCurrent Configuration:\n")
            print(f"Environment: {self.config.environment.value}")
            print(f"Database: {self.config.database_path}")

            print("\nSEC API Config:")
            for key, value in self.config.get_sec_api_config().items():
                print(f"  {key}: {value}")

            print("\nAPI Keys:")
            for key, present in self.config.get_api_keys_status().items():
                print(f"  {key}: {'set' if present else 'not set'}")
            print()
            return 0

        errors = self.config.validate()
        if errors:
            print("\nConfiguration errors:")
            for error in errors:
                print(f"  - {error}")
            print()
            return 1
        print("\nConfiguration is valid!\n")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="thirteenf",
        description="13F Institutional Holdings Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--log-level", type=str, default=None, help="Override log level")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    all_parser = subparsers.add_parser("process-all", help="Process targets and discovered filers")
    all_parser.add_argument("--start-year", type=int, default=None)
    all_parser.add_argument("--end-year", type=int, default=None)
    all_parser.add_argument("--quiet", action="store_true", help="Hide progress bars")

    company_parser = subparsers.add_parser("process-company", help="Process one filer")
    company_parser.add_argument("cik", type=str)
    company_parser.add_argument("--name", type=str, default=None, help="Known filer name")
    company_parser.add_argument("--start-year", type=int, default=None)
    company_parser.add_argument("--end-year", type=int, default=None)
    company_parser.add_argument("--quiet", action="store_true", help="Hide progress bars")

    status_parser = subparsers.add_parser("status", help="Show database statistics")
    status_parser.add_argument("--limit", type=int, default=20)

    holdings_parser = subparsers.add_parser("holdings", help="Show a quarter's holdings")
    holdings_parser.add_argument("cik", type=str)
    holdings_parser.add_argument("quarter", type=str, nargs="?", default=None)
    holdings_parser.add_argument("--limit", type=int, default=25)

    subparsers.add_parser("refresh-tickers", help="Re-download the SEC ticker index")

    config_parser = subparsers.add_parser("config", help="Configuration operations")
    config_parser.add_argument("action", choices=["show", "validate"])

    return parser


COMMANDS = {
    "process-all": "cmd_process_all",
    "process-company": "cmd_process_company",
    "status": "cmd_status",
    "holdings": "cmd_holdings",
    "refresh-tickers": "cmd_refresh_tickers",
    "config": "cmd_config",
}


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(log_level=args.log_level)

    cli = ThirteenFCLI()
    try:
        return getattr(cli, COMMANDS[args.command])(args)
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user\n")
        return 130
    except Exception as e:
        logger.error(f"Command failed: {e}", exc_info=True)
        print(f"\nError: {e}\n")
        return 1
    finally:
        cli.close()


if __name__ == "__main__":
    sys.exit(main())
