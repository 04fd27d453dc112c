"""
AgroSync command line.

Usage:
    agrosync run                  # Start the periodic sync loop
    agrosync sync-now             # Run one manual sync cycle
    agrosync status               # Pending counts and last sync time
    agrosync export --delta       # Send changed records to the report sink
    agrosync export --full        # Send a full snapshot to the report sink
    agrosync serve-mock --port N  # Run the mock reconciliation API
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .app import SyncApplication
from .config import AppConfig
from .mock_api import run_server


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agrosync",
        description="Local-first sync agent for farm records",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--db", help="Path to the local SQLite store (overrides AGROSYNC_DB_PATH)")
    parser.add_argument("--api-url", help="Reconciliation API base URL (overrides AGROSYNC_API_URL)")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("run", help="Start the periodic sync loop")
    commands.add_parser("sync-now", help="Run one manual sync cycle")
    commands.add_parser("status", help="Show pending counts and last sync time")

    export = commands.add_parser("export", help="Send a report to the configured sink")
    mode = export.add_mutually_exclusive_group(required=True)
    mode.add_argument("--delta", action="store_true", help="Only records changed since the last export")
    mode.add_argument("--full", action="store_true", help="Full snapshot of every entity type")

    serve = commands.add_parser("serve-mock", help="Run the mock reconciliation API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8080)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the sync agent.
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "serve-mock":
        run_server(args.host, args.port)
        return 0

    config = AppConfig.from_env()
    if args.db:
        config.database.path = args.db
    if args.api_url:
        config.cloud_sync.api_base_url = args.api_url

    app = SyncApplication(config)
    if args.command == "run":
        app.run()
        return 0

    try:
        if args.command == "sync-now":
            report = app.sync_now()
            print(report.summary())
            return 0 if report.succeeded else 1
        if args.command == "status":
            print(json.dumps(app.status(), indent=2))
            return 0
        if args.command == "export":
            ok, message = app.exporter.export_full() if args.full else app.exporter.export_delta()
            print(message)
            return 0 if ok else 1
    finally:
        app.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
