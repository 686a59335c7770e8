#!/usr/bin/env python3
"""Main entry point for the CVE threat dashboard."""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .aggregate import threats_view
from .config import app_setting, load_config
from .pipeline import build_pipeline
from .storage import write_snapshot


def setup_logging(verbose: bool = False, log_file: Optional[str] = None):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def run_once(config: dict, output: Optional[str] = None) -> Path:
    """Run the pipeline once and write the threat snapshot file."""
    logger = logging.getLogger(__name__)
    start_time = datetime.now(timezone.utc)

    logger.info("=" * 60)
    logger.info("Starting threat data update")
    logger.info("=" * 60)

    pipeline = build_pipeline(config)
    articles = pipeline.articles()
    data = threats_view(articles, now=datetime.now(timezone.utc))

    snapshot_path = output or app_setting(config, "snapshot_path", "data/threats.json")
    path = write_snapshot(data, snapshot_path)

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    summary = data["summary"]
    logger.info("=" * 60)
    logger.info("Update complete")
    logger.info(f"Duration: {duration:.2f}s")
    logger.info(f"Threats: {summary['activeThreats']}")
    logger.info(f"CVEs monitored: {summary['cvesMonitored']}")
    logger.info(f"Mitigations: {summary['mitigationsApplied']}")
    logger.info(f"Written to: {path}")
    logger.info("=" * 60)
    return path


def serve(config: dict, host: Optional[str] = None, port: Optional[int] = None):
    from .server import create_app

    server_config = config.get("server") or {}
    app = create_app(config)
    app.run(
        host=host or server_config.get("host", "127.0.0.1"),
        port=port or int(server_config.get("port", 5000)),
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="CVE threat feed aggregator and dashboard API"
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to config YAML file (default: config.yaml)",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Start the HTTP API instead of writing a snapshot",
    )
    parser.add_argument("--host", help="Override server host from config")
    parser.add_argument("--port", type=int, help="Override server port from config")
    parser.add_argument(
        "--output",
        help="Snapshot file path (default: app.snapshot_path or data/threats.json)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-file",
        help="Path to log file (default: logs/cve-dashboard.log)",
    )

    args = parser.parse_args()

    log_file = args.log_file or "logs/cve-dashboard.log"
    setup_logging(verbose=args.verbose, log_file=log_file)

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        logging.error(f"Configuration error: {e}")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Error loading config: {e}")
        sys.exit(1)

    try:
        if args.serve:
            serve(config, host=args.host, port=args.port)
        else:
            run_once(config, output=args.output)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logging.exception(f"Error during execution: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
