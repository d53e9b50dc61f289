import argparse
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import ConfigError, load_config
from .docstore import DocumentStoreClient
from .env import load_env
from .logger import get_logger
from .retry import BACKOFF_MODES
from .sync import SyncOrchestrator
from .warehouse import WarehouseClient


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bqsync",
        description="Replace a Firestore collection with the rows of a BigQuery table",
    )
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument(
        "--credentials",
        type=Path,
        help="Service account JSON (or set BQSYNC_CREDENTIALS; default: bigquery-firestore-sync.json)",
    )
    parser.add_argument("--dataset", help="BigQuery dataset (or set BQSYNC_DATASET)")
    parser.add_argument("--table", help="BigQuery table (or set BQSYNC_TABLE)")
    parser.add_argument("--collection", help="Firestore collection to replace (or set BQSYNC_COLLECTION)")
    parser.add_argument("--chunk-size", type=int, help="Documents per BulkWriter session (default 5000)")
    parser.add_argument("--delete-batch-size", type=int, help="References per delete batch (max 500)")
    parser.add_argument("--max-write-attempts", type=int, help="Attempts per document before giving up (default 15)")
    parser.add_argument("--backoff", choices=sorted(BACKOFF_MODES), help="BulkWriter retry backoff (default exponential)")
    parser.add_argument("--dry-run", action="store_true", help="List and query only; change nothing in Firestore")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Console log level")
    parser.add_argument("--log-dir", type=Path, help="Directory for log files (default: logs/)")
    parser.add_argument("--no-log-file", action="store_true", help="Log to console only")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    # Load .env if present (BQSYNC_CREDENTIALS, BQSYNC_COLLECTION, etc.)
    load_env()
    args = build_parser().parse_args(argv)

    if args.version:
        print(__version__)
        return

    logger = get_logger(
        level=args.log_level,
        log_dir=args.log_dir,
        enable_file=not args.no_log_file,
    )

    try:
        config = load_config(
            credentials_path=args.credentials,
            dataset=args.dataset,
            table=args.table,
            collection=args.collection,
            chunk_size=args.chunk_size,
            delete_batch_size=args.delete_batch_size,
            max_write_attempts=args.max_write_attempts,
            backoff=args.backoff,
        )
    except ConfigError as e:
        logger.critical(f"Configuration error: {e}")
        raise SystemExit(1)

    logger.info(
        "Starting sync",
        source=config.table_ref,
        collection=config.collection,
        chunk_size=config.chunk_size,
        delete_batch_size=config.delete_batch_size,
        write_retry=repr(config.write_retry),
        dry_run=args.dry_run,
    )

    try:
        orchestrator = SyncOrchestrator(
            config,
            WarehouseClient.from_config(config, logger=logger),
            DocumentStoreClient.from_config(config, logger=logger),
            logger=logger,
            dry_run=args.dry_run,
        )
        orchestrator.run()
    except Exception as e:
        logger.error(f"Exiting with status 1: {e}")
        logger.log_metrics_summary()
        raise SystemExit(1)

    logger.log_metrics_summary()


if __name__ == "__main__":
    main()
