import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import config
from .config import KrakerConfig, load_config
from .core import KrakerApp
from .exceptions import ConfigurationError, CredentialError, ServiceError, TransportError
from .optimization.client import KrakenClient
from .reporting import ReportGenerator, format_size
from .scanning.filesystem import DiskScanner

def setup_logging(log_dir: Optional[Path], verbose: bool):
    """
    Sets up logging to the console and, when log_dir is given, to a file next
    to the metadata database. Without log_dir nothing is written to disk.
    """
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(log_dir / config.LOG_FILE_NAME, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers
    )

    # Silence chatty libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Image Kraker: optimize images in place with the Kraken API")

    p.add_argument("root", type=Path, help="Image library root to scan")
    p.add_argument("record_ids", nargs="*", help="Only krake these records (image paths relative to root)")

    # Unset flags stay None so the config file can fill them in
    p.add_argument("--lossy", action="store_const", const=True, default=None, help="Use lossy image compression")
    p.add_argument("--limit", type=str, default=None, help="Maximum number of images to krake. Default: -1")
    p.add_argument("--types", type=str, default=None, help="Image format(s) to krake. Default: 'gif,jpeg,png,svg'")
    p.add_argument("--compare", type=str, default=None,
                   help=f"Metadata comparison method. Values: {', '.join(config.COMPARE_METHODS)}. Default: hash")
    p.add_argument("--all", action="store_true", help="Bypass metadata comparison")
    p.add_argument("--dry-run", action="store_true", help="Show the report without executing API calls")
    p.add_argument("--api-key", type=str, default=None, help="Kraken API key to use")
    p.add_argument("--api-secret", type=str, default=None, help="Kraken API secret to use")
    p.add_argument("--api-test", action="store_true", help="Validate Kraken API credentials and show account summary")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    p.add_argument("--config", type=Path, default=None, help="YAML config file with a `kraken:` section")
    p.add_argument("--db", type=Path, default=None, help=f"Custom path for SQLite DB (default: root/{config.DEFAULT_DB_NAME})")
    p.add_argument("--report-csv", type=Path, default=None, help="Write a per-image CSV report to this path")

    return p.parse_args(argv)

def check_credentials(client: KrakenClient, api_test: bool) -> bool:
    """
    Validates the credentials before anything is uploaded.
    Returns True if the caller should stop (API test finished).
    Raises CredentialError if the API rejects the credentials.
    """
    try:
        status = client.validate_credentials()
    except (TransportError, ServiceError) as e:
        logging.warning(f"Kraken API credentials validation failed. ({e})")
        if api_test:
            raise CredentialError(f"Kraken API test failed. ({e})") from e
        return False

    logging.info(
        f"Monthly Quota: {format_size(status.quota_total)}, "
        f"Current Usage: {format_size(status.quota_used)}, "
        f"Remaining: {format_size(status.quota_remaining)}"
    )
    if api_test:
        logging.info("Kraken API test successful.")
        return True
    return False

def log_banner(cfg: KrakerConfig, record_count: int):
    scope = "Kraking all found images." if cfg.limit == -1 else f"Kraking first {cfg.limit} images found."
    logging.info(f"Found {record_count} records to check. {scope}")

    if cfg.compare == 'hash':
        logging.info("Skipping already kraked images (comparing file content hashes).")
    elif cfg.compare == 'timestamp':
        logging.info("Skipping already kraked images (comparing file modification times).")

    logging.info(
        f"Using {'lossy' if cfg.lossy else 'lossless'} compression for "
        f"{', '.join(cfg.types).upper()} files."
    )

def main(argv=None):
    args = parse_args(argv)

    # 1. Setup
    root = args.root.resolve()
    db_path = args.db.resolve() if args.db else root / config.DEFAULT_DB_NAME

    # A dry run leaves the library untouched, log file included
    setup_logging(None if args.dry_run else db_path.parent, args.verbose)
    logging.info("=== Image Kraker Started ===")
    logging.info(f"Root: {root}")

    # 2. Config (flags > config file > defaults)
    try:
        cfg = load_config(
            {
                'api_key': args.api_key,
                'api_secret': args.api_secret,
                'lossy': args.lossy,
                'limit': args.limit,
                'types': args.types,
                'compare': args.compare,
                'all': args.all,
                'dry_run': args.dry_run,
            },
            args.config,
        )
    except ConfigurationError as e:
        logging.error(str(e))
        sys.exit(1)

    client = KrakenClient(cfg.api_key, cfg.api_secret)

    # 3. Credentials
    if not cfg.dry_run or args.api_test:
        try:
            if check_credentials(client, args.api_test):
                sys.exit(0)
        except CredentialError as e:
            logging.error(str(e))
            sys.exit(1)

    if not root.is_dir():
        logging.error(f"Root {root} is not a directory.")
        sys.exit(1)

    # 4. Enumerate
    scanner = DiskScanner(cfg.types)
    candidates = list(scanner.scan(root, args.record_ids))
    if not candidates:
        logging.warning("No matching images found.")
        return

    log_banner(cfg, len({c.record_id for c in candidates}))

    # 5. Execution
    app = KrakerApp(db_path)
    try:
        coordinator = app.krake(candidates, cfg, client=client)
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except Exception:
        logging.exception("Fatal error during kraking.")
        sys.exit(1)

    # 6. Report
    reporter = ReportGenerator(coordinator.stats, dry_run=cfg.dry_run)
    reporter.log_summary()
    if args.report_csv:
        reporter.write_outcomes_csv(coordinator.outcomes, args.report_csv)

if __name__ == "__main__":
    main()
