import argparse
import logging
import sys
from datetime import timedelta
from pathlib import Path

from . import config
from .core import ReconcilerApp
from .exceptions import ReconcilerError
from .models import ReconcileSettings
from .scanning.records import all_of, min_id, missing_images

def setup_logging(log_file: Path, verbose: bool):
    """Sets up logging to both console and a file beside the database."""
    log_level = logging.DEBUG if verbose else logging.INFO

    log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)

def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Reconcile property image references with the files on disk."
    )

    p.add_argument("--db", type=Path, default=config.DB_PATH, help=f"SQLite database (default: {config.DB_PATH})")
    p.add_argument("--uploads-dir", type=Path, default=config.UPLOADS_DIR,
                   help=f"Serving directory for property images (default: {config.UPLOADS_DIR})")
    p.add_argument("--staging-dir", type=Path, action="append", default=None,
                   help="Extra directory to pull images from; repeatable (default: attached_assets)")
    p.add_argument("--category", default=config.DEFAULT_CATEGORY,
                   help="Path segment used in stored references: /uploads/<category>/<file>")

    p.add_argument("--min-images", type=int, default=config.MIN_IMAGES,
                   help="Backfill properties with fewer valid images than this")
    p.add_argument("--max-backfill", type=int, default=config.MAX_BACKFILL,
                   help="Most images assigned to one property per run")
    p.add_argument("--window-minutes", type=int, default=int(config.MATCH_WINDOW.total_seconds() // 60),
                   help="Proximity window between listing creation and image timestamp")
    p.add_argument("--fallback", choices=config.FALLBACK_POLICIES, default=config.DEFAULT_FALLBACK,
                   help="What to assign when nothing is within the window")
    p.add_argument("--order", choices=config.RECORD_ORDERS, default="id",
                   help="Processing order; earlier properties get first pick of images")

    p.add_argument("--only-missing", action="store_true", help="Only process properties with no images stored")
    p.add_argument("--min-id", type=int, default=None, help="Only process properties with id >= this")
    p.add_argument("--manifest", type=Path, default=None, help="JSON manifest of curated image lists")
    p.add_argument("--stage-all", action="store_true",
                   help="Copy every staging image missing from the serving directory first")

    p.add_argument("--exif-timestamps", action="store_true", help="Fall back to EXIF dates for unnamed files")
    p.add_argument("--verify-images", action="store_true", help="Open each image with Pillow and skip corrupt ones")
    p.add_argument("--dry-run", action="store_true", help="Log what would change without writing or copying")
    p.add_argument("--report-csv", type=str, default=None, help="Write a per-property CSV report here")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    args = p.parse_args(argv)
    if args.min_images < 0:
        p.error("--min-images must be >= 0")
    if args.max_backfill < 0:
        p.error("--max-backfill must be >= 0")
    if args.window_minutes < 0:
        p.error("--window-minutes must be >= 0")
    return args

def build_settings(args) -> ReconcileSettings:
    staging_dirs = args.staging_dir if args.staging_dir is not None else list(config.STAGING_DIRS)
    return ReconcileSettings(
        uploads_dir=args.uploads_dir,
        staging_dirs=staging_dirs,
        category=args.category,
        min_images=args.min_images,
        max_backfill=args.max_backfill,
        window=timedelta(minutes=args.window_minutes),
        fallback=args.fallback,
        dry_run=args.dry_run,
    )

def build_predicate(args):
    predicates = []
    if args.only_missing:
        predicates.append(missing_images())
    if args.min_id is not None:
        predicates.append(min_id(args.min_id))
    if not predicates:
        return None
    return all_of(*predicates)

def main(argv=None):
    args = parse_args(argv)

    # 1. Setup
    db_path = args.db.resolve()
    setup_logging(db_path.parent / config.LOG_FILENAME, args.verbose)

    settings = build_settings(args)

    logging.info("=== Image Reconciler Started ===")
    logging.info(f"Database: {db_path}")
    logging.info(f"Uploads:  {settings.uploads_dir}")
    if settings.dry_run:
        logging.info("DRY RUN: no files will be copied and no records written")

    # 2. Execution
    app = ReconcilerApp(db_path)

    try:
        app.run(
            settings,
            predicate=build_predicate(args),
            order=args.order,
            manifest_path=args.manifest,
            stage_all=args.stage_all,
            use_exif=args.exif_timestamps,
            verify_images=args.verify_images,
            report_csv=args.report_csv,
        )
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except ReconcilerError as e:
        logging.error(f"Reconciliation aborted: {e}")
        sys.exit(1)
    except Exception:
        logging.exception("Fatal error during reconciliation.")
        sys.exit(1)

if __name__ == "__main__":
    main()
