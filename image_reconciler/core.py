import logging
from pathlib import Path
from typing import List, Optional

from .database.db import DBManager
from .database.ops import DBOperations
from .manifest import load_manifest, apply_manifest
from .metadata.extract import MetadataExtractor
from .models import ReconcileResult, ReconcileSettings
from .reconciliation.reconciler import Reconciler
from .reconciliation.stager import AssetStager
from .reporting import ReportGenerator
from .scanning.filesystem import AssetScanner
from .scanning.records import RecordScanner, Predicate

class ReconcilerApp:
    def __init__(self, db_path: Path):
        self.db_manager = DBManager(db_path)

    def run(self,
            settings: ReconcileSettings,
            predicate: Optional[Predicate] = None,
            order: str = "id",
            manifest_path: Optional[Path] = None,
            stage_all: bool = False,
            use_exif: bool = False,
            verify_images: bool = False,
            report_csv: Optional[str] = None) -> List[ReconcileResult]:
        """
        One linear pass:
        1. Scan assets (serving dir + staging dirs)
        2. Scan records (optionally overridden by a manifest)
        3. Reconcile and persist, record by record
        4. Report
        """
        # A bad manifest must stop the run before anything is written
        manifest = load_manifest(manifest_path) if manifest_path else None

        with self.db_manager as conn:
            db_ops = DBOperations(conn)

            # --- Step 1: Asset Inventory ---
            logging.info(f"Scanning images in {', '.join(str(r) for r in settings.scan_roots)}...")
            scanner = AssetScanner(MetadataExtractor(use_exif=use_exif, verify=verify_images))
            inventory = scanner.scan(settings.scan_roots)
            timestamped = sum(1 for f in inventory if f.timestamp is not None)
            logging.info(f"Inventory: {len(inventory)} images ({timestamped} with timestamps)")

            stager = AssetStager(settings.uploads_dir, dry_run=settings.dry_run)
            if stage_all:
                stager.stage_all(inventory)

            # --- Step 2: Records ---
            all_records = RecordScanner(db_ops).scan(order=order)
            if manifest:
                all_records = apply_manifest(all_records, manifest)

            selected = [
                r for r in all_records
                if predicate is None or predicate(r) or (manifest and r.id in manifest)
            ]
            selected_ids = {r.id for r in selected}
            logging.info(f"Reconciling {len(selected)} of {len(all_records)} properties")

            # --- Step 3: Reconcile ---
            reconciler = Reconciler(db_ops, settings, stager=stager)
            # Images held by listings outside the selection stay theirs
            claimed = reconciler.valid_references(
                [r for r in all_records if r.id not in selected_ids], inventory
            )
            results, _ = reconciler.reconcile_all(selected, inventory, claimed)

            # --- Step 4: Report ---
            reporter = ReportGenerator(db_ops, min_images=settings.min_images)
            if report_csv:
                reporter.generate_run_report(results, selected, report_csv)
            reporter.log_summary(results, copied=stager.copied, dry_run=settings.dry_run)

            logging.info("Reconciliation complete.")
            return results
