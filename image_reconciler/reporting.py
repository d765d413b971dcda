import csv
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .database.ops import DBOperations
from .models import PropertyRecord, ReconcileResult

class ReportGenerator:
    HEADERS = ["id", "title", "before", "after", "backfilled", "discarded", "status", "note"]

    def __init__(self, db_ops: DBOperations, min_images: int = 1):
        self.db = db_ops
        self.min_images = min_images

    def generate_run_report(self,
                            results: List[ReconcileResult],
                            records: List[PropertyRecord],
                            output_csv: str):
        """
        Writes one row per reconciled property.
        """
        titles: Dict[int, str] = {r.id: r.title for r in records}
        statuses: Dict[int, str] = {r.id: r.images_status for r in records}

        out_path = Path(output_csv)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(self.HEADERS)
            for res in results:
                writer.writerow([
                    res.id,
                    titles.get(res.id, ""),
                    res.before,
                    res.after,
                    res.backfilled,
                    res.discarded,
                    self._status(res),
                    self._note(res, statuses.get(res.id)),
                ])

        logging.info(f"Report written: {out_path} ({len(results)} properties)")

    def log_summary(self, results: List[ReconcileResult], copied: int = 0, dry_run: bool = False):
        """Totals for the run, then a check of the whole table."""
        updated = [r for r in results if r.persisted]
        failed = [r for r in results if r.error]
        short = [r for r in results if r.after < self.min_images]

        logging.info("=== Reconciliation Summary ===")
        logging.info(f"Properties examined:  {len(results)}")
        logging.info(f"Properties updated:   {len(updated)}{' (dry run, nothing written)' if dry_run else ''}")
        logging.info(f"References discarded: {sum(r.discarded for r in results)}")
        logging.info(f"Images backfilled:    {sum(r.backfilled for r in results)}")
        logging.info(f"Files copied:         {copied}")
        if failed:
            logging.warning(f"Failed to persist {len(failed)} properties: {[r.id for r in failed]}")
        if short:
            logging.warning(f"{len(short)} properties still below {self.min_images} image(s): {[r.id for r in short]}")

        total, with_images = self.db.count_properties()
        if total:
            logging.info(f"Properties with images: {with_images}/{total} ({round(with_images * 100 / total)}%)")

    def _status(self, res: ReconcileResult) -> str:
        if res.error:
            return "Error"
        if res.persisted:
            return "Updated"
        if res.changed:
            return "Pending"   # dry run
        return "Unchanged"

    def _note(self, res: ReconcileResult, images_status: Optional[str]) -> str:
        notes = []
        if res.error:
            notes.append(res.error)
        if images_status in ("repaired", "unparseable", "manifest"):
            notes.append(f"images {images_status}")
        if res.after < self.min_images:
            notes.append("below minimum")
        return "; ".join(notes)
