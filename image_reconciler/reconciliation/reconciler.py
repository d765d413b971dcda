import sqlite3
import logging
from typing import FrozenSet, Iterable, List, Optional, Tuple

from tqdm import tqdm

from ..database.ops import DBOperations
from ..exceptions import ReconcilerError
from ..models import PropertyRecord, RecordPlan, ReconcileResult, ReconcileSettings
from ..scanning.filesystem import AssetInventory
from .matching import BackfillMatcher
from .paths import canonical_path, reference_filename
from .stager import AssetStager

Claimed = FrozenSet[str]


class Reconciler:
    """
    Aligns each listing's stored image references with the files on disk.

    Per record: drop references whose file is missing, empty or corrupt;
    backfill from unclaimed files when fewer than `min_images` remain;
    persist the whole list in one UPDATE.

    The claimed set (filenames kept or assigned so far in this run) is passed
    in and handed back, never stored on the instance.
    """

    def __init__(self,
                 db_ops: DBOperations,
                 settings: ReconcileSettings,
                 stager: Optional[AssetStager] = None,
                 matcher: Optional[BackfillMatcher] = None):
        self.db = db_ops
        self.settings = settings
        self.stager = stager
        self.matcher = matcher or BackfillMatcher(settings.window, settings.fallback)

    def reconcile_all(self,
                      records: Iterable[PropertyRecord],
                      inventory: AssetInventory,
                      claimed: Claimed = frozenset()) -> Tuple[List[ReconcileResult], Claimed]:
        records = list(records)

        # Files a record already holds are never handed to another record
        claimed = claimed | self.valid_references(records, inventory)

        results = []
        for record in tqdm(records, desc="Reconciling"):
            result, claimed = self.reconcile(record, inventory, claimed)
            results.append(result)
        return results, claimed

    def valid_references(self, records: Iterable[PropertyRecord], inventory: AssetInventory) -> Claimed:
        names = set()
        for record in records:
            for ref in record.images:
                name = reference_filename(ref)
                image = inventory.get(name) if name else None
                if image is not None and image.is_usable:
                    names.add(name)
        return frozenset(names)

    def reconcile(self,
                  record: PropertyRecord,
                  inventory: AssetInventory,
                  claimed: Claimed) -> Tuple[ReconcileResult, Claimed]:
        plan, claimed = self.plan(record, inventory, claimed)

        result = ReconcileResult(
            id=record.id,
            before=len(record.images),
            after=len(plan.final_images),
            backfilled=len(plan.backfilled),
            discarded=len(plan.discarded),
            changed=plan.needs_write,
        )

        if not plan.needs_write:
            return result, claimed

        if self.settings.dry_run:
            logging.info(f"[DRY RUN] Property {record.id}: would store {plan.final_images}")
            return result, claimed

        try:
            stored = self.commit(plan, inventory)
        except (ReconcilerError, sqlite3.Error, OSError) as e:
            logging.error(f"Property {record.id}: failed to persist images: {e}")
            result.error = str(e)
            return result, claimed

        dropped = set(plan.final_images) - set(stored)
        if dropped:
            backfilled_paths = {canonical_path(f.filename, self.settings.category) for f in plan.backfilled}
            result.backfilled -= len(dropped & backfilled_paths)
            result.discarded += len(dropped - backfilled_paths)
        result.after = len(stored)
        result.persisted = True
        return result, claimed

    def plan(self,
             record: PropertyRecord,
             inventory: AssetInventory,
             claimed: Claimed) -> Tuple[RecordPlan, Claimed]:
        """Works out the corrected list for one record. No side effects besides logging."""
        kept: List[str] = []
        discarded: List[str] = []
        seen = set()

        for ref in record.images:
            name = reference_filename(ref)
            image = inventory.get(name) if name else None

            if image is None:
                reason = "file not found"
            elif image.is_corrupt:
                reason = "corrupt file"
            elif image.size_bytes == 0:
                reason = "empty file"
            elif name in seen:
                reason = "duplicate reference"
            else:
                seen.add(name)
                kept.append(canonical_path(name, self.settings.category))
                continue

            discarded.append(ref)
            logging.info(f"Property {record.id}: discarding {name or repr(ref)} ({reason})")

        needed = min(self.settings.min_images - len(kept), self.settings.max_backfill)
        backfilled = []
        if needed > 0:
            candidates = [
                f for f in inventory.usable()
                if f.filename not in claimed and f.filename not in seen
            ]
            backfilled = self.matcher.select(record.created_at, candidates, needed)
            for image in backfilled:
                when = image.timestamp.isoformat() if image.timestamp else "no timestamp"
                logging.info(f"Property {record.id}: backfilled {image.filename} ({when})")
            if len(kept) + len(backfilled) < self.settings.min_images:
                logging.warning(
                    f"Property {record.id} \"{record.title}\": only {len(kept) + len(backfilled)} "
                    f"image(s), minimum is {self.settings.min_images}"
                )

        claimed = claimed | seen | {f.filename for f in backfilled}
        final_images = kept + [canonical_path(f.filename, self.settings.category) for f in backfilled]

        if discarded or backfilled:
            logging.info(
                f"Property {record.id} \"{record.title}\": {len(discarded)} missing, "
                f"{len(kept)} valid, {len(backfilled)} backfilled"
            )

        return RecordPlan(record, kept, backfilled, discarded, final_images), claimed

    def commit(self, plan: RecordPlan, inventory: AssetInventory) -> List[str]:
        """
        Copy-then-verify-then-update: files are staged and checked first,
        and only the references that survived are written.
        """
        images = plan.final_images
        if self.stager is not None:
            images = self.stager.ensure_served(images, inventory)
        self.db.update_images(plan.record.id, images)
        return images
