import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .. import config
from ..database.ops import DBOperations, PropertyRow
from ..metadata.extract import parse_timestamp
from ..metadata.parsing import parse_image_list
from ..models import PropertyRecord

Predicate = Callable[[PropertyRecord], bool]


# --- Predicates ---

def missing_images() -> Predicate:
    """Only records with no references stored (whether or not the files exist)."""
    return lambda rec: not rec.images


def fewer_than(n: int) -> Predicate:
    return lambda rec: len(rec.images) < n


def min_id(n: int) -> Predicate:
    return lambda rec: rec.id >= n


def all_of(*predicates: Predicate) -> Predicate:
    return lambda rec: all(p(rec) for p in predicates)


class RecordScanner:
    def __init__(self, db_ops: DBOperations):
        self.db = db_ops

    def scan(self, predicate: Optional[Predicate] = None, order: str = "id") -> List[PropertyRecord]:
        """
        Reads every listing, decodes its image list, and returns the ones
        matching `predicate`.

        Args:
            order: "id" (ascending) or "created" (created_at ascending; rows
                   without a timestamp go last, then by id).
        """
        if order not in config.RECORD_ORDERS:
            raise ValueError(f"Unknown record order: {order!r}")

        records = [self.to_record(row) for row in self.db.fetch_property_rows()]
        repaired = sum(1 for r in records if r.images_status == "repaired")
        unparseable = sum(1 for r in records if r.images_status == "unparseable")
        if repaired or unparseable:
            logging.info(f"Image lists: {repaired} repaired, {unparseable} unreadable (treated as empty)")

        if predicate is not None:
            records = [r for r in records if predicate(r)]

        if order == "created":
            far_future = datetime.max.replace(tzinfo=timezone.utc)
            records.sort(key=lambda r: (r.created_at is None, r.created_at or far_future, r.id))
        else:
            records.sort(key=lambda r: r.id)

        logging.info(f"Selected {len(records)} properties for reconciliation")
        return records

    def to_record(self, row: PropertyRow) -> PropertyRecord:
        pid, title, created_raw, images_raw = row
        parsed = parse_image_list(images_raw, context=f"Property {pid}")
        created_at = parse_timestamp(created_raw)
        if created_raw and created_at is None:
            logging.warning(f"Property {pid}: unreadable created_at {created_raw!r}")

        return PropertyRecord(
            id=int(pid),
            title=title or "",
            created_at=created_at,
            images=parsed.images,
            images_status=parsed.status,
        )
