from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, List, Dict, Any

@dataclass
class ImageFile:
    """
    Represents one image file found during an asset scan.
    """
    filename: str
    path: Path
    root: Path
    size_bytes: int
    timestamp: Optional[datetime] = None   # tz-aware UTC, from filename or EXIF
    is_corrupt: bool = False               # only set when --verify-images is on

    @property
    def is_usable(self) -> bool:
        return self.size_bytes > 0 and not self.is_corrupt


@dataclass
class PropertyRecord:
    """
    A listing row as seen by the reconciler. Only `images` is ever rewritten.
    """
    id: int
    title: str
    created_at: Optional[datetime]
    images: List[str] = field(default_factory=list)
    images_status: str = "ok"   # ok/repaired/empty/unparseable/manifest


@dataclass
class RecordPlan:
    """The corrected image list for one record, before it is persisted."""
    record: PropertyRecord
    kept: List[str]
    backfilled: List[ImageFile]
    discarded: List[str]
    final_images: List[str]

    @property
    def needs_write(self) -> bool:
        # Repaired rows get rewritten as clean JSON even when the list is unchanged
        if self.record.images_status in ("repaired", "unparseable", "manifest"):
            return True
        return self.final_images != self.record.images


@dataclass
class ReconcileResult:
    id: int
    before: int
    after: int
    backfilled: int
    discarded: int
    changed: bool = False     # the plan differs from what is stored
    persisted: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'before': self.before,
            'after': self.after,
            'backfilled': self.backfilled,
            'discarded': self.discarded,
        }


@dataclass
class ReconcileSettings:
    """One run's knobs. Defaults come from config; the CLI overrides them."""
    uploads_dir: Path
    staging_dirs: List[Path] = field(default_factory=list)
    category: str = "properties"
    min_images: int = 1
    max_backfill: int = 4
    window: timedelta = timedelta(hours=2)
    fallback: str = "nearest"
    dry_run: bool = False

    @property
    def scan_roots(self) -> List[Path]:
        # Serving directory first so it wins filename collisions
        return [self.uploads_dir, *[d for d in self.staging_dirs if d != self.uploads_dir]]
