import logging
import re
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Any

import exifread
from PIL import Image, UnidentifiedImageError

from .. import config


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Handles the timestamp shapes found in listing rows (ISO strings, Postgres
    text output, epoch seconds/milliseconds, datetime objects).
    Returns a tz-aware UTC datetime; naive values are taken as UTC.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return _as_utc(value)

    if isinstance(value, (int, float)):
        return _from_epoch(value)

    clean = str(value).strip()
    if clean.isdigit():
        return _from_epoch(int(clean))

    # Postgres renders "+00" offsets, fromisoformat wants "+00:00"
    clean = clean.replace("UTC", "").replace("Z", "+00:00").strip()
    if re.search(r'\d{2}:\d{2}(:\d{2}(\.\d+)?)?[+-]\d{2}$', clean):
        clean = clean + ":00"

    # 1. Try ISO format (e.g. 2020-01-01T12:00:00)
    try:
        return _as_utc(datetime.fromisoformat(clean))
    except ValueError:
        pass

    # 2. Try EXIF style "YYYY:MM:DD HH:MM:SS"
    try:
        clean_exif = clean.replace(":", "-", 2)
        if "." in clean_exif:
            clean_exif = clean_exif.split(".")[0]
        return _as_utc(datetime.strptime(clean_exif, "%Y-%m-%d %H:%M:%S"))
    except ValueError:
        pass

    logging.debug(f"Unrecognized timestamp value: {value!r}")
    return None


def _from_epoch(value: float) -> Optional[datetime]:
    # 13-digit values are milliseconds
    seconds = value / 1000.0 if value > 1e11 else float(value)
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class MetadataExtractor:
    """
    Identifying metadata for image files.

    Strategies:
      - Timestamp: filename convention first (epoch embedded by the uploader),
        then EXIF via 'exifread' when enabled.
      - Integrity: Pillow's verify() when enabled.
    """

    def __init__(self, use_exif: bool = False, verify: bool = False):
        self.use_exif = use_exif
        self.verify = verify
        self.patterns = [re.compile(p, re.IGNORECASE) for p in config.TIMESTAMP_PATTERNS]

    def get_timestamp(self, path: Path) -> Optional[datetime]:
        ts = self.timestamp_from_filename(path.name)
        if ts is None and self.use_exif:
            ts = self.get_exif_datetime(path)
        return ts

    def timestamp_from_filename(self, filename: str) -> Optional[datetime]:
        """Returns None for opaque names (UUIDs, camera names)."""
        for pat in self.patterns:
            m = pat.match(filename)
            if m:
                return _from_epoch(int(m.group(1)))
        return None

    def get_exif_datetime(self, path: Path) -> Optional[datetime]:
        try:
            with path.open('rb') as f:
                # details=False speeds up processing significantly
                tags = exifread.process_file(f, details=False)
        except Exception as e:
            logging.warning(f"EXIF read failed for {path}: {e}")
            return None

        if not tags:
            logging.debug(f"No EXIF tags found for {path}")
            return None
        return self._parse_exif_date(tags)

    def is_corrupt(self, path: Path) -> bool:
        """True when Pillow cannot identify or verify the file."""
        if not self.verify:
            return False
        try:
            with Image.open(path) as im:
                im.verify()
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            logging.warning(f"Image verification failed for {path}: {e}")
            return True
        return False

    def _parse_exif_date(self, tags) -> Optional[datetime]:
        """Helper to parse standard EXIF date strings from exifread."""
        for tag in config.DATE_TAGS:
            if tag in tags:
                try:
                    # EXIF format is usually "YYYY:MM:DD HH:MM:SS"
                    dt_str = str(tags[tag]).replace(':', '-', 2)
                    return _as_utc(datetime.strptime(dt_str, "%Y-%m-%d %H:%M:%S"))
                except ValueError:
                    continue
        return None
