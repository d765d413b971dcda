"""
Configuration constants for the image reconciler.
"""
from datetime import timedelta
from pathlib import Path

# --- File Type Definitions ---
IMAGE_EXTS = {'.jpg', '.jpeg', '.png', '.gif', '.webp'}

# --- Filename Timestamp Conventions ---
# Group 1 must capture the epoch value.
# images-1748369721196-483920117.jpg  (multer disk storage)
# image_1748369721196.png             (pasted/attached assets)
TIMESTAMP_PATTERNS = [
    r'^images?[-_](\d{10}|\d{13})[-_]',
    r'^images?[-_](\d{10}|\d{13})\.',
]

# EXIF tags tried (in order) when --exif-timestamps is enabled
DATE_TAGS = [
    'EXIF DateTimeOriginal',
    'EXIF DateTimeDigitized',
    'Image DateTime',
]

# --- Locations ---
DB_PATH = Path("properties.db")
UPLOADS_DIR = Path("public/uploads/properties")
STAGING_DIRS = [Path("attached_assets")]
LOG_FILENAME = "reconcile.log"

# Canonical reference form: /uploads/<category>/<filename>
URL_PREFIX = "/uploads"
DEFAULT_CATEGORY = "properties"

# --- Reconciliation Thresholds ---
MIN_IMAGES = 1
MAX_BACKFILL = 4
MATCH_WINDOW = timedelta(hours=2)
FALLBACK_POLICIES = ("nearest", "sequential", "none")
DEFAULT_FALLBACK = "nearest"
RECORD_ORDERS = ("id", "created")

# --- Copy Verification ---
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for reading
STAGED_FILE_MODE = 0o644
