"""
Reference path normalization.

Records store references in many spellings (/uploads/properties/x.jpg,
./public/uploads/x.jpg, /attached_assets/x.jpg, Windows backslashes, URLs
with query strings). Only the basename identifies the file.
"""
import posixpath
from typing import Optional

from .. import config


def reference_filename(ref: str) -> Optional[str]:
    """Returns the basename of a stored reference, or None if there is none."""
    if not isinstance(ref, str):
        return None
    clean = ref.strip().replace("\\", "/")
    clean = clean.split("?", 1)[0].split("#", 1)[0]
    name = posixpath.basename(clean.rstrip("/"))
    if not name or name in (".", ".."):
        return None
    return name


def canonical_path(filename: str, category: str = config.DEFAULT_CATEGORY) -> str:
    return f"{config.URL_PREFIX}/{category}/{filename}"
