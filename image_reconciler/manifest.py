"""
Image manifests: curated {property id -> image list} mappings kept as data.

Accepted layouts (JSON):
    [{"id": 73, "images": ["IMG_3750.png", "IMG_5944.png"]}, ...]
    {"73": ["IMG_3750.png", "IMG_5944.png"], ...}
"""
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Iterable

from .exceptions import ManifestError
from .models import PropertyRecord

Manifest = Dict[int, List[str]]


def load_manifest(path: Path) -> Manifest:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ManifestError(f"Manifest not found: {path}") from e
    except ValueError as e:
        raise ManifestError(f"Manifest {path} is not valid JSON: {e}") from e

    if isinstance(data, dict):
        entries = [{"id": k, "images": v} for k, v in data.items()]
    elif isinstance(data, list):
        entries = data
    else:
        raise ManifestError(f"Manifest {path} must be a list or an object, got {type(data).__name__}")

    manifest: Manifest = {}
    for idx, entry in enumerate(entries):
        if not isinstance(entry, dict) or "id" not in entry or "images" not in entry:
            raise ManifestError(f"Manifest entry {idx} needs 'id' and 'images'")
        try:
            pid = int(entry["id"])
        except (TypeError, ValueError) as e:
            raise ManifestError(f"Manifest entry {idx}: bad id {entry['id']!r}") from e
        images = entry["images"]
        if not isinstance(images, list) or not all(isinstance(i, str) for i in images):
            raise ManifestError(f"Manifest entry for property {pid}: 'images' must be a list of strings")
        if pid in manifest:
            raise ManifestError(f"Manifest lists property {pid} more than once")
        manifest[pid] = images

    logging.info(f"Loaded manifest {path} with {len(manifest)} properties")
    return manifest


def apply_manifest(records: Iterable[PropertyRecord], manifest: Manifest) -> List[PropertyRecord]:
    """
    Replaces the stored references of every record listed in the manifest.
    The result still goes through normal validation, so listed files that
    are missing on disk get discarded like any other reference.
    """
    out = []
    applied = 0
    for record in records:
        if record.id in manifest:
            record = replace(record, images=list(manifest[record.id]), images_status="manifest")
            applied += 1
        out.append(record)

    unknown = set(manifest) - {r.id for r in out}
    if unknown:
        logging.warning(f"Manifest lists properties not in the database: {sorted(unknown)}")
    logging.info(f"Applied manifest to {applied} properties")
    return out
