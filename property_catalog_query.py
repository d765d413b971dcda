#!/usr/bin/env python

import argparse
import json
import sqlite3
from pathlib import Path
from typing import Dict, List

from image_reconciler import config
from image_reconciler.metadata.parsing import parse_image_list
from image_reconciler.reconciliation.paths import reference_filename


def connect_db(db_path: Path) -> sqlite3.Connection:
    if not db_path.exists():
        raise SystemExit(f"DB not found: {db_path}")
    return sqlite3.connect(db_path)


def _load_records(conn: sqlite3.Connection) -> List[tuple]:
    cur = conn.cursor()
    cur.execute("SELECT id, title, created_at, images FROM properties ORDER BY id")
    return [
        (pid, title or "", created, parse_image_list(raw, context=f"Property {pid}").images)
        for pid, title, created, raw in cur.fetchall()
    ]


def _image_files(uploads_dir: Path) -> Dict[str, int]:
    """filename -> size for every image directly inside uploads_dir."""
    if not uploads_dir.is_dir():
        return {}
    return {
        p.name: p.stat().st_size
        for p in sorted(uploads_dir.iterdir(), key=lambda p: p.name.lower())
        if p.is_file() and p.suffix.lower() in config.IMAGE_EXTS and not p.name.startswith("._")
    }


def list_missing_images(conn: sqlite3.Connection):
    missing = [(pid, title, created) for pid, title, created, images in _load_records(conn) if not images]
    if not missing:
        print("Every property has at least one image reference.")
        return

    print("Properties with no image references:")
    print("id    | created_at                | title")
    print("------+---------------------------+------")
    for pid, title, created in missing:
        print(f"{pid:5d} | {(created or '').ljust(25)} | {title}")


def show_record(conn: sqlite3.Connection, record_id: int, uploads_dir: Path):
    records = {r[0]: r for r in _load_records(conn)}
    if record_id not in records:
        print(f"No property with id={record_id}")
        return

    pid, title, created, images = records[record_id]
    files = _image_files(uploads_dir)
    print("Property:")
    print(f"  id:          {pid}")
    print(f"  title:       {title}")
    print(f"  created_at:  {created}")
    print(f"  images:      {len(images)}")

    if not images:
        print("  (No image references)")
        return

    print("\n  References:")
    print("  status  | size       | reference")
    print("  --------+------------+----------")
    for ref in images:
        name = reference_filename(ref)
        size = files.get(name) if name else None
        if size is None:
            status = "MISSING"
        elif size == 0:
            status = "EMPTY"
        else:
            status = "ok"
        print(f"  {status.ljust(7)} | {str(size if size is not None else '-').rjust(10)} | {ref}")


def list_orphans(conn: sqlite3.Connection, uploads_dir: Path):
    referenced = set()
    for _, _, _, images in _load_records(conn):
        referenced.update(n for n in (reference_filename(ref) for ref in images) if n)

    orphans = [(name, size) for name, size in _image_files(uploads_dir).items() if name not in referenced]
    if not orphans:
        print(f"No unreferenced images in {uploads_dir}.")
        return

    print(f"Images in {uploads_dir} not referenced by any property:")
    print("size       | filename")
    print("-----------+---------")
    for name, size in orphans:
        print(f"{str(size).rjust(10)} | {name}")


def export_catalog(conn: sqlite3.Connection, uploads_dir: Path, out_path: Path):
    """Dumps properties plus the images available on disk, for manual re-assignment."""
    files = _image_files(uploads_dir)
    payload = {
        "properties": [
            {"id": pid, "title": title, "created_at": created, "images": images}
            for pid, title, created, images in _load_records(conn)
        ],
        "available_images": [name for name, size in files.items() if size > 0],
    }
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    print(f"Exported {len(payload['properties'])} properties and "
          f"{len(payload['available_images'])} images to {out_path}")


def parse_args():
    p = argparse.ArgumentParser(description="Query helper for the property image catalog.")
    p.add_argument("--db", default=str(config.DB_PATH), help="Path to the properties SQLite DB")
    p.add_argument("--uploads-dir", default=str(config.UPLOADS_DIR), help="Serving directory for property images")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--missing-images", action="store_true", help="List properties with no image references")
    group.add_argument("--record-id", type=int, help="Show one property and check its references on disk")
    group.add_argument("--orphans", action="store_true", help="List images no property references")
    group.add_argument("--export", help="Write properties and available images to this JSON file")
    return p.parse_args()


def main():
    args = parse_args()
    db_path = Path(args.db).resolve()
    uploads_dir = Path(args.uploads_dir)
    conn = connect_db(db_path)

    try:
        if args.missing_images:
            list_missing_images(conn)
        elif args.record_id is not None:
            show_record(conn, args.record_id, uploads_dir)
        elif args.orphans:
            list_orphans(conn, uploads_dir)
        elif args.export:
            export_catalog(conn, uploads_dir, Path(args.export))
    finally:
        conn.close()


if __name__ == "__main__":
    main()
