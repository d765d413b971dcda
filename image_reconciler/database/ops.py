import json
import sqlite3
import logging
from datetime import datetime
from typing import Optional, Tuple, List, Union, Any

from ..exceptions import DatabaseError

PropertyRow = Tuple[int, str, Optional[str], Any]

class DBOperations:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert_property(self,
                        title: str,
                        created_at: Optional[Union[datetime, str]] = None,
                        images: Optional[Union[List[str], str]] = None) -> int:
        """
        Inserts a listing row. Used by seeding and tests; the reconciler
        itself never creates records.

        `images` may be a list (stored as JSON) or a raw string (stored as-is,
        to reproduce legacy rows).
        """
        created_str = created_at.isoformat() if isinstance(created_at, datetime) else created_at
        if images is None or isinstance(images, str):
            images_value = images
        else:
            images_value = json.dumps(images)

        cur = self.conn.cursor()
        cur.execute(
            "INSERT INTO properties (title, created_at, images) VALUES (?, ?, ?)",
            (title, created_str, images_value),
        )
        if cur.lastrowid is None:
            raise RuntimeError("Database INSERT failed to return a row ID.")
        self.conn.commit()
        return cur.lastrowid

    def fetch_property_rows(self) -> List[PropertyRow]:
        """Returns (id, title, created_at, images) for every listing, by id."""
        cur = self.conn.cursor()
        try:
            cur.execute("SELECT id, title, created_at, images FROM properties ORDER BY id")
            return cur.fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read properties: {e}") from e

    def fetch_images_value(self, property_id: int) -> Any:
        """Returns the raw stored `images` value for one listing."""
        cur = self.conn.cursor()
        cur.execute("SELECT images FROM properties WHERE id = ?", (property_id,))
        row = cur.fetchone()
        return row[0] if row else None

    def update_images(self, property_id: int, images: List[str]):
        """
        Replaces the whole `images` field of one listing in a single UPDATE.
        Commits immediately so records finished before a crash stay finished.
        """
        payload = json.dumps(images)
        try:
            with self.conn:
                cur = self.conn.execute(
                    "UPDATE properties SET images = ? WHERE id = ?",
                    (payload, property_id),
                )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to update images for property {property_id}: {e}") from e

        if cur.rowcount == 0:
            raise DatabaseError(f"Property {property_id} no longer exists")
        logging.debug(f"Property {property_id}: stored {len(images)} image(s)")

    def count_properties(self) -> Tuple[int, int]:
        """Returns (total, with_images) using the stored text; '[]' and NULL count as empty."""
        cur = self.conn.cursor()
        cur.execute("""
            SELECT COUNT(*),
                   COUNT(CASE WHEN images IS NOT NULL AND TRIM(images) NOT IN ('', '[]', 'null') THEN 1 END)
            FROM properties
        """)
        total, with_images = cur.fetchone()
        return int(total), int(with_images)
