import pytest
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from image_reconciler.database.schema import init_schema
from image_reconciler.database.ops import DBOperations

T0 = datetime(2025, 5, 27, 18, 0, 0, tzinfo=timezone.utc)

@pytest.fixture
def conn():
    """Returns an in-memory SQLite connection with the schema initialized."""
    c = sqlite3.connect(":memory:")
    init_schema(c)
    try:
        yield c
    finally:
        c.close()

@pytest.fixture
def db_ops(conn):
    """Returns a DBOperations instance attached to the in-memory DB."""
    return DBOperations(conn)

@pytest.fixture
def make_image():
    """Writes a small file and returns its path. data=b'' makes an empty file."""
    def _make(directory: Path, name: str, data: bytes = b"fake-image-bytes") -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(data)
        return path
    return _make

def stamped(dt: datetime, suffix: str = "483920117", ext: str = ".jpg") -> str:
    """Upload-style filename carrying dt as epoch milliseconds."""
    return f"images-{int(dt.timestamp() * 1000)}-{suffix}{ext}"
