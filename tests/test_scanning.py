from datetime import datetime, timezone
from pathlib import Path

import pytest

from image_reconciler.metadata.extract import MetadataExtractor, parse_timestamp
from image_reconciler.scanning.filesystem import AssetScanner
from image_reconciler.scanning.hasher import FileHasher

from conftest import T0, stamped


def test_scan_dir_filters_extensions_and_sorts(tmp_path, make_image):
    make_image(tmp_path, "b.JPG")
    make_image(tmp_path, "a.png")
    make_image(tmp_path, "notes.txt")
    make_image(tmp_path, "._a.png")
    (tmp_path / "sub").mkdir()
    make_image(tmp_path / "sub", "nested.jpg")

    files = AssetScanner().scan_dir(tmp_path)
    assert [f.filename for f in files] == ["a.png", "b.JPG"]


def test_missing_directory_is_empty(tmp_path, caplog):
    caplog.set_level("WARNING")
    inventory = AssetScanner().scan([tmp_path / "nope"])
    assert len(inventory) == 0
    assert "not found" in caplog.text


def test_timestamps_from_filenames(tmp_path, make_image):
    make_image(tmp_path, stamped(T0))
    make_image(tmp_path, f"image_{int(T0.timestamp() * 1000)}.png")
    make_image(tmp_path, "3f2a9c1e-uuid.jpg")

    inventory = AssetScanner().scan([tmp_path])
    by_name = {f.filename: f.timestamp for f in inventory}
    assert by_name[stamped(T0)] == T0
    assert by_name[f"image_{int(T0.timestamp() * 1000)}.png"] == T0
    assert by_name["3f2a9c1e-uuid.jpg"] is None


def test_empty_file_is_listed_but_unusable(tmp_path, make_image):
    make_image(tmp_path, "empty.jpg", b"")
    make_image(tmp_path, "full.jpg")

    inventory = AssetScanner().scan([tmp_path])
    assert "empty.jpg" in inventory
    assert not inventory.get("empty.jpg").is_usable
    assert [f.filename for f in inventory.usable()] == ["full.jpg"]


def test_first_root_wins_on_collision(tmp_path, make_image):
    served = tmp_path / "uploads"
    staging = tmp_path / "staging"
    make_image(served, "a.jpg", b"served")
    make_image(staging, "a.jpg", b"staged")
    make_image(staging, "b.jpg")

    inventory = AssetScanner().scan([served, staging])
    assert len(inventory) == 2
    assert inventory.get("a.jpg").root == served
    assert inventory.get("b.jpg").root == staging


def test_exif_fallback_only_when_enabled(tmp_path, make_image, monkeypatch):
    path = make_image(tmp_path, "IMG_3750.jpg")
    monkeypatch.setattr(
        "image_reconciler.metadata.extract.exifread.process_file",
        lambda f, details=False: {"EXIF DateTimeOriginal": "2025:05:27 18:00:00"},
    )

    assert MetadataExtractor().get_timestamp(path) is None
    assert MetadataExtractor(use_exif=True).get_timestamp(path) == T0


def test_verify_flags_corrupt_images(tmp_path, make_image):
    from PIL import Image

    good = tmp_path / "good.png"
    Image.new("RGB", (4, 4), "red").save(good)
    bad = make_image(tmp_path, "bad.png", b"definitely not a png")

    inventory = AssetScanner(MetadataExtractor(verify=True)).scan([tmp_path])
    assert inventory.get("good.png").is_usable
    assert inventory.get("bad.png").is_corrupt
    assert not inventory.get("bad.png").is_usable

    # Without verification the bad file is taken at face value
    assert not MetadataExtractor().is_corrupt(bad)


@pytest.mark.parametrize("value, expected", [
    ("2025-05-27T18:00:00Z", T0),
    ("2025-05-27 18:00:00+00", T0),
    ("2025-05-27 20:00:00+02:00", T0),
    ("2025-05-27T18:00:00", T0),
    (int(T0.timestamp() * 1000), T0),
    (str(int(T0.timestamp())), T0),
    (datetime(2025, 5, 27, 18, 0, 0), T0),
    ("2025:05:27 18:00:00", T0),
    ("2025-05-01", datetime(2025, 5, 1, tzinfo=timezone.utc)),
])
def test_parse_timestamp_shapes(value, expected):
    assert parse_timestamp(value) == expected


@pytest.mark.parametrize("value", [None, "", "yesterday"])
def test_parse_timestamp_rejects(value):
    assert parse_timestamp(value) is None


def test_hasher_same_content(tmp_path, make_image):
    a = make_image(tmp_path, "a.jpg", b"abc")
    b = make_image(tmp_path, "b.jpg", b"abc")
    c = make_image(tmp_path, "c.jpg", b"abd")
    hasher = FileHasher()
    assert hasher.same_content(a, b)
    assert not hasher.same_content(a, c)
    assert not hasher.same_content(a, tmp_path / "missing.jpg")
