import json
import stat

import pytest

from image_reconciler.exceptions import FileOperationError
from image_reconciler.models import ReconcileSettings
from image_reconciler.reconciliation.reconciler import Reconciler
from image_reconciler.reconciliation.stager import AssetStager
from image_reconciler.scanning.filesystem import AssetScanner
from image_reconciler.scanning.hasher import FileHasher
from image_reconciler.scanning.records import RecordScanner

from conftest import T0, stamped


@pytest.fixture
def dirs(tmp_path):
    uploads = tmp_path / "public" / "uploads" / "properties"
    staging = tmp_path / "attached_assets"
    uploads.mkdir(parents=True)
    staging.mkdir()
    return uploads, staging


def test_stage_copies_and_verifies(dirs, make_image):
    uploads, staging = dirs
    make_image(staging, "a.jpg", b"staged-bytes")
    inventory = AssetScanner().scan([uploads, staging])

    stager = AssetStager(uploads)
    dest = stager.stage(inventory.get("a.jpg"))

    assert dest == uploads / "a.jpg"
    assert dest.read_bytes() == b"staged-bytes"
    assert stat.S_IMODE(dest.stat().st_mode) == 0o644
    assert stager.copied == 1


def test_stage_leaves_identical_file_alone(dirs, make_image):
    uploads, staging = dirs
    make_image(staging, "a.jpg", b"same")
    make_image(uploads, "a.jpg", b"same")
    image = AssetScanner().scan_dir(staging)[0]

    stager = AssetStager(uploads)
    assert stager.stage(image) == uploads / "a.jpg"
    assert stager.copied == 0


def test_stage_refuses_to_overwrite_different_file(dirs, make_image):
    uploads, staging = dirs
    make_image(staging, "a.jpg", b"new")
    make_image(uploads, "a.jpg", b"old")
    image = AssetScanner().scan_dir(staging)[0]

    with pytest.raises(FileOperationError):
        AssetStager(uploads).stage(image)
    assert (uploads / "a.jpg").read_bytes() == b"old"


def test_failed_verification_removes_copy(dirs, make_image, monkeypatch):
    uploads, staging = dirs
    make_image(staging, "a.jpg")
    image = AssetScanner().scan_dir(staging)[0]
    monkeypatch.setattr(FileHasher, "same_content", lambda self, a, b: False)

    with pytest.raises(FileOperationError):
        AssetStager(uploads).stage(image)
    assert not (uploads / "a.jpg").exists()


def test_dry_run_copies_nothing(dirs, make_image):
    uploads, staging = dirs
    make_image(staging, "a.jpg")
    image = AssetScanner().scan_dir(staging)[0]

    stager = AssetStager(uploads, dry_run=True)
    stager.stage(image)
    assert not (uploads / "a.jpg").exists()
    assert stager.copied == 0


def test_stage_all_skips_served_and_empty(dirs, make_image):
    uploads, staging = dirs
    make_image(uploads, "served.jpg")
    make_image(staging, "new.jpg")
    make_image(staging, "blank.jpg", b"")
    inventory = AssetScanner().scan([uploads, staging])

    assert AssetStager(uploads).stage_all(inventory) == 1
    assert sorted(p.name for p in uploads.iterdir()) == ["new.jpg", "served.jpg"]


def test_backfill_from_staging_is_copied_before_update(db_ops, dirs, make_image):
    uploads, staging = dirs
    name = stamped(T0)
    make_image(staging, name)
    pid = db_ops.insert_property("Villa", T0, [])

    settings = ReconcileSettings(uploads_dir=uploads, staging_dirs=[staging])
    inventory = AssetScanner().scan(settings.scan_roots)
    stager = AssetStager(uploads)
    records = RecordScanner(db_ops).scan()
    results, _ = Reconciler(db_ops, settings, stager=stager).reconcile_all(records, inventory)

    assert (uploads / name).exists()
    assert json.loads(db_ops.fetch_images_value(pid)) == [f"/uploads/properties/{name}"]
    assert results[0].persisted and results[0].backfilled == 1


def test_unstageable_reference_dropped_before_update(db_ops, dirs, make_image):
    uploads, staging = dirs
    make_image(staging, "a.jpg", b"staged")
    make_image(staging, "b.jpg", b"staged-b")
    pid = db_ops.insert_property("Villa", T0, ["/attached_assets/a.jpg", "/attached_assets/b.jpg"])

    settings = ReconcileSettings(uploads_dir=uploads, staging_dirs=[staging])
    inventory = AssetScanner().scan(settings.scan_roots)
    # A different a.jpg appears in the serving dir after the scan
    make_image(uploads, "a.jpg", b"conflict")

    records = RecordScanner(db_ops).scan()
    results, _ = Reconciler(db_ops, settings, stager=AssetStager(uploads)).reconcile_all(records, inventory)

    assert json.loads(db_ops.fetch_images_value(pid)) == ["/uploads/properties/b.jpg"]
    assert results[0].after == 1
    assert results[0].discarded == 1
