import pytest

from image_reconciler.scanning.records import (
    RecordScanner, all_of, fewer_than, min_id, missing_images,
)

from conftest import T0


@pytest.fixture
def seeded(db_ops):
    db_ops.insert_property("Villa", "2025-05-27T18:00:00Z", ["/uploads/properties/a.jpg"])
    db_ops.insert_property("Loft", "2025-05-26 09:00:00+00", "['b.jpg']")
    db_ops.insert_property("Plot", None, None)
    db_ops.insert_property("Flat", "garbage", "{broken")
    return db_ops


def test_scan_decodes_rows(seeded):
    records = RecordScanner(seeded).scan()
    assert [r.id for r in records] == [1, 2, 3, 4]

    villa, loft, plot, flat = records
    assert villa.created_at == T0
    assert villa.images == ["/uploads/properties/a.jpg"]
    assert villa.images_status == "ok"
    assert loft.images == ["b.jpg"]
    assert loft.images_status == "repaired"
    assert plot.images == [] and plot.images_status == "empty"
    assert flat.images == [] and flat.images_status == "unparseable"
    assert flat.created_at is None


def test_scan_with_predicates(seeded):
    scanner = RecordScanner(seeded)
    assert [r.id for r in scanner.scan(missing_images())] == [3, 4]
    assert [r.id for r in scanner.scan(min_id(3))] == [3, 4]
    assert [r.id for r in scanner.scan(all_of(fewer_than(1), min_id(4)))] == [4]


def test_created_order_puts_undated_last(seeded):
    records = RecordScanner(seeded).scan(order="created")
    assert [r.id for r in records] == [2, 1, 3, 4]


def test_unknown_order_rejected(seeded):
    with pytest.raises(ValueError):
        RecordScanner(seeded).scan(order="random")
