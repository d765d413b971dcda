import csv

from image_reconciler.models import PropertyRecord, ReconcileResult
from image_reconciler.reporting import ReportGenerator


def test_generate_run_report(tmp_path, db_ops):
    results = [
        ReconcileResult(id=1, before=1, after=1, backfilled=1, discarded=1, persisted=True),
        ReconcileResult(id=2, before=0, after=0, backfilled=0, discarded=0, error="boom"),
        ReconcileResult(id=3, before=2, after=2, backfilled=0, discarded=0),
    ]
    records = [
        PropertyRecord(id=1, title="Villa", created_at=None, images=["x.jpg"]),
        PropertyRecord(id=2, title="Loft", created_at=None, images=[], images_status="unparseable"),
        PropertyRecord(id=3, title="Plot", created_at=None, images=["a.jpg", "b.jpg"]),
    ]
    out = tmp_path / "reports" / "run.csv"

    ReportGenerator(db_ops).generate_run_report(results, records, str(out))

    with out.open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["id"] for r in rows] == ["1", "2", "3"]
    assert rows[0]["title"] == "Villa"
    assert rows[0]["status"] == "Updated"
    assert rows[0]["note"] == ""
    assert rows[1]["status"] == "Error"
    assert rows[1]["note"] == "boom; images unparseable; below minimum"
    assert rows[2]["status"] == "Unchanged"


def test_log_summary(db_ops, caplog):
    caplog.set_level("INFO")
    db_ops.insert_property("A", None, ["a.jpg"])
    db_ops.insert_property("B", None, [])
    results = [
        ReconcileResult(id=1, before=1, after=1, backfilled=0, discarded=0),
        ReconcileResult(id=2, before=1, after=0, backfilled=0, discarded=1, error="boom"),
    ]

    ReportGenerator(db_ops).log_summary(results, copied=3)

    assert "=== Reconciliation Summary ===" in caplog.text
    assert "Files copied:         3" in caplog.text
    assert "Failed to persist 1 properties: [2]" in caplog.text
    assert "still below 1 image(s): [2]" in caplog.text
    assert "Properties with images: 1/2 (50%)" in caplog.text


def test_dry_run_rewrite_reported_pending(tmp_path, db_ops):
    results = [
        ReconcileResult(id=1, before=1, after=1, backfilled=0, discarded=0, changed=True),
        ReconcileResult(id=2, before=1, after=1, backfilled=0, discarded=0),
    ]
    records = [
        PropertyRecord(id=1, title="Villa", created_at=None, images=["a.jpg"], images_status="repaired"),
        PropertyRecord(id=2, title="Loft", created_at=None, images=["b.jpg"]),
    ]
    out = tmp_path / "run.csv"

    ReportGenerator(db_ops).generate_run_report(results, records, str(out))

    with out.open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["status"] for r in rows] == ["Pending", "Unchanged"]
    assert rows[0]["note"] == "images repaired"
