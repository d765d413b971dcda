#!/usr/bin/env python
"""
Summarize what reconcile runs did to each property, from reconcile.log.

Looks for log messages like:
  - Property <id>: discarding <file> (<reason>)
  - Property <id>: backfilled <file> (<timestamp>)
  - Property <id>: failed to persist images: ...

Outputs a CSV with columns:
  id,discarded,backfilled,failed,discarded_files,backfilled_files

where the *_files columns are semicolon-separated filenames.
"""

import argparse
import csv
import re
from collections import Counter, defaultdict
from pathlib import Path


# --------- LOG PARSING ---------

# Group 1 is the property id, group 2 the filename (where there is one).
LOG_PATTERNS = {
    "discarded": re.compile(r"Property (\d+): discarding (.+) \(([^()]*)\)\s*$"),
    "backfilled": re.compile(r"Property (\d+): backfilled (.+) \(([^()]*)\)\s*$"),
    "failed": re.compile(r"Property (\d+): failed to persist images"),
}


def parse_log(log_path: Path) -> dict:
    """
    Parse reconcile.log and return dict[property_id] -> dict[event] -> list(filenames).
    Dry-run lines are included; the log does not tell them apart per event.
    """
    events = defaultdict(lambda: defaultdict(list))

    with log_path.open("r", encoding="utf-8", errors="ignore") as f:
        for line in f:
            for event, pattern in LOG_PATTERNS.items():
                m = pattern.search(line)
                if m:
                    pid = int(m.group(1))
                    detail = m.group(2).strip().strip("'\"") if m.lastindex and m.lastindex >= 2 else ""
                    events[pid][event].append(detail)
                    break

    return events


def discard_reasons(log_path: Path) -> Counter:
    """Counts discarded references by reason (file not found, empty file, ...)."""
    reasons = Counter()
    pattern = LOG_PATTERNS["discarded"]
    with log_path.open("r", encoding="utf-8", errors="ignore") as f:
        for line in f:
            m = pattern.search(line)
            if m:
                reasons[m.group(3)] += 1
    return reasons


# --------- MAIN / CLI ---------

def main():
    ap = argparse.ArgumentParser(
        description="Summarize per-property discards and backfills from reconcile.log."
    )
    ap.add_argument("--log", type=str, required=True, help="Path to reconcile.log")
    ap.add_argument(
        "--out",
        type=str,
        default=None,
        help="Output CSV path (default: same directory as log, 'reconcile_summary.csv')",
    )
    args = ap.parse_args()

    log_path = Path(args.log)
    if not log_path.exists():
        raise SystemExit(f"Log file not found: {log_path}")

    events = parse_log(log_path)
    reasons = discard_reasons(log_path)

    print(f"Found {len(events)} properties touched in log.")
    for reason, count in reasons.most_common():
        print(f"  {reason}: {count}")

    out_path = Path(args.out) if args.out else log_path.with_name("reconcile_summary.csv")

    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["id", "discarded", "backfilled", "failed", "discarded_files", "backfilled_files"])
        for pid in sorted(events):
            ev = events[pid]
            writer.writerow([
                pid,
                len(ev["discarded"]),
                len(ev["backfilled"]),
                len(ev["failed"]),
                ";".join(ev["discarded"]),
                ";".join(ev["backfilled"]),
            ])

    print(f"Wrote summary for {len(events)} properties to {out_path}")


if __name__ == "__main__":
    main()
