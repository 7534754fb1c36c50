import csv
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .harness.sweep import SweepSummary
from .models import DuplicateGroup, TestResult

GROUP_CSV_HEADERS = [
    "Group ID",
    "Group Similarity",
    "Reasons",
    "Photo ID",
    "Name",
    "Size",
    "Path",
]


def format_file_size(num_bytes: int) -> str:
    units = ['B', 'KB', 'MB', 'GB']
    size = float(num_bytes)
    unit_index = 0
    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1
    return f"{size:.1f} {units[unit_index]}"


def write_groups_csv(groups: Iterable[DuplicateGroup], output_csv: Path) -> int:
    """
    Writes one row per photo, grouped. Returns the number of rows written.
    """
    rows = 0
    with open(output_csv, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(GROUP_CSV_HEADERS)
        for group in groups:
            reasons = "; ".join(group.reason)
            for photo in group.photos:
                writer.writerow([
                    group.id,
                    f"{group.similarity:.1f}",
                    reasons,
                    photo.id,
                    photo.name,
                    photo.size,
                    str(photo.path) if photo.path else "",
                ])
                rows += 1

    logging.info(f"Wrote {rows} rows to {output_csv}")
    return rows


def format_groups(groups: Sequence[DuplicateGroup]) -> str:
    if not groups:
        return "No duplicate groups found."

    lines = []
    for i, group in enumerate(groups, 1):
        lines.append(f"Group {i} ({group.similarity:.1f}% similar): {', '.join(group.reason)}")
        for photo in group.photos:
            lines.append(f"    - {photo.name} ({format_file_size(photo.size)}) [{photo.id}]")
    return "\n".join(lines)


def format_sweep_table(results: Sequence[TestResult]) -> str:
    lines = [f"{'Threshold':>9}  {'Groups':>6}  {'Photos':>6}  {'Dup/Group':>9}  {'Accuracy':>8}  {'Time':>8}"]
    for r in results:
        if r.error:
            lines.append(f"{r.threshold:>8}%  failed: {r.error}")
            continue
        lines.append(
            f"{r.threshold:>8}%  {r.groups_found:>6}  {r.total_duplicates:>6}  "
            f"{r.average_group_size:>9.2f}  {r.accuracy:>7.1f}%  {r.execution_time_ms:>6} ms"
        )
    return "\n".join(lines)


def write_sweep_json(results: List[TestResult],
                     output: Path,
                     summary: Optional[SweepSummary] = None,
                     source: Optional[str] = None):
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "timestamp": datetime.now().isoformat(),
        "source": source,
        "results": [r.to_dict() for r in results],
        "summary": summary.to_dict() if summary else None,
    }
    output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logging.info(f"Wrote sweep results to {output}")
