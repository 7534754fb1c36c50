"""
JSON photo listings.

A listing is a JSON array of photo objects in the camelCase shape photo
providers hand out (id, name, size, lastModified, contentHash, altHash,
dimensions). It lets a listing produced elsewhere, such as a cloud drive
export, go through the same engine as a local scan.
"""
import json
import logging
from pathlib import Path
from typing import Iterable, List

from ..exceptions import InvalidPhotoRecordError
from ..models import PhotoRecord


def load_records(path: Path) -> List[PhotoRecord]:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if isinstance(data, dict) and 'photos' in data:
        data = data['photos']
    if not isinstance(data, list):
        raise InvalidPhotoRecordError(f"{path}: expected a JSON array of photos")

    records = [PhotoRecord.from_dict(entry) for entry in data]
    logging.info(f"Loaded {len(records)} photo records from {path}")
    return records


def dump_records(records: Iterable[PhotoRecord], path: Path):
    payload = [r.to_dict() for r in records]
    Path(path).write_text(json.dumps(payload, indent=2), encoding='utf-8')
