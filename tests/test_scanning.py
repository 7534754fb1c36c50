import asyncio
import json
import shutil

import pytest
from PIL import Image

from photo_dedupe.detection.engine import DuplicateDetectionEngine
from photo_dedupe.exceptions import FileHashError, InvalidPhotoRecordError, ScanError
from photo_dedupe.models import Dimensions, DetectionOptions
from photo_dedupe.scanning.filesystem import PhotoScanner
from photo_dedupe.scanning.hasher import FileHasher
from photo_dedupe.scanning.listing import dump_records, load_records


def make_image(path, size=(10, 10), color="red"):
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path)
    return path


def test_compute_hash(tmp_path):
    p = tmp_path / "sample.bin"
    p.write_bytes(b"hello world" * 10)
    q = tmp_path / "copy.bin"
    q.write_bytes(b"hello world" * 10)

    hasher = FileHasher()
    res = hasher.compute_hash(p)
    assert res.full_hash is not None
    assert res.sparse_hash.startswith("s-")
    assert hasher.compute_hash(q) == res


def test_quick_hash_skips_full_read(tmp_path):
    p = tmp_path / "sample.bin"
    p.write_bytes(b"x" * 100)

    res = FileHasher().compute_hash(p, full=False)
    assert res.full_hash is None
    assert res.sparse_hash


def test_sparse_hash_ignores_unsampled_bytes(tmp_path):
    data = bytearray(b"\0" * 20000)
    a = tmp_path / "a.bin"
    a.write_bytes(bytes(data))
    # Byte 5000 lies between the header and middle samples
    data[5000] = 1
    b = tmp_path / "b.bin"
    b.write_bytes(bytes(data))

    hasher = FileHasher()
    ha, hb = hasher.compute_hash(a), hasher.compute_hash(b)
    assert ha.full_hash != hb.full_hash
    assert ha.sparse_hash == hb.sparse_hash


def test_compute_hash_missing_file(tmp_path):
    with pytest.raises(FileHashError):
        FileHasher().compute_hash(tmp_path / "gone.jpg")


def test_scan_filters_extensions_and_skips_dirs(tmp_path):
    make_image(tmp_path / "cache" / "thumb.jpg")
    make_image(tmp_path / "2023" / "june" / "lake.PNG")
    make_image(tmp_path / "cover.gif")
    (tmp_path / "2023" / "june" / "lake.xmp").write_text("<xmp/>")
    (tmp_path / "readme.md").write_text("# photos")

    records = PhotoScanner().scan(tmp_path, skip_dirs={tmp_path / "cache"}, max_workers=1)

    assert [r.id for r in records] == ["cover.gif", "2023/june/lake.PNG"]


def test_scanner_produces_records(tmp_path):
    root = tmp_path / "photos"
    original = make_image(root / "beach.jpg", size=(40, 30))
    make_image(root / "trip" / "sunset.png", size=(20, 20), color="orange")
    shutil.copy(original, root / "trip" / "beach copy.jpg")
    (root / "notes.txt").write_text("not a photo")
    (root / "._beach.jpg").write_bytes(b"resource fork")

    records = PhotoScanner().scan(root, max_workers=2)

    assert [r.id for r in records] == ["beach.jpg", "trip/beach copy.jpg", "trip/sunset.png"]
    beach, copy, sunset = records
    assert beach.content_hash == copy.content_hash
    assert beach.alt_hash == copy.alt_hash
    assert beach.content_hash != sunset.content_hash
    assert beach.dimensions == Dimensions(40, 30)
    assert beach.size == original.stat().st_size
    assert isinstance(beach.last_modified, int) and beach.last_modified > 0
    assert beach.path == original


def test_scanner_quick_mode(tmp_path):
    make_image(tmp_path / "a.jpg")
    record, = PhotoScanner().scan(tmp_path, compute_hashes=False, max_workers=1)
    assert record.content_hash is None
    assert record.alt_hash.startswith("s-")


def test_scanner_keeps_unreadable_images(tmp_path, caplog):
    (tmp_path / "broken.jpg").write_bytes(b"definitely not a jpeg")

    record, = PhotoScanner().scan(tmp_path, max_workers=1)
    assert record.dimensions is None
    assert "Failed to get image size" in caplog.text


def test_oversized_image_does_not_abort_scan(tmp_path, monkeypatch, caplog):
    make_image(tmp_path / "panorama.png", size=(100, 100))
    make_image(tmp_path / "small.png", size=(3, 3))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)

    panorama, small = PhotoScanner().scan(tmp_path, max_workers=2)

    assert panorama.dimensions is None
    assert panorama.content_hash is not None
    assert small.dimensions == Dimensions(3, 3)
    assert "Failed to get image size" in caplog.text


def test_scanner_respects_skip_dirs(tmp_path):
    make_image(tmp_path / "keep" / "a.jpg")
    make_image(tmp_path / "skip" / "b.jpg")

    records = PhotoScanner().scan(tmp_path, skip_dirs={tmp_path / "skip"}, max_workers=1)
    assert [r.id for r in records] == ["keep/a.jpg"]


def test_scanner_missing_root(tmp_path):
    with pytest.raises(ScanError):
        PhotoScanner().scan(tmp_path / "nope")


def test_scan_then_detect(tmp_path, null_monitor):
    original = make_image(tmp_path / "IMG_0001.jpg", size=(64, 48))
    shutil.copy(original, tmp_path / "IMG_0001 (1).jpg")
    make_image(tmp_path / "other.png", size=(16, 16), color="blue")

    records = PhotoScanner().scan(tmp_path)
    engine = DuplicateDetectionEngine(monitor=null_monitor)
    groups = asyncio.run(engine.detect(records, DetectionOptions()))

    assert len(groups) == 1
    assert set(groups[0].photo_ids) == {"IMG_0001.jpg", "IMG_0001 (1).jpg"}
    assert groups[0].similarity == 100


def test_load_records_from_listing(tmp_path):
    listing = tmp_path / "cloud.json"
    listing.write_text(json.dumps({"photos": [
        {"id": "01ABC", "name": "DSC_1.jpg", "size": 100, "lastModified": "2023-11-14T22:13:20Z",
         "altHash": "qx1"},
        {"id": "01ABD", "name": "DSC_1 (1).jpg", "size": 100, "lastModified": 1700000000000,
         "altHash": "qx1"},
    ]}))

    records = load_records(listing)
    assert [r.id for r in records] == ["01ABC", "01ABD"]
    assert records[0].last_modified == records[1].last_modified


def test_load_records_rejects_other_shapes(tmp_path):
    listing = tmp_path / "bad.json"
    listing.write_text(json.dumps({"items": []}))
    with pytest.raises(InvalidPhotoRecordError):
        load_records(listing)


def test_dump_records_writes_listing(tmp_path):
    make_image(tmp_path / "src" / "a.jpg")
    records = PhotoScanner().scan(tmp_path / "src", max_workers=1)
    out = tmp_path / "listing.json"

    dump_records(records, out)

    assert load_records(out) == records
