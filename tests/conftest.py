import itertools

import pytest

from photo_dedupe.detection.engine import DuplicateDetectionEngine
from photo_dedupe.models import PhotoRecord
from photo_dedupe.monitoring import NullMonitor


@pytest.fixture
def make_photo():
    """Factory for PhotoRecords with sequential ids."""
    counter = itertools.count(1)

    def _make(name="photo.jpg", size=1000, id=None, **kwargs):
        return PhotoRecord(id=id or f"p{next(counter)}", name=name, size=size, **kwargs)

    return _make


@pytest.fixture
def null_monitor():
    return NullMonitor()


@pytest.fixture
def engine(null_monitor):
    """Engine with a small chunk size so multi-chunk paths get exercised."""
    return DuplicateDetectionEngine(monitor=null_monitor, chunk_size=2)


@pytest.fixture
def library():
    """
    A mixed library: exact copies, burst shots, recompressed and
    converted files, plus unrelated photos that happen to share a size.
    """
    entries = [
        ("vacation_beach_2023.jpg", 2457600, "a1b2c3d4e5f6"),
        ("vacation_beach_2023 (1).jpg", 2457600, "a1b2c3d4e5f6"),
        ("sunset_beach_01.jpg", 1843200, "x1y2z3a4b5c6"),
        ("sunset_beach_02.jpg", 1956000, "m7n8o9p0q1r2"),
        ("portrait_original.jpg", 5242880, "p1o2r3t4r5a6"),
        ("portrait_compressed.jpg", 1048576, "p1o2r3t4r5a6"),
        ("mountain_view_dawn.jpg", 3145728, "d1a2w3n4m5t6"),
        ("mountain_view_dusk.jpg", 3087654, "d7u8s9k0m1t2"),
        ("action_shot_001.jpg", 2097152, "b1u2r3s4t5a6"),
        ("action_shot_002.jpg", 2105344, "b2u3r4s5t6a7"),
        ("action_shot_003.jpg", 2089984, "b3u4r5s6t7a8"),
        ("cat_photo_01.jpg", 1572864, "c1a2t3p4h5o6"),
        ("dog_photo_15.jpg", 1572864, "d1o2g3p4h5o6"),
        ("artwork_final.jpg", 4194304, "a1r2t3w4o5r6"),
        ("artwork_final.png", 8388608, "a1r2t3w4o5r6"),
    ]
    return [
        PhotoRecord(id=f"lib{i}", name=name, size=size, content_hash=h)
        for i, (name, size, h) in enumerate(entries, start=1)
    ]
