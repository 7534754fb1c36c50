import os
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator, List, Optional, Set

from PIL import Image, UnidentifiedImageError
from tqdm import tqdm

from .. import config
from ..exceptions import FileHashError, ScanError
from ..models import Dimensions, PhotoRecord
from .hasher import FileHasher


class PhotoScanner:
    """
    Lists the photos under a directory as PhotoRecords ready for detection.
    """

    def __init__(self, hasher: Optional[FileHasher] = None):
        self.hasher = hasher or FileHasher()

    def scan(self,
             root: Path,
             skip_dirs: Optional[Set[Path]] = None,
             compute_hashes: bool = True,
             max_workers: int = config.DEFAULT_SCAN_WORKERS,
             show_progress: bool = False) -> List[PhotoRecord]:
        """
        Walks `root` and returns one record per readable image file.

        Output order is the sorted walk order regardless of worker count, so
        repeated scans feed the engine the same sequence.

        Args:
            compute_hashes: Read every file to fill content_hash. When False only
                            the cheap sparse fingerprint (alt_hash) is taken.
            max_workers: Threads used for hashing / header reads.
        """
        root = Path(root)
        if not root.is_dir():
            raise ScanError(f"Source path {root} does not exist or is not a directory.")

        skip_dirs = skip_dirs or set()
        paths = [p for p in self._iter_files(root, skip_dirs) if self._is_image(p)]
        logging.info(f"Found {len(paths)} image files under {root}")

        def process(path: Path) -> Optional[PhotoRecord]:
            return self._process_single_file(path, root, compute_hashes)

        if max_workers <= 1:
            records = [process(p) for p in tqdm(paths, desc="Scanning photos", disable=not show_progress)]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                records = list(tqdm(pool.map(process, paths), total=len(paths),
                                    desc="Scanning photos", disable=not show_progress))

        return [r for r in records if r is not None]

    def _process_single_file(self, path: Path, root: Path, compute_hashes: bool) -> Optional[PhotoRecord]:
        """Builds the record for one file, or None if it can't be read."""
        try:
            stat_result = path.stat()
            hash_res = self.hasher.compute_hash(path, full=compute_hashes)
        except (OSError, FileHashError) as e:
            logging.error(f"Failed to scan {path}: {e}")
            return None

        return PhotoRecord(
            id=path.relative_to(root).as_posix(),
            name=path.name,
            size=stat_result.st_size,
            last_modified=stat_result.st_mtime_ns // 1_000_000,
            content_hash=hash_res.full_hash,
            alt_hash=hash_res.sparse_hash,
            dimensions=self._read_dimensions(path),
            path=path,
        )

    def _read_dimensions(self, path: Path) -> Optional[Dimensions]:
        # Image.open only parses the header here
        try:
            with Image.open(path) as im:
                width, height = im.size
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            logging.warning("Failed to get image size for %s: %s", path, e)
            return None
        return Dimensions(width, height)

    def _is_image(self, path: Path) -> bool:
        if path.name.startswith("._"):
            return False
        return path.suffix.lower() in config.IMAGE_EXTS

    def _iter_files(self, root: Path, skip_dirs: Set[Path]) -> Iterator[Path]:
        """Depth-first walker using os.scandir for speed."""
        stack = [root]
        while stack:
            current = stack.pop()
            if skip_dirs and any(sd == current or sd in current.parents for sd in skip_dirs):
                continue

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except (OSError, PermissionError):
                logging.warning(f"Permission denied: {current}")
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            files = []
            for e in entries:
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file(follow_symlinks=False):
                    files.append(Path(e.path))

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)

            for f in files:
                yield f
