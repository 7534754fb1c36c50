import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .. import config
from ..exceptions import FileHashError


@dataclass
class HashResult:
    full_hash: Optional[str]
    sparse_hash: str


class FileHasher:
    """
    Produces the two fingerprints a PhotoRecord carries:

    - full_hash: SHA-256 of every byte (becomes content_hash).
    - sparse_hash: SHA-256 over the size plus header/middle/footer samples
      (becomes alt_hash). Files that differ only away from the sampled regions,
      e.g. a re-saved copy with edited metadata in the middle, share it.
    """

    def compute_hash(self, path: Path, full: bool = True) -> HashResult:
        try:
            file_size = path.stat().st_size
            sparse_h = self._sparse_hash(path, file_size)
            full_h = self._full_sha256(path) if full else None
        except OSError as e:
            # File might have been moved/deleted during scan
            raise FileHashError(f"Failed to hash {path}: {e}") from e
        return HashResult(full_hash=full_h, sparse_hash=sparse_h)

    def _full_sha256(self, path: Path) -> str:
        """Reads entire file. High I/O cost."""
        h = hashlib.sha256()
        with open(path, 'rb') as f:
            while chunk := f.read(config.HASH_CHUNK_SIZE):
                h.update(chunk)
        return h.hexdigest()

    def _sparse_hash(self, path: Path, file_size: int) -> str:
        """
        Reads Header, Middle and Footer samples and mixes in file size.
        Prefixed with 's-' to distinguish from full hashes.
        """
        chunk_size = config.SPARSE_SAMPLE_SIZE
        h = hashlib.sha256()
        h.update(str(file_size).encode('ascii'))

        with open(path, 'rb') as f:
            h.update(f.read(chunk_size))

            if file_size > chunk_size * 3:
                f.seek(file_size // 2)
                h.update(f.read(chunk_size))

            if file_size > chunk_size * 2:
                f.seek(-chunk_size, 2)
                h.update(f.read(chunk_size))

        return f"s-{h.hexdigest()}"
