import logging
import math
from dataclasses import dataclass, fields, replace
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Tuple

from . import config
from .exceptions import InvalidPhotoRecordError


def normalize_timestamp(value: Any) -> int:
    """
    Normalizes a modification time to integer epoch milliseconds.

    Local listings report epoch ms as numbers while cloud listings report
    ISO-8601 strings; both end up as the same int here.
    Accepts: int/float epoch ms, numeric strings, ISO-8601 strings
    (a trailing 'Z' is fine, naive values are read as UTC) and datetimes.
    """
    if isinstance(value, bool):
        raise InvalidPhotoRecordError(f"Invalid timestamp: {value!r}")

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidPhotoRecordError(f"Invalid timestamp: {value!r}")
        return int(round(value))

    if isinstance(value, datetime):
        return _datetime_to_ms(value)

    if isinstance(value, str):
        s = value.strip()
        try:
            return int(round(float(s)))
        except ValueError:
            pass
        try:
            return _datetime_to_ms(datetime.fromisoformat(s))
        except ValueError:
            raise InvalidPhotoRecordError(f"Unparseable timestamp: {value!r}") from None

    raise InvalidPhotoRecordError(f"Unsupported timestamp type: {type(value).__name__}")


def _datetime_to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(round(dt.timestamp() * 1000))


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int


@dataclass(frozen=True)
class PhotoRecord:
    """
    Metadata for a single photo, as handed to the detection engine.
    Records are immutable; the engine never needs pixel data.
    """
    id: str
    name: str
    size: int
    last_modified: int = 0           # epoch ms, normalized on construction
    content_hash: Optional[str] = None
    alt_hash: Optional[str] = None   # weaker fingerprint (sparse sample / provider quick hash)
    dimensions: Optional[Dimensions] = None
    path: Optional[Path] = None      # informational, never compared

    def __post_init__(self):
        if isinstance(self.size, bool) or not isinstance(self.size, int):
            raise InvalidPhotoRecordError(f"Photo {self.id!r}: size must be an int, got {self.size!r}")
        if self.size < 0:
            raise InvalidPhotoRecordError(f"Photo {self.id!r}: size must be >= 0, got {self.size}")
        object.__setattr__(self, 'last_modified', normalize_timestamp(self.last_modified))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PhotoRecord':
        """
        Builds a record from a listing entry. Accepts the camelCase keys used by
        photo listings (lastModified, contentHash, altHash) as well as snake_case.
        """
        try:
            dims = data.get('dimensions')
            dimensions = None
            if dims:
                dimensions = Dimensions(int(dims['width']), int(dims['height']))

            path = data.get('path')
            return cls(
                id=str(data['id']),
                name=str(data['name']),
                size=int(data['size']),
                last_modified=data.get('lastModified', data.get('last_modified', 0)),
                content_hash=data.get('contentHash', data.get('content_hash')),
                alt_hash=data.get('altHash', data.get('alt_hash')),
                dimensions=dimensions,
                path=Path(path) if path else None,
            )
        except KeyError as e:
            raise InvalidPhotoRecordError(f"Photo entry missing field {e}") from None
        except InvalidPhotoRecordError:
            raise
        except (TypeError, ValueError) as e:
            raise InvalidPhotoRecordError(f"Malformed photo entry {data.get('id')!r}: {e}") from e

    def to_dict(self) -> dict:
        d = {
            'id': self.id,
            'name': self.name,
            'size': self.size,
            'lastModified': self.last_modified,
            'contentHash': self.content_hash,
            'altHash': self.alt_hash,
            'dimensions': None,
            'path': str(self.path) if self.path else None,
        }
        if self.dimensions:
            d['dimensions'] = {'width': self.dimensions.width, 'height': self.dimensions.height}
        return d


# Option keys as sent by UI round-trips -> field names
_OPTION_ALIASES = {
    'checkFileSize': 'check_file_size',
    'checkFilename': 'check_filename',
    'checkHash': 'check_hash',
    'similarityThreshold': 'similarity_threshold',
}


@dataclass(frozen=True)
class DetectionOptions:
    """
    The closed set of knobs a detection run understands.
    """
    check_file_size: bool = True
    check_filename: bool = True
    check_hash: bool = True
    similarity_threshold: float = config.DEFAULT_SIMILARITY_THRESHOLD

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'DetectionOptions':
        """
        Builds options from a loosely-typed mapping. Unknown keys are logged and
        ignored; a non-numeric threshold falls back to the default.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                logging.warning(f"Ignoring unknown detection option {key!r}")
                continue
            if name == 'similarity_threshold':
                try:
                    value = float(value)
                except (TypeError, ValueError):
                    logging.warning(f"Invalid similarity threshold {value!r}; using default")
                    continue
            elif isinstance(value, str):
                value = value.strip().lower() in ('1', 'true', 'yes', 'on')
            else:
                value = bool(value)
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_methods(cls, methods: Iterable[str],
                     threshold: float = config.DEFAULT_SIMILARITY_THRESHOLD) -> 'DetectionOptions':
        """Translates harness method names ('fileSize', 'filename', 'hash') into flags."""
        methods = list(methods)
        for m in methods:
            if m not in config.METHOD_FLAGS:
                logging.warning(f"Ignoring unknown detection method {m!r}")
        flags = {flag: name in methods for name, flag in config.METHOD_FLAGS.items()}
        return cls(similarity_threshold=threshold, **flags)

    def clamped(self) -> 'DetectionOptions':
        """Returns a copy whose threshold lies within [0, 100]."""
        t = self.similarity_threshold
        if isinstance(t, float) and math.isnan(t):
            return replace(self, similarity_threshold=config.DEFAULT_SIMILARITY_THRESHOLD)
        t = min(config.MAX_SIMILARITY_THRESHOLD, max(config.MIN_SIMILARITY_THRESHOLD, t))
        if t == self.similarity_threshold:
            return self
        return replace(self, similarity_threshold=t)

    @property
    def methods(self) -> Tuple[str, ...]:
        return tuple(name for name, flag in config.METHOD_FLAGS.items() if getattr(self, flag))

    @property
    def any_enabled(self) -> bool:
        return self.check_file_size or self.check_filename or self.check_hash


@dataclass(frozen=True)
class PairwiseSimilarity:
    score: float
    reasons: Tuple[str, ...] = ()


NO_SIMILARITY = PairwiseSimilarity(0, ())


@dataclass(frozen=True)
class DuplicateGroup:
    """
    A set of photos judged similar enough to review together.
    Group ids are generated per run; re-derive identity from photo ids if needed.
    """
    id: str
    photos: Tuple[PhotoRecord, ...]
    similarity: float
    reason: Tuple[str, ...] = ()

    @property
    def photo_ids(self) -> Tuple[str, ...]:
        return tuple(p.id for p in self.photos)

    @property
    def size(self) -> int:
        return len(self.photos)


class DetectionResult(list):
    """
    The groups produced by one detection run.

    Behaves as a plain list of DuplicateGroup; `partial` is set when the run
    was cancelled and `failures` counts pairs whose scoring raised.
    """

    def __init__(self, groups: Iterable[DuplicateGroup] = (), partial: bool = False, failures: int = 0):
        super().__init__(groups)
        self.partial = partial
        self.failures = failures

    def __repr__(self):
        return f"DetectionResult({list.__repr__(self)}, partial={self.partial}, failures={self.failures})"


@dataclass
class TestResult:
    """
    Outcome of one threshold in a sweep.
    """
    __test__ = False  # not a pytest class

    threshold: float
    methods: Tuple[str, ...]
    groups_found: int
    total_duplicates: int   # group sizes summed, not unique photos
    execution_time_ms: int
    accuracy: float
    error: Optional[str] = None

    @property
    def efficiency(self) -> float:
        """Duplicates found per second."""
        if self.execution_time_ms <= 0:
            return 0.0
        return self.total_duplicates / (self.execution_time_ms / 1000)

    @property
    def average_group_size(self) -> float:
        if self.groups_found == 0:
            return 0.0
        return self.total_duplicates / self.groups_found

    def to_dict(self) -> dict:
        return {
            'threshold': self.threshold,
            'methods': list(self.methods),
            'groupsFound': self.groups_found,
            'totalDuplicates': self.total_duplicates,
            'executionTimeMs': self.execution_time_ms,
            'accuracy': self.accuracy,
            'efficiency': self.efficiency,
            'error': self.error,
        }
