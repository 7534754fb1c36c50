import asyncio
import threading
import time
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from .. import config
from ..exceptions import DetectionInProgressError, InvalidPhotoRecordError, ScoringError
from ..models import (
    DetectionOptions,
    DetectionResult,
    PairwiseSimilarity,
    PhotoRecord,
    NO_SIMILARITY,
)
from ..monitoring import DetectionMonitor, LoggingMonitor, RunMetric
from .aggregator import GroupAggregator, new_group_id
from .scorer import SimilarityScorer

ProgressCallback = Callable[[int, int], None]


def check_photos(photos: Sequence[PhotoRecord]) -> list:
    """
    Validates detection input: a list or tuple of PhotoRecord with unique ids.
    Returns it as a list.
    """
    if not isinstance(photos, (list, tuple)):
        raise TypeError(f"photos must be a list of PhotoRecord, got {type(photos).__name__}")

    seen = set()
    for p in photos:
        if not isinstance(p, PhotoRecord):
            raise TypeError(f"Expected PhotoRecord, got {type(p).__name__}")
        if p.id in seen:
            raise InvalidPhotoRecordError(f"Duplicate photo id {p.id!r} in detection input")
        seen.add(p.id)
    return list(photos)


class EngineState(Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'


class CancellationToken:
    """
    Cooperative cancellation flag, checked by the engine between chunks.
    Safe to set from another thread (e.g. a signal handler or UI thread).
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class _GuardedScorer:
    """
    Wraps a scorer for the length of one run: a pair whose scoring raises
    counts as score 0 and is reported to the monitor.
    """

    def __init__(self, scorer: SimilarityScorer, monitor: DetectionMonitor):
        self.scorer = scorer
        self.monitor = monitor
        self.comparisons = 0
        self.failures = 0
        self._seen_kinds = set()

    def score(self, a: PhotoRecord, b: PhotoRecord, options: DetectionOptions) -> PairwiseSimilarity:
        self.comparisons += 1
        try:
            return self.scorer.score(a, b, options)
        except Exception as e:
            self.failures += 1
            kind = type(e)
            first = kind not in self._seen_kinds
            self._seen_kinds.add(kind)
            self.monitor.pair_failed(ScoringError(a.id, b.id, e), first)
            return NO_SIMILARITY


class DuplicateDetectionEngine:
    """
    Orchestrates a detection run over a full photo set.

    Anchors are visited in chunks of `chunk_size`. Between chunks the engine
    reports progress, checks for cancellation and yields to the event loop.
    Every anchor is compared against the whole remaining set, so chunk
    boundaries never hide duplicates.

    Only one detect() may be in flight per engine.
    """

    def __init__(self,
                 scorer: Optional[SimilarityScorer] = None,
                 monitor: Optional[DetectionMonitor] = None,
                 chunk_size: int = config.DEFAULT_CHUNK_SIZE,
                 id_factory: Callable[[], str] = new_group_id):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self.scorer = scorer or SimilarityScorer()
        self.monitor = monitor if monitor is not None else LoggingMonitor()
        self.chunk_size = chunk_size
        self.id_factory = id_factory
        self._state = EngineState.IDLE

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is EngineState.RUNNING

    async def detect(self,
                     photos: Sequence[PhotoRecord],
                     options: Any = None,
                     on_progress: Optional[ProgressCallback] = None,
                     cancel: Optional[CancellationToken] = None) -> DetectionResult:
        """
        Finds duplicate groups among `photos`.

        Args:
            photos: list or tuple of PhotoRecord with unique ids.
            options: DetectionOptions, a mapping of option keys, or None for defaults.
                     Out-of-range thresholds are clamped to [0, 100].
            on_progress: called as on_progress(visited, total) after each chunk.
            cancel: when set, the run stops at the next chunk boundary and the
                    groups finished so far come back with partial=True.

        Raises:
            DetectionInProgressError: this engine is already running.
            TypeError / InvalidPhotoRecordError: caller passed malformed input.
        """
        if self._state is EngineState.RUNNING:
            raise DetectionInProgressError()

        photos = check_photos(photos)
        options = self._resolve_options(options)

        self._state = EngineState.RUNNING
        succeeded = False
        try:
            result = await self._run(photos, options, on_progress, cancel)
            succeeded = True
            return result
        finally:
            self._state = EngineState.COMPLETED if succeeded else EngineState.FAILED

    def detect_sync(self, photos: Sequence[PhotoRecord], options: Any = None, **kwargs) -> DetectionResult:
        """Runs detect() on a fresh event loop. Not for use inside a running loop."""
        return asyncio.run(self.detect(photos, options, **kwargs))

    async def _run(self,
                   photos: list,
                   options: DetectionOptions,
                   on_progress: Optional[ProgressCallback],
                   cancel: Optional[CancellationToken]) -> DetectionResult:
        t0 = time.perf_counter()
        total = len(photos)
        self.monitor.run_started(total, options)

        guarded = _GuardedScorer(self.scorer, self.monitor)
        aggregator = GroupAggregator(guarded, self.id_factory)
        processed = set()
        groups = []
        partial = False

        for start in range(0, total, self.chunk_size):
            if cancel is not None and cancel.cancelled:
                partial = True
                self.monitor.run_cancelled(start, total)
                break

            stop = min(start + self.chunk_size, total)
            groups.extend(aggregator.aggregate_range(photos, options, start, stop, processed))

            if on_progress:
                on_progress(stop, total)

            # Let the host loop breathe between chunks
            await asyncio.sleep(0)

        self.monitor.run_finished(RunMetric(
            photos=total,
            groups=len(groups),
            comparisons=guarded.comparisons,
            failures=guarded.failures,
            partial=partial,
            duration_ms=(time.perf_counter() - t0) * 1000,
        ))
        return DetectionResult(groups, partial=partial, failures=guarded.failures)

    def _resolve_options(self, options: Any) -> DetectionOptions:
        if options is None:
            options = DetectionOptions()
        elif isinstance(options, Mapping):
            options = DetectionOptions.from_mapping(options)
        elif not isinstance(options, DetectionOptions):
            raise TypeError(f"options must be DetectionOptions or a mapping, got {type(options).__name__}")

        applied = options.clamped()
        if applied is not options:
            self.monitor.threshold_clamped(options.similarity_threshold, applied.similarity_threshold)
        return applied
