"""
Parameter sweeps over the detection engine.

Runs the engine once per threshold (or per preset profile), times each run and
ranks the outcomes so different settings can be compared on the same photo set.
"""
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from .. import config
from ..detection.engine import DuplicateDetectionEngine, check_photos
from ..exceptions import DetectionInProgressError
from ..models import DetectionOptions, PhotoRecord, TestResult
from ..monitoring import DetectionMonitor


# Photos each scenario of the reference library should put into groups
EXPECTED_HASH_ONLY = {
    'exact_duplicates': 2,
    'same_content_different_sizes': 2,
    'different_formats': 2,
    'others': 0,
}
EXPECTED_MULTI_METHOD = {
    'exact_duplicates': 2,
    'same_content_different_sizes': 2,
    'visually_similar': 2,
    'burst_photos': 3,
    'different_formats': 2,
    'others': 0,
}


@dataclass(frozen=True)
class SweepProfile:
    name: str
    description: str
    threshold: float
    methods: Tuple[str, ...]
    expected: Optional[Mapping[str, int]] = field(default=None, compare=False)

    @property
    def expected_total(self) -> Optional[int]:
        if self.expected is None:
            return None
        return sum(self.expected.values())


PRESET_PROFILES = (
    SweepProfile('strict-hash-only', 'Hash matching only at 95% - exact duplicates', 95, ('hash',),
                 expected=EXPECTED_HASH_ONLY),
    SweepProfile('moderate-multi-method', 'All methods at 85% - balanced', 85, config.ALL_METHODS,
                 expected=EXPECTED_MULTI_METHOD),
    SweepProfile('filename-focused', 'Filename patterns only at 80% - organized libraries', 80, ('filename',)),
    SweepProfile('size-and-hash', 'File size and hash at 90% - fast and precise', 90, ('fileSize', 'hash')),
    SweepProfile('comprehensive-strict', 'All methods at 95% - thorough but strict', 95, config.ALL_METHODS),
    SweepProfile('comprehensive-moderate', 'All methods at 80% - coverage and precision', 80, config.ALL_METHODS),
    SweepProfile('comprehensive-loose', 'All methods at 65% - maximum coverage, may over-match', 65, config.ALL_METHODS),
)


def expected_accuracy(found: int, expected_total: int) -> int:
    """
    How close `found` grouped photos came to the expected count, 0 - 100.
    With nothing expected, finding nothing is 100 and anything else 0.
    """
    if expected_total == 0:
        return 100 if found == 0 else 0
    return round(max(0.0, 100 - abs(found - expected_total) / expected_total * 100))


@dataclass(frozen=True)
class ProfileResult:
    profile: SweepProfile
    result: TestResult

    @property
    def expected_accuracy(self) -> Optional[int]:
        """None when the profile has no expected results or the run failed."""
        total = self.profile.expected_total
        if total is None or self.result.error:
            return None
        return expected_accuracy(self.result.total_duplicates, total)


@dataclass(frozen=True)
class SweepSummary:
    best: Optional[TestResult]
    recommended: Optional[TestResult]
    fastest: Optional[TestResult]
    most_accurate: Optional[TestResult]
    average_accuracy: float
    average_efficiency: float

    def to_dict(self) -> dict:
        def threshold_of(r):
            return r.threshold if r else None
        return {
            'bestThreshold': threshold_of(self.best),
            'recommendedThreshold': threshold_of(self.recommended),
            'fastestThreshold': threshold_of(self.fastest),
            'mostAccurateThreshold': threshold_of(self.most_accurate),
            'averageAccuracy': self.average_accuracy,
            'averageEfficiency': self.average_efficiency,
        }


ResultCallback = Callable[[int, int, TestResult], None]


class SweepHarness:
    def __init__(self,
                 engine: Optional[DuplicateDetectionEngine] = None,
                 monitor: Optional[DetectionMonitor] = None):
        if engine is not None and monitor is not None:
            raise ValueError("Pass either an engine or a monitor for a new engine, not both")
        self.engine = engine or DuplicateDetectionEngine(monitor=monitor)

    async def run_sweep(self,
                        photos: Sequence[PhotoRecord],
                        thresholds: Iterable[float],
                        methods: Iterable[str],
                        on_result: Optional[ResultCallback] = None) -> List[TestResult]:
        """
        Runs detection once per threshold, in the order given.

        Malformed input (TypeError, InvalidPhotoRecordError) is raised before the
        first run. A run rejected because the engine is busy is recorded with
        zero counts and `error` set; the sweep carries on with the next threshold.
        """
        photos = check_photos(photos)
        thresholds = list(thresholds)
        methods = tuple(methods)
        results = []

        for idx, threshold in enumerate(thresholds, start=1):
            result = await self._run_one(photos, threshold, methods)
            results.append(result)
            if on_result:
                on_result(idx, len(thresholds), result)

        return results

    async def run_profiles(self,
                           photos: Sequence[PhotoRecord],
                           profiles: Optional[Iterable[SweepProfile]] = None) -> List[ProfileResult]:
        """Runs each preset (or given) profile once."""
        photos = check_photos(photos)
        profiles = PRESET_PROFILES if profiles is None else tuple(profiles)
        out = []
        for profile in profiles:
            logging.info(f"Running profile '{profile.name}'")
            result = await self._run_one(photos, profile.threshold, tuple(profile.methods))
            out.append(ProfileResult(profile, result))
        return out

    async def _run_one(self, photos: Sequence[PhotoRecord], threshold: float, methods: Tuple[str, ...]) -> TestResult:
        options = DetectionOptions.from_methods(methods, threshold)

        t0 = time.perf_counter()
        try:
            groups = await self.engine.detect(photos, options)
        except DetectionInProgressError as e:
            logging.error(f"Sweep run at threshold {threshold} failed: {e}")
            return TestResult(
                threshold=threshold, methods=methods, groups_found=0,
                total_duplicates=0, execution_time_ms=0, accuracy=0.0, error=str(e),
            )
        elapsed_ms = round((time.perf_counter() - t0) * 1000)

        total_duplicates = sum(g.size for g in groups)
        # No groups counts as fully accurate
        if groups:
            accuracy = sum(g.similarity for g in groups) / len(groups)
        else:
            accuracy = 100.0

        logging.info(
            f"Threshold {threshold}%: {len(groups)} groups, "
            f"{total_duplicates} duplicates ({elapsed_ms} ms)"
        )
        return TestResult(
            threshold=threshold,
            methods=methods,
            groups_found=len(groups),
            total_duplicates=total_duplicates,
            execution_time_ms=elapsed_ms,
            accuracy=accuracy,
        )


async def run_sweep(photos: Sequence[PhotoRecord],
                    thresholds: Iterable[float],
                    methods: Iterable[str],
                    engine: Optional[DuplicateDetectionEngine] = None) -> List[TestResult]:
    return await SweepHarness(engine).run_sweep(photos, thresholds, methods)


# --- Ranking ---
# Failed runs never rank.

def best_result(results: Sequence[TestResult]) -> Optional[TestResult]:
    """The result with the most groups; the earliest wins ties."""
    best = None
    for r in results:
        if r.error is None and (best is None or r.groups_found > best.groups_found):
            best = r
    return best


def recommendation_score(result: TestResult) -> float:
    """(duplicates per group) * (accuracy / 100); 0 when nothing was found."""
    if result.groups_found == 0:
        return 0.0
    return (result.total_duplicates / result.groups_found) * (result.accuracy / 100)


def recommended_result(results: Sequence[TestResult]) -> Optional[TestResult]:
    best = None
    best_score = None
    for r in results:
        if r.error is not None:
            continue
        s = recommendation_score(r)
        if best is None or s > best_score:
            best, best_score = r, s
    return best


def most_accurate_result(results: Sequence[TestResult]) -> Optional[TestResult]:
    """Highest accuracy; the earliest wins ties."""
    best = None
    for r in results:
        if r.error is None and (best is None or r.accuracy > best.accuracy):
            best = r
    return best


def most_accurate_profile(outcomes: Sequence[ProfileResult]) -> Optional[ProfileResult]:
    """The profile that came closest to its expected results; profiles without any are skipped."""
    best = None
    for o in outcomes:
        score = o.expected_accuracy
        if score is not None and (best is None or score > best.expected_accuracy):
            best = o
    return best


def summarize(results: Sequence[TestResult]) -> SweepSummary:
    ok = [r for r in results if r.error is None]
    fastest = min(ok, key=lambda r: r.execution_time_ms) if ok else None
    avg_acc = sum(r.accuracy for r in ok) / len(ok) if ok else 0.0
    avg_eff = sum(r.efficiency for r in ok) / len(ok) if ok else 0.0
    return SweepSummary(
        best=best_result(results),
        recommended=recommended_result(results),
        fastest=fastest,
        most_accurate=most_accurate_result(results),
        average_accuracy=avg_acc,
        average_efficiency=avg_eff,
    )


def summarize_profiles(outcomes: Sequence[ProfileResult]) -> SweepSummary:
    """
    Like summarize(), but `most_accurate` is judged against each profile's
    expected results.
    """
    summary = summarize([o.result for o in outcomes])
    closest = most_accurate_profile(outcomes)
    return replace(summary, most_accurate=closest.result if closest else None)
