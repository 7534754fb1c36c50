"""
Run monitoring collaborators.

The engine and the sweep harness take a monitor in their constructors rather
than reaching for a module-level logger/metrics object, so tests can pass a
NullMonitor and callers can plug in their own.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import List

from .exceptions import ScoringError
from .models import DetectionOptions


@dataclass
class RunMetric:
    photos: int
    groups: int
    comparisons: int
    failures: int
    partial: bool
    duration_ms: float
    finished_at: float = field(default_factory=time.time)


class DetectionMonitor:
    """Receives engine events. The base implementation ignores all of them."""

    def run_started(self, total: int, options: DetectionOptions):
        pass

    def threshold_clamped(self, requested: float, applied: float):
        pass

    def pair_failed(self, error: ScoringError, first_of_kind: bool):
        pass

    def run_cancelled(self, visited: int, total: int):
        pass

    def run_finished(self, metric: RunMetric):
        pass


NullMonitor = DetectionMonitor


class LoggingMonitor(DetectionMonitor):
    """
    Routes engine events to the logging module and keeps an append-only
    history of finished runs.
    """

    def __init__(self):
        self.metrics: List[RunMetric] = []

    def run_started(self, total: int, options: DetectionOptions):
        methods = ', '.join(options.methods) or 'none'
        logging.info(
            f"Detecting duplicates among {total} photos "
            f"(threshold={options.similarity_threshold}, methods={methods})"
        )

    def threshold_clamped(self, requested: float, applied: float):
        logging.warning(f"Similarity threshold {requested} out of range; clamped to {applied}")

    def pair_failed(self, error: ScoringError, first_of_kind: bool):
        # One warning per exception type per run; the rest go to debug
        if first_of_kind:
            logging.warning(f"{error} (further {type(error.cause).__name__} failures logged at debug)")
        else:
            logging.debug(str(error))

    def run_cancelled(self, visited: int, total: int):
        logging.warning(f"Detection cancelled after {visited}/{total} photos; returning partial results")

    def run_finished(self, metric: RunMetric):
        self.metrics.append(metric)
        logging.info(
            f"Found {metric.groups} duplicate groups in {metric.duration_ms:.1f} ms "
            f"({metric.comparisons} comparisons, {metric.failures} failed)"
        )
