import argparse
import asyncio
import logging
import sys
import threading
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from . import config
from .detection.engine import CancellationToken, DuplicateDetectionEngine
from .exceptions import PhotoDedupeError
from .harness.sweep import SweepHarness, most_accurate_profile, summarize
from .models import DetectionOptions, PhotoRecord
from .reporting import format_groups, format_sweep_table, write_groups_csv, write_sweep_json
from .scanning.filesystem import PhotoScanner
from .scanning.listing import load_records


def setup_logging(verbose: bool, log_file: Optional[Path] = None):
    """Sets up logging to the console and, optionally, a file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers
    )

    # Silence chatty libraries
    logging.getLogger("PIL").setLevel(logging.WARNING)


def parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(description="Photo Dedupe: find duplicate photos from file metadata")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--log-file", type=Path, default=None, help="Also write the log to this file")

    sub = p.add_subparsers(dest="command", required=True)

    def add_source_args(sp):
        sp.add_argument("source", type=Path, help="Photo directory to scan, or a JSON photo listing")
        sp.add_argument("--methods", nargs="+", choices=config.ALL_METHODS, default=list(config.ALL_METHODS),
                        help="Detection methods to enable")
        sp.add_argument("--chunk-size", type=int, default=config.DEFAULT_CHUNK_SIZE,
                        help="Photos compared between progress updates")
        sp.add_argument("--quick", action="store_true",
                        help="Skip full-content hashing when scanning (sparse fingerprints only)")
        sp.add_argument("--workers", type=int, default=config.DEFAULT_SCAN_WORKERS,
                        help="Parallel workers for scanning")
        sp.add_argument("--skip-dirs-file", type=Path, default=None, help="File containing paths to ignore")

    d = sub.add_parser("detect", help="Detect duplicate groups")
    add_source_args(d)
    d.add_argument("--threshold", type=float, default=config.DEFAULT_SIMILARITY_THRESHOLD,
                   help="Minimum similarity (0-100) for two photos to be duplicates")
    d.add_argument("--timeout", type=float, default=None,
                   help="Stop after this many seconds and report the groups found so far")
    d.add_argument("--csv", type=Path, default=None, help="Write the groups to this CSV file")

    s = sub.add_parser("sweep", help="Compare detection results across thresholds")
    add_source_args(s)
    s.add_argument("--thresholds", type=float, nargs="+", default=list(config.DEFAULT_SWEEP_THRESHOLDS),
                   help="Thresholds to test, in order")
    s.add_argument("--output", type=Path, default=None, help="Write results to this JSON file")

    pr = sub.add_parser("profiles", help="Run the preset detection profiles")
    add_source_args(pr)

    return p.parse_args(argv)


def load_skip_dirs(skip_file: Optional[Path]) -> set[Path]:
    if not skip_file or not skip_file.exists():
        return set()

    skips = set()
    with skip_file.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                skips.add(Path(line))
    return skips


def load_photos(args) -> List[PhotoRecord]:
    source = args.source
    if source.is_file() and source.suffix.lower() == ".json":
        return load_records(source)

    scanner = PhotoScanner()
    return scanner.scan(
        source.resolve(),
        skip_dirs=load_skip_dirs(args.skip_dirs_file),
        compute_hashes=not args.quick,
        max_workers=args.workers,
        show_progress=True,
    )


def run_detect(args, photos: List[PhotoRecord]) -> int:
    engine = DuplicateDetectionEngine(chunk_size=args.chunk_size)
    options = DetectionOptions.from_methods(args.methods, args.threshold)

    cancel = CancellationToken()
    timer = None
    if args.timeout:
        timer = threading.Timer(args.timeout, cancel.cancel)
        timer.daemon = True
        timer.start()

    with tqdm(total=len(photos), desc="Comparing", unit="photo") as bar:
        def on_progress(current: int, total: int):
            bar.update(current - bar.n)

        try:
            groups = asyncio.run(engine.detect(photos, options, on_progress=on_progress, cancel=cancel))
        finally:
            if timer:
                timer.cancel()

    print(format_groups(groups))
    if groups.partial:
        print("(partial results: detection was stopped early)")

    if args.csv:
        write_groups_csv(groups, args.csv)
    return 0


def run_sweep(args, photos: List[PhotoRecord]) -> int:
    harness = SweepHarness(DuplicateDetectionEngine(chunk_size=args.chunk_size))

    with tqdm(total=len(args.thresholds), desc="Sweeping", unit="threshold") as bar:
        def on_result(index, total, result):
            bar.update(1)

        results = asyncio.run(harness.run_sweep(photos, args.thresholds, args.methods, on_result=on_result))

    summary = summarize(results)
    print(format_sweep_table(results))
    if summary.best:
        print(f"Best result: {summary.best.threshold}% threshold found the most groups "
              f"({summary.best.groups_found} groups, {summary.best.total_duplicates} duplicates)")
    if summary.recommended and summary.recommended.groups_found:
        print(f"Recommended: {summary.recommended.threshold}% threshold")

    if args.output:
        write_sweep_json(results, args.output, summary, source=str(args.source))
    return 0


def run_profiles(args, photos: List[PhotoRecord]) -> int:
    harness = SweepHarness(DuplicateDetectionEngine(chunk_size=args.chunk_size))
    outcomes = asyncio.run(harness.run_profiles(photos))
    for outcome in outcomes:
        r = outcome.result
        expected = outcome.expected_accuracy
        vs_expected = f"{expected:>4}% vs expected" if expected is not None else ""
        print(f"{outcome.profile.name:<24} {r.threshold:>5}%  {r.groups_found:>4} groups  "
              f"{r.total_duplicates:>5} photos  {r.accuracy:>5.1f}% acc  {r.execution_time_ms} ms  {vs_expected}")

    closest = most_accurate_profile(outcomes)
    if closest:
        print(f"Most accurate: {closest.profile.name} ({closest.expected_accuracy}% of expected results)")
    return 0


COMMANDS = {
    "detect": run_detect,
    "sweep": run_sweep,
    "profiles": run_profiles,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    logging.info("=== Photo Dedupe Started ===")
    logging.info(f"Source: {args.source}")

    try:
        photos = load_photos(args)
        return COMMANDS[args.command](args, photos)
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        return 1
    except PhotoDedupeError as e:
        logging.error(f"Duplicate detection failed: {e}")
        return 1
    except Exception:
        logging.exception("Fatal error during duplicate detection.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
