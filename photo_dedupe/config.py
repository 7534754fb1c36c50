"""
Configuration constants for the duplicate detector.
"""

# --- File Type Definitions ---
IMAGE_EXTS = ('.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp', '.tiff', '.tif')

# --- Scoring ---
# Points awarded per heuristic. Pair scores are summed then clamped to MAX_SCORE.
SIZE_MATCH_POINTS = 30
FILENAME_POINTS = 30
HASH_MATCH_POINTS = 50
WEAK_HASH_POINTS = 45
SAME_DIMENSIONS_POINTS = 20
NEAR_DIMENSIONS_POINTS = 10
MAX_SCORE = 100

# Normalized filename similarity must exceed this to count
NAME_SIMILARITY_CUTOFF = 0.7
# Width and height must each differ by less than this (pixels)
NEAR_DIMENSION_TOLERANCE = 10

# Reason tags, listed in evaluation order
REASON_SIZE = "Similar file size"
REASON_FILENAME = "Similar filename"
REASON_HASH = "Identical content hash"
REASON_WEAK_HASH = "Similar content hash"
REASON_SAME_DIMENSIONS = "Same dimensions"
REASON_NEAR_DIMENSIONS = "Similar dimensions"

# --- Detection ---
DEFAULT_SIMILARITY_THRESHOLD = 85
MIN_SIMILARITY_THRESHOLD = 0
MAX_SIMILARITY_THRESHOLD = 100

# Anchors visited between yields / progress reports.
# This is a scheduling unit only, every anchor is compared against the full set.
DEFAULT_CHUNK_SIZE = 50

# --- Test Harness ---
# Method name -> DetectionOptions field
METHOD_FLAGS = {
    'fileSize': 'check_file_size',
    'filename': 'check_filename',
    'hash': 'check_hash',
}
ALL_METHODS = ('fileSize', 'filename', 'hash')
DEFAULT_SWEEP_THRESHOLDS = (95, 90, 85, 75, 65)

# --- Hashing & Scanning ---
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for reading
SPARSE_SAMPLE_SIZE = 4096
DEFAULT_SCAN_WORKERS = 3
