"""
Pairwise similarity scoring.

Each enabled heuristic adds a fixed number of points; the total is clamped to
100. Everything here works on metadata only and is pure, so
score(a, b) == score(b, a) for any pair.
"""
import re

from .. import config
from ..models import DetectionOptions, PairwiseSimilarity, PhotoRecord, NO_SIMILARITY

_EXT_RE = re.compile(
    r'(' + '|'.join(re.escape(ext) for ext in config.IMAGE_EXTS) + r')$'
)


def normalize_name(name: str) -> str:
    """Lowercases and strips one trailing image extension."""
    return _EXT_RE.sub('', name.lower())


def levenshtein_distance(s1: str, s2: str) -> int:
    """Classic edit distance; insertions, deletions and substitutions cost 1."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1
    if not s2:
        return len(s1)

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (c1 != c2),
            ))
        previous = current
    return previous[-1]


def name_similarity(name1: str, name2: str) -> float:
    """
    Returns 0.0 - 1.0 similarity between two filenames after normalization:
    (max_len - edit_distance) / max_len, with 1.0 for two empty names.
    """
    n1 = normalize_name(name1)
    n2 = normalize_name(name2)
    if n1 == n2:
        return 1.0

    max_len = max(len(n1), len(n2))
    return (max_len - levenshtein_distance(n1, n2)) / max_len


class SimilarityScorer:
    """
    Scores a single pair of photos against the enabled heuristics.

    Evaluation order (which is also reason order):
      1. exact file size           +30
      2. filename similarity > 0.7 +30
      3. identical content hash    +50 (conclusive, pair scores 100)
         or matching weak hash     +45
      4. same dimensions           +20
         or near dimensions        +10
    """

    def score(self, a: PhotoRecord, b: PhotoRecord, options: DetectionOptions) -> PairwiseSimilarity:
        # With every check off nothing is comparable, dimensions included
        if not options.any_enabled:
            return NO_SIMILARITY

        points = 0
        reasons = []
        identical_content = False

        if options.check_file_size and a.size == b.size:
            points += config.SIZE_MATCH_POINTS
            reasons.append(config.REASON_SIZE)

        if options.check_filename and name_similarity(a.name, b.name) > config.NAME_SIMILARITY_CUTOFF:
            points += config.FILENAME_POINTS
            reasons.append(config.REASON_FILENAME)

        if options.check_hash:
            if a.content_hash and b.content_hash and a.content_hash == b.content_hash:
                points += config.HASH_MATCH_POINTS
                reasons.append(config.REASON_HASH)
                identical_content = True
            elif a.alt_hash and b.alt_hash and a.alt_hash == b.alt_hash:
                points += config.WEAK_HASH_POINTS
                reasons.append(config.REASON_WEAK_HASH)

        if a.dimensions and b.dimensions:
            dw = abs(a.dimensions.width - b.dimensions.width)
            dh = abs(a.dimensions.height - b.dimensions.height)
            if dw == 0 and dh == 0:
                points += config.SAME_DIMENSIONS_POINTS
                reasons.append(config.REASON_SAME_DIMENSIONS)
            elif dw < config.NEAR_DIMENSION_TOLERANCE and dh < config.NEAR_DIMENSION_TOLERANCE:
                points += config.NEAR_DIMENSIONS_POINTS
                reasons.append(config.REASON_NEAR_DIMENSIONS)

        if identical_content:
            total = config.MAX_SCORE
        else:
            total = min(config.MAX_SCORE, points)

        return PairwiseSimilarity(total, tuple(dict.fromkeys(reasons)))


_default_scorer = SimilarityScorer()


def score(a: PhotoRecord, b: PhotoRecord, options: DetectionOptions) -> PairwiseSimilarity:
    return _default_scorer.score(a, b, options)
