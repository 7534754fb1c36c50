"""
Greedy anchor-based clustering of photos into duplicate groups.

This is deliberately NOT connected components over the "score >= threshold"
graph. Each unclaimed photo, taken in input order, becomes an anchor and
claims every later unclaimed photo that directly clears the threshold against
it. Given A~B, B~C and A!~C (in that order) the result is {A, B}; C is only
grouped if it directly matches some later anchor.
"""
import uuid
from typing import Callable, List, Optional, Sequence, Set

from ..models import DetectionOptions, DuplicateGroup, PairwiseSimilarity, PhotoRecord
from .scorer import SimilarityScorer


def new_group_id() -> str:
    return f"group_{uuid.uuid4().hex[:12]}"


class GroupAggregator:
    def __init__(self,
                 scorer: Optional[SimilarityScorer] = None,
                 id_factory: Optional[Callable[[], str]] = None):
        self.scorer = scorer or SimilarityScorer()
        self.id_factory = id_factory or new_group_id

    def aggregate(self, photos: Sequence[PhotoRecord], options: DetectionOptions) -> List[DuplicateGroup]:
        """Clusters the whole list in one pass."""
        return self.aggregate_range(photos, options, 0, len(photos), set())

    def aggregate_range(self,
                        photos: Sequence[PhotoRecord],
                        options: DetectionOptions,
                        start: int,
                        stop: int,
                        processed: Set[str]) -> List[DuplicateGroup]:
        """
        Runs the anchor scan for anchors start <= i < stop.

        Each anchor is still compared against every later photo in the full
        list, so calling this over consecutive ranges with the same `processed`
        set gives exactly the groups of a single aggregate() call.
        `processed` is updated with the ids of every photo placed in a group.
        """
        groups = []
        threshold = options.similarity_threshold
        stop = min(stop, len(photos))

        for i in range(start, stop):
            anchor = photos[i]
            if anchor.id in processed:
                continue

            members = [anchor]
            anchor_scores = []
            for j in range(i + 1, len(photos)):
                candidate = photos[j]
                if candidate.id in processed:
                    continue

                sim = self.scorer.score(anchor, candidate, options)
                if sim.score >= threshold:
                    members.append(candidate)
                    anchor_scores.append(sim)

            # A lone anchor yields nothing and stays unclaimed
            if len(members) < 2:
                continue

            groups.append(self._build_group(members, anchor_scores, options))
            processed.update(p.id for p in members)

        return groups

    def _build_group(self,
                     members: List[PhotoRecord],
                     anchor_scores: List[PairwiseSimilarity],
                     options: DetectionOptions) -> DuplicateGroup:
        """
        Group similarity is the mean over every pair in the final membership,
        not just the anchor's pairs.
        """
        total = 0
        comparisons = 0
        reasons = {}

        for i in range(len(members)):
            for j in range(i + 1, len(members)):
                if i == 0:
                    sim = anchor_scores[j - 1]
                else:
                    sim = self.scorer.score(members[i], members[j], options)
                total += sim.score
                comparisons += 1
                reasons.update(dict.fromkeys(sim.reasons))

        return DuplicateGroup(
            id=self.id_factory(),
            photos=tuple(members),
            similarity=total / comparisons,
            reason=tuple(reasons),
        )
