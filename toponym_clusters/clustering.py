"""
Cluster selection over the suffix trie.

Two interchangeable strategies walk every root's tree breadth-first and pick
suffix nodes that represent a naming pattern:

  - proportion: a child is a candidate when it holds at least `proportion` of
    its parent's cities and its size lies within the per-tree bounds.
  - ngrams: a child is a candidate when its share of the parent's cities is
    clearly larger than what a letter n-gram model predicts for the letter it
    prepends. Siblings that are all significant together leave the parent as
    the representative instead of fragmenting it.

Both strategies need subsumed counts (see aggregation.py).
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Optional

from toponym_clusters.errors import ConfigurationError, PreconditionError
from toponym_clusters.ngrams import EOW, NGramModel
from toponym_clusters.trie import ClusterState, SuffixNode, SuffixTrie

logger = logging.getLogger(__name__)

MIN_CLUSTER_FLOOR = 5
DEFAULT_WEIGHTS = (0.2, 0.3, 0.5)
DEFAULT_ALPHA = 1.5


@dataclass(frozen=True)
class ClusterBounds:
    min_size: int
    max_size: int

    def admits(self, subsumed_cities: int) -> bool:
        return self.min_size <= subsumed_cities <= self.max_size


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


class SuffixClustering:
    """
    Determines cluster candidates among the suffix nodes.
    Instantiate with different parameters to compare results within one run.
    """

    def __init__(
        self,
        trie: SuffixTrie,
        model: Optional[NGramModel] = None,
        proportion: float = 0.0,
        min_percent: float = 0.0,
        max_percent: float = 0.0,
        weights: tuple[float, float, float] = DEFAULT_WEIGHTS,
        alpha: float = DEFAULT_ALPHA,
    ):
        for name, value in (("proportion", proportion), ("min_percent", min_percent), ("max_percent", max_percent)):
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must lie in [0, 1], got {value}", phase="clustering")
        if len(weights) != 3 or any(w < 0 for w in weights) or not math.isclose(sum(weights), 1.0):
            raise ConfigurationError(f"weights must be three non-negative values summing to 1, got {weights}",
                                     phase="clustering")
        if alpha <= 0:
            raise ConfigurationError(f"alpha must be positive, got {alpha}", phase="clustering")

        self.trie = trie
        self.model = model
        self.proportion = proportion
        self.min_percent = min_percent
        self.max_percent = max_percent
        self.weights = tuple(weights)
        self.alpha = alpha

    # ── Bounds ────────────────────────────────────────────────────────

    def cluster_bounds(self, no_cities: int) -> ClusterBounds:
        """Min/max cluster size for a tree whose root subsumes `no_cities`."""
        min_size = max(MIN_CLUSTER_FLOOR, _round_half_up(no_cities * self.min_percent))
        max_size = min(no_cities - 2, _round_half_up(no_cities * (1 - self.max_percent)))
        return ClusterBounds(min_size, max_size)

    def _counted(self, node: SuffixNode, phase: str) -> int:
        if not node.is_counted:
            raise PreconditionError("subsumed cities must be determined before clustering",
                                    phase=phase, node=node.value)
        return node.subsumed_count

    def _root_bounds(self, root: SuffixNode, phase: str) -> ClusterBounds:
        bounds = self.cluster_bounds(self._counted(root, phase))
        logger.debug("Root %r: %d cities, cluster size in [%d, %d]",
                     root.value, root.subsumed_count, bounds.min_size, bounds.max_size)
        return bounds

    # ── Strategy A: proportion ────────────────────────────────────────

    def determine_candidates_by_proportion(self) -> list[SuffixNode]:
        """
        Returns the candidate nodes. A child that becomes a candidate
        replaces every candidate among its shorter tails, so no two returned
        clusters nest.
        """
        phase = "clustering:proportion"
        roots = self.trie.roots()
        bounds_by_root = {root.index: self._root_bounds(root, phase) for root in roots}
        candidates: dict[int, None] = {}

        for root in roots:
            bounds = bounds_by_root[root.index]
            queue = deque([root])
            while queue:
                parent = queue.popleft()
                expected = self._counted(parent, phase) * self.proportion

                for child in self.trie.children(parent):
                    subsumed = self._counted(child, phase)
                    if subsumed < bounds.min_size:
                        continue
                    # child or its children could be a candidate
                    queue.append(child)
                    if subsumed <= bounds.max_size and subsumed >= expected:
                        candidates[child.index] = None
                        for ancestor in self.trie.ancestors(child):
                            candidates.pop(ancestor.index, None)

        result = [self.trie[i] for i in candidates]
        logger.info("Proportion clustering: %d candidates (proportion=%.3f)", len(result), self.proportion)
        return result

    # ── Strategy B: n-gram significance ───────────────────────────────

    def determine_candidates_by_ngrams(self) -> int:
        """
        Flags significant nodes as cluster candidates (persisted on the
        nodes; read them back with cluster_candidates()). Returns the number
        of nodes flagged by this call.
        """
        phase = "clustering:ngrams"
        if self.model is None:
            raise PreconditionError("an n-gram model is required for significance-based clustering", phase=phase)

        roots = self.trie.roots()
        bounds_by_root = {root.index: self._root_bounds(root, phase) for root in roots}
        flagged = 0

        for root in roots:
            bounds = bounds_by_root[root.index]
            queue = deque([root])
            while queue:
                parent = queue.popleft()
                self._counted(parent, phase)

                is_inheritance = True
                significant: list[SuffixNode] = []
                for child in self.trie.children(parent):
                    subsumed = self._counted(child, phase)
                    if subsumed < bounds.min_size:
                        continue
                    queue.append(child)
                    if subsumed > bounds.max_size:
                        continue

                    is_significant = self.is_significant(child, parent)
                    is_inheritance = is_inheritance and is_significant
                    if is_significant:
                        significant.append(child)

                # all relevant siblings significant: the parent stays the representative
                if not is_inheritance and significant:
                    for child in significant:
                        if not child.is_cluster_candidate:
                            child.cluster_state = ClusterState.CANDIDATE
                            flagged += 1

        logger.info("N-gram clustering: %d nodes flagged", flagged)
        return flagged

    def expected_proportion(self, value: str) -> float:
        """
        Interpolated probability of the letter prepended in `value` given up
        to two letters of right context, e.g. for "zell":
        0.2 * P(z) + 0.3 * P(z|e) + 0.5 * P(z|el).
        """
        model = self.model
        if model is None:
            raise PreconditionError("an n-gram model is required", phase="clustering:ngrams", node=value)

        s0 = value[0]
        s1 = value[1] if len(value) > 1 else EOW
        s01 = value[:2] if len(value) > 1 else s0 + EOW
        s12 = value[1:3] if len(value) > 2 else s1 + EOW
        s012 = value[:3] if len(value) > 2 else s01 + EOW

        p0 = model.letter_probability(s0)
        p1 = model.bigram_probability(s01) / model.letter_probability(s1)
        p2 = model.trigram_probability(s012) / model.bigram_probability(s12)

        w0, w1, w2 = self.weights
        return w0 * p0 + w1 * p1 + w2 * p2

    def is_significant(self, child: SuffixNode, parent: SuffixNode) -> bool:
        actual = child.subsumed_count / parent.subsumed_count
        return actual > self.alpha * self.expected_proportion(child.value)

    # ── Flag management ───────────────────────────────────────────────

    def cluster_candidates(self) -> list[SuffixNode]:
        return [n for n in self.trie if n.is_cluster_candidate]

    def reset_cluster_candidates(self) -> int:
        removed = 0
        for n in self.trie:
            if n.is_cluster_candidate:
                n.cluster_state = ClusterState.UNFLAGGED
                removed += 1
        return removed
