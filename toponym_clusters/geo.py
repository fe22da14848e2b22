"""
Geo validation of clusters: how spread out are the cities sharing a suffix?

For a cluster node, every distinct city record under it is collected and the
Euclidean distance over (latitude, longitude) is computed for each unordered
pair. The distances are reduced to min / max / mean / sample standard
deviation. Results are cached per node; with a graph store attached they are
also persisted and reused across runs.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import numpy as np

from toponym_clusters.errors import InsufficientDataError
from toponym_clusters.models import GeoStatistics
from toponym_clusters.trie import SuffixNode, SuffixTrie

if TYPE_CHECKING:
    from toponym_clusters.store import GraphStore

logger = logging.getLogger(__name__)


def _row_distances(coords: np.ndarray, i: int) -> np.ndarray:
    """Distances from point i to every later point."""
    return np.linalg.norm(coords[i + 1:] - coords[i], axis=1)


def distance_statistics(coords: np.ndarray) -> GeoStatistics:
    """
    Min/max/mean/sample stddev over all pairwise distances, computed one row at
    a time so memory stays linear in the number of points. Two passes: the
    first for min/max/mean, the second for the squared deviations.
    """
    n = len(coords)
    pairs = n * (n - 1) // 2
    if pairs == 0:
        raise ValueError("distance statistics need at least two points")

    lo, hi, total = np.inf, -np.inf, 0.0
    for i in range(n - 1):
        row = _row_distances(coords, i)
        lo = min(lo, float(row.min()))
        hi = max(hi, float(row.max()))
        total += float(row.sum())
    mean = total / pairs

    stddev = 0.0
    if pairs > 1:
        squares = 0.0
        for i in range(n - 1):
            dev = _row_distances(coords, i) - mean
            squares += float(np.dot(dev, dev))
        stddev = float(np.sqrt(squares / (pairs - 1)))

    return GeoStatistics(min=lo, max=hi, mean=mean, stddev=stddev)


class GeoDistance:
    def __init__(self, trie: SuffixTrie, store: Optional["GraphStore"] = None):
        self.trie = trie
        self.store = store
        self._cache: dict[int, GeoStatistics] = {}
        # number of pairwise computations actually performed
        self.computations = 0

    def distance_stats(self, node: SuffixNode) -> GeoStatistics:
        cached = self._cache.get(node.index)
        if cached is not None:
            return cached

        if self.store is not None:
            persisted = self.store.load_geo_statistics(node.value)
            if persisted is not None:
                self._cache[node.index] = persisted
                return persisted

        stats = self._compute(node)
        self._cache[node.index] = stats
        if self.store is not None:
            self.store.save_geo_statistics(node.value, stats)
        return stats

    def _compute(self, node: SuffixNode) -> GeoStatistics:
        indices = sorted(set(self.trie.record_indices_under(node)))
        if len(indices) < 2:
            raise InsufficientDataError(
                f"{len(indices)} record(s) under cluster; need at least 2 for distance statistics",
                phase="geo", node=node.value,
            )

        coords = np.array(
            [(self.trie.records[i].latitude, self.trie.records[i].longitude) for i in indices],
            dtype=np.float64,
        )
        stats = distance_statistics(coords)
        self.computations += 1
        logger.debug("Geo statistics for %r over %d cities: %s", node.value, len(indices), stats)
        return stats
