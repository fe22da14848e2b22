"""
Tests for the geo-distance evaluator.
"""

from __future__ import annotations

import math
import tracemalloc

import numpy as np
import pytest

from toponym_clusters.aggregation import aggregate_subsumed_counts
from toponym_clusters.errors import InsufficientDataError
from toponym_clusters.geo import GeoDistance, distance_statistics
from toponym_clusters.models import CityRecord
from toponym_clusters.store import GraphStore
from toponym_clusters.trie import SuffixTrie


def _trie(rows) -> SuffixTrie:
    trie = SuffixTrie.from_records(CityRecord(name=n, latitude=lat, longitude=lon) for n, lat, lon in rows)
    aggregate_subsumed_counts(trie)
    return trie


@pytest.fixture
def dorf():
    # pairwise distances 5, 8, 5
    return _trie([("altdorf", 0.0, 0.0), ("neudorf", 3.0, 4.0), ("holzdorf", 0.0, 8.0)])


class TestDistanceStatistics:
    def test_triangle(self):
        stats = distance_statistics(np.array([[0.0, 0.0], [3.0, 4.0], [0.0, 8.0]]))
        assert (stats.min, stats.max, stats.mean) == pytest.approx((5.0, 8.0, 6.0))
        assert stats.stddev == pytest.approx(math.sqrt(3.0))

    def test_matches_full_distance_matrix(self):
        coords = np.random.default_rng(42).uniform([47.0, 6.0], [55.0, 15.0], size=(60, 2))
        full = np.sqrt(((coords[:, None, :] - coords[None, :, :]) ** 2).sum(axis=-1))
        dense = full[np.triu_indices(len(coords), k=1)]

        stats = distance_statistics(coords)
        assert stats.min == pytest.approx(dense.min())
        assert stats.max == pytest.approx(dense.max())
        assert stats.mean == pytest.approx(dense.mean())
        assert stats.stddev == pytest.approx(np.std(dense, ddof=1))

    def test_working_memory_stays_near_one_row(self):
        coords = np.random.default_rng(7).uniform([47.0, 6.0], [55.0, 15.0], size=(2000, 2))
        condensed_bytes = len(coords) * (len(coords) - 1) // 2 * 8

        tracemalloc.start()
        try:
            distance_statistics(coords)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()
        assert peak < condensed_bytes // 10

    def test_needs_two_points(self):
        with pytest.raises(ValueError):
            distance_statistics(np.array([[1.0, 2.0]]))


class TestDistanceStats:
    def test_statistics(self, dorf):
        stats = GeoDistance(dorf).distance_stats(dorf.node("dorf"))
        assert stats.min == pytest.approx(5.0)
        assert stats.max == pytest.approx(8.0)
        assert stats.mean == pytest.approx(6.0)
        assert stats.stddev == pytest.approx(math.sqrt(3.0))

    def test_single_pair_has_zero_spread(self):
        trie = _trie([("berg", 50.0, 10.0), ("berg", 51.0, 10.0)])
        stats = GeoDistance(trie).distance_stats(trie.node("berg"))
        assert stats.min == stats.max == pytest.approx(1.0)
        assert stats.stddev == 0.0

    def test_insufficient_data(self, dorf):
        with pytest.raises(InsufficientDataError) as exc:
            GeoDistance(dorf).distance_stats(dorf.node("altdorf"))
        assert exc.value.node == "altdorf"


class TestCaching:
    def test_second_call_is_cached(self, dorf):
        geo = GeoDistance(dorf)
        node = dorf.node("dorf")
        first = geo.distance_stats(node)

        # corrupt the record store; the cached value must survive
        dorf.records[0] = CityRecord(name="altdorf", latitude=80.0, longitude=80.0)
        second = geo.distance_stats(node)

        assert second is first
        assert geo.computations == 1

    def test_persisted_statistics_are_reused(self, dorf, tmp_path):
        store = GraphStore(tmp_path / "graph.sqlite")
        first = GeoDistance(dorf, store).distance_stats(dorf.node("dorf"))

        dorf.records[1] = CityRecord(name="neudorf", latitude=-80.0, longitude=100.0)
        geo = GeoDistance(dorf, store)
        again = geo.distance_stats(dorf.node("dorf"))

        assert again == first
        assert geo.computations == 0
