"""
Tests for cluster and distribution export.
"""

from __future__ import annotations

import json

import pytest

from toponym_clusters.aggregation import aggregate_subsumed_counts
from toponym_clusters.errors import InsufficientDataError
from toponym_clusters.export import (
    build_cluster_records,
    format_distribution,
    write_clusters,
    write_distribution,
)
from toponym_clusters.geo import GeoDistance
from toponym_clusters.models import CityRecord
from toponym_clusters.trie import SuffixTrie

RECORD_KEYS = {"suffix", "subsumedCities", "min", "max", "mean", "stddev"}


@pytest.fixture
def trie():
    t = SuffixTrie.from_records([
        CityRecord(name="altdorf", latitude=0.0, longitude=0.0),
        CityRecord(name="neudorf", latitude=3.0, longitude=4.0),
        CityRecord(name="holzdorf", latitude=0.0, longitude=8.0),
        CityRecord(name="kirchhof", latitude=1.0, longitude=1.0),
    ])
    aggregate_subsumed_counts(t)
    return t


class TestClusterRecords:
    def test_sorted_by_suffix(self, trie):
        records = build_cluster_records([trie.node("orf"), trie.node("dorf")], GeoDistance(trie))
        assert [r.suffix for r in records] == ["dorf", "orf"]
        assert records[0].subsumed_cities == 3
        assert records[0].mean == pytest.approx(6.0)

    def test_single_city_cluster_fails(self, trie):
        with pytest.raises(InsufficientDataError):
            build_cluster_records([trie.node("hof")], GeoDistance(trie))

    def test_write_json(self, trie, tmp_path):
        records = build_cluster_records([trie.node("dorf")], GeoDistance(trie))
        path = write_clusters(records, tmp_path / "target" / "cluster.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert isinstance(data, list)
        assert len(data) == 1
        assert set(data[0]) == RECORD_KEYS
        assert data[0]["suffix"] == "dorf"
        assert data[0]["subsumedCities"] == 3

    def test_write_jsonl(self, trie, tmp_path):
        records = build_cluster_records([trie.node("dorf"), trie.node("f")], GeoDistance(trie))
        path = write_clusters(records, tmp_path / "cluster.jsonl", fmt="jsonl")
        rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
        assert [row["suffix"] for row in rows] == ["dorf", "f"]
        assert all(set(row) == RECORD_KEYS for row in rows)
        assert rows[1]["subsumedCities"] == 4

    def test_unknown_format(self, tmp_path):
        with pytest.raises(ValueError):
            write_clusters([], tmp_path / "cluster.xml", fmt="xml")


class TestDistribution:
    def test_format_lines(self):
        lines = format_distribution({"e": 1, "n": 4}, 20)
        assert lines[0] == "e: " + " " * 9 + "1\t( 5%)  ====="
        assert lines[1] == "n: " + " " * 9 + "4\t(20%)  " + "=" * 20

    def test_tiny_share_still_has_a_bar(self):
        assert format_distribution({"q": 1}, 1000)[0].endswith("( 0%)  =")

    def test_write_distribution(self, tmp_path):
        path = write_distribution(tmp_path / "letters.csv", {"l": 3, "e": 1}, 4)
        first = path.read_text(encoding="utf-8").splitlines()[0].split("\t")
        assert first[0] == "l"
        assert first[1].strip() == "3"
        assert first[2] == "75.0000"
        assert first[3] == "=" * 75
