"""
Tests for Pydantic model validation.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from toponym_clusters.models import (
    BranchingClass,
    CityRecord,
    ClusterRecord,
    GeoStatistics,
    GraphSummary,
)


class TestCityRecord:
    def test_basic_parsing(self):
        record = CityRecord.model_validate({"name": "leipzig", "latitude": "51.3", "longitude": "12.333333"})
        assert record.name == "leipzig"
        assert record.latitude == pytest.approx(51.3)
        assert record.longitude == pytest.approx(12.333333)

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            CityRecord(name="", latitude=0.0, longitude=0.0)

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            CityRecord(name="   ", latitude=0.0, longitude=0.0)

    def test_coordinate_bounds(self):
        with pytest.raises(ValidationError):
            CityRecord(name="x", latitude=91.0, longitude=0.0)

        with pytest.raises(ValidationError):
            CityRecord(name="x", latitude=0.0, longitude=-180.5)

    def test_frozen(self):
        record = CityRecord(name="kiel", latitude=54.3, longitude=10.1)
        with pytest.raises(ValidationError):
            record.name = "ulm"

    def test_equal_records_compare_equal(self):
        a = CityRecord(name="kiel", latitude=54.3, longitude=10.1)
        b = CityRecord(name="kiel", latitude=54.3, longitude=10.1)
        assert a == b


class TestClusterRecord:
    def test_from_statistics(self):
        stats = GeoStatistics(min=1.0, max=3.0, mean=2.0, stddev=0.5)
        record = ClusterRecord.from_statistics("dorf", 12, stats)
        assert record.model_dump() == {
            "suffix": "dorf",
            "subsumed_cities": 12,
            "min": 1.0,
            "max": 3.0,
            "mean": 2.0,
            "stddev": 0.5,
        }

    def test_exported_key_is_camel_case(self):
        stats = GeoStatistics(min=1.0, max=3.0, mean=2.0, stddev=0.5)
        dumped = ClusterRecord.from_statistics("dorf", 12, stats).model_dump(by_alias=True)
        assert dumped["subsumedCities"] == 12
        assert "subsumed_cities" not in dumped

    def test_negative_count_rejected(self):
        with pytest.raises(ValidationError):
            ClusterRecord(suffix="dorf", subsumed_cities=-1, min=0, max=0, mean=0, stddev=0)


class TestGraphSummary:
    def test_defaults(self):
        summary = GraphSummary()
        assert summary.count_suffix_nodes == 0
        assert summary.roots == []

    def test_json_dump_uses_enum_values(self):
        summary = GraphSummary(branching={BranchingClass.LONELY: 3})
        assert summary.model_dump(mode="json")["branching"] == {"lonely": 3}
