"""
Tests for corpus ingestion.
"""

from __future__ import annotations

import pytest

from toponym_clusters.errors import CorpusFormatError
from toponym_clusters.ingest import read_extracted_csv, read_world_cities, write_extracted_csv
from toponym_clusters.models import CityRecord

CORPUS = """Country,City,AccentCity,Region,Population,Latitude,Longitude
de,leipzig,Leipzig,13,507096,51.3,12.333333
at,wien,Wien,09,1691468,48.2,16.366667
de,pelzig,Pelzig,13,,51.95,12.1
"""


def _write(tmp_path, text: str):
    path = tmp_path / "worldcitiespop.txt"
    path.write_text(text, encoding="utf-8")
    return path


class TestReadWorldCities:
    def test_country_filter(self, tmp_path):
        records = list(read_world_cities(_write(tmp_path, CORPUS), country_code="de"))
        assert [r.name for r in records] == ["leipzig", "pelzig"]
        assert records[0].latitude == pytest.approx(51.3)
        assert records[0].longitude == pytest.approx(12.333333)

    def test_other_country(self, tmp_path):
        records = list(read_world_cities(_write(tmp_path, CORPUS), country_code="at"))
        assert [r.name for r in records] == ["wien"]

    def test_wrong_column_count_reports_line(self, tmp_path):
        path = _write(tmp_path, CORPUS + "de,bad,row\n")
        with pytest.raises(CorpusFormatError) as exc:
            list(read_world_cities(path))
        assert f"{path}:5:" in str(exc.value)
        assert "7 columns expected but there are 3" in str(exc.value)
        assert exc.value.phase == "ingest"

    def test_other_countries_are_checked_too(self, tmp_path):
        path = _write(tmp_path, CORPUS + "fr,a,b\n")
        with pytest.raises(CorpusFormatError):
            list(read_world_cities(path))

    def test_invalid_coordinate(self, tmp_path):
        path = _write(tmp_path, "de,nirgendwo,Nirgendwo,01,,91.5,10.0\n")
        with pytest.raises(CorpusFormatError) as exc:
            list(read_world_cities(path))
        assert ":1:" in str(exc.value)

    def test_short_row_rejected(self, tmp_path):
        path = _write(tmp_path, "de,ulm,48.4,9.98\n")
        with pytest.raises(CorpusFormatError):
            list(read_world_cities(path))


class TestExtractedCsv:
    def test_write_and_read(self, tmp_path):
        records = [
            CityRecord(name="leipzig", latitude=51.3, longitude=12.333333),
            CityRecord(name="kiel", latitude=54.333333, longitude=10.133333),
        ]
        path = tmp_path / "out" / "extracted.csv"
        assert write_extracted_csv(path, records) == 2

        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "id,city,latitude,longitude"
        assert lines[1].startswith("1,leipzig,")
        assert read_extracted_csv(path) == records

    def test_unexpected_header(self, tmp_path):
        path = tmp_path / "extracted.csv"
        path.write_text("city,lat,lon\nulm,48.4,9.98\n", encoding="utf-8")
        with pytest.raises(CorpusFormatError):
            read_extracted_csv(path)
