"""
Corpus ingestion.
Reads the Free World Cities Database text dump, validates every row's shape,
keeps the rows of one country, and turns them into CityRecord objects.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Iterable, Iterator

from pydantic import ValidationError

from toponym_clusters.errors import CorpusFormatError
from toponym_clusters.models import CityRecord

logger = logging.getLogger(__name__)

PHASE = "ingest"

# Country,City,AccentCity,Region,Population,Latitude,Longitude
COL_COUNTRY = 0
COL_CITY = 1
COL_LATITUDE = 5
COL_LONGITUDE = 6

EXTRACTED_HEADER = ["id", "city", "latitude", "longitude"]


def read_world_cities(
    path: Path | str,
    country_code: str = "de",
    expected_columns: int = 7,
) -> Iterator[CityRecord]:
    """
    Yield one record per row of `country_code`.

    Every row (including rows of other countries) must have exactly
    `expected_columns` comma-separated fields; the first row that does not
    aborts the read with CorpusFormatError.
    """
    path = Path(path)
    kept = 0
    with path.open("r", encoding="utf-8", errors="replace") as f:
        for line_no, line in enumerate(f, 1):
            row = line.rstrip("\r\n")
            fields = row.split(",")
            if len(fields) != expected_columns:
                raise CorpusFormatError(
                    f"{path}:{line_no}: {expected_columns} columns expected but there are "
                    f"{len(fields)} in line {row!r}",
                    phase=PHASE,
                )
            if fields[COL_COUNTRY] != country_code:
                continue
            yield _to_record(fields[COL_CITY], fields[COL_LATITUDE], fields[COL_LONGITUDE], path, line_no)
            kept += 1
            if kept % 10000 == 0:
                logger.info("Read %d %s cities", kept, country_code)
    logger.info("Corpus %s: %d cities for country %r", path, kept, country_code)


def write_extracted_csv(path: Path | str, records: Iterable[CityRecord]) -> int:
    """Write records as `id,city,latitude,longitude` with ids starting at 1."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(EXTRACTED_HEADER)
        for count, record in enumerate(records, 1):
            writer.writerow([count, record.name, record.latitude, record.longitude])
    logger.info("Wrote %d extracted cities to %s", count, path)
    return count


def read_extracted_csv(path: Path | str) -> list[CityRecord]:
    path = Path(path)
    out: list[CityRecord] = []
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames != EXTRACTED_HEADER:
            raise CorpusFormatError(f"{path}: unexpected header {reader.fieldnames}", phase=PHASE)
        for line_no, row in enumerate(reader, 2):
            out.append(_to_record(row["city"], row["latitude"], row["longitude"], path, line_no))
    return out


def _to_record(name: str, latitude: str, longitude: str, path: Path, line_no: int) -> CityRecord:
    try:
        return CityRecord(name=name, latitude=latitude, longitude=longitude)
    except ValidationError as e:
        raise CorpusFormatError(f"{path}:{line_no}: invalid city row: {e.errors()[0]['msg']}", phase=PHASE) from e
