"""
Result export: cluster records as JSON, and frequency distributions as
human-readable bar charts.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Mapping

from toponym_clusters.geo import GeoDistance
from toponym_clusters.models import ClusterRecord
from toponym_clusters.trie import SuffixNode

logger = logging.getLogger(__name__)


def build_cluster_records(clusters: Iterable[SuffixNode], geo: GeoDistance) -> list[ClusterRecord]:
    """One record per cluster node, sorted by suffix."""
    records = [
        ClusterRecord.from_statistics(node.value, node.subsumed_count, geo.distance_stats(node))
        for node in clusters
    ]
    records.sort(key=lambda r: r.suffix)
    return records


def write_clusters(records: list[ClusterRecord], path: Path | str, fmt: str = "json") -> Path:
    """
    fmt="json":  [ {...}, ... ]
    fmt="jsonl": one JSON object per line

    Each object is {suffix, subsumedCities, min, max, mean, stddev}.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    rows = [r.model_dump(by_alias=True) for r in records]

    with path.open("w", encoding="utf-8") as f:
        if fmt == "json":
            json.dump(rows, f, ensure_ascii=False, indent=2)
            f.write("\n")
        elif fmt == "jsonl":
            for row in rows:
                f.write(json.dumps(row, ensure_ascii=False) + "\n")
        else:
            raise ValueError(f"Unknown export format {fmt!r} (expected 'json' or 'jsonl')")

    logger.info("Wrote %d clusters to %s", len(records), path)
    return path


# ── Distributions ─────────────────────────────────────────────────────

def _bar(percent: float) -> str:
    return "=" * max(1, int(round(percent)))


def format_distribution(distribution: Mapping[str, int], total: int) -> list[str]:
    """Lines like `ze:        123\t( 4%)  ====`."""
    lines = []
    for key, value in distribution.items():
        percent = value * 100.0 / total if total else 0.0
        rounded = int(round(percent))
        pad = " " if rounded < 10 else ""
        lines.append(f"{key}: {value:>10}\t({pad}{rounded}%)  {_bar(percent)}")
    return lines


def write_distribution(path: Path | str, distribution: Mapping[str, int], total: int) -> Path:
    """Tab-separated `key, count, percent, bar` per line."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        for key, value in distribution.items():
            percent = value * 100.0 / total if total else 0.0
            f.write(f"{key}\t{value:>10}\t{percent:.4f}\t{_bar(percent)}\n")
    logger.info("Wrote distribution of %d entries to %s", len(distribution), path)
    return path
