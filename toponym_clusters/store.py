"""
SQLite-backed persistence for the suffix graph.

Tables:
  suffix          one row per distinct tail (unique value), with the
                  subsumed-city count and the cluster-candidate flag
  is_suffix_of    edge from a tail to a one-character-longer tail
  city            corpus records, linked to the suffix equal to their name
  geo_statistics  cached distance statistics per cluster suffix

Writes are grouped into one transaction per call. The in-memory SuffixTrie
remains the working structure; the store lets a later run (or the API) pick
up a loaded, counted and clustered graph without re-reading the corpus.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from toponym_clusters.models import CityRecord, GeoStatistics
from toponym_clusters.trie import ClusterState, SuffixTrie

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS suffix (
    id INTEGER PRIMARY KEY,
    value TEXT NOT NULL UNIQUE,
    subsumed_cities INTEGER,
    cluster_candidate INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS is_suffix_of (
    source_id INTEGER NOT NULL REFERENCES suffix(id),
    target_id INTEGER NOT NULL REFERENCES suffix(id),
    PRIMARY KEY (source_id, target_id)
);
CREATE TABLE IF NOT EXISTS city (
    id INTEGER PRIMARY KEY,
    suffix_id INTEGER NOT NULL REFERENCES suffix(id),
    latitude REAL NOT NULL,
    longitude REAL NOT NULL
);
CREATE TABLE IF NOT EXISTS geo_statistics (
    suffix_id INTEGER PRIMARY KEY REFERENCES suffix(id),
    min REAL NOT NULL,
    max REAL NOT NULL,
    mean REAL NOT NULL,
    stddev REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_is_suffix_of_target ON is_suffix_of(target_id);
CREATE INDEX IF NOT EXISTS idx_city_suffix ON city(suffix_id);
"""


class GraphStore:
    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ── Primitive graph operations ────────────────────────────────────

    @staticmethod
    def merge_suffix(conn: sqlite3.Connection, value: str) -> int:
        """Id of the suffix row for `value`, inserting it if needed."""
        conn.execute("INSERT INTO suffix (value) VALUES (?) ON CONFLICT(value) DO NOTHING", (value,))
        return conn.execute("SELECT id FROM suffix WHERE value = ?", (value,)).fetchone()["id"]

    @staticmethod
    def create_edge(conn: sqlite3.Connection, source_id: int, target_id: int) -> None:
        conn.execute(
            "INSERT INTO is_suffix_of (source_id, target_id) VALUES (?, ?) "
            "ON CONFLICT(source_id, target_id) DO NOTHING",
            (source_id, target_id),
        )

    # ── Whole-graph persistence ───────────────────────────────────────

    def is_loaded(self) -> bool:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) AS n FROM suffix").fetchone()["n"] > 0

    def save_trie(self, trie: SuffixTrie) -> None:
        """Persist nodes, edges, city records, counts and flags."""
        with self._connect() as conn:
            ids: dict[int, int] = {}
            for node in trie:
                ids[node.index] = self.merge_suffix(conn, node.value)
            for node in trie:
                for child_idx in node.children:
                    self.create_edge(conn, ids[node.index], ids[child_idx])
            conn.execute("DELETE FROM city")
            conn.executemany(
                "INSERT INTO city (id, suffix_id, latitude, longitude) VALUES (?, ?, ?, ?)",
                [
                    (record_idx + 1, ids[node.index], trie.records[record_idx].latitude,
                     trie.records[record_idx].longitude)
                    for node in trie
                    for record_idx in node.records
                ],
            )
            self._write_state(conn, trie)
        logger.info("Saved suffix graph to %s: %d suffixes, %d edges, %d cities",
                    self.db_path, len(trie), trie.edge_count, len(trie.records))

    def load_trie(self) -> SuffixTrie:
        trie = SuffixTrie()
        with self._connect() as conn:
            by_id: dict[int, int] = {}
            for row in conn.execute("SELECT id, value, subsumed_cities, cluster_candidate FROM suffix ORDER BY id"):
                node = trie.merge_node(row["value"])
                by_id[row["id"]] = node.index
                if row["subsumed_cities"] is not None:
                    node.set_subsumed_count(row["subsumed_cities"])
                if row["cluster_candidate"]:
                    node.cluster_state = ClusterState.CANDIDATE

            for row in conn.execute("SELECT source_id, target_id FROM is_suffix_of ORDER BY rowid"):
                trie.add_edge(trie[by_id[row["source_id"]]], trie[by_id[row["target_id"]]])

            rows = conn.execute(
                "SELECT c.latitude, c.longitude, s.value FROM city c "
                "JOIN suffix s ON s.id = c.suffix_id ORDER BY c.id"
            )
            for row in rows:
                record = CityRecord(name=row["value"], latitude=row["latitude"], longitude=row["longitude"])
                trie.attach_record(trie.node(row["value"]), record)

        logger.info("Loaded suffix graph from %s: %d suffixes, %d cities",
                    self.db_path, len(trie), len(trie.records))
        return trie

    def save_counts(self, trie: SuffixTrie) -> None:
        with self._connect() as conn:
            conn.executemany(
                "UPDATE suffix SET subsumed_cities = ? WHERE value = ?",
                [(n.subsumed_count, n.value) for n in trie if n.is_counted],
            )

    def save_cluster_flags(self, trie: SuffixTrie) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE suffix SET cluster_candidate = 0")
            conn.executemany(
                "UPDATE suffix SET cluster_candidate = 1 WHERE value = ?",
                [(n.value,) for n in trie if n.is_cluster_candidate],
            )

    def remove_cluster_flags(self) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE suffix SET cluster_candidate = 0")

    def _write_state(self, conn: sqlite3.Connection, trie: SuffixTrie) -> None:
        conn.executemany(
            "UPDATE suffix SET subsumed_cities = ?, cluster_candidate = ? WHERE value = ?",
            [
                (n.subsumed_count if n.is_counted else None, int(n.is_cluster_candidate), n.value)
                for n in trie
            ],
        )

    # ── Pattern queries ───────────────────────────────────────────────

    _PATTERNS = {
        "root": "NOT EXISTS (SELECT 1 FROM is_suffix_of e WHERE e.target_id = s.id)",
        "name": "EXISTS (SELECT 1 FROM city c WHERE c.suffix_id = s.id)",
        "cluster_candidate": "s.cluster_candidate = 1",
        "uncounted": "s.subsumed_cities IS NULL",
    }

    def suffixes_where(self, pattern: str) -> list[str]:
        """Sorted suffix values matching one of the named patterns in _PATTERNS."""
        condition = self._PATTERNS.get(pattern)
        if condition is None:
            raise ValueError(f"Unknown suffix pattern {pattern!r} (expected one of {sorted(self._PATTERNS)})")
        with self._connect() as conn:
            rows = conn.execute(f"SELECT s.value FROM suffix s WHERE {condition} ORDER BY s.value").fetchall()
        return [r["value"] for r in rows]

    def root_values(self) -> list[str]:
        return self.suffixes_where("root")

    def name_values(self) -> list[str]:
        return self.suffixes_where("name")

    def cluster_candidate_values(self) -> list[str]:
        return self.suffixes_where("cluster_candidate")

    # ── Geo statistics ────────────────────────────────────────────────

    def save_geo_statistics(self, value: str, stats: GeoStatistics) -> None:
        with self._connect() as conn:
            suffix_id = self.merge_suffix(conn, value)
            conn.execute(
                """
                INSERT INTO geo_statistics (suffix_id, min, max, mean, stddev)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(suffix_id) DO UPDATE SET
                    min = excluded.min,
                    max = excluded.max,
                    mean = excluded.mean,
                    stddev = excluded.stddev
                """,
                (suffix_id, stats.min, stats.max, stats.mean, stats.stddev),
            )

    def load_geo_statistics(self, value: str) -> Optional[GeoStatistics]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT g.min, g.max, g.mean, g.stddev FROM geo_statistics g "
                "JOIN suffix s ON s.id = g.suffix_id WHERE s.value = ?",
                (value,),
            ).fetchone()
        if row is None:
            return None
        return GeoStatistics(min=row["min"], max=row["max"], mean=row["mean"], stddev=row["stddev"])

    def clear_geo_statistics(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM geo_statistics")

    def drop(self) -> None:
        """Delete the database file; the next GraphStore on this path starts empty."""
        if self.db_path.exists():
            self.db_path.unlink()
            logger.info("Dropped graph database %s", self.db_path)
