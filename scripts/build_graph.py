from __future__ import annotations

import argparse
from pathlib import Path

from toponym_clusters.aggregation import aggregate_subsumed_counts
from toponym_clusters.ingest import read_extracted_csv
from toponym_clusters.store import GraphStore
from toponym_clusters.trie import SuffixTrie


def build(extracted_csv: Path, db_path: Path, count: bool = True) -> SuffixTrie:
    records = read_extracted_csv(extracted_csv)
    trie = SuffixTrie.from_records(records)
    if count:
        aggregate_subsumed_counts(trie)

    store = GraphStore(db_path)
    store.drop()
    GraphStore(db_path).save_trie(trie)
    return trie


def main() -> None:
    parser = argparse.ArgumentParser(description="Build the suffix graph database from an extracted city CSV.")
    parser.add_argument("--csv", default="data/extracted_cities.csv")
    parser.add_argument("--db", default="data/suffix_graph.sqlite")
    parser.add_argument("--no-count", action="store_true", help="Skip the subsumed-count pass")
    args = parser.parse_args()

    trie = build(Path(args.csv), Path(args.db), count=not args.no_count)
    print(f"Built suffix graph in {args.db}: {len(trie)} suffixes, {len(trie.records)} cities")


if __name__ == "__main__":
    main()
