"""CLI entrypoint for toponym_clusters."""

from __future__ import annotations

import argparse
import json

from toponym_clusters.logging_config import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(prog="toponym-clusters")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    run_parser = sub.add_parser("run", help="Run the whole clustering pipeline")
    run_parser.add_argument("--corpus", default=None, help="Corpus file; forces a rebuild of the graph")

    extract_parser = sub.add_parser("extract", help="Extract one country's cities to CSV")
    extract_parser.add_argument("--corpus", default=None)
    extract_parser.add_argument("--out", default=None)

    sub.add_parser("stats", help="Print graph properties of the persisted graph")

    dist_parser = sub.add_parser("distribution", help="Print a letter/bigram/trigram distribution")
    dist_parser.add_argument("kind", choices=["letters", "bigrams", "trigrams"])
    dist_parser.add_argument("--top", type=int, default=30)

    sub.add_parser("clusters", help="Print the persisted cluster candidates")
    sub.add_parser("serve", help="Serve the read-only API")

    args = parser.parse_args()
    setup_logging(args.log_level)

    if args.command == "run":
        _run(args.corpus)
    elif args.command == "extract":
        _extract(args.corpus, args.out)
    elif args.command == "stats":
        _stats()
    elif args.command == "distribution":
        _distribution(args.kind, args.top)
    elif args.command == "clusters":
        _clusters()
    elif args.command == "serve":
        _serve()


def _run(corpus: str | None) -> None:
    from toponym_clusters.pipeline import run_pipeline

    stats = run_pipeline(corpus_path=corpus)
    print(f"Pipeline completed: {stats}")


def _extract(corpus: str | None, out: str | None) -> None:
    from toponym_clusters.config import get_settings
    from toponym_clusters.ingest import read_world_cities, write_extracted_csv

    settings = get_settings().corpus
    records = read_world_cities(
        corpus or settings.path,
        country_code=settings.country_code,
        expected_columns=settings.expected_columns,
    )
    n = write_extracted_csv(out or settings.extracted_path, records)
    print(f"Extracted {n} cities.")


def _load_trie():
    from toponym_clusters.config import get_settings
    from toponym_clusters.store import GraphStore

    store = GraphStore(get_settings().store.path)
    if not store.is_loaded():
        raise SystemExit("No graph loaded yet; run `toponym-clusters run` first.")
    return store.load_trie()


def _stats() -> None:
    trie = _load_trie()
    print(json.dumps(trie.summary().model_dump(mode="json"), ensure_ascii=False, indent=2))


def _distribution(kind: str, top: int) -> None:
    from toponym_clusters.export import format_distribution
    from toponym_clusters.ngrams import NGramModel

    trie = _load_trie()
    model = NGramModel.build(n.value for n in trie.name_nodes())
    if kind == "letters":
        distribution, total = model.sorted_letter_distribution(), model.letter_tokens
    elif kind == "bigrams":
        distribution, total = model.sorted_bigram_distribution(), model.bigram_tokens
    else:
        distribution, total = model.sorted_trigram_distribution(), model.trigram_tokens

    head = dict(list(distribution.items())[:top])
    print(f"{kind}: {total} tokens, {len(distribution)} types")
    for line in format_distribution(head, total):
        print(line)


def _clusters() -> None:
    trie = _load_trie()
    clusters = sorted((n for n in trie if n.is_cluster_candidate), key=lambda n: n.value)
    print(f"Cluster candidates: {len(clusters)}")
    for node in clusters:
        print(f"  {node.value:<20} {node.subsumed_count:>7}")


def _serve() -> None:
    import uvicorn

    from toponym_clusters.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "toponym_clusters.api:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=(settings.env == "development"),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
