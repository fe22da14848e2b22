"""
Pipeline orchestrator.
Ties together load -> graph properties -> subsumed counts -> n-gram model ->
clustering -> geo statistics + export in a single batch run.
Invoked from the CLI.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

from toponym_clusters.aggregation import aggregate_subsumed_counts
from toponym_clusters.clustering import SuffixClustering
from toponym_clusters.config import Settings, get_settings
from toponym_clusters.errors import ConfigurationError
from toponym_clusters.export import build_cluster_records, write_clusters, write_distribution
from toponym_clusters.geo import GeoDistance
from toponym_clusters.ingest import read_world_cities, write_extracted_csv
from toponym_clusters.models import ClusterStrategy
from toponym_clusters.ngrams import NGramModel
from toponym_clusters.store import GraphStore
from toponym_clusters.trie import ClusterState, SuffixTrie

logger = logging.getLogger(__name__)


def load_graph(settings: Settings, corpus_path: Optional[str] = None) -> tuple[GraphStore, SuffixTrie]:
    """Reuse the persisted graph when allowed, otherwise rebuild it from the corpus."""
    store = GraphStore(settings.store.path)
    if settings.store.reuse_graph and corpus_path is None and store.is_loaded():
        logger.info("Reusing suffix graph in %s", store.db_path)
        return store, store.load_trie()

    store.drop()
    store = GraphStore(settings.store.path)
    records = list(read_world_cities(
        corpus_path or settings.corpus.path,
        country_code=settings.corpus.country_code,
        expected_columns=settings.corpus.expected_columns,
    ))
    write_extracted_csv(settings.corpus.extracted_path, records)
    trie = SuffixTrie.from_records(records)
    store.save_trie(trie)
    return store, trie


def build_clustering(trie: SuffixTrie, model: Optional[NGramModel], settings: Settings) -> SuffixClustering:
    cfg = settings.clustering
    return SuffixClustering(
        trie,
        model,
        proportion=cfg.proportion,
        min_percent=cfg.min_percent,
        max_percent=cfg.max_percent,
        weights=cfg.weights,
        alpha=cfg.alpha,
    )


def run_pipeline(settings: Optional[Settings] = None, corpus_path: Optional[str] = None) -> dict:
    """
    Execute the full pipeline:
      1. Load: read the corpus and build + persist the suffix trie (or reuse it)
      2. Graph properties: node counts, branching classes, roots
      3. Subsumed counts: bottom-up aggregation (resumable)
      4. N-grams: letter/bigram/trigram model, optional distribution export
      5. Clustering: reset flags, run the configured strategy, persist flags
      6. Geo statistics + export of the clusters

    Returns a stats dict summarizing the run.
    """
    settings = settings or get_settings()
    try:
        strategy = ClusterStrategy(settings.clustering.strategy)
    except ValueError:
        raise ConfigurationError(
            f"unknown clustering strategy {settings.clustering.strategy!r} (expected 'ngrams' or 'proportion')",
            phase="setup",
        ) from None

    stats: dict = {
        "cities": 0,
        "suffix_nodes": 0,
        "roots": 0,
        "nodes_counted": 0,
        "letter_tokens": 0,
        "strategy": strategy.value,
        "clusters": 0,
        "export_path": None,
        "duration_seconds": 0,
    }
    phase = "setup"
    start_time = time.monotonic()

    # fail on bad parameters before the corpus is read
    build_clustering(SuffixTrie(), None, settings)

    try:
        # ── Stage 1: Load ──────────────────────────────────────────────
        phase = "load"
        logger.info("=== Pipeline Stage 1: Load ===")
        store, trie = load_graph(settings, corpus_path)
        stats["cities"] = len(trie.records)
        stats["suffix_nodes"] = len(trie)

        # ── Stage 2: Graph properties ──────────────────────────────────
        phase = "graph properties"
        logger.info("=== Pipeline Stage 2: Graph properties ===")
        summary = trie.summary()
        stats["roots"] = summary.count_roots
        logger.info("Cities: %d, suffix nodes: %d, name nodes: %d, edges: %d",
                    summary.count_city_records, summary.count_suffix_nodes,
                    summary.count_name_nodes, summary.count_edges)
        for branching_class, count in summary.branching.items():
            logger.info("  %-14s %d", branching_class.value, count)
        logger.info("Roots (%d): %s", summary.count_roots, ",".join(summary.roots))

        # ── Stage 3: Subsumed counts ───────────────────────────────────
        phase = "subsumed counts"
        logger.info("=== Pipeline Stage 3: Subsumed counts ===")
        stats["nodes_counted"] = aggregate_subsumed_counts(trie)
        store.save_counts(trie)

        # ── Stage 4: N-gram model ──────────────────────────────────────
        phase = "ngrams"
        logger.info("=== Pipeline Stage 4: Letter, bigram and trigram distributions ===")
        model = NGramModel.build(n.value for n in trie.name_nodes())
        stats["letter_tokens"] = model.letter_tokens
        if settings.export.distributions_dir:
            _export_distributions(model, Path(settings.export.distributions_dir))

        # ── Stage 5: Clustering ────────────────────────────────────────
        phase = f"clustering ({strategy.value})"
        logger.info("=== Pipeline Stage 5: Clustering (%s) ===", strategy.value)
        clustering = build_clustering(trie, model, settings)
        removed = clustering.reset_cluster_candidates()
        logger.info("Removed %d previous cluster candidate flags", removed)
        if strategy is ClusterStrategy.PROPORTION:
            for node in clustering.determine_candidates_by_proportion():
                node.cluster_state = ClusterState.CANDIDATE
        else:
            clustering.determine_candidates_by_ngrams()
        store.save_cluster_flags(trie)
        clusters = clustering.cluster_candidates()
        stats["clusters"] = len(clusters)

        # ── Stage 6: Geo statistics + export ───────────────────────────
        phase = "geo export"
        logger.info("=== Pipeline Stage 6: Geo statistics and export ===")
        geo = GeoDistance(trie, store)
        records = build_cluster_records(clusters, geo)
        out = write_clusters(records, settings.export.clusters_path, fmt=settings.export.format)
        stats["export_path"] = str(out)

        elapsed = time.monotonic() - start_time
        stats["duration_seconds"] = round(elapsed, 2)
        logger.info("=== Pipeline complete in %.1fs ===", elapsed)
        return stats

    except Exception as e:
        elapsed = time.monotonic() - start_time
        logger.error("Pipeline failed in phase '%s' after %.1fs: %s", phase, elapsed, e, exc_info=True)
        raise


def _export_distributions(model: NGramModel, out_dir: Path) -> None:
    logger.info("letter distribution (#tokens: %d, #types: %d)", model.letter_tokens, model.letter_types)
    write_distribution(out_dir / "letters.csv", model.sorted_letter_distribution(), model.letter_tokens)
    logger.info("bigram distribution (#tokens: %d, #types: %d)", model.bigram_tokens, model.bigram_types)
    write_distribution(out_dir / "bigrams.csv", model.sorted_bigram_distribution(), model.bigram_tokens)
    logger.info("trigram distribution (#tokens: %d, #types: %d)", model.trigram_tokens, model.trigram_types)
    write_distribution(out_dir / "trigrams.csv", model.sorted_trigram_distribution(), model.trigram_tokens)
