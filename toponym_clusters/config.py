"""
Central configuration loaded from environment variables with sensible defaults.
Range checks on the clustering parameters happen in SuffixClustering, before
any traversal starts.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


def _weights_from_env(raw: str) -> tuple[float, float, float]:
    parts = [float(p) for p in raw.split(",") if p.strip()]
    if len(parts) != 3:
        raise ValueError(f"CLUSTER_WEIGHTS needs exactly three values, got {raw!r}")
    return parts[0], parts[1], parts[2]


@dataclass(frozen=True)
class CorpusConfig:
    # Free World Cities Database layout: Country,City,AccentCity,Region,Population,Latitude,Longitude
    path: str = os.getenv("CORPUS_PATH", "data/worldcitiespop.txt")
    country_code: str = os.getenv("CORPUS_COUNTRY", "de")
    expected_columns: int = int(os.getenv("CORPUS_COLUMNS", "7"))
    extracted_path: str = os.getenv("CORPUS_EXTRACTED_PATH", "data/extracted_cities.csv")


@dataclass(frozen=True)
class StoreConfig:
    path: str = os.getenv("GRAPH_DB_PATH", "data/suffix_graph.sqlite")
    # Reuse a previously loaded graph instead of re-reading the corpus
    reuse_graph: bool = os.getenv("GRAPH_REUSE", "true").lower() == "true"


@dataclass(frozen=True)
class ClusteringConfig:
    strategy: str = os.getenv("CLUSTER_STRATEGY", "ngrams")  # ngrams | proportion
    proportion: float = float(os.getenv("CLUSTER_PROPORTION", "0.8"))
    min_percent: float = float(os.getenv("CLUSTER_MIN_PERCENT", "0.0"))
    max_percent: float = float(os.getenv("CLUSTER_MAX_PERCENT", "0.0"))
    # Significance test: interpolation weights for P(letter), P(letter|1 ctx), P(letter|2 ctx)
    weights: tuple[float, float, float] = _weights_from_env(os.getenv("CLUSTER_WEIGHTS", "0.2,0.3,0.5"))
    alpha: float = float(os.getenv("CLUSTER_ALPHA", "1.5"))


@dataclass(frozen=True)
class ExportConfig:
    clusters_path: str = os.getenv("EXPORT_CLUSTERS_PATH", "target/cluster.json")
    format: str = os.getenv("EXPORT_FORMAT", "json")  # json | jsonl
    # Letter/bigram/trigram distributions are written here when set
    distributions_dir: str = os.getenv("EXPORT_DISTRIBUTIONS_DIR", "")


@dataclass(frozen=True)
class APIConfig:
    host: str = os.getenv("API_HOST", "0.0.0.0")
    port: int = int(os.getenv("API_PORT", "8000"))
    max_results: int = int(os.getenv("API_MAX_RESULTS", "500"))


@dataclass(frozen=True)
class Settings:
    corpus: CorpusConfig = field(default_factory=CorpusConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    env: str = os.getenv("APP_ENV", "development")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
