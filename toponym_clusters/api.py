"""
FastAPI service exposing a clustered suffix graph (read-only).

Endpoints:
  GET /health           - Whether a graph is loaded, plus its summary
  GET /roots            - Root suffixes (final letters) with their city counts
  GET /suffix/{value}   - One suffix node with its children and cluster flag
  GET /clusters         - Cluster candidates with their geo statistics
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from toponym_clusters.config import get_settings
from toponym_clusters.errors import InsufficientDataError
from toponym_clusters.geo import GeoDistance
from toponym_clusters.models import ClusterListResponse, ClusterRecord, HealthResponse, SuffixResponse
from toponym_clusters.store import GraphStore
from toponym_clusters.trie import SuffixNode, SuffixTrie

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Helpers ───────────────────────────────────────────────────────────

def _require_trie(request: Request) -> SuffixTrie:
    trie: Optional[SuffixTrie] = request.app.state.trie
    if trie is None:
        raise HTTPException(503, "No suffix graph loaded; run the pipeline first")
    return trie


def _format_suffix(trie: SuffixTrie, node: SuffixNode) -> SuffixResponse:
    return SuffixResponse(
        suffix=node.value,
        subsumed_cities=node.subsumed_count if node.is_counted else None,
        branching_class=trie.branching_class(node),
        is_root=node.is_root,
        is_name=node.is_name,
        is_cluster_candidate=node.is_cluster_candidate,
        children=sorted(c.value for c in trie.children(node)),
    )


# ══════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ══════════════════════════════════════════════════════════════════════

@router.get("/health", response_model=HealthResponse)
def health(request: Request):
    trie: Optional[SuffixTrie] = request.app.state.trie
    if trie is None:
        return HealthResponse(status="empty", graph_loaded=False)
    return HealthResponse(graph_loaded=True, summary=trie.summary())


@router.get("/roots", response_model=list[SuffixResponse])
def roots(request: Request):
    trie = _require_trie(request)
    return [_format_suffix(trie, r) for r in sorted(trie.roots(), key=lambda n: n.value)]


@router.get("/suffix/{value}", response_model=SuffixResponse)
def get_suffix(value: str, request: Request):
    trie = _require_trie(request)
    node = trie.get(value)
    if node is None:
        raise HTTPException(404, f"Unknown suffix {value!r}")
    return _format_suffix(trie, node)


@router.get("/clusters", response_model=ClusterListResponse)
def clusters(
    request: Request,
    limit: int = Query(100, ge=1, description="Max results"),
    offset: int = Query(0, ge=0, description="Pagination offset"),
):
    """Cluster candidates sorted by suffix; statistics come from the store when persisted."""
    trie = _require_trie(request)
    max_results = get_settings().api.max_results
    if limit > max_results:
        raise HTTPException(400, f"limit must be <= {max_results}")

    store: GraphStore = request.app.state.store
    geo: GeoDistance = request.app.state.geo
    candidates = sorted((n for n in trie if n.is_cluster_candidate), key=lambda n: n.value)

    page = []
    for node in candidates[offset:offset + limit]:
        stats = store.load_geo_statistics(node.value)
        if stats is None:
            try:
                stats = geo.distance_stats(node)
            except InsufficientDataError as e:
                raise HTTPException(422, str(e)) from e
        page.append(ClusterRecord.from_statistics(node.value, node.subsumed_count, stats))

    return ClusterListResponse(clusters=page, total=len(candidates), limit=limit, offset=offset)


# ── App ───────────────────────────────────────────────────────────────

def create_app(store: Optional[GraphStore] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup: open the graph store and load the trie if one was persisted."""
        graph_store = store or GraphStore(get_settings().store.path)
        app.state.store = graph_store
        app.state.trie = graph_store.load_trie() if graph_store.is_loaded() else None
        # in-memory only: the API never writes to the store
        app.state.geo = GeoDistance(app.state.trie) if app.state.trie is not None else None
        logger.info("API started (graph loaded: %s)", app.state.trie is not None)
        yield
        logger.info("API server shut down.")

    app = FastAPI(
        title="Toponym Suffix Clusters API",
        description="Browse suffix clusters of place names and their geographic spread",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


app = create_app()
