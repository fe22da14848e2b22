"""
Bottom-up subsumed-city counting.

Starts from the name nodes and walks towards the roots in rounds. A node is
counted only once every out-neighbour carries a count; otherwise it waits for
a later round. Nodes that are already counted (e.g. loaded from the graph
store after an interrupted run) are skipped but still push their parent
forward, so the pass is resumable and idempotent.
"""

from __future__ import annotations

import logging

from toponym_clusters.errors import AggregationError
from toponym_clusters.trie import SuffixNode, SuffixTrie

logger = logging.getLogger(__name__)

PHASE = "aggregation"
_PROGRESS_EVERY = 1000


def aggregate_subsumed_counts(trie: SuffixTrie) -> int:
    """
    Annotate every node with the number of records whose name ends in it.
    Returns how many nodes were newly counted by this call.
    """
    if all(root.is_counted for root in trie.roots()):
        logger.info("'subsumed cities' already present on all roots; nothing to do")
        return 0

    frontier: list[int] = [n.index for n in trie.name_nodes()]
    newly_counted = 0
    rounds = 0

    while frontier:
        rounds += 1
        logger.debug("Aggregation round %d: frontier size %d", rounds, len(frontier))
        next_frontier: dict[int, None] = {}
        progressed = False

        for idx in frontier:
            node = trie[idx]
            if node.is_counted:
                _push_parent(node, next_frontier)
                continue

            value = _count_from_children(trie, node)
            if value is None:
                # some out-neighbour is still uncounted
                next_frontier[idx] = None
                continue

            node.set_subsumed_count(value)
            newly_counted += 1
            progressed = True
            if newly_counted % _PROGRESS_EVERY == 0:
                logger.info("#nodes with 'subsumed cities': %d", newly_counted)
            _push_parent(node, next_frontier)

        pending = [i for i in next_frontier if not trie[i].is_counted]
        if not progressed and pending and len(pending) == len(next_frontier) and set(pending) == set(frontier):
            stuck = trie[pending[0]]
            raise AggregationError(
                f"no progress after round {rounds}; {len(pending)} nodes wait on uncounted children",
                phase=PHASE, node=stuck.value,
            )
        frontier = list(next_frontier)

    logger.info("Subsumed counts done: %d nodes counted in %d rounds", newly_counted, rounds)
    return newly_counted


def _count_from_children(trie: SuffixTrie, node: SuffixNode) -> int | None:
    total = len(node.records)
    for child in trie.children(node):
        if not child.is_counted:
            return None
        total += child.subsumed_count
    return total


def _push_parent(node: SuffixNode, frontier: dict[int, None]) -> None:
    if node.parent is not None:
        frontier[node.parent] = None
