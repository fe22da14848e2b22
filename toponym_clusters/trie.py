"""
Shared-ending trie over the place-name corpus.

Design:
  - One node per distinct tail string ("suffix"); merge-by-value on insert.
  - Nodes live in an arena (a list) and are addressed by index; a dict maps
    the tail string to its index, so merging is a single lookup.
  - An edge runs from a tail to every tail one character longer that occurs in
    the corpus ("zig" -> "pzig", "zig" -> "izig"). The longer tail always has
    exactly one in-neighbour: itself minus its first character.
  - The node equal to a full name keeps the records carrying that name.
  - Per-node state is explicit: counted/uncounted for the aggregation pass,
    unflagged/candidate for cluster selection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Optional

from toponym_clusters.models import BranchingClass, CityRecord, GraphSummary

logger = logging.getLogger(__name__)


class CountState(str, Enum):
    UNCOUNTED = "uncounted"
    COUNTED = "counted"


class ClusterState(str, Enum):
    UNFLAGGED = "unflagged"
    CANDIDATE = "candidate"


@dataclass
class SuffixNode:
    index: int
    value: str
    parent: Optional[int] = None
    children: list[int] = field(default_factory=list)
    # indices into SuffixTrie.records of the cities named exactly `value`
    records: list[int] = field(default_factory=list)
    count_state: CountState = CountState.UNCOUNTED
    subsumed_count: int = 0
    cluster_state: ClusterState = ClusterState.UNFLAGGED

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def is_name(self) -> bool:
        return bool(self.records)

    @property
    def is_counted(self) -> bool:
        return self.count_state is CountState.COUNTED

    @property
    def is_cluster_candidate(self) -> bool:
        return self.cluster_state is ClusterState.CANDIDATE

    @property
    def out_degree(self) -> int:
        return len(self.children)

    def set_subsumed_count(self, value: int) -> None:
        self.subsumed_count = value
        self.count_state = CountState.COUNTED


def branching_class_for(out_degree: int) -> BranchingClass:
    if out_degree <= 1:
        return BranchingClass.LONELY
    if out_degree <= 5:
        return BranchingClass.NORMAL
    if out_degree <= 15:
        return BranchingClass.FREQUENT
    return BranchingClass.VERY_FREQUENT


class SuffixTrie:
    """Arena-backed suffix graph. Grows monotonically; nothing is ever removed."""

    def __init__(self) -> None:
        self.records: list[CityRecord] = []
        self._nodes: list[SuffixNode] = []
        self._index: dict[str, int] = {}
        self._edge_count = 0

    @classmethod
    def from_records(cls, records: Iterable[CityRecord]) -> "SuffixTrie":
        trie = cls()
        for record in records:
            trie.insert(record)
        logger.info("Built suffix trie: %d records, %d suffix nodes, %d edges",
                    len(trie.records), len(trie), trie.edge_count)
        return trie

    # ── Construction ──────────────────────────────────────────────────

    def merge_node(self, value: str) -> SuffixNode:
        """Return the node for `value`, creating it if it does not exist yet."""
        idx = self._index.get(value)
        if idx is not None:
            return self._nodes[idx]
        node = SuffixNode(index=len(self._nodes), value=value)
        self._nodes.append(node)
        self._index[value] = node.index
        return node

    def add_edge(self, shorter: SuffixNode, longer: SuffixNode) -> None:
        """Link `shorter` to `longer`. Adding an existing edge is a no-op."""
        if longer.parent is not None:
            if longer.parent != shorter.index:
                raise ValueError(f"{longer.value!r} already has parent {self._nodes[longer.parent].value!r}")
            return
        if len(longer.value) != len(shorter.value) + 1 or longer.value[1:] != shorter.value:
            raise ValueError(f"{shorter.value!r} is not the one-character-shorter tail of {longer.value!r}")
        longer.parent = shorter.index
        shorter.children.append(longer.index)
        self._edge_count += 1

    def attach_record(self, node: SuffixNode, record: CityRecord) -> int:
        record_idx = len(self.records)
        self.records.append(record)
        node.records.append(record_idx)
        return record_idx

    def insert(self, record: CityRecord) -> SuffixNode:
        """Insert every tail of the record's name; returns the name node."""
        name = record.name
        name_node = self.merge_node(name)
        self.attach_record(name_node, record)

        longer = name_node
        for k in range(len(name) - 1, 0, -1):
            shorter = self.merge_node(name[-k:])
            self.add_edge(shorter, longer)
            longer = shorter
        return name_node

    # ── Lookup ────────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[SuffixNode]:
        return iter(self._nodes)

    def __contains__(self, value: object) -> bool:
        return value in self._index

    def __getitem__(self, index: int) -> SuffixNode:
        return self._nodes[index]

    @property
    def edge_count(self) -> int:
        return self._edge_count

    def get(self, value: str) -> Optional[SuffixNode]:
        idx = self._index.get(value)
        return self._nodes[idx] if idx is not None else None

    def node(self, value: str) -> SuffixNode:
        idx = self._index.get(value)
        if idx is None:
            raise KeyError(f"No suffix node for {value!r}")
        return self._nodes[idx]

    def roots(self) -> list[SuffixNode]:
        return [n for n in self._nodes if n.is_root]

    def name_nodes(self) -> list[SuffixNode]:
        return [n for n in self._nodes if n.is_name]

    def children(self, node: SuffixNode) -> list[SuffixNode]:
        return [self._nodes[i] for i in node.children]

    def parent(self, node: SuffixNode) -> Optional[SuffixNode]:
        return self._nodes[node.parent] if node.parent is not None else None

    def ancestors(self, node: SuffixNode) -> Iterator[SuffixNode]:
        """Shorter tails of `node`, nearest first."""
        current = self.parent(node)
        while current is not None:
            yield current
            current = self.parent(current)

    def records_of(self, node: SuffixNode) -> list[CityRecord]:
        return [self.records[i] for i in node.records]

    def record_indices_under(self, node: SuffixNode) -> list[int]:
        """Indices of all records whose name ends in `node`'s string."""
        out: list[int] = []
        stack = [node.index]
        while stack:
            current = self._nodes[stack.pop()]
            out.extend(current.records)
            stack.extend(current.children)
        return out

    def records_under(self, node: SuffixNode) -> list[CityRecord]:
        return [self.records[i] for i in self.record_indices_under(node)]

    # ── Graph properties ──────────────────────────────────────────────

    def branching_class(self, node: SuffixNode) -> BranchingClass:
        return branching_class_for(node.out_degree)

    def classify_branching(self) -> dict[BranchingClass, list[SuffixNode]]:
        """Partition all nodes by out-degree."""
        classes: dict[BranchingClass, list[SuffixNode]] = {c: [] for c in BranchingClass}
        for n in self._nodes:
            classes[branching_class_for(n.out_degree)].append(n)
        return classes

    def summary(self) -> GraphSummary:
        classes = self.classify_branching()
        roots = sorted(r.value for r in self.roots())
        return GraphSummary(
            count_suffix_nodes=len(self._nodes),
            count_city_records=len(self.records),
            count_name_nodes=len(self.name_nodes()),
            count_edges=self._edge_count,
            count_roots=len(roots),
            branching={c: len(nodes) for c, nodes in classes.items()},
            roots=roots,
        )
