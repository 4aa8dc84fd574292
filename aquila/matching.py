"""Matching-tree nodes and the per-query vertex selection used to grow trees."""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping, Set
from dataclasses import dataclass, field
from typing import Optional

from aquila.graphs import DataGraph, QueryGraph
from aquila.topology import (
    BI_NEIGHBOR,
    IN_NEIGHBOR,
    NO_NEIGHBOR,
    OUT_NEIGHBOR,
    TinyDAG,
    Topology,
    drop_none_edge,
)

MAX_QUERY_VERTICES = 15
"""Width of a topology vector: query graphs have at most this many vertices."""

UNCONNECTED_LABEL = 99999
"""Edge label recorded for a position the new vertex is not connected to."""

INITIAL_CARDINALITY = 100000.0

LEAF = 0xFFFFFFFF
"""Child index marking a parent without children."""


@dataclass
class Node:
    """One node of a matching tree, shared by the queries that survive in it.

    ``survive_queries`` and ``vertex_id`` are parallel: the query vertex each
    query matches at this node.
    """

    label: int
    survive_queries: list[int] = field(default_factory=list)
    vertex_id: list[int] = field(default_factory=list)
    queries: set[int] = field(default_factory=set)
    topology: list[Topology] = field(default_factory=list)
    has_dag: bool = True
    dag: Optional[TinyDAG] = None


@dataclass
class MatchingTree:
    """Layers of nodes, the child indices of each node, and each query's path."""

    tree: list[list[Node]] = field(default_factory=list)
    children: list[list[list[int]]] = field(default_factory=list)
    paths: dict[int, list[int]] = field(default_factory=dict)
    query_to_depth: dict[int, int] = field(default_factory=dict)
    is_reverse: bool = False

    def node_count(self) -> int:
        return sum(len(layer) for layer in self.tree)

    def matched_vertex(self, query_id: int, depth: int) -> int:
        """Return the query vertex that ``query_id`` matches at ``depth``."""
        try:
            node = self.tree[depth][self.paths[query_id][depth]]
        except KeyError:
            raise KeyError(f"query {query_id} has no path in the tree") from None
        try:
            position = node.survive_queries.index(query_id)
        except ValueError:
            raise KeyError(f"query {query_id} does not survive at depth {depth}") from None
        return node.vertex_id[position]


def topology_vector(
    query: QueryGraph,
    tree: MatchingTree,
    query_id: int,
    vertex: int,
    visit: Optional[Mapping[int, Set[int]]],
) -> tuple[tuple[int, int], ...]:
    """Describe how ``vertex`` connects to each vertex on the query's path.

    Each path position gets ``(relation, edge label)``: out-neighbour 1,
    in-neighbour 2, unconnected ``(3, 99999)``, both directions 4 with the
    out-edge label. Neighbours in ``visit[query_id]`` are ignored. The vector
    is padded with ``(0, 0)`` to :data:`MAX_QUERY_VERTICES` entries.
    """
    skipped = visit.get(query_id, frozenset()) if visit is not None else frozenset()
    path = tree.paths[query_id]
    entries: list[tuple[int, int]] = []
    for depth in range(len(path)):
        this_vertex = tree.matched_vertex(query_id, depth)
        entry: Optional[tuple[int, int]] = None
        if vertex not in skipped:
            if vertex in query.out_neighbors(this_vertex):
                entry = (OUT_NEIGHBOR, query.edge_label(this_vertex, vertex)[2])
            if vertex in query.in_neighbors(this_vertex):
                if entry is not None:
                    entry = (BI_NEIGHBOR, entry[1])
                else:
                    entry = (IN_NEIGHBOR, query.edge_label(vertex, this_vertex)[2])
        entries.append(entry if entry is not None else (NO_NEIGHBOR, UNCONNECTED_LABEL))
    padding = max(0, MAX_QUERY_VERTICES - len(entries))
    return tuple(entries) + ((0, 0),) * padding


def calculate_one_vertex(
    query: QueryGraph,
    visit: MutableMapping[int, set[int]],
    query_id: int,
    tree: MatchingTree,
    data_graph: DataGraph,
) -> Node:
    """Pick the next vertex of a single query by the least edge cardinality.

    Candidates are unvisited neighbours of the vertices on the query's path;
    each is scored by the smallest cardinality of the edges joining it, and
    the lowest score wins (ties go to the lower vertex id). The chosen vertex
    is marked visited and returned as a one-query node.
    """
    visited = visit.setdefault(query_id, set())
    best_card: dict[int, float] = {}

    def offer(vertex: int, card: float) -> None:
        if card < best_card.get(vertex, INITIAL_CARDINALITY):
            best_card[vertex] = card

    for depth in range(len(tree.paths[query_id])):
        this_vertex = tree.matched_vertex(query_id, depth)
        for vertex, label in zip(query.out_neighbors(this_vertex),
                                 query.out_neighbor_labels(this_vertex)):
            if vertex not in visited:
                offer(vertex, data_graph.cardinality_of_out_edge[label])
        for vertex, label in zip(query.in_neighbors(this_vertex),
                                 query.in_neighbor_labels(this_vertex)):
            if vertex not in visited:
                offer(vertex, data_graph.cardinality_of_in_edge[label])

    if not best_card:
        raise ValueError(f"query {query_id} has no unvisited vertex to expand")
    chosen = min(sorted(best_card), key=best_card.__getitem__)

    visited.add(chosen)
    vector = topology_vector(query, tree, query_id, chosen, None)
    return Node(
        label=query.vertex_label(chosen),
        survive_queries=[query_id],
        vertex_id=[chosen],
        queries={query_id},
        topology=[drop_none_edge(vector)],
    )