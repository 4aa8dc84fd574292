"""Labelled data graphs, query graphs and a union-find helper."""

from __future__ import annotations

import logging
from bisect import bisect_left
from dataclasses import dataclass
from itertools import islice
from pathlib import Path
from typing import Iterator, Optional, Union

logger = logging.getLogger(__name__)

NOT_EXIST = 4294967290
"""Label stored for a vertex slot that holds no vertex."""

NO_EDGE_LABEL = 0xFFFFFFFF
"""Edge label reported by :meth:`QueryGraph.edge_label` when no edge exists."""

EDGE_LABEL_COUNT = 28
"""Number of edge labels the data graph keeps adjacency lists for."""

KNOWS_LABEL = 12
"""Edge label stored in both directions (person knows person)."""

_PROGRESS_STEP = 1_000_000

PathLike = Union[str, Path]


@dataclass(frozen=True, slots=True)
class Edge:
    """An adjacency entry: the neighbour id and an optional timestamp."""

    id: int
    timestamp: Optional[int] = None


@dataclass(frozen=True, slots=True)
class Update:
    """One record of an update stream: a vertex or edge insertion or deletion."""

    kind: str
    is_insert: bool
    id1: int
    id2: int
    label: int


def _records(path: PathLike) -> Iterator[tuple[str, list[int]]]:
    """Yield ``(type, fields)`` records from a whitespace separated graph file."""
    with open(path, encoding="utf-8") as handle:
        tokens = iter(handle.read().split())
    for kind in tokens:
        width = 2 if kind.lstrip("-") == "v" else 3
        fields = list(islice(tokens, width))
        if len(fields) != width:
            raise ValueError(f"truncated record {kind!r} in {path}")
        try:
            yield kind, [int(field) for field in fields]
        except ValueError as exc:
            raise ValueError(f"bad record {kind!r} {fields} in {path}") from exc


def _remove_last(edges: list[Edge], target: int) -> None:
    position = next(
        (i for i in reversed(range(len(edges))) if edges[i].id == target), None
    )
    if position is None:
        raise ValueError(f"no edge to vertex {target}")
    del edges[position]


class DataGraph:
    """A labelled, optionally timestamped multigraph with per-label adjacency."""

    def __init__(self) -> None:
        self.edge_count = 0
        self.vertex_label_count = 0
        self.edge_label_count = 0
        self.out_adjacency: list[list[list[Edge]]] = [[] for _ in range(EDGE_LABEL_COUNT)]
        self.in_adjacency: list[list[list[Edge]]] = [[] for _ in range(EDGE_LABEL_COUNT)]
        self.cardinality_of_in_edge: list[float] = [0.0] * EDGE_LABEL_COUNT
        self.cardinality_of_out_edge: list[float] = [0.0] * EDGE_LABEL_COUNT
        self.number_of_in_edge: list[int] = [0] * EDGE_LABEL_COUNT
        self.number_of_out_edge: list[int] = [0] * EDGE_LABEL_COUNT
        self.updates: list[Update] = []
        self.v_labels: list[int] = []

    def allocate(self, max_num_vertex: int) -> None:
        """Reserve adjacency slots for vertex ids below ``max_num_vertex``."""
        for adjacency in (*self.out_adjacency, *self.in_adjacency):
            if len(adjacency) < max_num_vertex:
                adjacency.extend([] for _ in range(max_num_vertex - len(adjacency)))
            else:
                del adjacency[max_num_vertex:]

    def add_vertex(self, vertex_id: int, label: int) -> None:
        if vertex_id >= len(self.v_labels):
            self.v_labels.extend([NOT_EXIST] * (vertex_id + 1 - len(self.v_labels)))
            self.v_labels[vertex_id] = label
        elif self.v_labels[vertex_id] == NOT_EXIST:
            self.v_labels[vertex_id] = label
        self.vertex_label_count = max(self.vertex_label_count, label + 1)

    def remove_vertex(self, vertex_id: int) -> None:
        self.v_labels[vertex_id] = NOT_EXIST

    @staticmethod
    def _slot(adjacency: list[list[list[Edge]]], v: int, label: int) -> list[Edge]:
        try:
            return adjacency[label][v]
        except IndexError:
            raise IndexError(
                f"no adjacency slot for vertex {v} with edge label {label}; "
                "allocate() the graph first"
            ) from None

    def add_edge(self, v1: int, v2: int, label: int, timestamp: Optional[int] = None) -> None:
        """Add an edge; a timestamped edge also counts towards the label totals."""
        out_v1 = self._slot(self.out_adjacency, v1, label)
        in_v2 = self._slot(self.in_adjacency, v2, label)
        out_v1.append(Edge(v2, timestamp))
        in_v2.append(Edge(v1, timestamp))
        if label == KNOWS_LABEL:
            self._slot(self.out_adjacency, v2, label).append(Edge(v1, timestamp))
            self._slot(self.in_adjacency, v1, label).append(Edge(v2, timestamp))
        self.edge_count += 1
        self.edge_label_count = max(self.edge_label_count, label + 1)
        if timestamp is not None:
            self.number_of_out_edge[label] += 1
            self.number_of_in_edge[label] += 1

    def remove_edge(self, v1: int, v2: int, label: int) -> None:
        """Remove the last matching edge ``v1 -> v2``; ValueError if absent."""
        _remove_last(self._slot(self.out_adjacency, v1, label), v2)
        _remove_last(self._slot(self.in_adjacency, v2, label), v1)
        if label == KNOWS_LABEL:
            _remove_last(self._slot(self.out_adjacency, v2, label), v1)
            _remove_last(self._slot(self.in_adjacency, v1, label), v2)
        self.number_of_out_edge[label] -= 1
        self.number_of_in_edge[label] -= 1
        self.edge_count -= 1

    def vertex_label(self, vertex_id: int) -> int:
        return self.v_labels[vertex_id]

    def out_neighbors(self, v: int, label: int) -> list[Edge]:
        return self._slot(self.out_adjacency, v, label)

    def in_neighbors(self, v: int, label: int) -> list[Edge]:
        return self._slot(self.in_adjacency, v, label)

    def load(self, path: PathLike) -> int:
        """Load ``v id label`` and ``e from to label`` records; return how many."""
        count = 0
        for kind, fields in _records(path):
            if kind == "v":
                self.add_vertex(*fields)
            else:
                self.add_edge(*fields)
            count += 1
            if count % _PROGRESS_STEP == 0:
                logger.info("%d records loaded", count)
        return count

    def load_updates(self, path: PathLike) -> list[Update]:
        """Append the records of an update stream to :attr:`updates`."""
        loaded = []
        for kind, fields in _records(path):
            if kind in ("v", "-v"):
                vertex_id, label = fields
                loaded.append(Update("v", kind == "v", vertex_id, 0, label))
            else:
                from_id, to_id, label = fields
                loaded.append(Update("e", kind == "e", from_id, to_id, label))
        self.updates.extend(loaded)
        return loaded

    def num_vertices(self) -> int:
        return len(self.v_labels)

    def num_edges(self) -> int:
        return self.edge_count

    def metadata(self) -> str:
        return f"# vertices = {self.num_vertices()}\n# edges = {self.num_edges()}"


class QueryGraph:
    """A small labelled query graph with sorted adjacency lists."""

    def __init__(self) -> None:
        self.edge_count = 0
        self.vertex_label_count = 0
        self.edge_label_count = 0
        self.out_adjacency: list[list[int]] = []
        self.out_e_labels: list[list[int]] = []
        self.in_adjacency: list[list[int]] = []
        self.in_e_labels: list[list[int]] = []
        self.v_labels: list[int] = []
        # (from_label, to_label, edge_label, from_id, to_id)
        self.edges: list[tuple[int, int, int, int, int]] = []

    def add_vertex(self, vertex_id: int, label: int) -> None:
        if vertex_id >= len(self.v_labels):
            grow = vertex_id + 1 - len(self.v_labels)
            self.v_labels.extend([NOT_EXIST] * grow)
            self.v_labels[vertex_id] = label
            for lists in (self.out_adjacency, self.out_e_labels,
                          self.in_adjacency, self.in_e_labels):
                lists.extend([] for _ in range(grow))
        elif self.v_labels[vertex_id] == NOT_EXIST:
            self.v_labels[vertex_id] = label
        self.vertex_label_count = max(self.vertex_label_count, label + 1)

    @staticmethod
    def _insert_sorted(ids: list[int], labels: list[int], vertex: int, label: int) -> None:
        position = bisect_left(ids, vertex)
        ids.insert(position, vertex)
        labels.insert(position, label)

    def add_edge(self, v1: int, v2: int, label: int) -> None:
        """Add ``v1 -> v2``; a repeated pair is ignored."""
        outs = self.out_adjacency[v1]
        position = bisect_left(outs, v2)
        if position < len(outs) and outs[position] == v2:
            return
        outs.insert(position, v2)
        self.out_e_labels[v1].insert(position, label)
        self._insert_sorted(self.in_adjacency[v2], self.in_e_labels[v2], v1, label)
        if label == KNOWS_LABEL:
            self._insert_sorted(self.in_adjacency[v1], self.in_e_labels[v1], v2, label)
            self._insert_sorted(self.out_adjacency[v2], self.out_e_labels[v2], v1, label)
        self.edge_count += 1
        self.edge_label_count = max(self.edge_label_count, label + 1)

    def vertex_label(self, vertex_id: int) -> int:
        return self.v_labels[vertex_id]

    def out_neighbors(self, v: int) -> list[int]:
        return self.out_adjacency[v]

    def out_neighbor_labels(self, v: int) -> list[int]:
        return self.out_e_labels[v]

    def in_neighbors(self, v: int) -> list[int]:
        return self.in_adjacency[v]

    def in_neighbor_labels(self, v: int) -> list[int]:
        return self.in_e_labels[v]

    def degree(self, v: int) -> int:
        return len(self.out_adjacency[v]) + len(self.in_adjacency[v])

    def in_degree(self, v: int) -> int:
        return len(self.in_adjacency[v])

    def out_degree(self, v: int) -> int:
        return len(self.out_adjacency[v])

    def edge_label(self, v1: int, v2: int) -> tuple[int, int, int]:
        """Return ``(label(v1), label(v2), edge label)`` for ``v1 -> v2``.

        The edge label is :data:`NO_EDGE_LABEL` when there is no such edge.
        """
        if self.out_degree(v1) < self.in_degree(v2):
            neighbours, labels, other = self.out_adjacency[v1], self.out_e_labels[v1], v2
        else:
            neighbours, labels, other = self.in_adjacency[v2], self.in_e_labels[v2], v1
        position = bisect_left(neighbours, other)
        found = position < len(neighbours) and neighbours[position] == other
        edge = labels[position] if found else NO_EDGE_LABEL
        return self.vertex_label(v1), self.vertex_label(v2), edge

    def load(self, path: PathLike) -> list[tuple[int, int, int]]:
        """Load a query file and return its ``(from, to, edge)`` label triples."""
        triples = []
        for kind, fields in _records(path):
            if kind == "v":
                self.add_vertex(*fields)
                continue
            from_id, to_id, label = fields
            self.add_edge(from_id, to_id, label)
            from_label = self.vertex_label(from_id)
            to_label = self.vertex_label(to_id)
            self.edges.append((from_label, to_label, label, from_id, to_id))
            if label == KNOWS_LABEL:
                self.edges.append((to_label, from_label, label, to_id, from_id))
            triples.append((from_label, to_label, label))
        return triples

    def num_vertices(self) -> int:
        return len(self.v_labels)

    def num_edges(self) -> int:
        return self.edge_count

    def metadata(self) -> str:
        return f"# vertices = {self.num_vertices()}\n# edges = {self.num_edges()}"


class UnionFind:
    """Disjoint sets over arbitrary hashable items, created on first use."""

    def __init__(self) -> None:
        self._parent: dict[int, int] = {}

    def find(self, x: int) -> int:
        parent = self._parent
        parent.setdefault(x, x)
        root = x
        while parent[root] != root:
            root = parent[root]
        while parent[x] != root:
            parent[x], x = root, parent[x]
        return root

    def union(self, x: int, y: int) -> None:
        """Merge the sets of ``x`` and ``y``; the root of ``x`` stays the root."""
        root_x = self.find(x)
        root_y = self.find(y)
        if root_x != root_y:
            self._parent[root_y] = root_x