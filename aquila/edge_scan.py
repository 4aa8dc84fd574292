"""The first step of incremental matching: turn an edge update into seed rows."""

from __future__ import annotations

from dataclasses import dataclass, field

from aquila.workspace import Graph


@dataclass
class Row:
    """A partial match flowing through the join.

    ``timestamp`` is the position of the triggering update in the stream,
    ``edge_index`` the matching tree in use, ``position`` the node reached in
    the current layer, ``queries`` the virtual query ids still alive and
    ``vertices`` the data vertices matched so far.
    """

    timestamp: int
    edge_index: int
    position: int
    queries: list[int] = field(default_factory=list)
    vertices: list[int] = field(default_factory=list)


def shuffle_by_last_element(row: Row, core_number: int) -> int:
    """Pick the worker for a row from its most recently matched vertex."""
    if core_number <= 0:
        raise ValueError("core_number must be positive")
    if not row.vertices:
        raise ValueError("row has no matched vertex to shuffle by")
    return row.vertices[-1] % core_number


def edge_scan(graph: Graph, update_index: int) -> list[Row]:
    """Seed rows for one update of the stream.

    A vertex update yields nothing. An edge update yields one row for the
    first query edge with the same endpoint and edge labels, its endpoints
    ordered as the matching tree starts; no matching edge yields nothing.
    """
    update = graph.data_graph.updates[update_index]
    if update.kind == "v":
        return []
    from_label = graph.data_graph.vertex_label(update.id1)
    to_label = graph.data_graph.vertex_label(update.id2)
    for index, key in enumerate(graph.all_vector_unique_edges):
        if key != (from_label, to_label, update.label):
            continue
        tree = graph.matching_tree_set[index]
        if tree.is_reverse:
            vertices = [update.id2, update.id1]
        else:
            vertices = [update.id1, update.id2]
        queries = list(tree.tree[0][0].survive_queries)
        return [Row(update_index, index, 0, queries, vertices)]
    return []