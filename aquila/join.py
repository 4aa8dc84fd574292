"""Delta generic join: extend partial matches one matching-tree layer at a time."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Optional

from aquila.edge_scan import Row
from aquila.graphs import DataGraph, Edge
from aquila.matching import LEAF, Node
from aquila.topology import BI_NEIGHBOR, IN_NEIGHBOR, OUT_NEIGHBOR
from aquila.workspace import Graph

M_SIZE = 1_000_000_000
"""Upper bound on the neighbour list size considered when proposing candidates."""

TopologyEntries = Iterable[tuple[int, int, int]]


def _is_live(edge: Edge, timestamp: int) -> bool:
    """An edge takes part when it has no timestamp or an earlier one."""
    return edge.timestamp is None or edge.timestamp < timestamp


def _neighbours(
    data_graph: DataGraph, relation: int, vertex: int, label: int
) -> Optional[list[Edge]]:
    if relation == OUT_NEIGHBOR:
        return data_graph.out_neighbors(vertex, label)
    if relation in (IN_NEIGHBOR, BI_NEIGHBOR):
        return data_graph.in_neighbors(vertex, label)
    return None


def _count_support(
    data_graph: DataGraph,
    candidates: dict[int, int],
    row: Row,
    timestamp: int,
    entries: TopologyEntries,
    skip_position: Optional[int] = None,
) -> None:
    """Add one to a candidate for every live edge joining it to a matched vertex."""
    for position, relation, label in entries:
        if position == skip_position:
            continue
        neighbours = _neighbours(data_graph, relation, row.vertices[position], label)
        if neighbours is None:
            continue
        for edge in neighbours:
            if edge.id in candidates and _is_live(edge, timestamp):
                candidates[edge.id] += 1


def candidates_proposal(
    graph: Graph, label: int, row: Row, timestamp: int, topology: Sequence[tuple[int, int, int]]
) -> dict[int, int]:
    """Propose new vertices and count how many other topology edges support each.

    Candidates come from the smallest neighbour list named by the topology;
    a vertex with ``label`` that is already matched in the row is left out,
    as are edges not older than ``timestamp``. Each candidate maps to the
    number of live edges joining it to the other matched vertices.
    """
    data_graph = graph.data_graph
    best: list[Edge] = []
    best_size = M_SIZE
    best_position: Optional[int] = None
    for position, relation, edge_label in topology:
        neighbours = _neighbours(data_graph, relation, row.vertices[position], edge_label)
        if neighbours is not None and len(neighbours) < best_size:
            best_size = len(neighbours)
            best_position = position
            best = neighbours

    matched = set(row.vertices)
    candidates: dict[int, int] = {}
    for edge in best:
        if data_graph.vertex_label(edge.id) == label and edge.id in matched:
            continue
        if _is_live(edge, timestamp):
            candidates.setdefault(edge.id, 0)

    _count_support(data_graph, candidates, row, timestamp, topology, best_position)
    return candidates


def candidates_filter(
    graph: Graph,
    candidates: Mapping[int, int],
    row: Row,
    timestamp: int,
    topology: Sequence[tuple[int, int, int]],
) -> dict[int, int]:
    """Return ``candidates`` with each count raised by the live edges of ``topology``."""
    counts = dict(candidates)
    _count_support(graph.data_graph, counts, row, timestamp, topology)
    return counts


def _extend(row: Row, position: int, queries: Sequence[int], vertex: int) -> Row:
    return Row(
        timestamp=row.timestamp,
        edge_index=row.edge_index,
        position=position,
        queries=list(queries),
        vertices=[*row.vertices, vertex],
    )


def _expand_single(graph: Graph, node: Node, row: Row, item: int, query_ids: list[int]) -> list[Row]:
    topology = node.topology[0]
    needed = len(topology) - 1
    candidates = candidates_proposal(graph, node.label, row, row.timestamp, topology)
    return [
        _extend(row, item, query_ids, vertex)
        for vertex, support in candidates.items()
        if support == needed
    ]


def _expand_shared(graph: Graph, node: Node, row: Row, item: int, query_ids: list[int]) -> list[Row]:
    dag = node.dag
    if dag is None:
        raise ValueError("node has no topology DAG; run get_topology_order() first")

    root_to_nodes: dict[int, dict[int, None]] = {}
    remaining: dict[int, list[int]] = {}
    for query in query_ids:
        dag_node = dag.query_to_node[query]
        root = dag.root_of_node.get(dag_node, 0)
        root_to_nodes.setdefault(root, {})[dag_node] = None
        remaining.setdefault(dag_node, []).append(query)

    vertex_queries: dict[int, list[int]] = {}
    for root, dag_nodes in root_to_nodes.items():
        root_topology = dag.topology_of_node.get(root, [])
        needed = len(root_topology) - 1
        proposed = candidates_proposal(graph, node.label, row, row.timestamp, root_topology)
        candidates = {vertex: 0 for vertex, support in proposed.items() if support == needed}

        neighbour_queries: dict[int, list[int]] = {}
        for dag_node in dag_nodes:
            if dag_node == root:
                for vertex in candidates:
                    neighbour_queries.setdefault(vertex, []).extend(remaining.get(dag_node, []))
                continue
            difference = dag.differential_topology_of_node.get(dag_node, [])
            counts = candidates_filter(graph, candidates, row, row.timestamp, difference)
            for vertex, support in counts.items():
                if support == len(difference):
                    neighbour_queries.setdefault(vertex, []).extend(remaining.get(dag_node, []))

        for vertex in candidates:
            if vertex in neighbour_queries:
                vertex_queries.setdefault(vertex, []).extend(neighbour_queries[vertex])

    return [_extend(row, item, queries, vertex) for vertex, queries in vertex_queries.items()]


def delta_generic_join(graph: Graph, row: Row, collect_counts: bool) -> list[Row]:
    """Extend ``row`` by one vertex for every child node of its tree position.

    A row that has matched a whole tree yields nothing; with
    ``collect_counts`` each of its queries, and each query completed at the
    current depth, adds one to ``graph.result``.
    """
    tree = graph.matching_tree_set[row.edge_index]
    hashes = graph.global_hash[row.edge_index]
    join_time = len(row.vertices)

    def is_complete(query: int) -> bool:
        return graph.query_graphs[hashes[query]].num_vertices() == join_time

    if len(tree.tree) == join_time:
        if collect_counts:
            with graph.lock:
                for query in row.queries:
                    graph.result[hashes[query]] += 1
        return []

    if collect_counts:
        for query in row.queries:
            if is_complete(query):
                with graph.lock:
                    graph.result[hashes[query]] += 1

    output: list[Row] = []
    for item in tree.children[join_time - 1][row.position]:
        if item == LEAF:
            continue
        node = tree.tree[join_time][item]
        query_ids = [q for q in row.queries if not is_complete(q) and q in node.queries]
        if not query_ids:
            continue
        if node.has_dag:
            output.extend(_expand_shared(graph, node, row, item, query_ids))
        else:
            output.extend(_expand_single(graph, node, row, item, query_ids))
    return output