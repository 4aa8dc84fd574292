"""The shared workspace: data graph, query set and their matching trees."""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Iterable, Mapping, MutableSequence, Sequence
from typing import Optional

from aquila.builder import construct_one_tree
from aquila.graphs import EDGE_LABEL_COUNT, DataGraph, PathLike, QueryGraph
from aquila.matching import MatchingTree
from aquila.topology import TinyDAG

LDBC_VERTEX_RANGES: tuple[tuple[int, int], ...] = (
    (0, 9891),
    (9892, 2062060),
    (2062061, 3065665),
    (3065666, 6121439),
    (6121440, 6211931),
    (6211932, 6219886),
    (6219887, 6221346),
    (6221347, 6237426),
    (6237427, 6237497),
)
"""Inclusive vertex id range of each vertex type in the LDBC-SNB data set."""

LDBC_LABEL_ENDPOINTS: tuple[tuple[int, int], ...] = (
    (1, 0), (1, 7), (1, 6), (1, 1), (1, 2), (1, 3), (4, 2), (4, 0),
    (4, 0), (4, 7), (0, 7), (0, 6), (0, 0), (0, 1), (0, 2), (0, 3),
    (0, 5), (0, 5), (2, 0), (2, 7), (2, 6), (3, 0), (3, 6), (5, 6),
    (6, 6), (7, 8), (8, 8), (3, 7),
)
"""For each edge label, the vertex ranges its sources and targets lie in."""

EdgeKey = tuple[int, int, int]


class Graph:
    """A data graph with a set of query graphs and one matching tree per query edge."""

    def __init__(
        self,
        vertex_ranges: Sequence[tuple[int, int]] = LDBC_VERTEX_RANGES,
        label_endpoints: Sequence[tuple[int, int]] = LDBC_LABEL_ENDPOINTS,
    ) -> None:
        self.data_graph = DataGraph()
        self.query_graphs: list[QueryGraph] = []
        self.all_unique_edges: set[EdgeKey] = set()
        self.all_vector_unique_edges: list[EdgeKey] = []
        self.edge_in_graphs: list[dict[int, list[tuple[int, int]]]] = []
        self.matching_tree_set: list[MatchingTree] = []
        self.global_hash: list[dict[int, int]] = []
        self.temp_store: list[MatchingTree] = []
        self.result: Counter[int] = Counter()
        self.lock = threading.Lock()
        self.vertex_ranges = [tuple(r) for r in vertex_ranges]
        self.label_endpoints = [tuple(e) for e in label_endpoints]

    def load_data_graph(self, path: PathLike) -> int:
        return self.data_graph.load(path)

    def load_query_graphs(self, paths: Iterable[PathLike]) -> None:
        """Load query graphs and collect their distinct labelled edges."""
        for path in paths:
            query = QueryGraph()
            self.all_unique_edges.update(query.load(path))
            self.query_graphs.append(query)
        self.all_vector_unique_edges = sorted(self.all_unique_edges)
        missing = len(self.all_vector_unique_edges) - len(self.edge_in_graphs)
        self.edge_in_graphs.extend({} for _ in range(max(0, missing)))

    def load_update_stream(self, path: PathLike):
        return self.data_graph.load_updates(path)

    def allocate(self, number: int) -> None:
        self.data_graph.allocate(number)

    def calculate_edge_mapping(self) -> None:
        """Record, per distinct edge, the matching edge instances of every query."""
        for index, (from_label, to_label, edge_label) in enumerate(self.all_vector_unique_edges):
            instances = self.edge_in_graphs[index]
            for query_id, query in enumerate(self.query_graphs):
                for f_label, t_label, e_label, from_id, to_id in query.edges:
                    if (f_label, t_label, e_label) == (from_label, to_label, edge_label):
                        instances.setdefault(query_id, []).append((from_id, to_id))

    def _queries_for(self, index: int, ids: Iterable[int]) -> dict[int, QueryGraph]:
        try:
            hashes = self.global_hash[index]
            return {q: self.query_graphs[hashes[q]] for q in ids}
        except (IndexError, KeyError):
            raise KeyError(
                f"no query mapping for edge {index}; construct_matching_trees() first"
            ) from None

    def construct_matching_trees(self) -> list[MatchingTree]:
        """Build one matching tree for every distinct query edge.

        Every edge instance gets its own virtual query id; ``global_hash``
        maps it back to the query graph it came from.
        """
        self.global_hash = [{} for _ in range(len(self.edge_in_graphs) + 1)]
        self.matching_tree_set = []
        for index, instances in enumerate(self.edge_in_graphs):
            maps: list[tuple[int, int]] = []
            ids: list[int] = []
            for query_id, pairs in instances.items():
                for pair in pairs:
                    virtual = len(ids)
                    self.global_hash[index][virtual] = query_id
                    maps.append(pair)
                    ids.append(virtual)
            tree = construct_one_tree(
                self._queries_for(index, ids),
                self.data_graph,
                self.all_vector_unique_edges[index],
                maps,
                ids,
            )
            self.matching_tree_set.append(tree)
        return self.matching_tree_set

    def calculate_card_of_edges(self) -> None:
        """Average out- and in-degree of every edge label over its vertex ranges."""
        if len(self.label_endpoints) != EDGE_LABEL_COUNT:
            raise ValueError(
                f"expected {EDGE_LABEL_COUNT} label endpoints, got {len(self.label_endpoints)}"
            )
        graph = self.data_graph
        for label, (source, target) in enumerate(self.label_endpoints):
            s_start, s_end = self.vertex_ranges[source]
            t_start, t_end = self.vertex_ranges[target]
            card_out = sum(len(e) for e in graph.out_adjacency[label][s_start:s_end + 1])
            card_in = sum(len(e) for e in graph.in_adjacency[label][t_start:t_end + 1])
            graph.cardinality_of_out_edge[label] = card_out / (s_end + 1 - s_start)
            graph.cardinality_of_in_edge[label] = card_in / (t_end + 1 - t_start)
            graph.number_of_out_edge[label] = card_out
            graph.number_of_in_edge[label] = card_in

    def adjust_matching_trees(self) -> None:
        """Refresh edge cardinalities from the running edge counts."""
        graph = self.data_graph
        for label in range(EDGE_LABEL_COUNT):
            out_slots = len(graph.out_adjacency[label])
            in_slots = len(graph.in_adjacency[label])
            if not out_slots or not in_slots:
                raise ValueError("adjacency lists are empty; allocate() the graph first")
            graph.cardinality_of_out_edge[label] = graph.number_of_out_edge[label] / out_slots
            graph.cardinality_of_in_edge[label] = graph.number_of_in_edge[label] / in_slots

    def get_topology_order(self) -> None:
        """Build and plan the subgraph-relation DAG of every tree node."""
        for tree in self.matching_tree_set:
            for layer in tree.tree:
                for node in layer:
                    dag = TinyDAG()
                    node.dag = dag
                    if not dag.build(node.survive_queries, node.topology):
                        node.has_dag = False
                        continue
                    node.has_dag = True
                    dag.plan(self.data_graph)

    def create_more_trees(
        self,
        current_index: int,
        size: int,
        maps: MutableSequence[tuple[int, int]],
        ids: Sequence[int],
        index: int,
        visit: Mapping[int, Sequence[bool]],
    ) -> None:
        """Build a tree into ``temp_store`` for every choice of unvisited instances."""
        if current_index == size:
            self.temp_store.append(
                construct_one_tree(
                    self._queries_for(index, ids),
                    self.data_graph,
                    self.all_vector_unique_edges[index],
                    list(maps),
                    ids,
                )
            )
            return
        query_id = ids[current_index]
        for position, instance in enumerate(self.edge_in_graphs[index][query_id]):
            if not visit[query_id][position]:
                maps.append(instance)
                self.create_more_trees(current_index + 1, size, maps, ids, index, visit)
                maps.pop()

    def max_tree_size(self, index: Optional[int] = None) -> int:
        """Depth of the tree at ``index``, or the greatest depth of all trees."""
        if index is not None:
            return len(self.matching_tree_set[index].tree)
        return max((len(tree.tree) for tree in self.matching_tree_set), default=0)