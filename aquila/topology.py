"""Topology vectors and the subgraph-relation DAG used to share expansions."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from itertools import product
from typing import Optional

from aquila.graphs import DataGraph, UnionFind

Topology = list[tuple[int, int, int]]
"""``(position, relation, edge label)`` entries describing how a new vertex
connects to the vertices already matched."""

OUT_NEIGHBOR = 1
IN_NEIGHBOR = 2
NO_NEIGHBOR = 3
BI_NEIGHBOR = 4
END_OF_VECTOR = 0

INITIAL_CARDINALITY = 1e5
"""Cardinality reported when no entry constrains the estimate."""


def drop_none_edge(hash_vector: Sequence[tuple[int, int]]) -> Topology:
    """Turn ``(relation, label)`` pairs into a topology.

    Stops at the first unused slot (relation 0) and skips positions that are
    not connected (relation 3); the position of each pair is kept.
    """
    result: Topology = []
    for position, (relation, label) in enumerate(hash_vector):
        if relation == END_OF_VECTOR:
            break
        if relation == NO_NEIGHBOR:
            continue
        result.append((position, relation, label))
    return result


def is_partial_equivalence(v1: Sequence[tuple], v2: Sequence[tuple]) -> int:
    """Compare two topologies by containment.

    Returns 1 when ``v1`` is at least as long and contains every entry of
    ``v2``, 2 when ``v1`` is shorter and contained in ``v2``, 0 otherwise.
    """
    if len(v1) >= len(v2):
        larger = set(v1)
        return 1 if all(entry in larger for entry in v2) else 0
    larger = set(v2)
    return 2 if all(entry in larger for entry in v1) else 0


def merge_pairs(pairs: Iterable[tuple[int, int]]) -> list[list[int]]:
    """Group connected pairs into sorted clusters of their members."""
    pairs = list(pairs)
    sets = UnionFind()
    for first, second in pairs:
        sets.union(first, second)
    groups: dict[int, set[int]] = {}
    for first, second in pairs:
        members = groups.setdefault(sets.find(first), set())
        members.update((first, second))
    return [sorted(members) for members in groups.values()]


def differential_topology(t1: Iterable[tuple], t2: Iterable[tuple]) -> Topology:
    """Return the entries of ``t2`` that are not in ``t1``, in ``t2`` order."""
    known = set(t1)
    return [entry for entry in t2 if entry not in known]


def evaluate_overlap(
    v1: tuple[Sequence[int], Sequence[int]], v2: tuple[Sequence[int], Sequence[int]]
) -> int:
    """Count equal element pairs between the first halves and the second halves."""
    first = sum(1 for a in v1[0] for b in v2[0] if a == b)
    second = sum(1 for a in v1[1] for b in v2[1] if a == b)
    return first + second


def _min_cardinality(entries: Iterable[tuple[int, int, int]], data_graph: DataGraph) -> float:
    result = INITIAL_CARDINALITY
    for _, relation, label in entries:
        if relation == OUT_NEIGHBOR:
            result = min(result, data_graph.cardinality_of_out_edge[label])
        elif relation in (IN_NEIGHBOR, BI_NEIGHBOR):
            result = min(result, data_graph.cardinality_of_in_edge[label])
    return result


def single_cardinality(topology: Iterable[tuple[int, int, int]], data_graph: DataGraph) -> float:
    """Estimate the expansion size of a topology by its most selective edge."""
    return _min_cardinality(topology, data_graph)


def differential_cardinality(
    topo1: Iterable[tuple[int, int, int]],
    topo2: Iterable[tuple[int, int, int]],
    data_graph: DataGraph,
) -> float:
    """Estimate the cost of filtering from ``topo1`` to ``topo2``."""
    return _min_cardinality(differential_topology(topo1, topo2), data_graph)


def identify_roots(adjacency: Sequence[Sequence[int]], root: int) -> list[int]:
    """Return the nodes reachable from ``root``, in depth-first preorder."""
    visited = {root}
    reached: list[int] = []
    stack = [iter(adjacency[root])]
    while stack:
        node = next(stack[-1], None)
        if node is None:
            stack.pop()
            continue
        if node in visited:
            continue
        visited.add(node)
        reached.append(node)
        stack.append(iter(adjacency[node]))
    return reached


def construct_cdt(
    roots_of_node: Mapping[int, Iterable[int]],
    topology_of_node: Mapping[int, Topology],
    vertex_count: int,
    data_graph: DataGraph,
) -> dict[int, dict[int, float]]:
    """Build the cost table: ``cdt[u][root]`` for each root that reaches ``u``."""
    cdt: dict[int, dict[int, float]] = {}
    for u in range(vertex_count):
        for v in roots_of_node.get(u, ()):
            if v == u:
                cost = single_cardinality(topology_of_node.get(v, []), data_graph)
            else:
                cost = differential_cardinality(
                    topology_of_node.get(v, []), topology_of_node.get(u, []), data_graph
                )
            cdt.setdefault(u, {})[v] = cost
    return cdt


def select_roots(
    cdt: Mapping[int, Mapping[int, float]],
    right_nodes: Sequence[int],
    roots_of_node: Mapping[int, Iterable[int]],
) -> tuple[float, dict[int, int]]:
    """Assign each right node a root so that the total cost is least.

    The cost of an assignment is the sum of the chosen ``cdt[node][root]``
    plus ``cdt[root][root]`` for every root used. Returns the best cost and
    the assignment; with no assignment cheaper than the initial bound the
    bound and an empty mapping are returned.
    """

    def cost(u: int, v: int) -> float:
        return cdt.get(u, {}).get(v, 0.0)

    best = INITIAL_CARDINALITY
    answer: dict[int, int] = {}
    choices = [sorted(roots_of_node.get(node, ())) for node in right_nodes]
    for roots in product(*choices):
        total = sum(cost(node, root) for node, root in zip(right_nodes, roots))
        total += sum(cost(root, root) for root in set(roots))
        if total < best:
            best = total
            answer = dict(zip(right_nodes, roots))
    return best, answer


class TinyDAG:
    """Containment DAG over the distinct topologies of one matching-tree node."""

    def __init__(self) -> None:
        self.vertex_count = 0
        self.adjacency: list[list[int]] = []
        self.node_to_query: dict[int, list[int]] = {}
        self.query_to_node: dict[int, int] = {}
        self.root_nodes: list[int] = []
        self.root_of_node: dict[int, int] = {}
        self.topology_of_node: dict[int, Topology] = {}
        self.differential_topology_of_node: dict[int, Topology] = {}
        self.has_dag: Optional[bool] = None

    def build(self, queries: Sequence[int], topologies: Sequence[Sequence[tuple]]) -> bool:
        """Merge identical topologies into nodes and link contained ones.

        Returns False when all queries share one topology, leaving no DAG.
        """
        grouped: dict[tuple, list[int]] = {}
        for query, topology in zip(queries, topologies):
            grouped.setdefault(tuple(topology), []).append(query)
        self.vertex_count = len(grouped)
        self.adjacency = [[] for _ in range(self.vertex_count)]
        if self.vertex_count == 1:
            self.has_dag = False
            return False

        for node, (topology, members) in enumerate(grouped.items()):
            for query in members:
                self.node_to_query.setdefault(node, []).append(query)
                self.query_to_node[query] = node
            self.topology_of_node[node] = list(topology)

        keys = list(grouped)
        heads = [members[0] for members in grouped.values()]
        for x, key_x in enumerate(keys):
            for y in range(x + 1, len(keys)):
                relation = is_partial_equivalence(key_x, keys[y])
                node_x = self.query_to_node[heads[x]]
                node_y = self.query_to_node[heads[y]]
                if relation == 1:
                    self.adjacency[node_y].append(node_x)
                elif relation == 2:
                    self.adjacency[node_x].append(node_y)
        self.has_dag = True
        return True

    def plan(self, data_graph: DataGraph) -> dict[int, int]:
        """Choose a root for every node and record the differential topologies."""
        if not self.has_dag:
            raise ValueError("no DAG to plan: build() found fewer than two topologies")

        targets = {child for children in self.adjacency for child in children}
        self.root_nodes = [n for n in range(self.vertex_count) if n not in targets]

        roots_of_node: dict[int, set[int]] = {}
        for root in self.root_nodes:
            roots_of_node.setdefault(root, set()).add(root)
            for node in identify_roots(self.adjacency, root):
                roots_of_node.setdefault(node, set()).add(root)

        root_set = set(self.root_nodes)
        right_nodes = [n for n in range(self.vertex_count) if n not in root_set]
        cdt = construct_cdt(roots_of_node, self.topology_of_node, self.vertex_count, data_graph)
        _, answer = select_roots(cdt, right_nodes, roots_of_node)

        self.root_of_node = dict(answer)
        for root in self.root_nodes:
            self.root_of_node[root] = root
        self.differential_topology_of_node = {
            node: differential_topology(
                self.topology_of_node.get(root, []), self.topology_of_node.get(node, [])
            )
            for node, root in self.root_of_node.items()
        }
        return self.root_of_node