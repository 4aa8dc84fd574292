"""Construction of a matching tree for one query edge shared by many queries."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from itertools import combinations

from aquila.graphs import DataGraph, QueryGraph
from aquila.matching import (
    LEAF,
    MatchingTree,
    Node,
    calculate_one_vertex,
    topology_vector,
)
from aquila.topology import drop_none_edge, is_partial_equivalence, merge_pairs

TopologyKey = tuple[tuple[int, int, int], ...]
Vector = tuple[tuple[int, int], ...]


@dataclass
class _Classification:
    """How the queries split when the next vertex must carry one label."""

    queries: list[int] = field(default_factory=list)
    vertices: list[int] = field(default_factory=list)
    groups: dict[Vector, list[int]] = field(default_factory=dict)
    lacking: list[int] = field(default_factory=list)

    def score(self) -> int:
        total = sum(len(members) for members in self.groups.values())
        reused = sum(len(members) for members in self.groups.values() if len(members) >= 2)
        return reused // total


def _frontier(
    query: QueryGraph, tree: MatchingTree, query_id: int, visited: set[int]
) -> Iterator[int]:
    """Yield unvisited neighbours of the vertices on the query's path."""
    for depth in range(len(tree.paths[query_id])):
        vertex = tree.matched_vertex(query_id, depth)
        for neighbour in query.out_neighbors(vertex):
            if neighbour not in visited:
                yield neighbour
        for neighbour in query.in_neighbors(vertex):
            if neighbour not in visited:
                yield neighbour


def _is_finished(query: QueryGraph, visited: set[int]) -> bool:
    return all(vertex in visited for vertex in range(query.num_vertices()))


def _classify(
    label: int,
    remain: Sequence[int],
    queries: Mapping[int, QueryGraph],
    tree: MatchingTree,
    visit: dict[int, set[int]],
) -> _Classification:
    result = _Classification()
    vectors: dict[int, dict[int, Vector]] = {}
    for query_id in remain:
        query = queries[query_id]
        candidates = [
            vertex
            for vertex in _frontier(query, tree, query_id, visit[query_id])
            if query.vertex_label(vertex) == label
        ]
        if not candidates:
            result.lacking.append(query_id)
            continue
        per_vertex = vectors.setdefault(query_id, {})
        for vertex in candidates:
            if vertex not in per_vertex:
                per_vertex[vertex] = topology_vector(query, tree, query_id, vertex, visit)

    chosen: dict[int, Vector] = {}
    while True:
        shared: dict[Vector, list[tuple[int, int]]] = {}
        for query_id, per_vertex in vectors.items():
            if query_id in chosen:
                continue
            by_vector: dict[Vector, int] = {}
            for vertex, vector in per_vertex.items():
                by_vector[vector] = vertex
            for vector, vertex in by_vector.items():
                shared.setdefault(vector, []).append((query_id, vertex))
        if not shared:
            break
        largest = max(len(members) for members in shared.values())
        vector, members = next(
            (vector, members) for vector, members in shared.items() if len(members) == largest
        )
        for query_id, vertex in members:
            result.queries.append(query_id)
            result.vertices.append(vertex)
            chosen[query_id] = vector

    for query_id, vector in chosen.items():
        result.groups.setdefault(vector, []).append(query_id)
    return result


def _expand(
    parent: Node,
    queries: Mapping[int, QueryGraph],
    data_graph: DataGraph,
    tree: MatchingTree,
    visit: dict[int, set[int]],
) -> list[Node]:
    """Create the children of ``parent`` for the next matching vertex."""
    remain = [
        query_id
        for query_id in parent.survive_queries
        if not _is_finished(queries[query_id], visit[query_id])
    ]
    if not remain:
        return []
    if len(remain) == 1:
        query_id = remain[0]
        return [calculate_one_vertex(queries[query_id], visit, query_id, tree, data_graph)]

    nodes: list[Node] = []
    while True:
        occurs: Counter[int] = Counter()
        for query_id in remain:
            query = queries[query_id]
            occurs.update(
                {query.vertex_label(v) for v in _frontier(query, tree, query_id, visit[query_id])}
            )
        if not occurs:
            raise ValueError(f"queries {remain} have no unvisited vertex to expand")
        most = max(occurs.values())
        max_labels = sorted(label for label, count in occurs.items() if count == most)

        classified: dict[int, _Classification] = {}
        for label in max_labels:
            classification = _classify(label, remain, queries, tree, visit)
            if classification.groups:
                classified[label] = classification
        if not classified:
            raise ValueError(f"queries {remain} have no vertex to classify")
        best_label, best = max(classified.items(), key=lambda item: item[1].score())

        remain = list(best.lacking)
        vertex_of = dict(zip(best.queries, best.vertices))
        groups: dict[TopologyKey, list[int]] = {}
        for vector, members in best.groups.items():
            groups[tuple(drop_none_edge(vector))] = members
        keys = list(groups)
        values = list(groups.values())

        def make(members: list[int], topologies: list[list[tuple[int, int, int]]]) -> Node:
            vertices = [vertex_of[q] for q in members]
            for query_id, vertex in zip(members, vertices):
                visit[query_id].add(vertex)
            return Node(
                label=best_label,
                survive_queries=list(members),
                vertex_id=vertices,
                queries=set(members),
                topology=topologies,
            )

        pairs = [
            (x, y)
            for x, y in combinations(range(len(keys)), 2)
            if is_partial_equivalence(keys[x], keys[y])
        ]
        used: set[int] = set()
        combined = 0
        for cluster in merge_pairs(pairs):
            members: list[int] = []
            topologies: list[list[tuple[int, int, int]]] = []
            for index in cluster:
                used.add(index)
                members.extend(values[index])
                topologies.extend(list(keys[index]) for _ in values[index])
                combined += 1
            nodes.append(make(members, topologies))
        for index, (key, members) in enumerate(zip(keys, values)):
            if index not in used and len(members) >= 2:
                used.add(index)
                nodes.append(make(members, [list(key) for _ in members]))
                combined += 1

        singles = [i for i in range(len(keys)) if i not in used and len(values[i]) == 1]
        total = len(keys)
        if combined and total > combined:
            if not remain:
                nodes.extend(make(values[i], [list(keys[i])]) for i in singles)
                break
            remain.extend(values[i][0] for i in singles)
            continue
        if total != 1 and combined == 0:
            nodes.extend(make(values[i], [list(keys[i])]) for i in singles)
            if not remain:
                break
            continue
        if total == combined:
            if not remain:
                break
            continue

        # A single topology held by a single query.
        visit[best.queries[0]].add(best.vertices[0])
        nodes.append(
            Node(
                label=best_label,
                survive_queries=list(best.queries),
                vertex_id=list(best.vertices),
                queries=set(best.queries),
                topology=[list(keys[0])],
            )
        )
        for query_id in remain:
            nodes.append(
                calculate_one_vertex(queries[query_id], visit, query_id, tree, data_graph)
            )
        break
    return nodes


def construct_one_tree(
    queries: Mapping[int, QueryGraph],
    data_graph: DataGraph,
    edge_key: tuple[int, int, int],
    maps: Sequence[tuple[int, int]],
    ids: Sequence[int],
) -> MatchingTree:
    """Build the matching tree rooted at one labelled edge.

    ``queries`` maps each id in ``ids`` to its query graph; ``maps[i]`` is the
    ``(from, to)`` edge instance of query ``ids[i]`` that matches
    ``edge_key = (from_label, to_label, edge_label)``. The tree starts from the
    endpoint of lower average degree and adds one vertex per layer, sharing a
    node between queries whose next vertex connects the same way.
    """
    maps = [tuple(pair) for pair in maps]
    ids = list(ids)
    if not maps:
        raise ValueError("a matching tree needs at least one edge instance")
    if len(maps) != len(ids):
        raise ValueError("maps and ids must have the same length")

    visit: dict[int, set[int]] = {query_id: set() for query_id in ids}
    degree_from = degree_to = 0
    for (v1, v2), query_id in zip(maps, ids):
        query = queries[query_id]
        degree_from += query.degree(v1)
        degree_to += query.degree(v2)
        visit[query_id].update((v1, v2))

    first = Node(label=edge_key[0], survive_queries=list(ids), vertex_id=[m[0] for m in maps])
    second = Node(label=edge_key[1], survive_queries=list(ids), vertex_id=[m[1] for m in maps])

    tree = MatchingTree()
    if degree_from // len(maps) > degree_to // len(maps):
        tree.tree = [[second], [first]]
        tree.is_reverse = True
    else:
        tree.tree = [[first], [second]]
        tree.is_reverse = False
    tree.children.append([[0]])
    for query_id in ids:
        tree.paths[query_id] = [0, 0]

    max_vertex = max(queries[query_id].num_vertices() for query_id in ids)
    for depth in range(2, max_vertex):
        layer: list[Node] = []
        layer_children: list[list[int]] = []
        parents = tree.tree[depth - 1]
        tree.tree.append(layer)
        for parent in parents:
            children_nodes = _expand(parent, queries, data_graph, tree, visit)
            if not children_nodes:
                layer_children.append([LEAF])
                continue
            children: list[int] = []
            for node in children_nodes:
                index = len(layer)
                for query_id in node.survive_queries:
                    tree.paths[query_id].append(index)
                layer.append(node)
                children.append(index)
            layer_children.append(children)
        tree.children.append(layer_children)
    return tree