import pytest

from aquila.builder import construct_one_tree
from aquila.graphs import DataGraph, QueryGraph
from aquila.matching import LEAF
from aquila.topology import OUT_NEIGHBOR


def make_query(vertex_labels, edges):
    graph = QueryGraph()
    for vertex, label in enumerate(vertex_labels):
        graph.add_vertex(vertex, label)
    for v1, v2, label in edges:
        graph.add_edge(v1, v2, label)
    return graph


def chain():
    return make_query([0, 1, 2], [(0, 1, 5), (1, 2, 6)])


def fork():
    return make_query([0, 1, 2], [(0, 1, 5), (0, 2, 6)])


def test_identical_queries_share_every_node():
    queries = {0: chain(), 1: chain()}
    tree = construct_one_tree(queries, DataGraph(), (0, 1, 5), [(0, 1), (0, 1)], [0, 1])
    assert tree.is_reverse is False
    assert len(tree.tree) == 3
    assert tree.tree[0][0].label == 0
    assert tree.tree[1][0].label == 1
    node = tree.tree[2][0]
    assert node.label == 2
    assert node.survive_queries == [0, 1]
    assert node.vertex_id == [2, 2]
    assert node.queries == {0, 1}
    assert node.topology == [[(1, OUT_NEIGHBOR, 6)], [(1, OUT_NEIGHBOR, 6)]]
    assert tree.children == [[[0]], [[0]]]
    assert tree.paths == {0: [0, 0, 0], 1: [0, 0, 0]}


def test_higher_degree_start_reverses_tree():
    tree = construct_one_tree({0: fork()}, DataGraph(), (0, 1, 5), [(0, 1)], [0])
    assert tree.is_reverse is True
    assert tree.tree[0][0].label == 1
    assert tree.tree[0][0].vertex_id == [1]
    assert tree.tree[1][0].label == 0
    assert tree.tree[1][0].vertex_id == [0]
    last = tree.tree[2][0]
    assert last.label == 2
    assert last.vertex_id == [2]
    assert last.queries == {0}
    assert last.topology == [[(1, OUT_NEIGHBOR, 6)]]


def test_different_topologies_split_into_children():
    queries = {0: chain(), 1: fork()}
    tree = construct_one_tree(queries, DataGraph(), (0, 1, 5), [(0, 1), (0, 1)], [0, 1])
    assert len(tree.tree[2]) == 2
    assert tree.children[1] == [[0, 1]]
    by_query = {node.survive_queries[0]: node for node in tree.tree[2]}
    assert by_query[0].topology == [[(1, OUT_NEIGHBOR, 6)]]
    assert by_query[1].topology == [[(0, OUT_NEIGHBOR, 6)]]
    for query_id, path in tree.paths.items():
        assert len(path) == len(tree.tree)
        assert tree.matched_vertex(query_id, 2) == 2


def test_contained_topologies_merge_into_one_node():
    both = make_query([0, 1, 2], [(0, 1, 5), (0, 2, 6), (1, 2, 6)])
    queries = {0: chain(), 1: both}
    tree = construct_one_tree(queries, DataGraph(), (0, 1, 5), [(0, 1), (0, 1)], [0, 1])
    assert len(tree.tree[2]) == 1
    node = tree.tree[2][0]
    assert node.survive_queries == [0, 1]
    assert node.vertex_id == [2, 2]
    assert node.topology == [
        [(1, OUT_NEIGHBOR, 6)],
        [(0, OUT_NEIGHBOR, 6), (1, OUT_NEIGHBOR, 6)],
    ]


def test_finished_query_leaves_a_leaf():
    longer = make_query([0, 1, 2, 3], [(0, 1, 5), (0, 2, 6), (2, 3, 7)])
    queries = {0: chain(), 1: longer}
    tree = construct_one_tree(queries, DataGraph(), (0, 1, 5), [(0, 1), (0, 1)], [0, 1])
    assert len(tree.tree) == 4
    assert tree.children[2] == [[LEAF], [0]]
    last = tree.tree[3][0]
    assert last.survive_queries == [1]
    assert last.vertex_id == [3]
    assert last.topology == [[(2, OUT_NEIGHBOR, 7)]]
    assert len(tree.paths[0]) == 3
    assert len(tree.paths[1]) == 4


def test_single_query_follows_lowest_cardinality():
    query = make_query([0, 1, 2, 3], [(0, 1, 5), (1, 2, 6), (1, 3, 7)])
    data = DataGraph()
    data.cardinality_of_out_edge[6] = 5.0
    data.cardinality_of_out_edge[7] = 1.0
    tree = construct_one_tree({0: query}, data, (0, 1, 5), [(0, 1)], [0])
    assert tree.tree[2][0].vertex_id == [3]
    assert tree.tree[3][0].vertex_id == [2]
    assert tree.node_count() == len(tree.tree)


def test_mismatched_maps_and_ids_rejected():
    with pytest.raises(ValueError):
        construct_one_tree({0: chain()}, DataGraph(), (0, 1, 5), [(0, 1)], [0, 1])


def test_empty_maps_rejected():
    with pytest.raises(ValueError):
        construct_one_tree({}, DataGraph(), (0, 1, 5), [], [])