import pytest

from aquila.graphs import DataGraph, QueryGraph
from aquila.matching import (
    MAX_QUERY_VERTICES,
    UNCONNECTED_LABEL,
    MatchingTree,
    Node,
    calculate_one_vertex,
    topology_vector,
)
from aquila.topology import drop_none_edge


def make_query(bidirectional=False):
    query = QueryGraph()
    for vertex, label in [(0, 0), (1, 1), (2, 2), (3, 2)]:
        query.add_vertex(vertex, label)
    query.add_edge(0, 1, 3)
    query.add_edge(2, 0, 5)
    query.add_edge(1, 2, 7)
    query.add_edge(1, 3, 9)
    if bidirectional:
        query.add_edge(3, 1, 4)
    return query


def make_tree():
    return MatchingTree(
        tree=[
            [Node(label=0, survive_queries=[0], vertex_id=[0])],
            [Node(label=1, survive_queries=[0], vertex_id=[1])],
        ],
        children=[[[0]]],
        paths={0: [0, 0]},
    )


def test_node_count_and_matched_vertex():
    tree = make_tree()
    assert tree.node_count() == 2
    assert tree.matched_vertex(0, 0) == 0
    assert tree.matched_vertex(0, 1) == 1


def test_matched_vertex_unknown_query():
    with pytest.raises(KeyError):
        make_tree().matched_vertex(5, 0)


def test_topology_vector_in_and_out():
    vector = topology_vector(make_query(), make_tree(), 0, 2, None)
    assert len(vector) == MAX_QUERY_VERTICES
    assert vector[:2] == ((2, 5), (1, 7))
    assert set(vector[2:]) == {(0, 0)}
    assert drop_none_edge(vector) == [(0, 2, 5), (1, 1, 7)]


def test_topology_vector_unconnected_position():
    vector = topology_vector(make_query(), make_tree(), 0, 3, None)
    assert vector[0] == (3, UNCONNECTED_LABEL)
    assert vector[1] == (1, 9)
    assert drop_none_edge(vector) == [(1, 1, 9)]


def test_topology_vector_bidirectional():
    vector = topology_vector(make_query(bidirectional=True), make_tree(), 0, 3, None)
    assert vector[1] == (4, 9)


def test_topology_vector_ignores_visited():
    vector = topology_vector(make_query(), make_tree(), 0, 2, {0: {0, 1, 2}})
    assert vector[:2] == ((3, UNCONNECTED_LABEL), (3, UNCONNECTED_LABEL))


def test_calculate_one_vertex_picks_least_cardinality():
    data = DataGraph()
    data.cardinality_of_in_edge[5] = 3.0
    data.cardinality_of_out_edge[7] = 5.0
    data.cardinality_of_out_edge[9] = 1.0
    visit = {0: {0, 1}}
    node = calculate_one_vertex(make_query(), visit, 0, make_tree(), data)
    assert node.vertex_id == [3]
    assert node.label == 2
    assert node.survive_queries == [0]
    assert node.queries == {0}
    assert node.topology == [[(1, 1, 9)]]
    assert visit[0] == {0, 1, 3}


def test_calculate_one_vertex_tie_goes_to_lower_id():
    visit = {0: {0, 1}}
    node = calculate_one_vertex(make_query(), visit, 0, make_tree(), DataGraph())
    assert node.vertex_id == [2]
    assert node.topology == [[(0, 2, 5), (1, 1, 7)]]
    assert 2 in visit[0]


def test_calculate_one_vertex_nothing_left():
    visit = {0: {0, 1, 2, 3}}
    with pytest.raises(ValueError):
        calculate_one_vertex(make_query(), visit, 0, make_tree(), DataGraph())