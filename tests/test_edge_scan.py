import pytest

from aquila.edge_scan import Row, edge_scan, shuffle_by_last_element
from aquila.graphs import Update
from aquila.workspace import Graph

PATH_QUERY = "v 0 0\nv 1 1\nv 2 2\ne 0 1 0\ne 1 2 1\n"


@pytest.fixture
def graph(tmp_path):
    path = tmp_path / "q0.txt"
    path.write_text(PATH_QUERY)
    result = Graph()
    result.load_query_graphs([path])
    result.calculate_edge_mapping()
    result.construct_matching_trees()
    for vertex, label in ((10, 0), (11, 1), (12, 2)):
        result.data_graph.add_vertex(vertex, label)
    return result


def test_shuffle_stays_within_cores():
    row = Row(0, 0, 0, [0], [4, 9])
    for cores in range(1, 6):
        assert 0 <= shuffle_by_last_element(row, cores) < cores


def test_shuffle_depends_only_on_last_vertex():
    a = Row(0, 0, 0, [0], [4, 9])
    b = Row(3, 1, 2, [1, 2], [7, 9])
    assert shuffle_by_last_element(a, 4) == shuffle_by_last_element(b, 4)
    assert shuffle_by_last_element(Row(0, 0, 0, [], [9]), 9) == 0


def test_shuffle_rejects_bad_input():
    with pytest.raises(ValueError):
        shuffle_by_last_element(Row(0, 0, 0, [], [1]), 0)
    with pytest.raises(ValueError):
        shuffle_by_last_element(Row(0, 0, 0, [], []), 2)


def test_edge_update_seeds_forward_tree(graph):
    graph.data_graph.updates.append(Update("e", True, 10, 11, 0))
    rows = edge_scan(graph, 0)
    assert rows == [Row(0, 0, 0, [0], [10, 11])]


def test_edge_update_seeds_reversed_tree(graph):
    graph.data_graph.updates.append(Update("v", True, 12, 0, 2))
    graph.data_graph.updates.append(Update("e", True, 11, 12, 1))
    rows = edge_scan(graph, 1)
    assert len(rows) == 1
    assert rows[0].edge_index == 1
    assert rows[0].timestamp == 1
    assert rows[0].vertices == [12, 11]


def test_vertex_update_yields_nothing(graph):
    graph.data_graph.updates.append(Update("v", True, 10, 0, 0))
    assert edge_scan(graph, 0) == []


def test_unmatched_edge_yields_nothing(graph):
    graph.data_graph.updates.append(Update("e", True, 10, 11, 5))
    graph.data_graph.updates.append(Update("e", True, 11, 10, 0))
    assert edge_scan(graph, 0) == []
    assert edge_scan(graph, 1) == []


def test_rows_do_not_share_query_lists(graph):
    graph.data_graph.updates.append(Update("e", True, 10, 11, 0))
    rows = edge_scan(graph, 0)
    rows[0].queries.append(99)
    assert graph.matching_tree_set[0].tree[0][0].survive_queries == [0]