# aquila

Continuous multi-query subgraph matching over a labelled, evolving data graph.

A set of query graphs is compiled into *matching trees*: one tree per distinct
labelled edge `(from_label, to_label, edge_label)` found in the queries. Query
vertices that connect the same way are matched once by a shared tree node, and
the different topologies held inside one node are planned with a small
containment DAG, so candidate vertices are proposed once and then filtered per
topology. When an edge update arrives, its seed row is extended layer by layer
through the tree, and each query a row completes is counted.

## Installation

```
pip install .
```

The package needs only the standard library. To run the tests:

```
pip install ".[test]"
pytest
```

## File formats

Data and query graphs are whitespace-separated text:

```
v <vertex_id> <label>
e <from_id> <to_id> <edge_label>
```

Update streams use the same records, with `-v` and `-e` for deletions.
Edge label `12` (person knows person) is stored in both directions. The data
graph keeps adjacency lists for edge labels `0`–`27`; reserve room for the
vertex ids with `allocate()` before adding edges.

## Usage

```python
from aquila.workspace import Graph
from aquila.edge_scan import edge_scan
from aquila.join import delta_generic_join

graph = Graph()
graph.allocate(1000)
graph.load_data_graph("data.txt")
graph.load_query_graphs(["q1.txt", "q2.txt"])
graph.calculate_edge_mapping()
graph.construct_matching_trees()
graph.get_topology_order()
graph.load_update_stream("updates.txt")

for index, update in enumerate(graph.data_graph.updates):
    if update.kind == "e" and update.is_insert:
        graph.data_graph.add_edge(update.id1, update.id2, update.label, index)
    rows = edge_scan(graph, index)
    while rows:
        rows = [new for row in rows for new in delta_generic_join(graph, row, True)]

print(graph.result)  # Counter: query graph index -> matches counted
```

An edge takes part in a join only when it has no timestamp or a timestamp
lower than the row's, the position of its update in the stream.

## Modules

- `aquila.graphs` – `DataGraph` (per-label adjacency with optional timestamps,
  `load`, `load_updates`), `QueryGraph` (sorted adjacency, `edge_label`),
  `Edge`, `Update` and `UnionFind`.
- `aquila.topology` – topology vectors (`drop_none_edge`,
  `is_partial_equivalence`, `differential_topology`, `merge_pairs`),
  cardinality estimates (`single_cardinality`, `differential_cardinality`),
  root selection (`construct_cdt`, `select_roots`) and `TinyDAG`.
- `aquila.matching` – `Node`, `MatchingTree`, `topology_vector` and
  `calculate_one_vertex`.
- `aquila.builder` – `construct_one_tree` builds the tree for one labelled edge.
- `aquila.workspace` – `Graph`, which holds the data graph, the query graphs
  and their trees; `calculate_card_of_edges` averages edge counts over the
  LDBC-SNB vertex id ranges by default, and other ranges can be passed in.
- `aquila.edge_scan` – `Row`, `edge_scan` and `shuffle_by_last_element`.
- `aquila.join` – `candidates_proposal`, `candidates_filter` and
  `delta_generic_join`.
- `aquila.timing` – `Stopwatch`, reporting elapsed milliseconds; usable as a
  context manager that prints the time on exit.

## What it does not do

- There is no command-line program or server; the package is a library.
- Rows are processed in the calling thread. `shuffle_by_last_element` only
  computes which worker a row would go to; no parallel runtime distributes them.
- `edge_scan` does not apply updates to the data graph, and deletions are not
  propagated as negative matches; the caller applies updates as shown above.
- Labels are plain integers; there is no table of named vertex or edge types.