"""
Layout algorithms for schema tables.

Two layers:
- layered_layout: a Sugiyama-style directed-graph layout over a
  networkx.DiGraph whose nodes carry `width`/`height`. Returns node CENTER
  points, the same convention dagre uses.
- compute_table_positions: the adapter that builds the graph from tables
  (nodes) and relationships (edges) and converts centers to the document's
  top-left convention.

Layered layout phases:
  1. Cycle removal (greedy feedback arc set)
  2. Rank assignment (longest path)
  3. Ordering within ranks (barycenter sweeps)
  4. Coordinate assignment (rank and node separation)
"""

from enum import Enum
from typing import TYPE_CHECKING

import networkx as nx

from .geometry import Point

if TYPE_CHECKING:
    from .models import Position, Relationship, Table


# Separation constants (world units)
NODE_SEPARATION = 50
RANK_SEPARATION = 100
MARGIN_X = 50
MARGIN_Y = 50

ORDERING_SWEEPS = 4


class LayoutDirection(str, Enum):
    """Flow direction of ranks."""
    TOP_BOTTOM = "TB"
    BOTTOM_TOP = "BT"
    LEFT_RIGHT = "LR"
    RIGHT_LEFT = "RL"


def greedy_fas_ordering(graph: nx.DiGraph) -> list[str]:
    """
    Order nodes so that few edges point backwards (Eades-Lin-Smyth).

    Sinks go to the tail, sources to the head; inside cycles the node with the
    largest out-degree surplus goes to the head. Ties follow graph insertion
    order so the result is deterministic.
    """
    order = {node: i for i, node in enumerate(graph.nodes)}
    active = set(graph.nodes)
    out_deg = {n: sum(1 for s in graph.successors(n) if s != n) for n in graph.nodes}
    in_deg = {n: sum(1 for p in graph.predecessors(n) if p != n) for n in graph.nodes}

    head: list[str] = []
    tail: list[str] = []

    def remove(node: str):
        active.discard(node)
        for succ in graph.successors(node):
            if succ in active:
                in_deg[succ] -= 1
        for pred in graph.predecessors(node):
            if pred in active:
                out_deg[pred] -= 1

    while active:
        changed = True
        while changed:
            changed = False
            for node in sorted((n for n in active if out_deg[n] == 0), key=order.get):
                remove(node)
                tail.append(node)
                changed = True
            for node in sorted((n for n in active if in_deg[n] == 0), key=order.get):
                remove(node)
                head.append(node)
                changed = True

        if active:
            best = max(sorted(active, key=order.get), key=lambda n: out_deg[n] - in_deg[n])
            remove(best)
            head.append(best)

    tail.reverse()
    return head + tail


def make_acyclic(graph: nx.DiGraph) -> nx.DiGraph:
    """Copy of the graph with back-edges reversed and self-loops dropped."""
    position = {node: i for i, node in enumerate(greedy_fas_ordering(graph))}
    dag = nx.DiGraph()
    dag.add_nodes_from(graph.nodes(data=True))
    for source, target in graph.edges():
        if source == target:
            continue
        if position[source] > position[target]:
            dag.add_edge(target, source)
        else:
            dag.add_edge(source, target)
    return dag


def assign_ranks(dag: nx.DiGraph) -> dict[str, int]:
    """Longest-path ranking: every edge goes from a lower rank to a higher one."""
    ranks: dict[str, int] = {}
    for node in nx.topological_sort(dag):
        preds = [ranks[p] for p in dag.predecessors(node)]
        ranks[node] = max(preds) + 1 if preds else 0
    return ranks


def order_ranks(graph: nx.DiGraph, ranks: dict[str, int]) -> list[list[str]]:
    """
    Group nodes by rank and reduce crossings with barycenter sweeps.

    Initial order inside each rank is graph insertion order.
    """
    layer_count = (max(ranks.values()) + 1) if ranks else 0
    layers: list[list[str]] = [[] for _ in range(layer_count)]
    for node in graph.nodes:
        layers[ranks[node]].append(node)

    undirected = graph.to_undirected(as_view=True)

    def sweep(indices, neighbour_offset: int):
        for i in indices:
            fixed = layers[i + neighbour_offset]
            fixed_pos = {node: p for p, node in enumerate(fixed)}
            current_pos = {node: p for p, node in enumerate(layers[i])}

            def barycenter(node: str) -> float:
                neighbours = [fixed_pos[n] for n in undirected.neighbors(node) if n in fixed_pos]
                if not neighbours:
                    return float(current_pos[node])
                return sum(neighbours) / len(neighbours)

            layers[i].sort(key=lambda n: (barycenter(n), current_pos[n]))

    for _ in range(ORDERING_SWEEPS):
        sweep(range(1, layer_count), -1)
        sweep(range(layer_count - 2, -1, -1), 1)

    return layers


def layered_layout(
    graph: nx.DiGraph,
    direction: LayoutDirection | str = LayoutDirection.LEFT_RIGHT,
    node_separation: float = NODE_SEPARATION,
    rank_separation: float = RANK_SEPARATION,
    margin_x: float = MARGIN_X,
    margin_y: float = MARGIN_Y,
) -> dict[str, Point]:
    """
    Lay out a directed graph in ranks.

    Args:
        graph: Nodes must carry `width` and `height` attributes
        direction: Rank flow direction (TB, BT, LR, RL)
        node_separation: Gap between neighbouring nodes in the same rank
        rank_separation: Gap between consecutive ranks
        margin_x: Left margin of the drawing
        margin_y: Top margin of the drawing

    Returns:
        Mapping of node id to its CENTER point
    """
    direction = LayoutDirection(direction)
    if graph.number_of_nodes() == 0:
        return {}

    dag = make_acyclic(graph)
    ranks = assign_ranks(dag)
    layers = order_ranks(dag, ranks)

    horizontal = direction in (LayoutDirection.LEFT_RIGHT, LayoutDirection.RIGHT_LEFT)

    def along_rank(node: str) -> float:
        # Extent of a node along the axis ranks advance on
        attrs = graph.nodes[node]
        return attrs["width"] if horizontal else attrs["height"]

    def across_rank(node: str) -> float:
        attrs = graph.nodes[node]
        return attrs["height"] if horizontal else attrs["width"]

    # Rank axis: each rank is as thick as its largest node
    thickness = [max(along_rank(n) for n in layer) for layer in layers]
    rank_centers: list[float] = []
    cursor = 0.0
    for t in thickness:
        rank_centers.append(cursor + t / 2)
        cursor += t + rank_separation
    total_depth = cursor - rank_separation

    if direction in (LayoutDirection.BOTTOM_TOP, LayoutDirection.RIGHT_LEFT):
        rank_centers = [total_depth - c for c in rank_centers]

    # Cross axis: pack each rank, then center it against the widest rank
    spans = [
        sum(across_rank(n) for n in layer) + node_separation * (len(layer) - 1)
        for layer in layers
    ]
    widest = max(spans)

    centers: dict[str, Point] = {}
    for rank, layer in enumerate(layers):
        offset = (widest - spans[rank]) / 2
        for node in layer:
            size = across_rank(node)
            main = rank_centers[rank]
            cross = offset + size / 2
            offset += size + node_separation
            if horizontal:
                centers[node] = (margin_x + main, margin_y + cross)
            else:
                centers[node] = (margin_x + cross, margin_y + main)

    return centers


def build_table_graph(tables: list["Table"], relationships: list["Relationship"]) -> nx.DiGraph:
    """Tables become sized nodes, relationships become directed edges."""
    graph = nx.DiGraph()
    for table in tables:
        graph.add_node(table.id, width=table.width, height=table.height)
    for rel in relationships:
        if rel.from_table in graph and rel.to_table in graph:
            graph.add_edge(rel.from_table, rel.to_table)
    return graph


def compute_table_positions(
    tables: list["Table"],
    relationships: list["Relationship"],
    direction: LayoutDirection | str = LayoutDirection.LEFT_RIGHT,
) -> dict[str, "Position"]:
    """
    Compute top-left positions for every table.

    Returns:
        Mapping of table id to its new Position
    """
    from .models import Position

    graph = build_table_graph(tables, relationships)
    centers = layered_layout(graph, direction)

    positions: dict[str, Position] = {}
    for table in tables:
        cx, cy = centers[table.id]
        positions[table.id] = Position(x=cx - table.width / 2, y=cy - table.height / 2)
    return positions
