"""Weighted grid distances from deliverer cells to constructor cells.

Distances come from a NetworkX digraph over the visitable terrain. Edges
pointing into congested "problem cells" near a constructor cost
``PROBLEM_EDGE_WEIGHT`` instead of 1, steering deliverers around crowds.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping

import networkx as nx

from joint_planner.config.constants import (
    PROBLEM_CELL_DISTANCE,
    PROBLEM_CELL_LIMIT,
    PROBLEM_EDGE_WEIGHT,
)
from joint_planner.domain.geometry import Bounds, Position, neighbours_at_most, neighbours_exactly


def problem_cells(
    constructor_positions: Iterable[Position],
    candidates: Collection[Position],
    bounds: Bounds,
    distance: int = PROBLEM_CELL_DISTANCE,
    limit: int = PROBLEM_CELL_LIMIT,
) -> frozenset[Position]:
    """Candidates around constructors whose surroundings hold at least ``limit`` of them.

    Candidates are obstacles, agents and their attached blocks.
    """
    cells: set[Position] = set()
    for con_pos in constructor_positions:
        crowd = {p for p in neighbours_at_most(con_pos, distance, bounds) if p in candidates}
        if len(crowd) >= limit:
            cells |= crowd
    return frozenset(cells)


def _edge_weight(target: Position, congested: Collection[Position]) -> float:
    return PROBLEM_EDGE_WEIGHT if target in congested else 1.0


def build_grid_graph(
    vertices: Collection[Position],
    targets: Collection[Position],
    bounds: Bounds,
    congested: Collection[Position],
) -> nx.DiGraph:
    """Digraph on ``vertices`` with unit-step edges into ``targets``."""
    graph = nx.DiGraph()
    graph.add_nodes_from(vertices)
    for p1 in vertices:
        for p2 in neighbours_exactly(p1, 1, bounds):
            if p2 in targets:
                graph.add_edge(p1, p2, weight=_edge_weight(p2, congested))
    return graph


def distances_to_cells(
    graph: nx.DiGraph,
    sources: Iterable[Position],
    goal_cells: Collection[Position],
    visitable: Collection[Position],
    bounds: Bounds,
    congested: Collection[Position],
) -> dict[Position, float]:
    """Shortest weighted distance from every source to its nearest goal cell.

    Edges into the goal cells (from goal cells and from their visitable
    neighbours) are added only for this query and removed afterwards.
    Unreachable sources map to ``inf``.
    """
    added: list[tuple[Position, Position]] = []
    entry_cells = set(goal_cells)
    for goal in goal_cells:
        entry_cells.update(p for p in neighbours_exactly(goal, 1, bounds) if p in visitable)
    for p1 in entry_cells:
        for p2 in neighbours_exactly(p1, 1, bounds):
            if p2 in goal_cells and not graph.has_edge(p1, p2):
                graph.add_edge(p1, p2, weight=_edge_weight(p2, congested))
                added.append((p1, p2))
    try:
        reachable_goals = [g for g in goal_cells if g in graph]
        lengths: Mapping[Position, float] = (
            nx.multi_source_dijkstra_path_length(graph.reverse(copy=False), reachable_goals)
            if reachable_goals
            else {}
        )
        return {p: float(lengths.get(p, float("inf"))) for p in sources}
    finally:
        graph.remove_edges_from(added)


def integer_distances(distances: Mapping[Position, float], unreachable: int) -> dict[Position, int]:
    """Round finite distances; unreachable cells get the ``unreachable`` penalty."""
    return {
        p: unreachable if d == float("inf") else int(round(d)) for p, d in distances.items()
    }
