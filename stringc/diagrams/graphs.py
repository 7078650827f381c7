"""
NetworkX views of diagrams, used for cycle detection and dependency ordering.
"""

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

from __future__ import annotations
from collections.abc import Collection
from typing import Final, Literal, TypeAlias
import networkx as nx  # type: ignore

if __debug__:
    from beartype.door import is_bearable

from .diagrams import Diagram
from .wirings import BoundarySide, BoundarySlot, Endpoint

DiagramGraphNode: TypeAlias = (
    tuple[Literal["boundary"], BoundarySide]  # ("boundary", side)
    | tuple[Literal["node"], str]  # ("node", node_id)
)
"""
Type alias for a node in the NetworkX graph representing a diagram.
The two sides of the boundary are synthetic nodes, a unique source and sink.
"""

BOUNDARY_INPUT: Final[DiagramGraphNode] = ("boundary", "input")
"""Graph node for the input side of the boundary."""

BOUNDARY_OUTPUT: Final[DiagramGraphNode] = ("boundary", "output")
"""Graph node for the output side of the boundary."""


def endpoint_node(endpoint: Endpoint) -> DiagramGraphNode:
    """The graph node owning a given endpoint."""
    if isinstance(endpoint, BoundarySlot):
        return ("boundary", endpoint.side)
    return ("node", endpoint.node)


def diagram_to_nx_graph(
    diagram: Diagram,
    *,
    skip_wires: Collection[str] = (),
    skip_nodes: Collection[str] = (),
) -> nx.MultiDiGraph:
    """
    Utility function converting a diagram to a NetworkX multi-digraph, with one
    graph node per diagram node plus the two boundary sides, and one edge per wire
    (keyed by wire id) from its source's owner to its target's owner.
    """
    assert is_bearable(diagram, Diagram)
    graph = nx.MultiDiGraph()
    graph.add_node(BOUNDARY_INPUT)
    graph.add_nodes_from(
        ("node", node_id) for node_id in diagram.nodes if node_id not in skip_nodes
    )
    graph.add_node(BOUNDARY_OUTPUT)
    for wire in diagram.wires.values():
        if wire.id in skip_wires:
            continue
        u, v = endpoint_node(wire.source), endpoint_node(wire.target)
        if u not in graph or v not in graph:
            continue
        graph.add_edge(u, v, key=wire.id)
    return graph


def cyclic_components(
    diagram: Diagram, *, skip_wires: Collection[str] = ()
) -> list[list[str]]:
    """
    Node ids of the strongly connected components of the dependency graph which
    contain a cycle, each sorted, in ascending order of their least node id.
    """
    graph = diagram_to_nx_graph(diagram, skip_wires=skip_wires)
    components: list[list[str]] = []
    for component in nx.strongly_connected_components(graph):
        if len(component) == 1:
            (n,) = component
            if not graph.has_edge(n, n):
                continue
        node_ids = sorted(n[1] for n in component if n[0] == "node")
        if node_ids:
            components.append(node_ids)
    return sorted(components)


def _order_key(n: DiagramGraphNode) -> tuple[int, str]:
    if n == BOUNDARY_INPUT:
        return (0, "")
    if n == BOUNDARY_OUTPUT:
        return (2, "")
    return (1, n[1])


def dependency_order(
    diagram: Diagram, *, skip_wires: Collection[str] = ()
) -> list[str]:
    """
    Node ids in topological order of the dependency graph, with ties broken by
    ascending node id, so that the order is a function of the diagram alone.
    Raises :class:`ValueError` if the diagram has a cycle.
    """
    graph = diagram_to_nx_graph(diagram, skip_wires=skip_wires)
    node_ids = [n for n in graph.nodes if n[0] == "node"]
    graph.add_edges_from((BOUNDARY_INPUT, n) for n in node_ids)
    graph.add_edges_from((n, BOUNDARY_OUTPUT) for n in node_ids)
    try:
        order = list(nx.lexicographical_topological_sort(graph, key=_order_key))
    except nx.NetworkXUnfeasible:
        raise ValueError("Diagram has a cycle.") from None
    return [n[1] for n in order if n[0] == "node"]
