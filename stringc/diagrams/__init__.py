"""
String diagrams for symmetric monoidal categories.

Diagrams (cf. :class:`Diagram`) consist of nodes (cf. :class:`Node`), either labelled
boxes or structural nodes (cf. :class:`NodeKind`), with ordered typed ports
(cf. :class:`Port`), connected by directed wires (cf. :class:`Wire`) to each other
and to the diagram boundary (cf. :class:`Boundary`). Types (cf. :class:`Type`) are
built from base types, tensor products, linear function types and the unit.
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

from .types import (
    Type,
    Base,
    Var,
    UnitType,
    Tensor,
    Hom,
    I,
    Signature,
    Substitution,
    TypeSyntaxError,
    coerce_type,
    match,
    parse_type,
    parse_types,
    tensor_of,
)
from .nodes import Node, NodeKind, NodeSpec, Port, PortDirection, Schema
from .wirings import Boundary, BoundarySide, BoundarySlot, Endpoint, PortRef, Wire
from .diagrams import Diagram, DiagramBuilder, SelectedEndpoints
from .graphs import cyclic_components, dependency_order, diagram_to_nx_graph

__all__ = (
    "Type",
    "Base",
    "Var",
    "UnitType",
    "Tensor",
    "Hom",
    "I",
    "Signature",
    "Substitution",
    "TypeSyntaxError",
    "coerce_type",
    "match",
    "parse_type",
    "parse_types",
    "tensor_of",
    "Node",
    "NodeKind",
    "NodeSpec",
    "Port",
    "PortDirection",
    "Schema",
    "Boundary",
    "BoundarySide",
    "BoundarySlot",
    "Endpoint",
    "PortRef",
    "Wire",
    "Diagram",
    "DiagramBuilder",
    "SelectedEndpoints",
    "cyclic_components",
    "dependency_order",
    "diagram_to_nx_graph",
)
