"""
Implementation of wires, endpoints and boundaries for the :mod:`stringc.diagrams` module.
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
from collections.abc import Iterable
from typing import Any, Final, Literal, Self, TypeAlias, final

if __debug__:
    from beartype.door import is_bearable

from .types import Type

BoundarySide: TypeAlias = Literal["input", "output"]
"""
Type alias for the side of the diagram boundary:

- ``"input"`` slots are sources of values flowing into the diagram;
- ``"output"`` slots are targets of values flowing out of the diagram.

"""

BOUNDARY_SIDES: Final[tuple[BoundarySide, ...]] = ("input", "output")
"""Possible sides of the diagram boundary."""


@final
class BoundarySlot:
    """A positional slot on one side of the diagram boundary."""

    __side: BoundarySide
    __index: int

    __slots__ = ("__weakref__", "__side", "__index")

    def __new__(cls, side: BoundarySide, index: int) -> Self:
        """
        Constructs a boundary slot.

        :meta public:
        """
        assert is_bearable(index, int)
        if side not in BOUNDARY_SIDES:
            raise ValueError(f"Invalid boundary side {side!r}.")
        if index < 0:
            raise ValueError("Boundary slot index must be non-negative.")
        self = super().__new__(cls)
        self.__side = side
        self.__index = index
        return self

    @property
    def side(self) -> BoundarySide:
        """Side of the boundary."""
        return self.__side

    @property
    def index(self) -> int:
        """Position on that side of the boundary."""
        return self.__index

    @property
    def sort_key(self) -> tuple[int, str, int, str]:
        """Key for deterministic ordering of endpoints."""
        return (0 if self.__side == "input" else 2, "", self.__index, "")

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, BoundarySlot):
            return NotImplemented
        return self.__side == other.__side and self.__index == other.__index

    def __hash__(self) -> int:
        return hash((BoundarySlot, self.__side, self.__index))

    def __str__(self) -> str:
        return f"boundary.{self.__side}[{self.__index}]"

    def __repr__(self) -> str:
        return f"BoundarySlot({self.__side!r}, {self.__index})"


@final
class PortRef:
    """A reference to a port of a node, by node and port identifiers."""

    __node: str
    __port: str

    __slots__ = ("__weakref__", "__node", "__port")

    def __new__(cls, node: str, port: str) -> Self:
        """
        Constructs a port reference.

        :meta public:
        """
        assert is_bearable(node, str)
        assert is_bearable(port, str)
        self = super().__new__(cls)
        self.__node = node
        self.__port = port
        return self

    @property
    def node(self) -> str:
        """Identifier of the node."""
        return self.__node

    @property
    def port(self) -> str:
        """Identifier of the port."""
        return self.__port

    @property
    def sort_key(self) -> tuple[int, str, int, str]:
        """Key for deterministic ordering of endpoints."""
        return (1, self.__node, 0, self.__port)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, PortRef):
            return NotImplemented
        return self.__node == other.__node and self.__port == other.__port

    def __hash__(self) -> int:
        return hash((PortRef, self.__node, self.__port))

    def __str__(self) -> str:
        return f"{self.__node}.{self.__port}"

    def __repr__(self) -> str:
        return f"PortRef({self.__node!r}, {self.__port!r})"


Endpoint: TypeAlias = BoundarySlot | PortRef
"""Type alias for an endpoint of a wire: a boundary slot or a node port."""


@final
class Wire:
    """A directed wire, connecting a source endpoint to a target endpoint."""

    __id: str
    __source: Endpoint
    __target: Endpoint

    __slots__ = ("__weakref__", "__id", "__source", "__target")

    def __new__(cls, id: str, source: Endpoint, target: Endpoint) -> Self:
        """
        Constructs a wire.

        :meta public:
        """
        assert is_bearable(id, str)
        assert is_bearable(source, Endpoint)
        assert is_bearable(target, Endpoint)
        if not id:
            raise ValueError("Wire identifiers cannot be empty.")
        self = super().__new__(cls)
        self.__id = id
        self.__source = source
        self.__target = target
        return self

    @property
    def id(self) -> str:
        """Identifier of the wire."""
        return self.__id

    @property
    def source(self) -> Endpoint:
        """Source endpoint of the wire."""
        return self.__source

    @property
    def target(self) -> Endpoint:
        """Target endpoint of the wire."""
        return self.__target

    @property
    def endpoints(self) -> tuple[Endpoint, Endpoint]:
        """Source and target endpoints of the wire."""
        return (self.__source, self.__target)

    @property
    def touches_boundary(self) -> bool:
        """Whether either endpoint of the wire is a boundary slot."""
        return isinstance(self.__source, BoundarySlot) or isinstance(
            self.__target, BoundarySlot
        )

    def with_source(self, source: Endpoint) -> Wire:
        """Returns a wire with the same id and target, and the given source."""
        return Wire(self.__id, source, self.__target)

    def with_target(self, target: Endpoint) -> Wire:
        """Returns a wire with the same id and source, and the given target."""
        return Wire(self.__id, self.__source, target)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Wire):
            return NotImplemented
        return (
            self.__id == other.__id
            and self.__source == other.__source
            and self.__target == other.__target
        )

    def __hash__(self) -> int:
        return hash((Wire, self.__id, self.__source, self.__target))

    def __repr__(self) -> str:
        return f"<Wire {self.__id!r}: {self.__source} -> {self.__target}>"


@final
class Boundary:
    """
    The boundary of a diagram: the ordered types of its inputs and outputs.
    """

    __inputs: tuple[Type, ...]
    __outputs: tuple[Type, ...]

    __slots__ = ("__weakref__", "__inputs", "__outputs")

    def __new__(
        cls, inputs: Iterable[Type] = (), outputs: Iterable[Type] = ()
    ) -> Self:
        """
        Constructs a boundary.

        :meta public:
        """
        inputs, outputs = tuple(inputs), tuple(outputs)
        assert is_bearable(inputs, tuple[Type, ...])
        assert is_bearable(outputs, tuple[Type, ...])
        self = super().__new__(cls)
        self.__inputs = inputs
        self.__outputs = outputs
        return self

    @property
    def inputs(self) -> tuple[Type, ...]:
        """Types of the boundary inputs."""
        return self.__inputs

    @property
    def outputs(self) -> tuple[Type, ...]:
        """Types of the boundary outputs."""
        return self.__outputs

    @property
    def slots(self) -> tuple[BoundarySlot, ...]:
        """All boundary slots, inputs first."""
        return tuple(BoundarySlot("input", i) for i in range(len(self.__inputs))) + (
            tuple(BoundarySlot("output", i) for i in range(len(self.__outputs)))
        )

    def has_slot(self, slot: BoundarySlot) -> bool:
        """Whether the given slot exists on this boundary."""
        types = self.__inputs if slot.side == "input" else self.__outputs
        return slot.index < len(types)

    def type_of(self, slot: BoundarySlot) -> Type:
        """Type declared for the given slot."""
        types = self.__inputs if slot.side == "input" else self.__outputs
        return types[slot.index]

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Boundary):
            return NotImplemented
        return self.__inputs == other.__inputs and self.__outputs == other.__outputs

    def __hash__(self) -> int:
        return hash((Boundary, self.__inputs, self.__outputs))

    def __str__(self) -> str:
        ins = ", ".join(map(str, self.__inputs))
        outs = ", ".join(map(str, self.__outputs))
        return f"[{ins}] -> [{outs}]"

    def __repr__(self) -> str:
        return f"<Boundary {str(self)!r}>"
