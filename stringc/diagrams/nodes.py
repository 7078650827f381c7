"""
Implementation of nodes, ports and node kinds for the :mod:`stringc.diagrams` module.
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
from collections.abc import Iterable, Mapping
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final, Literal, Self, TypeAlias, final

if __debug__:
    from beartype.door import is_bearable

from .types import I, Hom, Signature, Tensor, Type, Var, coerce_type

if TYPE_CHECKING:
    from .wirings import PortRef


PortDirection: TypeAlias = Literal["input", "output"]
"""Type alias for the direction of a port, from the point of view of its node."""

PORT_DIRECTIONS: Final[tuple[PortDirection, ...]] = ("input", "output")
"""Possible directions of ports."""


class NodeKind(Enum):
    """
    The closed set of node kinds.
    Boxes are labelled operations, all other kinds are structural.
    """

    BOX = "box"
    IDENTITY = "identity"
    BRAIDING = "braiding"
    ASSOCIATOR_LEFT = "associator-left"
    ASSOCIATOR_RIGHT = "associator-right"
    UNITOR_LEFT = "unitor-left"
    UNITOR_RIGHT = "unitor-right"

    @property
    def is_structural(self) -> bool:
        """Whether nodes of this kind are structural (i.e. not boxes)."""
        return self is not NodeKind.BOX

    @property
    def schema(self) -> Schema | None:
        """The schema for a structural kind, or :obj:`None` for boxes."""
        return _SCHEMAS.get(self)


@final
class Schema:
    """
    Schema for a structural node kind: the types of its ports, as a signature over
    type variables, together with the categorical morphism type it denotes.

    Port lists are the strict view of a tensor: bracketing and unit legs carry no
    wires, so they only show up in :attr:`morphism`.
    """

    __signature: Signature
    __morphism: Hom

    __slots__ = ("__weakref__", "__signature", "__morphism")

    def __new__(cls, signature: Signature, morphism: Hom) -> Self:
        """
        Constructs a schema.

        :meta public:
        """
        if not morphism.free_vars <= signature.free_vars:
            raise ValueError("Morphism type has variables not occurring on ports.")
        self = super().__new__(cls)
        self.__signature = signature
        self.__morphism = morphism
        return self

    @property
    def signature(self) -> Signature:
        """Port-level signature over type variables."""
        return self.__signature

    @property
    def morphism(self) -> Hom:
        """The morphism type, for display."""
        return self.__morphism

    @property
    def variables(self) -> tuple[str, ...]:
        """Type variables of the schema, in order of first occurrence."""
        seen: dict[str, None] = {}
        for t in self.__signature.inputs + self.__signature.outputs:
            for name in sorted(t.free_vars):
                seen.setdefault(name, None)
        return tuple(seen)

    @property
    def num_inputs(self) -> int:
        """Number of input ports."""
        return len(self.__signature.inputs)

    @property
    def num_outputs(self) -> int:
        """Number of output ports."""
        return len(self.__signature.outputs)

    def instantiate(self, suffix: str) -> Signature:
        """
        Returns the port-level signature with every variable renamed apart,
        by appending the given suffix to its name.
        """
        return self.__signature.substitute(
            {name: Var(f"{name}{suffix}") for name in self.variables}
        )

    def __repr__(self) -> str:
        return f"<Schema {str(self.__morphism)!r}>"


def _schemas() -> dict[NodeKind, Schema]:
    x, y, z = Var("X"), Var("Y"), Var("Z")
    return {
        NodeKind.IDENTITY: Schema(Signature([x], [x]), Hom(x, x)),
        NodeKind.BRAIDING: Schema(
            Signature([x, y], [y, x]), Hom(Tensor(x, y), Tensor(y, x))
        ),
        NodeKind.ASSOCIATOR_LEFT: Schema(
            Signature([x, y, z], [x, y, z]),
            Hom(Tensor(x, Tensor(y, z)), Tensor(Tensor(x, y), z)),
        ),
        NodeKind.ASSOCIATOR_RIGHT: Schema(
            Signature([x, y, z], [x, y, z]),
            Hom(Tensor(Tensor(x, y), z), Tensor(x, Tensor(y, z))),
        ),
        NodeKind.UNITOR_LEFT: Schema(Signature([x], [x]), Hom(Tensor(I, x), x)),
        NodeKind.UNITOR_RIGHT: Schema(Signature([x], [x]), Hom(Tensor(x, I), x)),
    }


_SCHEMAS: Final[Mapping[NodeKind, Schema]] = MappingProxyType(_schemas())


def coerce_kind(kind: NodeKind | str) -> NodeKind:
    """Returns the node kind with the given name, raising :class:`ValueError`."""
    if isinstance(kind, NodeKind):
        return kind
    try:
        return NodeKind(kind)
    except ValueError:
        raise ValueError(f"Unknown node kind {kind!r}.") from None


@final
class Port:
    """
    A port of a node: an identifier, unique across the diagram, and a type.
    The type is optional, as structural nodes have their port types resolved
    by the checker.
    """

    __id: str
    __type: Type | None

    __slots__ = ("__weakref__", "__id", "__type")

    def __new__(cls, id: str, type: Type | None = None) -> Self:
        """
        Constructs a port.

        :meta public:
        """
        assert is_bearable(id, str)
        assert is_bearable(type, Type | None)
        if not id:
            raise ValueError("Port identifiers cannot be empty.")
        self = super().__new__(cls)
        self.__id = id
        self.__type = type
        return self

    @property
    def id(self) -> str:
        """Identifier of the port."""
        return self.__id

    @property
    def type(self) -> Type | None:
        """Declared type of the port, if any."""
        return self.__type

    def with_type(self, type: Type | None) -> Port:
        """Returns a port with the same identifier and the given type."""
        return Port(self.__id, type)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Port):
            return NotImplemented
        return self.__id == other.__id and self.__type is other.__type

    def __hash__(self) -> int:
        return hash((Port, self.__id, self.__type))

    def __repr__(self) -> str:
        if self.__type is None:
            return f"<Port {self.__id!r}>"
        return f"<Port {self.__id!r}: {self.__type}>"


@final
class Node:
    """
    A node in a diagram: either a labelled box or a structural node.
    Nodes are immutable and can be shared between diagrams.
    """

    __id: str
    __kind: NodeKind
    __label: str | None
    __inputs: tuple[Port, ...]
    __outputs: tuple[Port, ...]
    __meta: MappingProxyType[str, Any]
    __port_index: dict[str, tuple[PortDirection, int]]

    __slots__ = (
        "__weakref__",
        "__id",
        "__kind",
        "__label",
        "__inputs",
        "__outputs",
        "__meta",
        "__port_index",
    )

    def __new__(
        cls,
        id: str,
        kind: NodeKind | str,
        inputs: Iterable[Port],
        outputs: Iterable[Port],
        *,
        label: str | None = None,
        meta: Mapping[str, Any] | None = None,
    ) -> Self:
        """
        Constructs a node.

        :meta public:
        """
        assert is_bearable(id, str)
        assert is_bearable(label, str | None)
        kind = coerce_kind(kind)
        inputs, outputs = tuple(inputs), tuple(outputs)
        assert is_bearable(inputs, tuple[Port, ...])
        assert is_bearable(outputs, tuple[Port, ...])
        if not id:
            raise ValueError("Node identifiers cannot be empty.")
        if kind is NodeKind.BOX and not label:
            raise ValueError(f"Box node {id!r} must have a label.")
        port_index: dict[str, tuple[PortDirection, int]] = {}
        for direction, ports in (("input", inputs), ("output", outputs)):
            for idx, port in enumerate(ports):
                if port.id in port_index:
                    raise ValueError(f"Duplicate port id {port.id!r} on node {id!r}.")
                port_index[port.id] = (direction, idx)  # type: ignore[assignment]
        self = super().__new__(cls)
        self.__id = id
        self.__kind = kind
        self.__label = label
        self.__inputs = inputs
        self.__outputs = outputs
        self.__meta = MappingProxyType(dict(meta) if meta is not None else {})
        self.__port_index = port_index
        return self

    @property
    def id(self) -> str:
        """Identifier of the node."""
        return self.__id

    @property
    def kind(self) -> NodeKind:
        """Kind of the node."""
        return self.__kind

    @property
    def label(self) -> str | None:
        """Label of the node, naming the operation for boxes."""
        return self.__label

    @property
    def inputs(self) -> tuple[Port, ...]:
        """Ordered input ports."""
        return self.__inputs

    @property
    def outputs(self) -> tuple[Port, ...]:
        """Ordered output ports."""
        return self.__outputs

    @property
    def ports(self) -> tuple[Port, ...]:
        """Input ports followed by output ports."""
        return self.__inputs + self.__outputs

    @property
    def meta(self) -> Mapping[str, Any]:
        """Opaque passthrough data, e.g. the position of the node on a canvas."""
        return self.__meta

    @property
    def is_structural(self) -> bool:
        """Whether the node is structural."""
        return self.__kind.is_structural

    @property
    def signature(self) -> Signature | None:
        """
        Signature given by the declared port types,
        or :obj:`None` if some port has no declared type.
        """
        types = [port.type for port in self.ports]
        if any(t is None for t in types):
            return None
        n = len(self.__inputs)
        return Signature(types[:n], types[n:])  # type: ignore[arg-type]

    def has_port(self, port_id: str) -> bool:
        """Whether the node has a port with the given identifier."""
        return port_id in self.__port_index

    def locate(self, port_id: str) -> tuple[PortDirection, int]:
        """
        Direction and position of the port with given identifier.
        Raises :class:`KeyError` if the node has no such port.
        """
        return self.__port_index[port_id]

    def port(self, port_id: str) -> Port:
        """The port with given identifier."""
        direction, idx = self.__port_index[port_id]
        return (self.__inputs if direction == "input" else self.__outputs)[idx]

    def ref(self, port: Port | str) -> PortRef:
        """Endpoint reference to one of this node's ports."""
        from .wirings import PortRef

        port_id = port if isinstance(port, str) else port.id
        if port_id not in self.__port_index:
            raise ValueError(f"Node {self.__id!r} has no port {port_id!r}.")
        return PortRef(self.__id, port_id)

    def input_refs(self) -> tuple[PortRef, ...]:
        """Endpoint references to the input ports, in order."""
        return tuple(self.ref(port) for port in self.__inputs)

    def output_refs(self) -> tuple[PortRef, ...]:
        """Endpoint references to the output ports, in order."""
        return tuple(self.ref(port) for port in self.__outputs)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        if self is other:
            return True
        return (
            self.__id == other.__id
            and self.__kind is other.__kind
            and self.__label == other.__label
            and self.__inputs == other.__inputs
            and self.__outputs == other.__outputs
            and self.__meta == other.__meta
        )

    def __hash__(self) -> int:
        return hash((Node, self.__id, self.__kind, self.__inputs, self.__outputs))

    def __repr__(self) -> str:
        attrs = [self.__kind.value]
        if self.__label is not None:
            attrs.append(repr(self.__label))
        attrs.append(f"{len(self.__inputs)} inputs")
        attrs.append(f"{len(self.__outputs)} outputs")
        return f"<Node {self.__id!r}: {", ".join(attrs)}>"


@final
class NodeSpec:
    """
    A template for nodes to be added to a diagram builder: a kind, an optional
    label and the port types (where known).

    Supports usage of the ``@`` operator with selected endpoints on the rhs,
    enabling special syntax for addition of nodes to diagram builders:

    .. code-block:: python

        a, b = diag.add_inputs(["Int", "Int"])
        s, = add @ diag[a, b]

    """

    @classmethod
    def box(
        cls,
        label: str,
        inputs: Iterable[Type | str],
        outputs: Iterable[Type | str],
    ) -> NodeSpec:
        """Template for a box with given label and port types."""
        assert is_bearable(label, str)
        return cls._new(
            NodeKind.BOX,
            label,
            tuple(map(coerce_type, inputs)),
            tuple(map(coerce_type, outputs)),
        )

    @classmethod
    def structural(cls, kind: NodeKind | str) -> NodeSpec:
        """Template for a structural node, with port types left to the checker."""
        kind = coerce_kind(kind)
        schema = kind.schema
        if schema is None:
            raise ValueError("Box templates must be created with NodeSpec.box.")
        return cls._new(
            kind, None, (None,) * schema.num_inputs, (None,) * schema.num_outputs
        )

    @classmethod
    def _new(
        cls,
        kind: NodeKind,
        label: str | None,
        inputs: tuple[Type | None, ...],
        outputs: tuple[Type | None, ...],
    ) -> Self:
        """Protected constructor."""
        self = super().__new__(cls)
        self.__kind = kind
        self.__label = label
        self.__inputs = inputs
        self.__outputs = outputs
        return self

    __kind: NodeKind
    __label: str | None
    __inputs: tuple[Type | None, ...]
    __outputs: tuple[Type | None, ...]

    __slots__ = ("__weakref__", "__kind", "__label", "__inputs", "__outputs")

    def __new__(cls, signature: Signature, label: str) -> Self:
        """
        Template for a box with given label and signature.

        :meta public:
        """
        assert is_bearable(signature, Signature)
        return cls._new(NodeKind.BOX, label, signature.inputs, signature.outputs)

    @property
    def kind(self) -> NodeKind:
        """Kind of the nodes produced."""
        return self.__kind

    @property
    def label(self) -> str | None:
        """Label of the nodes produced."""
        return self.__label

    @property
    def inputs(self) -> tuple[Type | None, ...]:
        """Input port types, :obj:`None` where left to the checker."""
        return self.__inputs

    @property
    def outputs(self) -> tuple[Type | None, ...]:
        """Output port types, :obj:`None` where left to the checker."""
        return self.__outputs

    def __repr__(self) -> str:
        name = self.__label if self.__label is not None else self.__kind.value
        return f"<NodeSpec {name!r}: {len(self.__inputs)} -> {len(self.__outputs)}>"
