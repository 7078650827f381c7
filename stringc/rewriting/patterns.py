"""
Patterns and replacement fragments for diagram rewrite rules.
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
from collections.abc import Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import Any, Final, Literal, Self, TypeAlias, final

if __debug__:
    from beartype.door import is_bearable

from ..diagrams import NodeKind, Signature, Type, coerce_type
from ..diagrams.nodes import coerce_kind

PatternPort: TypeAlias = tuple[str, int]
"""
Type alias for a port of a pattern node, as the pair ``(name, index)`` of the
local name of the node and the position of the port.
Whether the port is an input or an output is implied by where it is used.
"""

PatternWire: TypeAlias = tuple[PatternPort, PatternPort]
"""
Type alias for an internal wire of a pattern, from an output port of a pattern
node to an input port of a pattern node.
"""

Attachment: TypeAlias = Literal["any", "node", "boundary"]
"""
Type alias for constraints on what lies outside an external slot of a pattern:

- ``"any"`` places no constraint;
- ``"node"`` requires the outside endpoint to be a node port;
- ``"boundary"`` requires the outside endpoint to be a boundary slot.

"""

ATTACHMENTS: Final[tuple[Attachment, ...]] = ("any", "node", "boundary")
"""Possible attachment constraints."""

SlotSide: TypeAlias = Literal["input", "output"]
"""Type alias for the side of an external slot of a pattern."""


@final
class PatternNode:
    """
    A node in a pattern or replacement fragment: a local name, a kind, the port
    types over the pattern's type variables and, optionally, a box label.
    """

    __name: str
    __kind: NodeKind
    __signature: Signature
    __label: str | None

    __slots__ = ("__weakref__", "__name", "__kind", "__signature", "__label")

    def __new__(
        cls,
        name: str,
        kind: NodeKind | str,
        signature: Signature | None = None,
        *,
        label: str | None = None,
    ) -> Self:
        """
        Constructs a pattern node. For structural kinds, the signature defaults
        to the schema of the kind.

        :meta public:
        """
        assert is_bearable(name, str)
        assert is_bearable(signature, Signature | None)
        kind = coerce_kind(kind)
        schema = kind.schema
        if signature is None:
            if schema is None:
                raise ValueError(f"Box pattern node {name!r} needs a signature.")
            signature = schema.signature
        elif schema is not None and (
            len(signature.inputs) != schema.num_inputs
            or len(signature.outputs) != schema.num_outputs
        ):
            raise ValueError(f"Signature for {name!r} does not fit its kind.")
        if schema is not None and label is not None:
            raise ValueError(f"Structural pattern node {name!r} cannot have a label.")
        self = super().__new__(cls)
        self.__name = name
        self.__kind = kind
        self.__signature = signature
        self.__label = label
        return self

    @classmethod
    def box(
        cls,
        name: str,
        label: str,
        inputs: Iterable[Type | str],
        outputs: Iterable[Type | str],
    ) -> PatternNode:
        """Pattern node for a box with the given label and port types."""
        signature = Signature(map(coerce_type, inputs), map(coerce_type, outputs))
        return cls(name, NodeKind.BOX, signature, label=label)

    @property
    def name(self) -> str:
        """Local name of the node within its pattern."""
        return self.__name

    @property
    def kind(self) -> NodeKind:
        """Kind of the node."""
        return self.__kind

    @property
    def signature(self) -> Signature:
        """Port types, over the type variables of the pattern."""
        return self.__signature

    @property
    def label(self) -> str | None:
        """Label required of matched boxes, if any."""
        return self.__label

    @property
    def num_inputs(self) -> int:
        """Number of input ports."""
        return len(self.__signature.inputs)

    @property
    def num_outputs(self) -> int:
        """Number of output ports."""
        return len(self.__signature.outputs)

    def __repr__(self) -> str:
        return f"<PatternNode {self.__name!r}: {self.__kind.value} {self.__signature}>"


def _index_nodes(nodes: Sequence[PatternNode]) -> dict[str, PatternNode]:
    index: dict[str, PatternNode] = {}
    for node in nodes:
        if node.name in index:
            raise ValueError(f"Duplicate pattern node name {node.name!r}.")
        index[node.name] = node
    return index


def _check_wires(
    nodes: Mapping[str, PatternNode], wires: Sequence[PatternWire]
) -> tuple[set[PatternPort], set[PatternPort]]:
    """Checks that internal wires are linear, returning the wired ports."""
    wired_out: set[PatternPort] = set()
    wired_in: set[PatternPort] = set()
    for (src, i), (tgt, j) in wires:
        if src not in nodes or tgt not in nodes:
            raise ValueError(f"Wire {(src, i)} -> {(tgt, j)} references unknown nodes.")
        if i not in range(nodes[src].num_outputs):
            raise ValueError(f"Invalid output port {(src, i)}.")
        if j not in range(nodes[tgt].num_inputs):
            raise ValueError(f"Invalid input port {(tgt, j)}.")
        if (src, i) in wired_out or (tgt, j) in wired_in:
            raise ValueError(f"Wire {(src, i)} -> {(tgt, j)} reuses a port.")
        wired_out.add((src, i))
        wired_in.add((tgt, j))
    return wired_in, wired_out


@final
class Pattern:
    """
    The left-hand side of a rewrite rule: pattern nodes, internal wires between
    their ports, and attachment constraints on the external slots.

    The external slots are the ports not wired internally: inputs and outputs,
    each ordered by pattern node order, then port position.
    """

    __nodes: tuple[PatternNode, ...]
    __wires: tuple[PatternWire, ...]
    __inputs: tuple[PatternPort, ...]
    __outputs: tuple[PatternPort, ...]
    __attachments: MappingProxyType[tuple[SlotSide, int], Attachment]

    __slots__ = (
        "__weakref__",
        "__nodes",
        "__wires",
        "__inputs",
        "__outputs",
        "__attachments",
    )

    def __new__(
        cls,
        nodes: Iterable[PatternNode],
        wires: Iterable[PatternWire] = (),
        attachments: Mapping[tuple[SlotSide, int], Attachment] | None = None,
    ) -> Self:
        """
        Constructs a pattern. Attachment constraints are keyed by slot side and
        slot position, and default to ``"any"``.

        :meta public:
        """
        _nodes, _wires = tuple(nodes), tuple(wires)
        assert is_bearable(_nodes, tuple[PatternNode, ...])
        if not _nodes:
            raise ValueError("Patterns must have at least one node.")
        index = _index_nodes(_nodes)
        wired_in, wired_out = _check_wires(index, _wires)
        inputs = tuple(
            (node.name, i)
            for node in _nodes
            for i in range(node.num_inputs)
            if (node.name, i) not in wired_in
        )
        outputs = tuple(
            (node.name, i)
            for node in _nodes
            for i in range(node.num_outputs)
            if (node.name, i) not in wired_out
        )
        _attachments = dict(attachments or {})
        for (side, idx), attach in _attachments.items():
            num_slots = len(inputs if side == "input" else outputs)
            if idx not in range(num_slots) or attach not in ATTACHMENTS:
                raise ValueError(f"Invalid attachment {attach!r} at {side} {idx}.")
        self = super().__new__(cls)
        self.__nodes = _nodes
        self.__wires = _wires
        self.__inputs = inputs
        self.__outputs = outputs
        self.__attachments = MappingProxyType(_attachments)
        return self

    @property
    def nodes(self) -> tuple[PatternNode, ...]:
        """Pattern nodes, in order."""
        return self.__nodes

    @property
    def wires(self) -> tuple[PatternWire, ...]:
        """Internal wires."""
        return self.__wires

    @property
    def inputs(self) -> tuple[PatternPort, ...]:
        """External input slots, as the input ports they belong to."""
        return self.__inputs

    @property
    def outputs(self) -> tuple[PatternPort, ...]:
        """External output slots, as the output ports they belong to."""
        return self.__outputs

    def attachment(self, side: SlotSide, index: int) -> Attachment:
        """Attachment constraint for the given external slot."""
        return self.__attachments.get((side, index), "any")

    @property
    def free_vars(self) -> frozenset[str]:
        """Type variables of the pattern."""
        return frozenset().union(*(node.signature.free_vars for node in self.__nodes))

    def __repr__(self) -> str:
        return (
            f"<Pattern {id(self):#x}: {len(self.__nodes)} nodes,"
            f" {len(self.__inputs)} inputs, {len(self.__outputs)} outputs>"
        )


@final
class PassThrough:
    """
    In a replacement fragment, connects an external slot directly to the external
    slot at the given position on the other side.
    """

    __index: int

    __slots__ = ("__weakref__", "__index")

    def __new__(cls, index: int) -> Self:
        """
        Constructs a pass-through to the slot at given position.

        :meta public:
        """
        assert is_bearable(index, int)
        self = super().__new__(cls)
        self.__index = index
        return self

    @property
    def index(self) -> int:
        """Position of the external slot on the other side."""
        return self.__index

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, PassThrough):
            return NotImplemented
        return self.__index == other.__index

    def __hash__(self) -> int:
        return hash((PassThrough, self.__index))

    def __repr__(self) -> str:
        return f"PassThrough({self.__index})"


SlotBinding: TypeAlias = PatternPort | PassThrough
"""
Type alias for what an external slot is connected to in a replacement fragment:
a port of a fragment node, or a pass-through.
"""


@final
class Fragment:
    """
    The right-hand side of a rewrite rule: nodes, internal wires, and a binding for
    each external slot of the left-hand side, in slot order.
    """

    __nodes: tuple[PatternNode, ...]
    __wires: tuple[PatternWire, ...]
    __inputs: tuple[SlotBinding, ...]
    __outputs: tuple[SlotBinding, ...]

    __slots__ = ("__weakref__", "__nodes", "__wires", "__inputs", "__outputs")

    def __new__(
        cls,
        nodes: Iterable[PatternNode] = (),
        wires: Iterable[PatternWire] = (),
        *,
        inputs: Iterable[SlotBinding],
        outputs: Iterable[SlotBinding],
    ) -> Self:
        """
        Constructs a replacement fragment.

        Every fragment node port must be covered exactly once, by an internal wire or
        by a slot binding; pass-throughs must come in matching pairs.

        :meta public:
        """
        _nodes, _wires = tuple(nodes), tuple(wires)
        _inputs, _outputs = tuple(inputs), tuple(outputs)
        index = _index_nodes(_nodes)
        wired_in, wired_out = _check_wires(index, _wires)
        for side, bindings, other, wired in (
            ("input", _inputs, _outputs, wired_in),
            ("output", _outputs, _inputs, wired_out),
        ):
            for idx, binding in enumerate(bindings):
                if isinstance(binding, PassThrough):
                    if binding.index not in range(len(other)) or other[
                        binding.index
                    ] != PassThrough(idx):
                        raise ValueError(f"Unpaired pass-through at {side} {idx}.")
                    continue
                name, port = binding
                node = index.get(name)
                num_ports = 0
                if node is not None:
                    num_ports = node.num_inputs if side == "input" else node.num_outputs
                if port not in range(num_ports) or binding in wired:
                    raise ValueError(f"Invalid binding {binding} at {side} {idx}.")
                wired.add(binding)
        for node in _nodes:
            for i in range(node.num_inputs):
                if (node.name, i) not in wired_in:
                    raise ValueError(f"Input {(node.name, i)} is not connected.")
            for i in range(node.num_outputs):
                if (node.name, i) not in wired_out:
                    raise ValueError(f"Output {(node.name, i)} is not connected.")
        self = super().__new__(cls)
        self.__nodes = _nodes
        self.__wires = _wires
        self.__inputs = _inputs
        self.__outputs = _outputs
        return self

    @classmethod
    def pass_through(cls, num_slots: int) -> Fragment:
        """The empty fragment, connecting each input slot to the output at the same position."""
        return cls(
            inputs=[PassThrough(i) for i in range(num_slots)],
            outputs=[PassThrough(i) for i in range(num_slots)],
        )

    @property
    def nodes(self) -> tuple[PatternNode, ...]:
        """Fragment nodes, in order."""
        return self.__nodes

    @property
    def wires(self) -> tuple[PatternWire, ...]:
        """Internal wires."""
        return self.__wires

    @property
    def inputs(self) -> tuple[SlotBinding, ...]:
        """Bindings for the external input slots."""
        return self.__inputs

    @property
    def outputs(self) -> tuple[SlotBinding, ...]:
        """Bindings for the external output slots."""
        return self.__outputs

    def __repr__(self) -> str:
        return f"<Fragment {id(self):#x}: {len(self.__nodes)} nodes>"
