"""
Implementation of diagrams and their builders for the :mod:`stringc.diagrams` module.
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
from collections.abc import Callable, Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import Any, Self, final
import xxhash

if __debug__:
    from beartype.door import is_bearable

from .types import Type, coerce_type, match
from .nodes import Node, NodeSpec, Port, PortDirection
from .wirings import Boundary, BoundarySlot, Endpoint, PortRef, Wire


@final
class Diagram:
    """
    An immutable diagram: nodes with ordered ports, directed wires between ports
    and boundary slots, the boundary types and the named type declarations of the
    document the diagram came from.

    Identifiers are checked to be unique (node, port and wire ids alike) and
    wires are checked to reference existing ports and boundary slots.
    Direction, linearity, acyclicity and typing are left to the checker.
    """

    @staticmethod
    def from_recipe(recipe: Callable[[DiagramBuilder], None]) -> Diagram:
        """
        A function decorator to create a diagram from a diagram-building recipe.

        For example, the snippet below creates the :class:`Diagram` instance
        ``multiply_add``:

        .. code-block:: python

            from stringc.lib.std import Int, add, mul

            @Diagram.from_recipe
            def multiply_add(diag: DiagramBuilder) -> None:
                x, y, z = diag.add_inputs([Int, Int, Int])
                p, = mul @ diag[x, y]
                s, = add @ diag[p, z]
                diag.add_outputs([s])

        """
        builder = DiagramBuilder()
        recipe(builder)
        return builder.diagram

    @classmethod
    def _new(
        cls,
        nodes: dict[str, Node],
        wires: dict[str, Wire],
        boundary: Boundary,
        type_decls: dict[str, Type | None],
        type_texts: dict[Endpoint | str, str],
    ) -> Self:
        """Protected constructor."""
        self = super().__new__(cls)
        self.__nodes = MappingProxyType(nodes)
        self.__wires = MappingProxyType(wires)
        self.__boundary = boundary
        self.__type_decls = MappingProxyType(type_decls)
        self.__type_texts = MappingProxyType(type_texts)
        self.__port_nodes = {
            port.id: node.id for node in nodes.values() for port in node.ports
        }
        return self

    __nodes: MappingProxyType[str, Node]
    __wires: MappingProxyType[str, Wire]
    __boundary: Boundary
    __type_decls: MappingProxyType[str, Type | None]
    __type_texts: MappingProxyType[Endpoint | str, str]
    __port_nodes: dict[str, str]
    __incidence_cache: dict[Endpoint, tuple[Wire, ...]]
    __digest_cache: str
    __hash_cache: int

    __slots__ = (
        "__weakref__",
        "__nodes",
        "__wires",
        "__boundary",
        "__type_decls",
        "__type_texts",
        "__port_nodes",
        "__incidence_cache",
        "__digest_cache",
        "__hash_cache",
    )

    def __new__(
        cls,
        nodes: Iterable[Node],
        wires: Iterable[Wire],
        boundary: Boundary | None = None,
        type_decls: Mapping[str, Type | None] | None = None,
        type_texts: Mapping[Endpoint | str, str] | None = None,
    ) -> Self:
        """
        Constructs a diagram, validating identifiers and wire references.
        See :attr:`type_texts` for the optional table of type expressions.

        :meta public:
        """
        nodes, wires = tuple(nodes), tuple(wires)
        assert is_bearable(nodes, tuple[Node, ...])
        assert is_bearable(wires, tuple[Wire, ...])
        assert is_bearable(boundary, Boundary | None)
        if boundary is None:
            boundary = Boundary()
        _nodes: dict[str, Node] = {}
        port_nodes: dict[str, str] = {}
        for node in nodes:
            if node.id in _nodes:
                raise ValueError(f"Duplicate node id {node.id!r}.")
            _nodes[node.id] = node
            for port in node.ports:
                if port.id in port_nodes:
                    raise ValueError(
                        f"Duplicate port id {port.id!r} on nodes"
                        f" {port_nodes[port.id]!r} and {node.id!r}."
                    )
                port_nodes[port.id] = node.id
        _wires: dict[str, Wire] = {}
        for wire in wires:
            if wire.id in _wires:
                raise ValueError(f"Duplicate wire id {wire.id!r}.")
            for endpoint in wire.endpoints:
                _validate_endpoint(endpoint, _nodes, boundary, wire.id)
            _wires[wire.id] = wire
        return cls._new(
            _nodes, _wires, boundary, dict(type_decls or {}), dict(type_texts or {})
        )

    @property
    def nodes(self) -> Mapping[str, Node]:
        """Nodes of the diagram, by identifier, in insertion order."""
        return self.__nodes

    @property
    def wires(self) -> Mapping[str, Wire]:
        """Wires of the diagram, by identifier, in insertion order."""
        return self.__wires

    @property
    def boundary(self) -> Boundary:
        """Boundary of the diagram."""
        return self.__boundary

    @property
    def type_decls(self) -> Mapping[str, Type | None]:
        """
        Named type declarations, mapping each name to its definition,
        or to :obj:`None` for opaque base types.
        """
        return self.__type_decls

    @property
    def type_texts(self) -> Mapping[Endpoint | str, str]:
        """
        Type expressions as originally written, keyed by endpoint for port and
        boundary types and by name for type declarations. Only expressions which
        differ from the pretty-printed type are kept, e.g. uses of declared names.
        They are presentation only: equality and digest ignore them.
        """
        return self.__type_texts

    @property
    def endpoints(self) -> tuple[Endpoint, ...]:
        """
        All endpoints of the diagram: boundary inputs, node ports in node order,
        then boundary outputs.
        """
        boundary = self.__boundary
        return (
            tuple(BoundarySlot("input", i) for i in range(len(boundary.inputs)))
            + tuple(
                PortRef(node.id, port.id)
                for node in self.__nodes.values()
                for port in node.ports
            )
            + tuple(BoundarySlot("output", i) for i in range(len(boundary.outputs)))
        )

    def node_of(self, port_id: str) -> Node:
        """The node owning the port with given identifier."""
        return self.__nodes[self.__port_nodes[port_id]]

    def port(self, ref: PortRef) -> Port:
        """The port referenced."""
        return self.__nodes[ref.node].port(ref.port)

    def locate(self, ref: PortRef) -> tuple[PortDirection, int]:
        """Direction and position of the port referenced."""
        return self.__nodes[ref.node].locate(ref.port)

    def declared_type(self, endpoint: Endpoint) -> Type | None:
        """
        The type declared at an endpoint: the boundary type for boundary slots,
        the declared port type (if any) for node ports.
        """
        if isinstance(endpoint, BoundarySlot):
            return self.__boundary.type_of(endpoint)
        return self.port(endpoint).type

    def wires_at(self, endpoint: Endpoint) -> tuple[Wire, ...]:
        """All wires having the given endpoint as source or target, in wire order."""
        try:
            incidence = self.__incidence_cache
        except AttributeError:
            _incidence: dict[Endpoint, list[Wire]] = {}
            for wire in self.__wires.values():
                for e in dict.fromkeys(wire.endpoints):
                    _incidence.setdefault(e, []).append(wire)
            incidence = {e: tuple(ws) for e, ws in _incidence.items()}
            self.__incidence_cache = incidence
        return incidence.get(endpoint, ())

    def canonical_lines(self) -> list[str]:
        """
        Canonical textual form of the diagram, one line per entity, sorted by kind
        then identifier. Node metadata is not part of the canonical form.
        """
        lines: list[str] = []
        for name in sorted(self.__type_decls):
            definition = self.__type_decls[name]
            lines.append(f"type {name} = {'' if definition is None else definition}")
        for side, types in (
            ("input", self.__boundary.inputs),
            ("output", self.__boundary.outputs),
        ):
            for idx, t in enumerate(types):
                lines.append(f"boundary {side} {idx} {t}")
        for node_id in sorted(self.__nodes):
            node = self.__nodes[node_id]
            ports = " ".join(
                f"{direction}:{port.id}:{'' if port.type is None else port.type}"
                for direction, ps in (("in", node.inputs), ("out", node.outputs))
                for port in ps
            )
            label = "" if node.label is None else node.label
            lines.append(f"node {node_id} {node.kind.value} {label!r} {ports}")
        for wire_id in sorted(self.__wires):
            wire = self.__wires[wire_id]
            lines.append(f"wire {wire_id} {wire.source} {wire.target}")
        return lines

    @property
    def digest(self) -> str:
        """
        Stable content hash (XXH3, 64 bit, hex) of the canonical form.
        Equal for diagrams which differ only in node metadata or insertion order.
        """
        try:
            return self.__digest_cache
        except AttributeError:
            text = "\n".join(self.canonical_lines())
            self.__digest_cache = d = xxhash.xxh3_64_hexdigest(text.encode("utf-8"))
            return d

    def __repr__(self) -> str:
        attrs: list[str] = []
        num_nodes = len(self.__nodes)
        num_wires = len(self.__wires)
        num_inputs = len(self.__boundary.inputs)
        num_outputs = len(self.__boundary.outputs)
        if num_nodes > 0:
            attrs.append(f"{num_nodes} nodes")
        if num_wires > 0:
            attrs.append(f"{num_wires} wires")
        if num_inputs > 0:
            attrs.append(f"{num_inputs} inputs")
        if num_outputs > 0:
            attrs.append(f"{num_outputs} outputs")
        return f"<Diagram {id(self):#x}: {", ".join(attrs)}>"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Diagram):
            return NotImplemented
        if self is other:
            return True
        return (
            self.__boundary == other.__boundary
            and self.__nodes == other.__nodes
            and self.__wires == other.__wires
            and self.__type_decls == other.__type_decls
        )

    def __hash__(self) -> int:
        try:
            return self.__hash_cache
        except AttributeError:
            self.__hash_cache = h = hash((Diagram, self.digest))
            return h


def _validate_endpoint(
    endpoint: Endpoint,
    nodes: Mapping[str, Node],
    boundary: Boundary,
    wire_id: str,
) -> None:
    if isinstance(endpoint, BoundarySlot):
        if not boundary.has_slot(endpoint):
            raise ValueError(f"Wire {wire_id!r} references missing slot {endpoint}.")
        return
    node = nodes.get(endpoint.node)
    if node is None:
        raise ValueError(
            f"Wire {wire_id!r} references missing node {endpoint.node!r}."
        )
    if not node.has_port(endpoint.port):
        raise ValueError(
            f"Wire {wire_id!r} references missing port {endpoint.port!r}"
            f" on node {endpoint.node!r}."
        )


@final
class DiagramBuilder:
    """
    Utility class to build diagrams, either from scratch or starting from an
    existing diagram. Nodes and wires are immutable and shared with the diagram
    the builder was seeded from: only the identifier-keyed tables are copied.
    """

    __nodes: dict[str, Node]
    __wires: dict[str, Wire]
    __inputs: list[Type]
    __outputs: list[Type]
    __type_decls: dict[str, Type | None]
    __type_texts: dict[Endpoint | str, str]
    __port_nodes: dict[str, str]
    __incidence: dict[Endpoint, list[str]]
    __inferred: dict[Endpoint, Type]
    __counter: int

    __slots__ = (
        "__weakref__",
        "__nodes",
        "__wires",
        "__inputs",
        "__outputs",
        "__type_decls",
        "__type_texts",
        "__port_nodes",
        "__incidence",
        "__inferred",
        "__counter",
    )

    def __new__(cls) -> Self:
        """
        Creates a blank diagram builder.

        :meta public:
        """
        self = super().__new__(cls)
        self.__nodes = {}
        self.__wires = {}
        self.__inputs = []
        self.__outputs = []
        self.__type_decls = {}
        self.__type_texts = {}
        self.__port_nodes = {}
        self.__incidence = {}
        self.__inferred = {}
        self.__counter = 0
        return self

    @classmethod
    def from_diagram(cls, diagram: Diagram) -> DiagramBuilder:
        """Creates a builder seeded with the contents of the given diagram."""
        assert is_bearable(diagram, Diagram)
        self = cls()
        self.__nodes = dict(diagram.nodes)
        self.__wires = dict(diagram.wires)
        self.__inputs = list(diagram.boundary.inputs)
        self.__outputs = list(diagram.boundary.outputs)
        self.__type_decls = dict(diagram.type_decls)
        self.__type_texts = dict(diagram.type_texts)
        self.__port_nodes = {
            port.id: node.id for node in self.__nodes.values() for port in node.ports
        }
        for wire in self.__wires.values():
            self.__index_wire(wire)
        return self

    def copy(self) -> DiagramBuilder:
        """Returns an independent copy of this diagram builder."""
        clone = DiagramBuilder()
        clone.__nodes = self.__nodes.copy()
        clone.__wires = self.__wires.copy()
        clone.__inputs = self.__inputs.copy()
        clone.__outputs = self.__outputs.copy()
        clone.__type_decls = self.__type_decls.copy()
        clone.__type_texts = self.__type_texts.copy()
        clone.__port_nodes = self.__port_nodes.copy()
        clone.__incidence = {e: ws.copy() for e, ws in self.__incidence.items()}
        clone.__inferred = self.__inferred.copy()
        clone.__counter = self.__counter
        return clone

    @property
    def nodes(self) -> Mapping[str, Node]:
        """Nodes added thus far."""
        return MappingProxyType(self.__nodes)

    @property
    def wires(self) -> Mapping[str, Wire]:
        """Wires added thus far."""
        return MappingProxyType(self.__wires)

    @property
    def boundary(self) -> Boundary:
        """The boundary built thus far."""
        return Boundary(self.__inputs, self.__outputs)

    @property
    def diagram(self) -> Diagram:
        """The diagram built thus far."""
        return Diagram._new(
            dict(self.__nodes),
            dict(self.__wires),
            self.boundary,
            dict(self.__type_decls),
            dict(self.__type_texts),
        )

    def fresh_node_id(self, prefix: str = "n") -> str:
        """Returns a node identifier not yet in use."""
        return self.__fresh(prefix, self.__nodes)

    def fresh_wire_id(self, prefix: str = "w") -> str:
        """Returns a wire identifier not yet in use."""
        return self.__fresh(prefix, self.__wires)

    def fresh_port_id(self, prefix: str) -> str:
        """Returns a port identifier not yet in use, preferring the prefix itself."""
        if prefix not in self.__port_nodes:
            return prefix
        return self.__fresh(f"{prefix}.", self.__port_nodes)

    def __fresh(self, prefix: str, taken: Mapping[str, Any]) -> str:
        while True:
            candidate = f"{prefix}{self.__counter}"
            self.__counter += 1
            if candidate not in taken:
                return candidate

    def declare_type(self, name: str, definition: Type | str | None = None) -> None:
        """Adds a named type declaration."""
        assert is_bearable(name, str)
        if name in self.__type_decls:
            raise ValueError(f"Type {name!r} is already declared.")
        self.__type_decls[name] = (
            None if definition is None else coerce_type(definition, self.__aliases())
        )

    def __aliases(self) -> dict[str, Type]:
        return {n: t for n, t in self.__type_decls.items() if t is not None}

    def add_node(self, node: Node) -> Node:
        """Adds a node, checking that its node and port identifiers are fresh."""
        assert is_bearable(node, Node)
        if node.id in self.__nodes:
            raise ValueError(f"Duplicate node id {node.id!r}.")
        for port in node.ports:
            if port.id in self.__port_nodes:
                raise ValueError(f"Duplicate port id {port.id!r}.")
        self.__nodes[node.id] = node
        for port in node.ports:
            self.__port_nodes[port.id] = node.id
        return node

    def remove_node(self, node_id: str) -> tuple[Wire, ...]:
        """
        Removes a node together with all wires attached to its ports,
        returning the removed wires.
        """
        node = self.__nodes.pop(node_id, None)
        if node is None:
            raise ValueError(f"Invalid node id {node_id!r}.")
        removed: list[Wire] = []
        for port in node.ports:
            ref = PortRef(node_id, port.id)
            for wire_id in list(self.__incidence.get(ref, ())):
                removed.append(self.remove_wire(wire_id))
            self.__incidence.pop(ref, None)
            self.__inferred.pop(ref, None)
            del self.__port_nodes[port.id]
        return tuple(removed)

    def add_wire(self, wire: Wire) -> Wire:
        """
        Adds a wire, checking that its identifier is fresh and that its endpoints
        exist. Endpoints may already be in use: linearity is left to the checker.
        """
        assert is_bearable(wire, Wire)
        if wire.id in self.__wires:
            raise ValueError(f"Duplicate wire id {wire.id!r}.")
        boundary = self.boundary
        for endpoint in wire.endpoints:
            _validate_endpoint(endpoint, self.__nodes, boundary, wire.id)
        self.__wires[wire.id] = wire
        self.__index_wire(wire)
        return wire

    def __index_wire(self, wire: Wire) -> None:
        for e in dict.fromkeys(wire.endpoints):
            self.__incidence.setdefault(e, []).append(wire.id)

    def connect(
        self, source: Endpoint, target: Endpoint, wire_id: str | None = None
    ) -> Wire:
        """
        Adds a wire from source to target, checking that neither endpoint is
        already in use.
        """
        for endpoint in (source, target):
            if self.__incidence.get(endpoint):
                raise ValueError(f"Endpoint {endpoint} is already connected.")
        if wire_id is None:
            wire_id = self.fresh_wire_id()
        return self.add_wire(Wire(wire_id, source, target))

    def remove_wire(self, wire_id: str) -> Wire:
        """Removes the wire with given identifier and returns it."""
        wire = self.__wires.pop(wire_id, None)
        if wire is None:
            raise ValueError(f"Invalid wire id {wire_id!r}.")
        for e in dict.fromkeys(wire.endpoints):
            self.__incidence[e].remove(wire_id)
        return wire

    def replace_wire(self, wire: Wire) -> Wire:
        """Replaces the wire with the same identifier, returning the old wire."""
        old = self.remove_wire(wire.id)
        try:
            self.add_wire(wire)
        except ValueError:
            self.add_wire(old)
            raise
        return old

    def wires_at(self, endpoint: Endpoint) -> tuple[Wire, ...]:
        """All wires having the given endpoint as source or target."""
        return tuple(self.__wires[w] for w in self.__incidence.get(endpoint, ()))

    def type_of(self, endpoint: Endpoint) -> Type | None:
        """
        Type known at an endpoint: declared boundary and port types, or types
        inferred for structural nodes added with :meth:`add_block`.
        """
        if isinstance(endpoint, BoundarySlot):
            types = self.__inputs if endpoint.side == "input" else self.__outputs
            if endpoint.index >= len(types):
                raise ValueError(f"Invalid boundary slot {endpoint}.")
            return types[endpoint.index]
        node = self.__nodes.get(endpoint.node)
        if node is None or not node.has_port(endpoint.port):
            raise ValueError(f"Invalid port reference {endpoint}.")
        declared = node.port(endpoint.port).type
        if declared is not None:
            return declared
        return self.__inferred.get(endpoint)

    def add_inputs(self, types: Iterable[Type | str]) -> tuple[BoundarySlot, ...]:
        """Adds boundary inputs of the given types, returning their slots."""
        aliases = self.__aliases()
        ts = [coerce_type(t, aliases) for t in types]
        start = len(self.__inputs)
        self.__inputs.extend(ts)
        return tuple(BoundarySlot("input", start + i) for i in range(len(ts)))

    def add_outputs(
        self,
        sources: Iterable[Endpoint],
        types: Iterable[Type | str] | None = None,
    ) -> tuple[BoundarySlot, ...]:
        """
        Adds boundary outputs fed by the given source endpoints, returning their
        slots. If types are not given, they are taken from the sources.
        """
        sources = tuple(sources)
        if types is None:
            _types: list[Type] = []
            for source in sources:
                t = self.type_of(source)
                if t is None:
                    raise ValueError(f"Cannot infer output type from {source}.")
                _types.append(t)
        else:
            aliases = self.__aliases()
            _types = [coerce_type(t, aliases) for t in types]
            if len(_types) != len(sources):
                raise ValueError("Number of types does not match number of sources.")
        for source in sources:
            if self.__incidence.get(source):
                raise ValueError(f"Endpoint {source} is already connected.")
        start = len(self.__outputs)
        self.__outputs.extend(_types)
        slots = tuple(BoundarySlot("output", start + i) for i in range(len(sources)))
        for source, slot in zip(sources, slots):
            self.connect(source, slot)
        return slots

    def add_block(
        self,
        spec: NodeSpec,
        sources: Sequence[Endpoint],
        node_id: str | None = None,
        *,
        meta: Mapping[str, Any] | None = None,
    ) -> tuple[PortRef, ...]:
        """
        Adds a node from the given template, with its input ports fed by the given
        source endpoints, and returns references to its output ports (in order).
        For structural templates, output types are inferred where possible.
        """
        assert is_bearable(spec, NodeSpec)
        if len(sources) != len(spec.inputs):
            raise ValueError(
                f"Expected {len(spec.inputs)} sources for {spec!r},"
                f" got {len(sources)}."
            )
        if len(set(sources)) != len(sources):
            raise ValueError("Source endpoints cannot be repeated.")
        for source in sources:
            if self.__incidence.get(source):
                raise ValueError(f"Endpoint {source} is already connected.")
        if node_id is None:
            node_id = self.fresh_node_id()
        inputs = [
            Port(self.fresh_port_id(f"{node_id}.in{i}"), t)
            for i, t in enumerate(spec.inputs)
        ]
        outputs = [
            Port(self.fresh_port_id(f"{node_id}.out{i}"), t)
            for i, t in enumerate(spec.outputs)
        ]
        node = self.add_node(
            Node(node_id, spec.kind, inputs, outputs, label=spec.label, meta=meta)
        )
        for source, port in zip(sources, inputs):
            self.connect(source, PortRef(node_id, port.id))
        out_refs = node.output_refs()
        if (schema := spec.kind.schema) is not None:
            subst: dict[str, Type] | None = {}
            for pattern, source in zip(schema.signature.inputs, sources):
                t = self.type_of(source)
                subst = None if t is None else match(pattern, t, subst)
                if subst is None:
                    break
            if subst is not None:
                for pattern, ref in zip(schema.signature.outputs, out_refs):
                    t = pattern.substitute(subst)
                    if t.is_ground:
                        self.__inferred[ref] = t
        return out_refs

    def __getitem__(
        self, endpoints: Endpoint | Sequence[Endpoint]
    ) -> SelectedEndpoints:
        """
        Enables special syntax for addition of nodes to the diagram:

        .. code-block:: python

            from stringc.lib.std import Int, braiding, sub
            diag = DiagramBuilder()
            x, y = diag.add_inputs([Int, Int])
            y1, x1 = braiding @ diag[x, y]
            d, = sub @ diag[y1, x1]
            diag.add_outputs([d])

        This is achieved by this method returning an object which encodes the
        selected source endpoints, and supports the application of the ``@``
        operator with a node template as the lhs and the object as the rhs.

        :meta public:
        """
        return SelectedEndpoints(self, endpoints)

    def __repr__(self) -> str:
        attrs: list[str] = []
        num_nodes = len(self.__nodes)
        num_wires = len(self.__wires)
        if num_nodes > 0:
            attrs.append(f"{num_nodes} nodes")
        if num_wires > 0:
            attrs.append(f"{num_wires} wires")
        if self.__inputs:
            attrs.append(f"{len(self.__inputs)} inputs")
        if self.__outputs:
            attrs.append(f"{len(self.__outputs)} outputs")
        return f"<DiagramBuilder {id(self):#x}: {", ".join(attrs)}>"


@final
class SelectedEndpoints:
    """
    Utility class wrapping a selection of source endpoints in a given diagram
    builder, to be used for the purposes of adding nodes to the builder.

    Supports usage of the ``@`` operator with a node template on the lhs.
    See :meth:`DiagramBuilder.__getitem__`.
    """

    __builder: DiagramBuilder
    __endpoints: tuple[Endpoint, ...]

    __slots__ = ("__weakref__", "__builder", "__endpoints")

    def __new__(
        cls, builder: DiagramBuilder, endpoints: Endpoint | Sequence[Endpoint]
    ) -> Self:
        """
        Wraps the selected endpoints.

        :meta public:
        """
        assert is_bearable(builder, DiagramBuilder)
        if isinstance(endpoints, (BoundarySlot, PortRef)):
            endpoints = (endpoints,)
        self = super().__new__(cls)
        self.__builder = builder
        self.__endpoints = tuple(endpoints)
        return self

    @property
    def builder(self) -> DiagramBuilder:
        """The builder to which the selected endpoints belong."""
        return self.__builder

    @property
    def endpoints(self) -> tuple[Endpoint, ...]:
        """The selected source endpoints."""
        return self.__endpoints

    def __rmatmul__(self, spec: NodeSpec) -> tuple[PortRef, ...]:
        """
        Adds a node from the given template, fed by the selected endpoints.

        :meta public:
        """
        if not isinstance(spec, NodeSpec):
            return NotImplemented
        return self.__builder.add_block(spec, self.__endpoints)

    def __repr__(self) -> str:
        return f"<DiagramBuilder {id(self.__builder):#x}>[{self.__endpoints}]"

