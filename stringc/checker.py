"""
Connectivity and type checking for diagrams.

The checker never stops at the first problem: it accumulates diagnostics over four
phases (connections, box signatures, structural resolution, wire types) and
reports them in a deterministic order.
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
from collections.abc import Mapping
import logging
from types import MappingProxyType
from typing import Any, Final, Literal, Self, TypeAlias, final

if __debug__:
    from beartype.door import is_bearable

from .cancellation import CancellationToken, poll
from .diagrams import (
    BoundarySlot,
    Diagram,
    Endpoint,
    Node,
    PortRef,
    Signature,
    Type,
    Wire,
    cyclic_components,
    match,
)
from .registry import SignatureRegistry

logger = logging.getLogger(__name__)

DiagnosticKind: TypeAlias = Literal[
    "misdirected-wire",
    "unconnected-input",
    "unconnected-output",
    "unconnected-boundary-input",
    "unconnected-boundary-output",
    "multiply-connected",
    "cycle",
    "signature-mismatch",
    "unknown-box",
    "underconstrained-structural",
    "type-mismatch",
    "boundary-mismatch",
]
"""Type alias for the kinds of diagnostics reported by the checker."""

STRUCTURAL_DIAGNOSTIC_KINDS: Final[tuple[DiagnosticKind, ...]] = (
    "misdirected-wire",
    "unconnected-input",
    "unconnected-output",
    "unconnected-boundary-input",
    "unconnected-boundary-output",
    "multiply-connected",
    "cycle",
)
"""Kinds of diagnostics about the connectivity of the diagram."""

TYPE_DIAGNOSTIC_KINDS: Final[tuple[DiagnosticKind, ...]] = (
    "signature-mismatch",
    "unknown-box",
    "underconstrained-structural",
    "type-mismatch",
    "boundary-mismatch",
)
"""Kinds of diagnostics about the types in the diagram."""

DiagnosticCategory: TypeAlias = Literal["structural", "type"]
"""Type alias for the category of a diagnostic."""

DiagnosticEntity: TypeAlias = Literal["node", "wire", "port", "boundary"]
"""Type alias for the kind of entity a diagnostic is about."""

Subject: TypeAlias = str | PortRef | BoundarySlot
"""
Type alias for the subject of a diagnostic:
a node or wire identifier, a port reference or a boundary slot.
"""


@final
class Diagnostic:
    """A problem found by the checker, about a single entity of the diagram."""

    __kind: DiagnosticKind
    __entity: DiagnosticEntity
    __subject: Subject
    __message: str

    __slots__ = ("__weakref__", "__kind", "__entity", "__subject", "__message")

    def __new__(
        cls,
        kind: DiagnosticKind,
        entity: DiagnosticEntity,
        subject: Subject,
        message: str,
    ) -> Self:
        """
        Constructs a diagnostic.

        :meta public:
        """
        assert is_bearable(subject, Subject)
        assert is_bearable(message, str)
        if kind not in STRUCTURAL_DIAGNOSTIC_KINDS + TYPE_DIAGNOSTIC_KINDS:
            raise ValueError(f"Invalid diagnostic kind {kind!r}.")
        self = super().__new__(cls)
        self.__kind = kind
        self.__entity = entity
        self.__subject = subject
        self.__message = message
        return self

    @property
    def kind(self) -> DiagnosticKind:
        """Kind of the diagnostic."""
        return self.__kind

    @property
    def category(self) -> DiagnosticCategory:
        """Whether the diagnostic is about connectivity or about types."""
        return "structural" if self.__kind in STRUCTURAL_DIAGNOSTIC_KINDS else "type"

    @property
    def entity(self) -> DiagnosticEntity:
        """The kind of entity the diagnostic is about."""
        return self.__entity

    @property
    def subject(self) -> Subject:
        """The entity the diagnostic is about."""
        return self.__subject

    @property
    def message(self) -> str:
        """Human-readable description of the problem."""
        return self.__message

    @property
    def sort_key(self) -> tuple[Any, ...]:
        """Key ordering diagnostics within a phase, by entity then kind."""
        subject = self.__subject
        if isinstance(subject, (PortRef, BoundarySlot)):
            return (subject.sort_key, self.__kind)
        rank = 1 if self.__entity == "node" else 3
        return ((rank, subject, 0, ""), self.__kind)

    def to_dict(self) -> dict[str, Any]:
        """Plain data form, for transport."""
        subject = self.__subject
        _subject: Any
        if isinstance(subject, PortRef):
            _subject = {"node": subject.node, "port": subject.port}
        elif isinstance(subject, BoundarySlot):
            _subject = {"boundary": subject.side, "index": subject.index}
        else:
            _subject = subject
        return {
            "kind": self.__kind,
            "category": self.category,
            "entity": self.__entity,
            "subject": _subject,
            "message": self.__message,
        }

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Diagnostic):
            return NotImplemented
        return (
            self.__kind == other.__kind
            and self.__entity == other.__entity
            and self.__subject == other.__subject
            and self.__message == other.__message
        )

    def __hash__(self) -> int:
        return hash((Diagnostic, self.__kind, self.__subject, self.__message))

    def __repr__(self) -> str:
        return f"<Diagnostic {self.__kind} at {self.__subject}: {self.__message!r}>"


@final
class CheckResult:
    """
    Outcome of checking a diagram: the diagnostics found and the types resolved,
    tied to the diagram by its digest.
    """

    @classmethod
    def _new(
        cls,
        diagnostics: tuple[Diagnostic, ...],
        signature: Signature | None,
        port_types: dict[PortRef, Type],
        resolved: dict[str, Signature],
        digest: str,
    ) -> Self:
        """Protected constructor."""
        self = super().__new__(cls)
        self.__diagnostics = diagnostics
        self.__signature = signature
        self.__port_types = MappingProxyType(port_types)
        self.__resolved = MappingProxyType(resolved)
        self.__digest = digest
        return self

    __diagnostics: tuple[Diagnostic, ...]
    __signature: Signature | None
    __port_types: MappingProxyType[PortRef, Type]
    __resolved: MappingProxyType[str, Signature]
    __digest: str

    __slots__ = (
        "__weakref__",
        "__diagnostics",
        "__signature",
        "__port_types",
        "__resolved",
        "__digest",
    )

    def __new__(cls) -> Self:
        raise TypeError("Check results are produced by the check function.")

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        """Diagnostics, in phase order then entity order."""
        return self.__diagnostics

    @property
    def valid(self) -> bool:
        """Whether no diagnostics were found."""
        return not self.__diagnostics

    @property
    def signature(self) -> Signature | None:
        """Signature of the diagram, if it is valid."""
        return self.__signature

    @property
    def port_types(self) -> Mapping[PortRef, Type]:
        """Types resolved for ports, declared or inferred."""
        return self.__port_types

    @property
    def resolved(self) -> Mapping[str, Signature]:
        """Signatures resolved for structural nodes, by node id."""
        return self.__resolved

    @property
    def digest(self) -> str:
        """Digest of the diagram which was checked."""
        return self.__digest

    def of_kind(self, kind: DiagnosticKind) -> tuple[Diagnostic, ...]:
        """Diagnostics of the given kind."""
        return tuple(d for d in self.__diagnostics if d.kind == kind)

    def __repr__(self) -> str:
        if self.valid:
            return f"<CheckResult {id(self):#x}: valid, {self.__signature}>"
        return f"<CheckResult {id(self):#x}: {len(self.__diagnostics)} diagnostics>"


def check(
    diagram: Diagram,
    registry: SignatureRegistry,
    *,
    cancel: CancellationToken | None = None,
) -> CheckResult:
    """
    Checks the connectivity and types of a diagram against a signature registry.

    :raises Cancelled: if the cancellation token is set while checking.
    """
    assert is_bearable(diagram, Diagram)
    assert is_bearable(registry, SignatureRegistry)
    return _Checker(diagram, registry, cancel).run()


class _Checker:
    """State of a single run of the checker."""

    diagram: Diagram
    registry: SignatureRegistry
    cancel: CancellationToken | None
    diagnostics: list[Diagnostic]
    misdirected: set[str]
    excluded: set[str]
    known: dict[Endpoint, Type]
    resolved: dict[str, Signature]

    def __init__(
        self,
        diagram: Diagram,
        registry: SignatureRegistry,
        cancel: CancellationToken | None,
    ) -> None:
        self.diagram = diagram
        self.registry = registry
        self.cancel = cancel
        self.diagnostics = []
        self.misdirected = set()
        self.excluded = set()
        self.known = {}
        self.resolved = {}

    def run(self) -> CheckResult:
        diagram = self.diagram
        for phase in (
            self.check_connections,
            self.check_boxes,
            self.resolve_structural,
            self.check_wires,
        ):
            phase_diagnostics = phase()
            phase_diagnostics.sort(key=lambda d: d.sort_key)
            self.diagnostics.extend(phase_diagnostics)
            logger.debug(
                "Phase %s: %d diagnostics.", phase.__name__, len(phase_diagnostics)
            )
        port_types = {
            e: t for e, t in self.known.items() if isinstance(e, PortRef)
        }
        signature: Signature | None = None
        if not self.diagnostics:
            boundary = diagram.boundary
            signature = Signature(boundary.inputs, boundary.outputs)
        return CheckResult._new(
            tuple(self.diagnostics),
            signature,
            port_types,
            dict(sorted(self.resolved.items())),
            diagram.digest,
        )

    def check_connections(self) -> list[Diagnostic]:
        diagram = self.diagram
        found: list[Diagnostic] = []
        for wire_id in sorted(diagram.wires):
            wire = diagram.wires[wire_id]
            problems: list[str] = []
            if not self.is_source(wire.source):
                problems.append(f"source {wire.source} is not an output")
            if not self.is_target(wire.target):
                problems.append(f"target {wire.target} is not an input")
            if problems:
                self.misdirected.add(wire_id)
                found.append(
                    Diagnostic(
                        "misdirected-wire",
                        "wire",
                        wire_id,
                        f"Wire {wire_id!r} is misdirected: {"; ".join(problems)}.",
                    )
                )
        for endpoint in diagram.endpoints:
            num_wires = len(diagram.wires_at(endpoint))
            if num_wires == 1:
                continue
            entity: Literal["port", "boundary"] = (
                "port" if isinstance(endpoint, PortRef) else "boundary"
            )
            if num_wires > 1:
                wire_ids = ", ".join(repr(w.id) for w in diagram.wires_at(endpoint))
                found.append(
                    Diagnostic(
                        "multiply-connected",
                        entity,
                        endpoint,
                        f"{endpoint} is connected to {num_wires} wires: {wire_ids}.",
                    )
                )
                continue
            found.append(
                Diagnostic(
                    self.unconnected_kind(endpoint),
                    entity,
                    endpoint,
                    f"{endpoint} is not connected.",
                )
            )
        for component in cyclic_components(diagram, skip_wires=self.misdirected):
            self.excluded.update(component)
            names = ", ".join(map(repr, component))
            found.append(
                Diagnostic(
                    "cycle", "node", component[0], f"Nodes {names} form a cycle."
                )
            )
        return found

    def is_source(self, endpoint: Endpoint) -> bool:
        if isinstance(endpoint, BoundarySlot):
            return endpoint.side == "input"
        return self.diagram.locate(endpoint)[0] == "output"

    def is_target(self, endpoint: Endpoint) -> bool:
        if isinstance(endpoint, BoundarySlot):
            return endpoint.side == "output"
        return self.diagram.locate(endpoint)[0] == "input"

    def unconnected_kind(self, endpoint: Endpoint) -> DiagnosticKind:
        if isinstance(endpoint, BoundarySlot):
            if endpoint.side == "input":
                return "unconnected-boundary-input"
            return "unconnected-boundary-output"
        if self.diagram.locate(endpoint)[0] == "input":
            return "unconnected-input"
        return "unconnected-output"

    def check_boxes(self) -> list[Diagnostic]:
        diagram = self.diagram
        found: list[Diagnostic] = []
        for slot in diagram.boundary.slots:
            self.known[slot] = diagram.boundary.type_of(slot)
        for node_id in sorted(diagram.nodes):
            poll(self.cancel)
            if node_id in self.excluded:
                continue
            node = diagram.nodes[node_id]
            diagnostic = (
                self.check_structural_arity(node)
                if node.is_structural
                else self.check_box(node)
            )
            if diagnostic is not None:
                self.excluded.add(node_id)
                found.append(diagnostic)
        return found

    def check_box(self, node: Node) -> Diagnostic | None:
        expected = self.registry.get(node.label)  # type: ignore[arg-type]
        if expected is None:
            declared = node.signature
            if declared is None:
                return Diagnostic(
                    "unknown-box",
                    "node",
                    node.id,
                    f"Box {node.id!r} has unregistered label {node.label!r}"
                    " and ports without declared types.",
                )
            self.learn(node, declared)
            return None
        if len(expected.inputs) != len(node.inputs) or len(expected.outputs) != len(
            node.outputs
        ):
            return Diagnostic(
                "signature-mismatch",
                "node",
                node.id,
                f"Box {node.id!r} has {len(node.inputs)} inputs and"
                f" {len(node.outputs)} outputs, but {node.label!r} has signature"
                f" {expected}.",
            )
        mismatches = [
            f"{port.id} declared {port.type}, expected {t}"
            for port, t in zip(node.ports, expected.inputs + expected.outputs)
            if port.type is not None and port.type is not t
        ]
        if mismatches:
            return Diagnostic(
                "signature-mismatch",
                "node",
                node.id,
                f"Box {node.id!r} does not match {node.label!r}: {"; ".join(mismatches)}.",
            )
        self.learn(node, expected)
        return None

    def check_structural_arity(self, node: Node) -> Diagnostic | None:
        schema = node.kind.schema
        assert schema is not None
        if len(node.inputs) == schema.num_inputs and len(node.outputs) == (
            schema.num_outputs
        ):
            for port in node.ports:
                if port.type is not None:
                    self.known[PortRef(node.id, port.id)] = port.type
            return None
        return Diagnostic(
            "signature-mismatch",
            "node",
            node.id,
            f"Structural node {node.id!r} of kind {node.kind.value!r} must have"
            f" {schema.num_inputs} inputs and {schema.num_outputs} outputs,"
            f" found {len(node.inputs)} and {len(node.outputs)}.",
        )

    def learn(self, node: Node, signature: Signature) -> None:
        for port, t in zip(node.ports, signature.inputs + signature.outputs):
            self.known[PortRef(node.id, port.id)] = t

    def neighbour_type(self, ref: PortRef) -> Type | None:
        """Type known at the port, or at the other end of its unique wire."""
        if (t := self.known.get(ref)) is not None:
            return t
        wires = self.diagram.wires_at(ref)
        if len(wires) != 1 or wires[0].id in self.misdirected:
            return None
        (wire,) = wires
        other = wire.source if wire.target == ref else wire.target
        return self.known.get(other)

    def resolve_structural(self) -> list[Diagnostic]:
        diagram = self.diagram
        found: list[Diagnostic] = []
        pending = [
            node_id
            for node_id in sorted(diagram.nodes)
            if node_id not in self.excluded and diagram.nodes[node_id].is_structural
        ]
        suffixes = {node_id: f"_{idx}" for idx, node_id in enumerate(pending)}
        changed = True
        while changed and pending:
            changed = False
            for node_id in list(pending):
                poll(self.cancel)
                node = diagram.nodes[node_id]
                outcome = self.try_resolve(node, suffixes[node_id])
                if outcome is None:
                    continue
                pending.remove(node_id)
                changed = True
                if isinstance(outcome, Diagnostic):
                    self.excluded.add(node_id)
                    found.append(outcome)
        for node_id in pending:
            node = diagram.nodes[node_id]
            found.append(
                Diagnostic(
                    "underconstrained-structural",
                    "node",
                    node_id,
                    f"Cannot resolve the port types of {node.kind.value!r}"
                    f" node {node_id!r}.",
                )
            )
        logger.debug(
            "Resolved %d structural nodes, %d left unresolved.",
            len(self.resolved),
            len(pending),
        )
        return found

    def try_resolve(self, node: Node, suffix: str) -> Signature | Diagnostic | None:
        """
        Matches the schema of a structural node against the types known at its
        ports, returning the resolved signature, a diagnostic on conflict, or
        :obj:`None` if some variable is still unbound.
        """
        schema = node.kind.schema
        assert schema is not None
        instance = schema.instantiate(suffix)
        patterns = instance.inputs + instance.outputs
        subst: dict[str, Type] | None = {}
        for port, pattern in zip(node.ports, patterns):
            t = self.neighbour_type(PortRef(node.id, port.id))
            if t is None:
                continue
            subst = match(pattern, t, subst)
            if subst is None:
                known = ", ".join(
                    f"{p.id}: {self.neighbour_type(PortRef(node.id, p.id)) or '?'}"
                    for p in node.ports
                )
                return Diagnostic(
                    "signature-mismatch",
                    "node",
                    node.id,
                    f"Types at {node.kind.value!r} node {node.id!r} ({known})"
                    f" do not fit its schema {schema.morphism}.",
                )
        resolved = instance.substitute(subst)
        if not all(t.is_ground for t in resolved.inputs + resolved.outputs):
            return None
        self.resolved[node.id] = resolved
        self.learn(node, resolved)
        return resolved

    def check_wires(self) -> list[Diagnostic]:
        diagram = self.diagram
        found: list[Diagnostic] = []
        for wire_id in sorted(diagram.wires):
            if wire_id in self.misdirected:
                continue
            wire = diagram.wires[wire_id]
            t_source = self.known.get(wire.source)
            t_target = self.known.get(wire.target)
            if t_source is None or t_target is None or t_source is t_target:
                continue
            found.append(
                Diagnostic(
                    "boundary-mismatch" if wire.touches_boundary else "type-mismatch",
                    "wire",
                    wire_id,
                    _mismatch_message(wire, t_source, t_target),
                )
            )
        return found


def _mismatch_message(wire: Wire, t_source: Type, t_target: Type) -> str:
    return (
        f"Wire {wire.id!r} connects {wire.source} of type {t_source}"
        f" to {wire.target} of type {t_target}."
    )
