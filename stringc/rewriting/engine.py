"""
Matching and application of rewrite rules on selected fragments of diagrams.
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
from collections.abc import Iterable, Iterator, Mapping
import logging
from types import MappingProxyType
from typing import Final, Literal, Self, TypeAlias, final

if __debug__:
    from beartype.door import is_bearable

from ..cancellation import CancellationToken, poll
from ..checker import CheckResult, check
from ..diagrams import (
    BoundarySlot,
    Diagram,
    DiagramBuilder,
    Endpoint,
    Node,
    Port,
    PortRef,
    Type,
    Wire,
    match,
)
from ..registry import SignatureRegistry
from .patterns import Attachment, PassThrough, Pattern, PatternNode
from .rules import BUILTIN_RULES, Rule, RuleTable

logger = logging.getLogger(__name__)

RewriteErrorKind: TypeAlias = Literal["no-match", "type-conflict", "unknown-rule", "unsound"]
"""Type alias for the kinds of rewrite errors."""

REWRITE_ERROR_KINDS: Final[tuple[RewriteErrorKind, ...]] = (
    "no-match",
    "type-conflict",
    "unknown-rule",
    "unsound",
)
"""Possible kinds of rewrite errors."""


class RewriteError(Exception):
    """Raised when a rewrite cannot be applied."""

    kind: RewriteErrorKind
    message: str

    def __init__(self, kind: RewriteErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def to_dict(self) -> dict[str, str]:
        """Plain data form, for transport."""
        return {"kind": self.kind, "message": self.message}


@final
class Match:
    """
    A match of the left-hand pattern of a rule on selected nodes: the node assigned
    to each pattern node, the substitution for the pattern's type variables, and the
    cut wires at the external slots of the pattern, in slot order.
    """

    __rule: Rule
    __assignment: MappingProxyType[str, str]
    __subst: MappingProxyType[str, Type]
    __inputs: tuple[Wire, ...]
    __outputs: tuple[Wire, ...]

    __slots__ = (
        "__weakref__",
        "__rule",
        "__assignment",
        "__subst",
        "__inputs",
        "__outputs",
    )

    def __new__(
        cls,
        rule: Rule,
        assignment: Mapping[str, str],
        subst: Mapping[str, Type],
        inputs: tuple[Wire, ...],
        outputs: tuple[Wire, ...],
    ) -> Self:
        """
        Constructs a match.

        :meta public:
        """
        self = super().__new__(cls)
        self.__rule = rule
        self.__assignment = MappingProxyType(dict(assignment))
        self.__subst = MappingProxyType(dict(subst))
        self.__inputs = inputs
        self.__outputs = outputs
        return self

    @property
    def rule(self) -> Rule:
        """The rule matched."""
        return self.__rule

    @property
    def assignment(self) -> Mapping[str, str]:
        """Node id assigned to each pattern node name."""
        return self.__assignment

    @property
    def subst(self) -> Mapping[str, Type]:
        """Substitution for the type variables of the pattern."""
        return self.__subst

    @property
    def inputs(self) -> tuple[Wire, ...]:
        """Cut wires into the external input slots."""
        return self.__inputs

    @property
    def outputs(self) -> tuple[Wire, ...]:
        """Cut wires out of the external output slots."""
        return self.__outputs

    def __repr__(self) -> str:
        nodes = ", ".join(map(repr, self.__assignment.values()))
        return f"<Match {self.__rule.id!r}: {nodes}>"


def list_applicable(
    diagram: Diagram,
    selection: Iterable[str],
    registry: SignatureRegistry,
    *,
    rules: RuleTable = BUILTIN_RULES,
    cancel: CancellationToken | None = None,
) -> list[Rule]:
    """
    Returns every rule whose left-hand pattern matches the selected nodes, in shape
    and in types, in the order of the rule table.
    """
    assert is_bearable(diagram, Diagram)
    selected = _normalise_selection(selection)
    checked = check(diagram, registry, cancel=cancel)
    applicable: list[Rule] = []
    for rule in rules.values():
        poll(cancel)
        outcome = find_match(diagram, rule, selected, checked, cancel=cancel)
        if isinstance(outcome, Match):
            applicable.append(rule)
    logger.debug(
        "%d of %d rules apply to selection %s.", len(applicable), len(rules), selected
    )
    return applicable


def apply(
    diagram: Diagram,
    rule_id: str,
    selection: Iterable[str],
    registry: SignatureRegistry,
    *,
    rules: RuleTable = BUILTIN_RULES,
    recheck: bool = False,
    cancel: CancellationToken | None = None,
) -> Diagram:
    """
    Applies the rule with given identifier to the selected nodes, returning a new
    diagram. The input diagram is left untouched.

    If ``recheck`` is set, the result is checked again, and the rewrite is rejected
    as unsound if it introduced diagnostics or changed the boundary.

    :raises RewriteError: if the rule is unknown, does not match, or is unsound.
    """
    assert is_bearable(diagram, Diagram)
    rule = rules.get(rule_id)
    if rule is None:
        raise RewriteError("unknown-rule", f"Unknown rule {rule_id!r}.")
    selected = _normalise_selection(selection)
    checked = check(diagram, registry, cancel=cancel)
    outcome = find_match(diagram, rule, selected, checked, cancel=cancel)
    if isinstance(outcome, RewriteError):
        raise outcome
    result = replace(diagram, outcome, cancel=cancel)
    if recheck:
        rechecked = check(result, registry, cancel=cancel)
        if len(rechecked.diagnostics) > len(checked.diagnostics):
            raise RewriteError(
                "unsound",
                f"Rule {rule_id!r} introduced"
                f" {len(rechecked.diagnostics) - len(checked.diagnostics)}"
                " diagnostics.",
            )
        if result.boundary != diagram.boundary:
            raise RewriteError("unsound", f"Rule {rule_id!r} changed the boundary.")
    logger.info("Applied rule %r to nodes %s.", rule_id, list(selected))
    return result


def _normalise_selection(selection: Iterable[str]) -> tuple[str, ...]:
    if isinstance(selection, str):
        return (selection,)
    return tuple(sorted(set(selection)))


def find_match(
    diagram: Diagram,
    rule: Rule,
    selected: tuple[str, ...],
    checked: CheckResult,
    *,
    cancel: CancellationToken | None = None,
) -> Match | RewriteError:
    """
    Matches the left-hand pattern of a rule against the fragment induced by the
    selected nodes, returning the match or the reason for failure.
    Port types are taken from the given check result.
    """
    lhs = rule.lhs
    nodes = diagram.nodes
    unknown = [node_id for node_id in selected if node_id not in nodes]
    if unknown:
        return RewriteError("no-match", f"Unknown nodes in selection: {unknown}.")
    if len(selected) != len(lhs.nodes):
        return RewriteError(
            "no-match",
            f"Rule {rule.id!r} needs {len(lhs.nodes)} nodes,"
            f" {len(selected)} were selected.",
        )
    inside = set(selected)
    internal: set[tuple[Endpoint, Endpoint]] = set()
    for node_id in selected:
        for ref in nodes[node_id].input_refs() + nodes[node_id].output_refs():
            wires = diagram.wires_at(ref)
            if len(wires) != 1:
                return RewriteError(
                    "no-match", f"{ref} is not connected to exactly one wire."
                )
            (wire,) = wires
            if _is_inside(wire.source, inside) and _is_inside(wire.target, inside):
                internal.add((wire.source, wire.target))
    shape_matches: list[tuple[dict[str, str], tuple[Wire, ...], tuple[Wire, ...]]] = []
    for assignment in _assignments(lhs.nodes, selected, nodes):
        poll(cancel)
        cut = _match_shape(diagram, lhs, assignment, internal, inside)
        if cut is not None:
            shape_matches.append((assignment, *cut))
    if not shape_matches:
        return RewriteError(
            "no-match", f"Selection does not have the shape required by {rule.id!r}."
        )
    for assignment, inputs, outputs in shape_matches:
        subst = _match_types(diagram, lhs, assignment, checked)
        if subst is not None:
            return Match(rule, assignment, subst, inputs, outputs)
    return RewriteError(
        "type-conflict",
        f"Port types in the selection are inconsistent with rule {rule.id!r}.",
    )


def _is_inside(endpoint: Endpoint, inside: set[str]) -> bool:
    return isinstance(endpoint, PortRef) and endpoint.node in inside


def _fits(pattern_node: PatternNode, node: Node) -> bool:
    return (
        pattern_node.kind is node.kind
        and pattern_node.num_inputs == len(node.inputs)
        and pattern_node.num_outputs == len(node.outputs)
        and (pattern_node.label is None or pattern_node.label == node.label)
    )


def _assignments(
    pattern_nodes: tuple[PatternNode, ...],
    selected: tuple[str, ...],
    nodes: Mapping[str, Node],
) -> Iterator[dict[str, str]]:
    """Kind-preserving bijections of pattern nodes to selected nodes."""
    current: dict[str, str] = {}
    used: set[str] = set()

    def extend(idx: int) -> Iterator[dict[str, str]]:
        if idx == len(pattern_nodes):
            yield dict(current)
            return
        pattern_node = pattern_nodes[idx]
        for node_id in selected:
            if node_id in used or not _fits(pattern_node, nodes[node_id]):
                continue
            current[pattern_node.name] = node_id
            used.add(node_id)
            yield from extend(idx + 1)
            used.discard(node_id)
            del current[pattern_node.name]

    return extend(0)


def _attached(endpoint: Endpoint, attachment: Attachment) -> bool:
    match attachment:
        case "node":
            return isinstance(endpoint, PortRef)
        case "boundary":
            return isinstance(endpoint, BoundarySlot)
    return True


def _match_shape(
    diagram: Diagram,
    lhs: Pattern,
    assignment: Mapping[str, str],
    internal: set[tuple[Endpoint, Endpoint]],
    inside: set[str],
) -> tuple[tuple[Wire, ...], tuple[Wire, ...]] | None:
    """
    Checks that an assignment reproduces exactly the internal wires of the pattern,
    and that its external slots are fed by properly directed cut wires satisfying
    the attachment constraints. Returns the cut wires, in slot order.
    """
    nodes = diagram.nodes
    expected = {
        (
            nodes[assignment[src]].output_refs()[i],
            nodes[assignment[tgt]].input_refs()[j],
        )
        for (src, i), (tgt, j) in lhs.wires
    }
    if expected != internal:
        return None
    inputs: list[Wire] = []
    for k, (name, i) in enumerate(lhs.inputs):
        ref = nodes[assignment[name]].input_refs()[i]
        (wire,) = diagram.wires_at(ref)
        if wire.target != ref or _is_inside(wire.source, inside):
            return None
        if not _attached(wire.source, lhs.attachment("input", k)):
            return None
        inputs.append(wire)
    outputs: list[Wire] = []
    for k, (name, i) in enumerate(lhs.outputs):
        ref = nodes[assignment[name]].output_refs()[i]
        (wire,) = diagram.wires_at(ref)
        if wire.source != ref or _is_inside(wire.target, inside):
            return None
        if not _attached(wire.target, lhs.attachment("output", k)):
            return None
        outputs.append(wire)
    return tuple(inputs), tuple(outputs)


def _match_types(
    diagram: Diagram,
    lhs: Pattern,
    assignment: Mapping[str, str],
    checked: CheckResult,
) -> dict[str, Type] | None:
    """
    Finds one substitution of the pattern variables consistent with every port
    type known for the matched nodes. Ports with no known type are skipped.
    """
    subst: dict[str, Type] | None = {}
    for pattern_node in lhs.nodes:
        node = diagram.nodes[assignment[pattern_node.name]]
        signature = pattern_node.signature
        for port, pattern in zip(node.ports, signature.inputs + signature.outputs):
            t = checked.port_types.get(PortRef(node.id, port.id), port.type)
            if t is None:
                continue
            subst = match(pattern, t, subst)
            if subst is None:
                return None
    return subst


def replace(
    diagram: Diagram,
    found: Match,
    *,
    cancel: CancellationToken | None = None,
) -> Diagram:
    """
    Replaces the matched nodes by the right-hand fragment of the rule.

    Fresh ids are created for the new nodes, ports and wires. Cut wires keep their
    ids and are redirected to the replacement ports at the same external positions.
    A pass-through merges an incoming and an outgoing cut wire: the outgoing wire
    keeps its id and takes the source of the incoming wire, which is removed.
    """
    rhs = found.rule.rhs
    builder = DiagramBuilder.from_diagram(diagram)
    for node_id in sorted(found.assignment.values()):
        builder.remove_node(node_id)
    created: dict[str, Node] = {}
    for pattern_node in rhs.nodes:
        poll(cancel)
        created[pattern_node.name] = builder.add_node(
            _instantiate(builder, pattern_node, found.subst)
        )
    for (src, i), (tgt, j) in rhs.wires:
        builder.connect(
            created[src].output_refs()[i], created[tgt].input_refs()[j]
        )
    for wire, binding in zip(found.inputs, rhs.inputs):
        if isinstance(binding, PassThrough):
            continue
        name, i = binding
        builder.add_wire(Wire(wire.id, wire.source, created[name].input_refs()[i]))
    for wire, binding in zip(found.outputs, rhs.outputs):
        source: Endpoint
        if isinstance(binding, PassThrough):
            source = found.inputs[binding.index].source
        else:
            name, i = binding
            source = created[name].output_refs()[i]
        builder.add_wire(Wire(wire.id, source, wire.target))
    return builder.diagram


def _instantiate(
    builder: DiagramBuilder, pattern_node: PatternNode, subst: Mapping[str, Type]
) -> Node:
    """
    Creates a node with fresh ids for a fragment node. Box ports get the substituted
    pattern types, structural ports are left for the checker to resolve.
    """
    node_id = builder.fresh_node_id()
    signature = pattern_node.signature.substitute(subst)
    structural = pattern_node.kind.is_structural
    if not structural and signature.free_vars:
        raise RewriteError(
            "type-conflict",
            f"Cannot determine the types of replacement box {pattern_node.name!r}.",
        )
    inputs = [
        Port(builder.fresh_port_id(f"{node_id}.in{i}"), None if structural else t)
        for i, t in enumerate(signature.inputs)
    ]
    outputs = [
        Port(builder.fresh_port_id(f"{node_id}.out{i}"), None if structural else t)
        for i, t in enumerate(signature.outputs)
    ]
    return Node(node_id, pattern_node.kind, inputs, outputs, label=pattern_node.label)
