"""
Rewrite rules, and the table of built-in rules for structural nodes.
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
from types import MappingProxyType
from typing import Final, Self, TypeAlias, final

if __debug__:
    from beartype.door import is_bearable

from ..diagrams import NodeKind, Signature, Var
from .patterns import Fragment, Pattern, PatternNode


@final
class Rule:
    """
    A rewrite rule: an identifier, a human-readable name and description,
    a left-hand pattern and a right-hand replacement fragment.
    """

    __id: str
    __name: str
    __description: str
    __lhs: Pattern
    __rhs: Fragment

    __slots__ = ("__weakref__", "__id", "__name", "__description", "__lhs", "__rhs")

    def __new__(
        cls,
        id: str,
        name: str,
        description: str,
        lhs: Pattern,
        rhs: Fragment,
    ) -> Self:
        """
        Constructs a rule, checking that the replacement has one binding per
        external slot of the pattern and introduces no new type variables.

        :meta public:
        """
        assert is_bearable(id, str)
        assert is_bearable(lhs, Pattern)
        assert is_bearable(rhs, Fragment)
        if len(rhs.inputs) != len(lhs.inputs) or len(rhs.outputs) != len(lhs.outputs):
            raise ValueError(
                f"Replacement for rule {id!r} must bind {len(lhs.inputs)} inputs"
                f" and {len(lhs.outputs)} outputs."
            )
        rhs_vars = frozenset().union(*(n.signature.free_vars for n in rhs.nodes))
        if not rhs_vars <= lhs.free_vars:
            raise ValueError(f"Replacement for rule {id!r} has unbound variables.")
        for node in rhs.nodes:
            if not node.kind.is_structural and node.label is None:
                raise ValueError(f"Replacement box {node.name!r} must have a label.")
        self = super().__new__(cls)
        self.__id = id
        self.__name = name
        self.__description = description
        self.__lhs = lhs
        self.__rhs = rhs
        return self

    @property
    def id(self) -> str:
        """Identifier of the rule."""
        return self.__id

    @property
    def name(self) -> str:
        """Human-readable name of the rule."""
        return self.__name

    @property
    def description(self) -> str:
        """Human-readable description of the rule."""
        return self.__description

    @property
    def lhs(self) -> Pattern:
        """Left-hand pattern."""
        return self.__lhs

    @property
    def rhs(self) -> Fragment:
        """Right-hand replacement."""
        return self.__rhs

    def __repr__(self) -> str:
        return f"<Rule {self.__id!r}: {self.__name}>"


RuleTable: TypeAlias = Mapping[str, Rule]
"""Type alias for a table of rules, keyed by rule identifier."""


def rule_table(rules: Iterable[Rule]) -> RuleTable:
    """Builds a read-only rule table, rejecting duplicate identifiers."""
    table: dict[str, Rule] = {}
    for rule in rules:
        if rule.id in table:
            raise ValueError(f"Duplicate rule id {rule.id!r}.")
        table[rule.id] = rule
    return MappingProxyType(table)


def _removal(
    id: str, name: str, description: str, kind: NodeKind, pattern: Pattern | None = None
) -> Rule:
    """A rule removing a single structural node, passing its wires through."""
    schema = kind.schema
    assert schema is not None
    lhs = pattern if pattern is not None else Pattern([PatternNode("s", kind)])
    return Rule(id, name, description, lhs, Fragment.pass_through(schema.num_inputs))


def _braiding_pair() -> Pattern:
    x, y = Var("X"), Var("Y")
    return Pattern(
        [
            PatternNode("b1", NodeKind.BRAIDING, Signature([x, y], [y, x])),
            PatternNode("b2", NodeKind.BRAIDING, Signature([y, x], [x, y])),
        ],
        [(("b1", 0), ("b2", 0)), (("b1", 1), ("b2", 1))],
    )


BUILTIN_RULES: Final[RuleTable] = rule_table(
    [
        _removal(
            "identity-left",
            "Left identity",
            "id ; f = f: removes an identity whose output feeds a node.",
            NodeKind.IDENTITY,
            Pattern(
                [PatternNode("id", NodeKind.IDENTITY)],
                attachments={("output", 0): "node"},
            ),
        ),
        _removal(
            "identity-right",
            "Right identity",
            "f ; id = f: removes an identity fed by a node.",
            NodeKind.IDENTITY,
            Pattern(
                [PatternNode("id", NodeKind.IDENTITY)],
                attachments={("input", 0): "node"},
            ),
        ),
        _removal(
            "associativity-left",
            "Associativity (left)",
            "Removes a left associator, re-bracketing its three wires.",
            NodeKind.ASSOCIATOR_LEFT,
        ),
        _removal(
            "associativity-right",
            "Associativity (right)",
            "Removes a right associator, re-bracketing its three wires.",
            NodeKind.ASSOCIATOR_RIGHT,
        ),
        Rule(
            "braiding",
            "Braiding involution",
            "Two chained braidings on the same pair of wires cancel out.",
            _braiding_pair(),
            Fragment.pass_through(2),
        ),
        _removal(
            "unit-left",
            "Left unit",
            "Removes a left unitor, joining the wires on either side of it.",
            NodeKind.UNITOR_LEFT,
        ),
        _removal(
            "unit-right",
            "Right unit",
            "Removes a right unitor, joining the wires on either side of it.",
            NodeKind.UNITOR_RIGHT,
        ),
    ]
)
"""The built-in rules, in the order they are listed."""
