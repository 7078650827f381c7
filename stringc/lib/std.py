"""Standard library of base types, box signatures and structural node templates."""

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
from types import MappingProxyType
from typing import Final

from ..diagrams import Base, Diagram, DiagramBuilder, NodeKind, NodeSpec, Signature
from ..registry import SignatureRegistry

Int: Final[Base] = Base("Int")
"""Machine integers."""

Float: Final[Base] = Base("Float")
"""Floating point numbers."""

Bool: Final[Base] = Base("Bool")
"""Booleans."""

String: Final[Base] = Base("String")
"""Strings."""

std_registry: Final[SignatureRegistry] = SignatureRegistry(
    {
        "add": Signature([Int, Int], [Int]),
        "sub": Signature([Int, Int], [Int]),
        "mul": Signature([Int, Int], [Int]),
        "neg": Signature([Int], [Int]),
        "divmod": Signature([Int, Int], [Int, Int]),
        "lt": Signature([Int, Int], [Bool]),
        "not": Signature([Bool], [Bool]),
        "and": Signature([Bool, Bool], [Bool]),
        "or": Signature([Bool, Bool], [Bool]),
        "to_float": Signature([Int], [Float]),
        "show_int": Signature([Int], [String]),
        "concat": Signature([String, String], [String]),
        "print": Signature([String], []),
        "zero": Signature([], [Int]),
        "one": Signature([], [Int]),
    }
)
"""Registry of signatures for the standard boxes."""

add: Final[NodeSpec] = std_registry.spec("add")
"""Integer addition."""

sub: Final[NodeSpec] = std_registry.spec("sub")
"""Integer subtraction."""

mul: Final[NodeSpec] = std_registry.spec("mul")
"""Integer multiplication."""

neg: Final[NodeSpec] = std_registry.spec("neg")
"""Integer negation."""

divmod_: Final[NodeSpec] = std_registry.spec("divmod")
"""Integer quotient and remainder."""

lt: Final[NodeSpec] = std_registry.spec("lt")
"""Integer comparison."""

not_: Final[NodeSpec] = std_registry.spec("not")
"""Boolean negation."""

and_: Final[NodeSpec] = std_registry.spec("and")
"""Boolean conjunction."""

or_: Final[NodeSpec] = std_registry.spec("or")
"""Boolean disjunction."""

to_float: Final[NodeSpec] = std_registry.spec("to_float")
"""Integer to float conversion."""

show_int: Final[NodeSpec] = std_registry.spec("show_int")
"""Integer to string conversion."""

concat: Final[NodeSpec] = std_registry.spec("concat")
"""String concatenation."""

print_: Final[NodeSpec] = std_registry.spec("print")
"""Consumes a string, producing no outputs."""

zero: Final[NodeSpec] = std_registry.spec("zero")
"""The integer constant 0."""

one: Final[NodeSpec] = std_registry.spec("one")
"""The integer constant 1."""

identity: Final[NodeSpec] = NodeSpec.structural(NodeKind.IDENTITY)
"""Identity node."""

braiding: Final[NodeSpec] = NodeSpec.structural(NodeKind.BRAIDING)
"""Braiding (swap) node."""

associator_left: Final[NodeSpec] = NodeSpec.structural(NodeKind.ASSOCIATOR_LEFT)
"""Associator node, re-bracketing to the left."""

associator_right: Final[NodeSpec] = NodeSpec.structural(NodeKind.ASSOCIATOR_RIGHT)
"""Associator node, re-bracketing to the right."""

unitor_left: Final[NodeSpec] = NodeSpec.structural(NodeKind.UNITOR_LEFT)
"""Left unitor node."""

unitor_right: Final[NodeSpec] = NodeSpec.structural(NodeKind.UNITOR_RIGHT)
"""Right unitor node."""

structural_specs: Final[Mapping[NodeKind, NodeSpec]] = MappingProxyType(
    {
        NodeKind.IDENTITY: identity,
        NodeKind.BRAIDING: braiding,
        NodeKind.ASSOCIATOR_LEFT: associator_left,
        NodeKind.ASSOCIATOR_RIGHT: associator_right,
        NodeKind.UNITOR_LEFT: unitor_left,
        NodeKind.UNITOR_RIGHT: unitor_right,
    }
)
"""Templates for structural nodes, by kind."""


swap_sub: Diagram
"""
Diagram computing ``y - x`` from inputs ``x`` and ``y``,
by swapping the inputs before subtracting.
"""


@Diagram.from_recipe  # type: ignore[no-redef]
def swap_sub(diag: DiagramBuilder) -> None:
    x, y = diag.add_inputs([Int, Int])
    y1, x1 = braiding @ diag[x, y]
    (d,) = sub @ diag[y1, x1]
    diag.add_outputs([d])


in_range: Diagram
"""
Diagram checking ``lo < x`` and ``x < hi``, given ``lo``, ``x``, ``x`` and ``hi``.
Values flow linearly, so ``x`` is passed twice.
"""


@Diagram.from_recipe  # type: ignore[no-redef]
def in_range(diag: DiagramBuilder) -> None:
    lo, x0, x1, hi = diag.add_inputs([Int, Int, Int, Int])
    (above,) = lt @ diag[lo, x0]
    (below,) = lt @ diag[x1, hi]
    (both,) = and_ @ diag[above, below]
    diag.add_outputs([both])


report_divmod: Diagram
"""
Diagram dividing two integers, printing the quotient and returning the remainder.
"""


@Diagram.from_recipe  # type: ignore[no-redef]
def report_divmod(diag: DiagramBuilder) -> None:
    a, b = diag.add_inputs([Int, Int])
    q, r = divmod_ @ diag[a, b]
    (text,) = show_int @ diag[q]
    print_ @ diag[text]
    diag.add_outputs([r])
