"""
C code generation backend.

C has neither tuples nor closures: tensor and function types have no mapping,
and nodes or boundaries with more than one output are not supported.
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
from collections.abc import Iterable, Sequence
from typing import ClassVar, Final, final

from ..diagrams import Type
from .abc import Backend

_RESERVED: Final[frozenset[str]] = frozenset(
    """
    auto break case char const continue default do double else enum extern float
    for goto if inline int long register restrict return short signed sizeof
    static struct switch typedef union unsigned void volatile while bool true false
    """.split()
)


@final
class CBackend(Backend):
    """Generates a C function over fixed-width scalar types."""

    name: ClassVar[str] = "c"
    builtin_types: ClassVar[dict[str, str]] = {
        "Int": "int64_t",
        "Float": "double",
        "Bool": "bool",
        "String": "const char*",
    }
    reserved: ClassVar[frozenset[str]] = _RESERVED

    __slots__ = ()

    def _unit_type(self) -> str:
        return "void"

    def _tuple_type(self, components: Sequence[str]) -> None:
        return None

    def _function_type(self, domain: str, codomain: str) -> None:
        return None

    def qualify(self, prefix: str, name: str) -> str:
        return f"{prefix}_{name}" if prefix else name

    def render_header(self, types: Iterable[Type]) -> list[str]:
        return ["#include <stdbool.h>", "#include <stdint.h>", ""]

    def render_call(self, callee: str, args: Sequence[str]) -> str:
        return f"{callee}({', '.join(args)})"

    def render_binding(
        self, names: Sequence[str], types: Sequence[str], expr: str
    ) -> str:
        assert len(names) <= 1
        if not names:
            return f"{expr};"
        return f"{types[0]} {names[0]} = {expr};"

    def render_return(self, expr: str | None) -> str:
        return "return;" if expr is None else f"return {expr};"

    def render_function(
        self,
        name: str,
        params: Sequence[tuple[str, str]],
        return_type: str,
        body: Sequence[str],
        indent: str,
    ) -> list[str]:
        signature = ", ".join(f"{t} {param}" for param, t in params) or "void"
        return [
            f"{return_type} {name}({signature}) {{",
            *(f"{indent}{line}" for line in body),
            "}",
        ]


c_backend: Final[CBackend] = CBackend()
"""The C backend."""
