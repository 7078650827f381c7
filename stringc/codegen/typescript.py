"""
TypeScript code generation backend.
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
from collections.abc import Sequence
from typing import ClassVar, Final, final

from .abc import Backend

_RESERVED: Final[frozenset[str]] = frozenset(
    """
    break case catch class const continue debugger default delete do else enum
    export extends false finally for function if import in instanceof let new
    null return super switch this throw true try typeof var void while with yield
    """.split()
)


@final
class TypeScriptBackend(Backend):
    """Generates an exported TypeScript function, with tuples as arrays."""

    name: ClassVar[str] = "typescript"
    builtin_types: ClassVar[dict[str, str]] = {
        "Int": "number",
        "Float": "number",
        "Bool": "boolean",
        "String": "string",
    }
    reserved: ClassVar[frozenset[str]] = _RESERVED

    __slots__ = ()

    def _unit_type(self) -> str:
        return "void"

    def _tuple_type(self, components: Sequence[str]) -> str:
        return f"[{', '.join(components)}]"

    def _function_type(self, domain: str, codomain: str) -> str:
        return f"(arg: {domain}) => {codomain}"

    def render_call(self, callee: str, args: Sequence[str]) -> str:
        return f"{callee}({', '.join(args)})"

    def render_binding(
        self, names: Sequence[str], types: Sequence[str], expr: str
    ) -> str:
        assert len(names) <= 1
        if not names:
            return f"{expr};"
        return f"const {names[0]}: {types[0]} = {expr};"

    def render_tuple(self, values: Sequence[str]) -> str:
        return f"[{', '.join(values)}]"

    def render_destructure(
        self, names: Sequence[str], types: Sequence[str], expr: str
    ) -> str:
        return f"const [{', '.join(names)}]: [{', '.join(types)}] = {expr};"

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
        signature = ", ".join(f"{param}: {t}" for param, t in params)
        return [
            f"export function {name}({signature}): {return_type} {{",
            *(f"{indent}{line}" for line in body),
            "}",
        ]


typescript_backend: Final[TypeScriptBackend] = TypeScriptBackend()
"""The TypeScript backend."""
