"""
Python code generation backend.
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
import keyword
from typing import ClassVar, Final, final

from ..diagrams import Hom, Tensor, Type
from .abc import Backend


def _mentions_hom(t: Type) -> bool:
    if isinstance(t, Hom):
        return True
    if isinstance(t, Tensor):
        return _mentions_hom(t.left) or _mentions_hom(t.right)
    return False


@final
class PythonBackend(Backend):
    """Generates a type-annotated Python function."""

    name: ClassVar[str] = "python"
    builtin_types: ClassVar[dict[str, str]] = {
        "Int": "int",
        "Float": "float",
        "Bool": "bool",
        "String": "str",
    }
    reserved: ClassVar[frozenset[str]] = frozenset(keyword.kwlist)

    __slots__ = ()

    def _unit_type(self) -> str:
        return "None"

    def _tuple_type(self, components: Sequence[str]) -> str:
        return f"tuple[{', '.join(components)}]"

    def _function_type(self, domain: str, codomain: str) -> str:
        return f"Callable[[{domain}], {codomain}]"

    def render_header(self, types: Iterable[Type]) -> list[str]:
        lines = ["from __future__ import annotations"]
        if any(_mentions_hom(t) for t in types):
            lines.append("from collections.abc import Callable")
        return [*lines, "", ""]

    def render_call(self, callee: str, args: Sequence[str]) -> str:
        return f"{callee}({', '.join(args)})"

    def render_binding(
        self, names: Sequence[str], types: Sequence[str], expr: str
    ) -> str:
        assert len(names) <= 1
        return f"{names[0]} = {expr}" if names else expr

    def render_tuple(self, values: Sequence[str]) -> str:
        return f"({', '.join(values)})"

    def render_destructure(
        self, names: Sequence[str], types: Sequence[str], expr: str
    ) -> str:
        return f"{', '.join(names)} = {expr}"

    def render_return(self, expr: str | None) -> str:
        return "return None" if expr is None else f"return {expr}"

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
            f"def {name}({signature}) -> {return_type}:",
            *(f"{indent}{line}" for line in body),
        ]


python_backend: Final[PythonBackend] = PythonBackend()
"""The Python backend."""
