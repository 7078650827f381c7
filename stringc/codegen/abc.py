"""
Abstract base class for code generation backends.
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
from abc import ABCMeta, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
import re
from typing import ClassVar, Final, final

from ..diagrams import Base, Hom, Tensor, Type, UnitType, tensor_of

_IDENTIFIER_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9_]")


class UnmappedType(Exception):
    """Raised by backends for types which have no syntax in the target language."""

    type: Type

    def __init__(self, t: Type) -> None:
        super().__init__(f"Type {t} has no mapping in the target language.")
        self.type = t


class Backend(metaclass=ABCMeta):
    """
    Abstract base class for code generation backends.

    A backend knows how to name types, and how to render calls, bindings, tuples,
    tuple destructuring and function framing in its target language.
    The traversal of the diagram is the same for all backends.
    """

    name: ClassVar[str]
    """Name of the target."""

    builtin_types: ClassVar[Mapping[str, str]] = {}
    """Target syntax for base types, by name, used when not in the type map."""

    reserved: ClassVar[frozenset[str]] = frozenset()
    """Words which cannot be used as identifiers in the target."""

    __slots__ = ("__weakref__",)

    @final
    @property
    def multi_value(self) -> bool:
        """
        Whether the target can return several values at once, that is, whether
        the backend renders tuples.
        """
        return type(self).render_tuple is not Backend.render_tuple

    @final
    def type_name(self, t: Type, type_map: Mapping[str, str]) -> str:
        """
        Target syntax for a type. Base types are looked up in the type map first,
        then in the builtin types of the backend.

        :raises UnmappedType: if some component of the type has no mapping.
        """
        if isinstance(t, Base):
            mapped = type_map.get(t.name, self.builtin_types.get(t.name))
            if mapped is None:
                raise UnmappedType(t)
            return mapped
        if isinstance(t, UnitType):
            return self._unit_type()
        rendered: str | None = None
        if isinstance(t, Tensor):
            rendered = self._tuple_type(
                [self.type_name(t.left, type_map), self.type_name(t.right, type_map)]
            )
        elif isinstance(t, Hom):
            rendered = self._function_type(
                self.type_name(t.domain, type_map), self.type_name(t.codomain, type_map)
            )
        if rendered is None:
            raise UnmappedType(t)
        return rendered

    @final
    def return_type(self, types: Sequence[Type], type_map: Mapping[str, str]) -> str:
        """Target syntax for the type of a sequence of returned values."""
        if not types:
            return self._unit_type()
        if len(types) == 1:
            return self.type_name(types[0], type_map)
        rendered = self._tuple_type([self.type_name(t, type_map) for t in types])
        if rendered is None:
            raise UnmappedType(tensor_of(types))
        return rendered

    @abstractmethod
    def _unit_type(self) -> str:
        """Target syntax for the unit type."""

    @abstractmethod
    def _tuple_type(self, components: Sequence[str]) -> str | None:
        """
        Target syntax for a tuple type with the given component types,
        or :obj:`None` if the target has no tuple types.
        """

    @abstractmethod
    def _function_type(self, domain: str, codomain: str) -> str | None:
        """Target syntax for a function type, or :obj:`None` if there is none."""

    def identifier(self, label: str) -> str:
        """A valid identifier derived from a box label."""
        ident = _IDENTIFIER_RE.sub("_", label)
        if not ident or ident[0].isdigit():
            ident = f"_{ident}"
        if ident in self.reserved:
            ident = f"{ident}_"
        return ident

    def qualify(self, prefix: str, name: str) -> str:
        """Qualifies a callable name with a module prefix."""
        return f"{prefix}.{name}" if prefix else name

    def render_header(self, types: Iterable[Type]) -> list[str]:
        """Lines preceding the function, given all the types it mentions."""
        return []

    @abstractmethod
    def render_call(self, callee: str, args: Sequence[str]) -> str:
        """Expression calling the given callable on the given arguments."""

    @abstractmethod
    def render_binding(
        self, names: Sequence[str], types: Sequence[str], expr: str
    ) -> str:
        """
        Statement binding the value of an expression to a single name, or
        evaluating it for its effects alone if no names are given.
        Multiple names are bound with :meth:`render_destructure`.
        """

    def render_tuple(self, values: Sequence[str]) -> str | None:
        """
        Expression constructing a tuple from the given values,
        or :obj:`None` if the target has no tuple values.
        """
        return None

    def render_destructure(
        self, names: Sequence[str], types: Sequence[str], expr: str
    ) -> str | None:
        """
        Statement binding the components of a tuple-valued expression to names,
        or :obj:`None` if the target has no tuple values.
        """
        return None

    @abstractmethod
    def render_return(self, expr: str | None) -> str:
        """Return statement, with no value for the unit."""

    @abstractmethod
    def render_function(
        self,
        name: str,
        params: Sequence[tuple[str, str]],
        return_type: str,
        body: Sequence[str],
        indent: str,
    ) -> list[str]:
        """Lines of a function definition, with the given body statements."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"
