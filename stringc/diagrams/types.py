"""
Implementation of types and signatures for the :mod:`stringc.diagrams` module.
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
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
import re
from typing import Any, ClassVar, Final, Self, TypeAlias, final

from hashcons import InstanceStore

if __debug__:
    from beartype.door import is_bearable


Substitution: TypeAlias = Mapping[str, "Type"]
"""Type alias for a substitution of type variables, keyed by variable name."""

_NAME_RE: Final[re.Pattern[str]] = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")


class Type(ABC):
    """
    Abstract base class for types in diagrams.

    Types are built from base types, the tensor product, linear function types and
    the monoidal unit. They are hash-consed: two types with the same structure are
    the same object, so equality is structural but costs a pointer comparison.
    Variables (cf. :class:`Var`) only appear in schemas for structural nodes and in
    rewrite patterns.
    """

    _store: ClassVar[InstanceStore] = InstanceStore()

    __slots__ = ("__weakref__",)

    @property
    @abstractmethod
    def children(self) -> tuple[Type, ...]:
        """Immediate sub-types."""

    @property
    def free_vars(self) -> frozenset[str]:
        """Names of the type variables appearing in this type."""
        return frozenset().union(*(child.free_vars for child in self.children))

    @property
    def is_ground(self) -> bool:
        """Whether the type contains no type variables."""
        return not self.free_vars

    def substitute(self, subst: Substitution) -> Type:
        """Replaces type variables according to the given substitution."""
        assert is_bearable(subst, Mapping[str, Type])
        return self._substitute(subst)

    @abstractmethod
    def _substitute(self, subst: Substitution) -> Type: ...

    @property
    @abstractmethod
    def _precedence(self) -> int:
        """Binding strength for pretty-printing: 0 for ``->``, 1 for ``⊗``, 2 else."""

    def __mul__(self, other: Type) -> Tensor:
        """
        Tensor product of this type with another type.

        :meta public:
        """
        return Tensor(self, other)

    def __rshift__(self, other: Type) -> Hom:
        """
        Linear function type from this type to another type.

        :meta public:
        """
        return Hom(self, other)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {str(self)!r}>"


def _wrap(t: Type, precedence: int) -> str:
    if t._precedence < precedence:
        return f"({t})"
    return str(t)


@final
class Base(Type):
    """A named base type, e.g. ``Int``."""

    @classmethod
    def _new(cls, name: str) -> Self:
        """Protected constructor."""
        with Type._store.instance(cls, name) as self:
            if self is None:
                self = super().__new__(cls)
                self.__name = name
                Type._store.register(self)
            return self

    __name: str

    __slots__ = ("__name",)

    def __new__(cls, name: str) -> Self:
        """
        Public constructor.

        :meta public:
        """
        assert is_bearable(name, str)
        if not _NAME_RE.fullmatch(name) or name == "I":
            raise ValueError(f"Invalid base type name {name!r}.")
        return cls._new(name)

    @property
    def name(self) -> str:
        """Name of the base type."""
        return self.__name

    @property
    def children(self) -> tuple[Type, ...]:
        return ()

    def _substitute(self, subst: Substitution) -> Type:
        return self

    @property
    def _precedence(self) -> int:
        return 2

    def __reduce__(self) -> tuple[Any, ...]:
        return (Base, (self.__name,))

    def __str__(self) -> str:
        return self.__name


@final
class Var(Type):
    """A type variable, bound by matching against a concrete type."""

    @classmethod
    def _new(cls, name: str) -> Self:
        """Protected constructor."""
        with Type._store.instance(cls, name) as self:
            if self is None:
                self = super().__new__(cls)
                self.__name = name
                Type._store.register(self)
            return self

    __name: str

    __slots__ = ("__name",)

    def __new__(cls, name: str) -> Self:
        """
        Public constructor.

        :meta public:
        """
        assert is_bearable(name, str)
        if not _NAME_RE.fullmatch(name):
            raise ValueError(f"Invalid type variable name {name!r}.")
        return cls._new(name)

    @property
    def name(self) -> str:
        """Name of the type variable."""
        return self.__name

    @property
    def children(self) -> tuple[Type, ...]:
        return ()

    @property
    def free_vars(self) -> frozenset[str]:
        return frozenset((self.__name,))

    def _substitute(self, subst: Substitution) -> Type:
        return subst.get(self.__name, self)

    @property
    def _precedence(self) -> int:
        return 2

    def __reduce__(self) -> tuple[Any, ...]:
        return (Var, (self.__name,))

    def __str__(self) -> str:
        return f"?{self.__name}"


@final
class UnitType(Type):
    """The monoidal unit ``I``. There is exactly one instance, :obj:`I`."""

    @classmethod
    def _new(cls) -> Self:
        """Protected constructor."""
        with Type._store.instance(cls, ()) as self:
            if self is None:
                self = super().__new__(cls)
                Type._store.register(self)
            return self

    __slots__ = ()

    def __new__(cls) -> Self:
        """
        Returns the monoidal unit.

        :meta public:
        """
        return cls._new()

    @property
    def children(self) -> tuple[Type, ...]:
        return ()

    def _substitute(self, subst: Substitution) -> Type:
        return self

    @property
    def _precedence(self) -> int:
        return 2

    def __reduce__(self) -> tuple[Any, ...]:
        return (UnitType, ())

    def __str__(self) -> str:
        return "I"


@final
class Tensor(Type):
    """The tensor product ``left ⊗ right`` of two types."""

    @classmethod
    def _new(cls, left: Type, right: Type) -> Self:
        """Protected constructor."""
        with Type._store.instance(cls, (left, right)) as self:
            if self is None:
                self = super().__new__(cls)
                self.__left = left
                self.__right = right
                Type._store.register(self)
            return self

    __left: Type
    __right: Type

    __slots__ = ("__left", "__right")

    def __new__(cls, left: Type, right: Type) -> Self:
        """
        Public constructor.

        :meta public:
        """
        assert is_bearable(left, Type)
        assert is_bearable(right, Type)
        return cls._new(left, right)

    @property
    def left(self) -> Type:
        """Left factor."""
        return self.__left

    @property
    def right(self) -> Type:
        """Right factor."""
        return self.__right

    @property
    def children(self) -> tuple[Type, ...]:
        return (self.__left, self.__right)

    def _substitute(self, subst: Substitution) -> Type:
        return Tensor._new(
            self.__left._substitute(subst), self.__right._substitute(subst)
        )

    @property
    def _precedence(self) -> int:
        return 1

    def __reduce__(self) -> tuple[Any, ...]:
        return (Tensor, (self.__left, self.__right))

    def __str__(self) -> str:
        # Left-associative: only the right factor needs brackets for nested tensors.
        return f"{_wrap(self.__left, 1)} ⊗ {_wrap(self.__right, 2)}"


@final
class Hom(Type):
    """The linear function type ``domain -> codomain``."""

    @classmethod
    def _new(cls, domain: Type, codomain: Type) -> Self:
        """Protected constructor."""
        with Type._store.instance(cls, (domain, codomain)) as self:
            if self is None:
                self = super().__new__(cls)
                self.__domain = domain
                self.__codomain = codomain
                Type._store.register(self)
            return self

    __domain: Type
    __codomain: Type

    __slots__ = ("__domain", "__codomain")

    def __new__(cls, domain: Type, codomain: Type) -> Self:
        """
        Public constructor.

        :meta public:
        """
        assert is_bearable(domain, Type)
        assert is_bearable(codomain, Type)
        return cls._new(domain, codomain)

    @property
    def domain(self) -> Type:
        """Domain of the function type."""
        return self.__domain

    @property
    def codomain(self) -> Type:
        """Codomain of the function type."""
        return self.__codomain

    @property
    def children(self) -> tuple[Type, ...]:
        return (self.__domain, self.__codomain)

    def _substitute(self, subst: Substitution) -> Type:
        return Hom._new(
            self.__domain._substitute(subst), self.__codomain._substitute(subst)
        )

    @property
    def _precedence(self) -> int:
        return 0

    def __reduce__(self) -> tuple[Any, ...]:
        return (Hom, (self.__domain, self.__codomain))

    def __str__(self) -> str:
        return f"{_wrap(self.__domain, 1)} -> {_wrap(self.__codomain, 0)}"


I: Final[UnitType] = UnitType()
"""The monoidal unit."""


def tensor_of(types: Iterable[Type]) -> Type:
    """
    Left-nested tensor product of the given types, or :obj:`I` if there are none.
    This is how an ordered list of ports is read as a single type.
    """
    result: Type | None = None
    for t in types:
        result = t if result is None else Tensor._new(result, t)
    return I if result is None else result


def match(
    pattern: Type, t: Type, subst: Substitution | None = None
) -> dict[str, Type] | None:
    """
    First-order matching of a pattern against a type.

    Extends the given substitution (which is not modified) so that substituting it
    into ``pattern`` yields ``t``, or returns :obj:`None` if no such extension exists.
    Variables in ``t`` are treated as opaque constants.
    """
    result = dict(subst) if subst is not None else {}
    if _match(pattern, t, result):
        return result
    return None


def _match(pattern: Type, t: Type, subst: dict[str, Type]) -> bool:
    if isinstance(pattern, Var):
        bound = subst.get(pattern.name)
        if bound is None:
            subst[pattern.name] = t
            return True
        return bound is t
    if type(pattern) is not type(t):
        return False
    if not pattern.children:
        return pattern is t
    return all(_match(p, c, subst) for p, c in zip(pattern.children, t.children))


@final
class Signature:
    """
    The signature of a node, as the ordered types of its input ports and the
    ordered types of its output ports.
    """

    __inputs: tuple[Type, ...]
    __outputs: tuple[Type, ...]

    __slots__ = ("__weakref__", "__inputs", "__outputs")

    def __new__(cls, inputs: Iterable[Type], outputs: Iterable[Type]) -> Self:
        """
        Constructs a signature from input and output types.

        :meta public:
        """
        inputs, outputs = tuple(inputs), tuple(outputs)
        assert is_bearable(inputs, tuple[Type, ...])
        assert is_bearable(outputs, tuple[Type, ...])
        self = super().__new__(cls)
        self.__inputs = inputs
        self.__outputs = outputs
        return self

    @property
    def inputs(self) -> tuple[Type, ...]:
        """Types of the input ports."""
        return self.__inputs

    @property
    def outputs(self) -> tuple[Type, ...]:
        """Types of the output ports."""
        return self.__outputs

    @property
    def free_vars(self) -> frozenset[str]:
        """Names of the type variables appearing in the signature."""
        return frozenset().union(*(t.free_vars for t in self.__inputs + self.__outputs))

    @property
    def as_hom(self) -> Hom:
        """The signature read as a single function type."""
        return Hom._new(tensor_of(self.__inputs), tensor_of(self.__outputs))

    def substitute(self, subst: Substitution) -> Signature:
        """Replaces type variables according to the given substitution."""
        assert is_bearable(subst, Mapping[str, Type])
        return Signature(
            (t._substitute(subst) for t in self.__inputs),
            (t._substitute(subst) for t in self.__outputs),
        )

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Signature):
            return NotImplemented
        return (
            self.__inputs == other.__inputs and self.__outputs == other.__outputs
        )

    def __hash__(self) -> int:
        return hash((Signature, self.__inputs, self.__outputs))

    def __reduce__(self) -> tuple[Any, ...]:
        return (Signature, (self.__inputs, self.__outputs))

    def __str__(self) -> str:
        ins = ", ".join(map(str, self.__inputs))
        outs = ", ".join(map(str, self.__outputs))
        return f"[{ins}] -> [{outs}]"

    def __repr__(self) -> str:
        return f"<Signature {str(self)!r}>"


class TypeSyntaxError(ValueError):
    """Raised when a type expression cannot be parsed."""


_TOKEN_RE: Final[re.Pattern[str]] = re.compile(
    r"\s*(?:(?P<arrow>->|→)|(?P<tensor>⊗|\*)|(?P<lpar>\()|(?P<rpar>\))"
    r"|(?P<var>\?[A-Za-z_][A-Za-z0-9_.]*)|(?P<name>[A-Za-z_][A-Za-z0-9_.]*))"
)


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos, end = 0, len(text.rstrip())
    while pos < end:
        m = _TOKEN_RE.match(text, pos)
        if m is None or m.lastgroup is None:
            raise TypeSyntaxError(f"Unexpected character at {pos} in {text!r}.")
        tokens.append((m.lastgroup, m.group(m.lastgroup)))
        pos = m.end()
    return tokens


def parse_type(text: str, aliases: Mapping[str, Type] | None = None) -> Type:
    """
    Parses a type expression in the syntax produced by ``str(t)``.

    Tensor products can be written with ``⊗`` or ``*`` and associate to the left;
    function types can be written with ``->`` or ``→`` and associate to the right.
    ``I`` is the unit, ``?X`` is a type variable and any other name is a base type,
    unless it appears in ``aliases``, in which case it is replaced by its definition.
    """
    assert is_bearable(text, str)
    tokens = _tokenize(text)
    if not tokens:
        raise TypeSyntaxError("Empty type expression.")
    _aliases = aliases if aliases is not None else {}
    pos = 0

    def peek() -> str | None:
        return tokens[pos][0] if pos < len(tokens) else None

    def found() -> str:
        return repr(tokens[pos][1]) if pos < len(tokens) else "end of input"

    def expect(kind: str) -> str:
        nonlocal pos
        if peek() != kind:
            raise TypeSyntaxError(f"Expected {kind} in {text!r}, found {found()}.")
        value = tokens[pos][1]
        pos += 1
        return value

    def parse_hom() -> Type:
        nonlocal pos
        domain = parse_tensor()
        if peek() == "arrow":
            pos += 1
            return Hom._new(domain, parse_hom())
        return domain

    def parse_tensor() -> Type:
        nonlocal pos
        result = parse_atom()
        while peek() == "tensor":
            pos += 1
            result = Tensor._new(result, parse_atom())
        return result

    def parse_atom() -> Type:
        nonlocal pos
        match peek():
            case "lpar":
                pos += 1
                t = parse_hom()
                expect("rpar")
                return t
            case "var":
                return Var(expect("var")[1:])
            case "name":
                name = expect("name")
                if name == "I":
                    return I
                if name in _aliases:
                    return _aliases[name]
                return Base(name)
        raise TypeSyntaxError(f"Expected a type in {text!r}, found {found()}.")

    result = parse_hom()
    if pos != len(tokens):
        raise TypeSyntaxError(f"Unexpected {found()} in {text!r}.")
    return result


def parse_types(
    texts: Sequence[str], aliases: Mapping[str, Type] | None = None
) -> tuple[Type, ...]:
    """Parses a sequence of type expressions."""
    return tuple(parse_type(text, aliases) for text in texts)


def coerce_type(value: Any, aliases: Mapping[str, Type] | None = None) -> Type:
    """Returns the value if it is a type, or parses it if it is a string."""
    if isinstance(value, Type):
        return value
    if isinstance(value, str):
        return parse_type(value, aliases)
    raise TypeError(f"Expected a type or type expression, got {value!r}.")
