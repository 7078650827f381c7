"""
Signature registries, mapping box labels to their signatures.
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
from types import MappingProxyType
from typing import Any, Self, final

if __debug__:
    from beartype.door import is_bearable

from .diagrams import NodeSpec, Signature, Type, parse_types


@final
class SignatureRegistry(Mapping[str, Signature]):
    """
    An immutable mapping of box labels to signatures.

    Registries are shared read-only between requests: extending a registry
    returns a new registry and leaves the original untouched.
    """

    __entries: MappingProxyType[str, Signature]

    __slots__ = ("__weakref__", "__entries")

    def __new__(
        cls,
        entries: Mapping[str, Signature] | Iterable[tuple[str, Signature]] = (),
    ) -> Self:
        """
        Constructs a registry from the given entries.

        :meta public:
        """
        _entries = dict(entries)
        assert is_bearable(_entries, dict[str, Signature])
        for label in _entries:
            if not label:
                raise ValueError("Box labels cannot be empty.")
        self = super().__new__(cls)
        self.__entries = MappingProxyType(_entries)
        return self

    @classmethod
    def from_declarations(
        cls,
        declarations: Iterable[Mapping[str, Any]],
        aliases: Mapping[str, Type] | None = None,
    ) -> SignatureRegistry:
        """
        Constructs a registry from declarations of the form
        ``{"label": "add", "inputs": ["Int", "Int"], "outputs": ["Int"]}``,
        with types given as type expressions.
        """
        entries: dict[str, Signature] = {}
        for decl in declarations:
            try:
                label = decl["label"]
                inputs = parse_types(decl.get("inputs", ()), aliases)
                outputs = parse_types(decl.get("outputs", ()), aliases)
            except KeyError as e:
                raise ValueError(f"Signature declaration is missing {e}.") from None
            if label in entries:
                raise ValueError(f"Duplicate signature declaration for {label!r}.")
            entries[label] = Signature(inputs, outputs)
        return cls(entries)

    def to_declarations(self) -> list[dict[str, Any]]:
        """Inverse of :meth:`from_declarations`."""
        return [
            {
                "label": label,
                "inputs": [str(t) for t in sig.inputs],
                "outputs": [str(t) for t in sig.outputs],
            }
            for label, sig in self.__entries.items()
        ]

    def extend(
        self, entries: Mapping[str, Signature] | None = None, /, **kwargs: Signature
    ) -> SignatureRegistry:
        """
        Returns a new registry with the given entries added,
        overriding existing entries with the same label.
        """
        merged = dict(self.__entries)
        if entries is not None:
            merged.update(entries)
        merged.update(kwargs)
        return SignatureRegistry(merged)

    def spec(self, label: str) -> NodeSpec:
        """Node template for a box with the given label and its registered signature."""
        return NodeSpec(self.__entries[label], label)

    def __getitem__(self, label: str) -> Signature:
        return self.__entries[label]

    def __iter__(self) -> Iterator[str]:
        return iter(self.__entries)

    def __len__(self) -> int:
        return len(self.__entries)

    def __repr__(self) -> str:
        return f"<SignatureRegistry {id(self):#x}: {len(self)} signatures>"
