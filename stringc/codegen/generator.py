"""
Generation of straight-line source code from type-checked diagrams.
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
import logging
import re
from types import MappingProxyType
from typing import Any, Final, Literal, Self, TypeAlias, TypedDict, Unpack, final

if __debug__:
    from beartype.door import is_bearable

from ..cancellation import CancellationToken, poll
from ..checker import CheckResult
from ..diagrams import (
    BoundarySlot,
    Diagram,
    Endpoint,
    Node,
    Type,
    dependency_order,
)
from ..utils import ValueSetter, apply_setter, dict_deep_copy, dict_deep_update
from .abc import Backend, UnmappedType
from .c import c_backend
from .python import python_backend
from .typescript import typescript_backend

logger = logging.getLogger(__name__)

_NAME_ROOT_RE: Final[re.Pattern[str]] = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")

BACKENDS: Final[Mapping[str, Backend]] = MappingProxyType(
    {
        backend.name: backend
        for backend in (python_backend, typescript_backend, c_backend)
    }
)
"""The available backends, by target name."""

CodegenErrorKind: TypeAlias = Literal[
    "unchecked", "unmapped-type", "unsupported-construct", "unknown-target"
]
"""Type alias for the kinds of code generation errors."""

CODEGEN_ERROR_KINDS: Final[tuple[CodegenErrorKind, ...]] = (
    "unchecked",
    "unmapped-type",
    "unsupported-construct",
    "unknown-target",
)
"""Possible kinds of code generation errors."""


@final
class CodegenError:
    """
    A code generation error: its kind, the node id, target name or ``"boundary"``
    it concerns (if any), and a human-readable message.
    """

    __kind: CodegenErrorKind
    __subject: str | None
    __message: str

    __slots__ = ("__weakref__", "__kind", "__subject", "__message")

    def __new__(
        cls, kind: CodegenErrorKind, subject: str | None, message: str
    ) -> Self:
        """
        Constructs a code generation error.

        :meta public:
        """
        assert is_bearable(kind, CodegenErrorKind)
        self = super().__new__(cls)
        self.__kind = kind
        self.__subject = subject
        self.__message = message
        return self

    @property
    def kind(self) -> CodegenErrorKind:
        """Kind of error."""
        return self.__kind

    @property
    def subject(self) -> str | None:
        """What the error concerns, if anything in particular."""
        return self.__subject

    @property
    def message(self) -> str:
        """Human-readable message."""
        return self.__message

    def to_dict(self) -> dict[str, Any]:
        """Plain data form, for transport."""
        return {"kind": self.__kind, "subject": self.__subject, "message": self.__message}

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, CodegenError):
            return NotImplemented
        return (
            self.__kind == other.__kind
            and self.__subject == other.__subject
            and self.__message == other.__message
        )

    def __hash__(self) -> int:
        return hash((CodegenError, self.__kind, self.__subject, self.__message))

    def __repr__(self) -> str:
        return f"CodegenError({self.__kind!r}, {self.__subject!r}, {self.__message!r})"


class CodegenFailure(Exception):
    """Raised with all the errors encountered while generating code."""

    errors: tuple[CodegenError, ...]

    def __init__(self, errors: Iterable[CodegenError]) -> None:
        errors = tuple(errors)
        super().__init__("\n".join(error.message for error in errors))
        self.errors = errors


class GenerateOptions(TypedDict, total=False):
    """Options for code generation."""

    function_name: str
    """Name of the generated function."""

    module_prefix: str
    """Prefix qualifying the callables derived from box labels."""

    type_map: dict[str, str]
    """Target syntax for base types, by type name, overriding the backend's."""

    labels: ValueSetter[str, str]
    """Target callable names for box labels, used as given."""

    indent: str
    """Indentation of the function body."""


class CodeGenerator:
    """
    A code generation function, with additional logic to handle default option
    values.
    """

    __defaults: GenerateOptions

    def __new__(cls) -> Self:
        """Instantiates a new code generator, with default values for options."""
        self = super().__new__(cls)
        self.__defaults = {
            "function_name": "diagram",
            "module_prefix": "",
            "type_map": {},
            "labels": {},
            "indent": "    ",
        }
        return self

    @property
    def defaults(self) -> GenerateOptions:
        """Current default options."""
        return dict_deep_copy(self.__defaults)

    def clone(self) -> CodeGenerator:
        """Clones the current code generator."""
        instance = CodeGenerator()
        instance.set_defaults(**self.__defaults)
        return instance

    def set_defaults(self, **defaults: Unpack[GenerateOptions]) -> None:
        """Sets new values for default options."""
        dict_deep_update(self.__defaults, defaults)

    def with_defaults(self, **defaults: Unpack[GenerateOptions]) -> CodeGenerator:
        """Returns a clone of this code generator, with new defaults."""
        instance = self.clone()
        instance.set_defaults(**defaults)
        return instance

    def __call__(
        self,
        diagram: Diagram,
        target: str | Backend,
        checked: CheckResult,
        *,
        cancel: CancellationToken | None = None,
        **options: Unpack[GenerateOptions],
    ) -> str:
        """
        Generates the source of a single function computing the given diagram,
        which must have been successfully checked.

        :raises CodegenFailure: with all errors, if code cannot be generated.
        :raises Cancelled: if the cancellation token is set while generating.
        """
        assert is_bearable(diagram, Diagram)
        assert is_bearable(checked, CheckResult)
        _options: GenerateOptions = dict_deep_update(
            dict_deep_copy(self.__defaults), options
        )
        if isinstance(target, Backend):
            backend = target
        elif target in BACKENDS:
            backend = BACKENDS[target]
        else:
            raise CodegenFailure(
                [CodegenError("unknown-target", target, f"Unknown target {target!r}.")]
            )
        if not checked.valid or checked.digest != diagram.digest:
            raise CodegenFailure(
                [
                    CodegenError(
                        "unchecked",
                        None,
                        "Diagram must be successfully checked before generating code.",
                    )
                ]
            )
        return _Emitter(diagram, checked, backend, _options, cancel).run()


generate: Final[CodeGenerator] = CodeGenerator()
"""Code generation function, with default options."""


class _Emitter:
    """State of a single run of the code generator."""

    diagram: Diagram
    checked: CheckResult
    backend: Backend
    options: GenerateOptions
    cancel: CancellationToken | None
    values: dict[Endpoint, str]
    types: list[Type]
    body: list[str]
    errors: list[CodegenError]
    num_values: int
    taken: set[str]

    def __init__(
        self,
        diagram: Diagram,
        checked: CheckResult,
        backend: Backend,
        options: GenerateOptions,
        cancel: CancellationToken | None,
    ) -> None:
        self.diagram = diagram
        self.checked = checked
        self.backend = backend
        self.options = options
        self.cancel = cancel
        self.values = {}
        self.types = []
        self.body = []
        self.errors = []
        self.num_values = 0
        self.taken = {options["function_name"]}
        for node in diagram.nodes.values():
            if node.label is not None and not node.kind.is_structural:
                m = _NAME_ROOT_RE.match(self.callee(node.label))
                if m is not None:
                    self.taken.add(m.group())

    def run(self) -> str:
        params = self.prologue()
        for node_id in dependency_order(self.diagram):
            poll(self.cancel)
            self.emit_node(self.diagram.nodes[node_id])
        return_type = self.epilogue()
        if self.errors:
            logger.debug(
                "Code generation for %s failed with %d errors.",
                self.backend.name,
                len(self.errors),
            )
            raise CodegenFailure(self.errors)
        lines = self.backend.render_header(self.types)
        lines.extend(
            self.backend.render_function(
                self.options["function_name"],
                params,
                return_type,
                self.body,
                self.options["indent"],
            )
        )
        logger.debug(
            "Generated %d statements for %s.", len(self.body), self.backend.name
        )
        return "\n".join(lines) + "\n"

    def type_name(self, t: Type) -> str:
        self.types.append(t)
        return self.backend.type_name(t, self.options["type_map"])

    def local(self, name: str) -> str:
        """
        Claims a local name, adding underscores until it differs from every callee,
        from the function name and from the locals claimed so far.
        """
        while name in self.taken:
            name += "_"
        self.taken.add(name)
        return name

    def fresh_value(self) -> str:
        name = self.local(f"v{self.num_values}")
        self.num_values += 1
        return name

    def source_value(self, endpoint: Endpoint) -> str:
        """Value flowing into the given consumer endpoint."""
        (wire,) = self.diagram.wires_at(endpoint)
        return self.values[wire.source]

    def callee(self, label: str) -> str:
        mapped = apply_setter(self.options["labels"], label)
        if mapped is not None:
            return mapped
        backend = self.backend
        return backend.qualify(
            self.options["module_prefix"], backend.identifier(label)
        )

    def prologue(self) -> list[tuple[str, str]]:
        """Parameters of the function, binding boundary inputs to values."""
        backend, inputs = self.backend, self.diagram.boundary.inputs
        names = [self.local(f"x{idx}") for idx in range(len(inputs))]
        for idx, name in enumerate(names):
            self.values[BoundarySlot("input", idx)] = name
        try:
            type_names = [self.type_name(t) for t in inputs]
        except UnmappedType as e:
            self.errors.append(CodegenError("unmapped-type", "boundary", str(e)))
            return []
        if len(inputs) >= 2 and backend.multi_value:
            tuple_type = backend.return_type(inputs, self.options["type_map"])
            param = self.local("inputs")
            destructure = backend.render_destructure(names, type_names, param)
            assert destructure is not None
            self.body.append(destructure)
            return [(param, tuple_type)]
        return list(zip(names, type_names))

    def emit_node(self, node: Node) -> None:
        args = [self.source_value(ref) for ref in node.input_refs()]
        out_refs = node.output_refs()
        if node.kind.is_structural:
            schema = node.kind.schema
            assert schema is not None
            ins, outs = schema.signature.inputs, schema.signature.outputs
            for ref, t in zip(out_refs, outs):
                self.values[ref] = args[ins.index(t)]
            return
        assert node.label is not None
        names = [self.fresh_value() for _ in out_refs]
        self.values.update(zip(out_refs, names))
        if len(out_refs) >= 2 and not self.backend.multi_value:
            self.errors.append(
                CodegenError(
                    "unsupported-construct",
                    node.id,
                    f"Node {node.id!r} has {len(out_refs)} outputs,"
                    f" but {self.backend.name} has no multi-value returns.",
                )
            )
            return
        try:
            types = [self.type_name(self.checked.port_types[ref]) for ref in out_refs]
        except UnmappedType as e:
            self.errors.append(
                CodegenError("unmapped-type", node.id, f"Node {node.id!r}: {e}")
            )
            return
        call = self.backend.render_call(self.callee(node.label), args)
        if len(names) >= 2:
            destructure = self.backend.render_destructure(names, types, call)
            assert destructure is not None
            self.body.append(destructure)
        else:
            self.body.append(self.backend.render_binding(names, types, call))

    def epilogue(self) -> str:
        """Appends the return statement and returns the return type."""
        backend, outputs = self.backend, self.diagram.boundary.outputs
        values = [
            self.source_value(BoundarySlot("output", idx))
            for idx in range(len(outputs))
        ]
        if len(outputs) >= 2 and not backend.multi_value:
            self.errors.append(
                CodegenError(
                    "unsupported-construct",
                    "boundary",
                    f"Diagram has {len(outputs)} outputs,"
                    f" but {backend.name} has no multi-value returns.",
                )
            )
            return ""
        try:
            self.types.extend(outputs)
            return_type = backend.return_type(outputs, self.options["type_map"])
        except UnmappedType as e:
            self.errors.append(CodegenError("unmapped-type", "boundary", str(e)))
            return ""
        if not values:
            self.body.append(backend.render_return(None))
        elif len(values) == 1:
            self.body.append(backend.render_return(values[0]))
        else:
            rendered = backend.render_tuple(values)
            assert rendered is not None
            self.body.append(backend.render_return(rendered))
        return return_type
