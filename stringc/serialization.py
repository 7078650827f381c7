"""
Decoding and encoding of diagrams as plain-data interchange documents.

A document is a JSON-compatible dictionary of the following shape:

.. code-block:: python

    {
        "types": [{"name": "Pair", "definition": "A ⊗ B"}, {"name": "Int"}],
        "nodes": [
            {
                "id": "f", "kind": "box", "label": "f",
                "inputs": [{"id": "f.0", "type": "A"}],
                "outputs": [{"id": "f.1", "type": "C"}],
                "position": [10, 20],
            }
        ],
        "wires": [
            {
                "id": "w0",
                "source": {"boundary": "input", "index": 0},
                "target": {"node": "f", "port": "f.0"},
            }
        ],
        "boundary": {"inputs": ["A"], "outputs": ["C"]},
    }

Named types are aliases: their definitions are expanded when decoding. The type
expressions as written are kept alongside the diagram and emitted again when
encoding, so documents using named types round-trip unchanged.
Node keys other than those listed above are kept as node metadata and emitted
again when encoding.
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
from collections.abc import Mapping, Sequence
import json
from typing import Any, Final

from .diagrams import (
    Boundary,
    BoundarySlot,
    Diagram,
    Endpoint,
    Node,
    Port,
    PortRef,
    Type,
    TypeSyntaxError,
    Wire,
    parse_type,
)
from .diagrams.nodes import coerce_kind

NODE_KEYS: Final[frozenset[str]] = frozenset(
    {"id", "kind", "label", "inputs", "outputs"}
)
"""Node keys with a meaning; all other keys are node metadata."""


class DocumentError(ValueError):
    """Raised when a document is malformed."""


def _field(obj: Any, key: str, expected: type | tuple[type, ...], where: str) -> Any:
    if not isinstance(obj, Mapping):
        raise DocumentError(f"Expected an object for {where}, got {obj!r}.")
    if key not in obj:
        raise DocumentError(f"Missing key {key!r} in {where}.")
    value = obj[key]
    if not isinstance(value, expected) or (isinstance(value, bool) and expected is int):
        raise DocumentError(f"Unexpected value for {key!r} in {where}: {value!r}.")
    return value


def _list(obj: Any, key: str, where: str, default: bool = False) -> Sequence[Any]:
    if default and isinstance(obj, Mapping) and key not in obj:
        return []
    return _field(obj, key, (list, tuple), where)


def _type(
    text: Any,
    aliases: Mapping[str, Type],
    where: str,
    texts: dict[Endpoint | str, str] | None = None,
    key: Endpoint | str | None = None,
) -> Type:
    if not isinstance(text, str):
        raise DocumentError(f"Expected a type expression in {where}, got {text!r}.")
    try:
        t = parse_type(text, aliases)
    except TypeSyntaxError as e:
        raise DocumentError(f"Invalid type in {where}: {e}") from None
    if texts is not None and key is not None and text != str(t):
        texts[key] = text
    return t


def _decode_port(
    obj: Any,
    aliases: Mapping[str, Type],
    node_id: str,
    texts: dict[Endpoint | str, str],
) -> Port:
    port_id = _field(obj, "id", str, f"node {node_id!r}")
    t: Type | None = None
    if obj.get("type") is not None:
        where = f"port {port_id!r}"
        t = _type(obj["type"], aliases, where, texts, PortRef(node_id, port_id))
    try:
        return Port(port_id, t)
    except ValueError as e:
        raise DocumentError(str(e)) from None


def _decode_node(
    obj: Any,
    aliases: Mapping[str, Type],
    idx: int,
    texts: dict[Endpoint | str, str],
) -> Node:
    where = f"node #{idx}"
    node_id = _field(obj, "id", str, where)
    where = f"node {node_id!r}"
    kind = _field(obj, "kind", str, where)
    label = obj.get("label")
    if label is not None and not isinstance(label, str):
        raise DocumentError(f"Unexpected value for 'label' in {where}: {label!r}.")
    inputs = [
        _decode_port(p, aliases, node_id, texts) for p in _list(obj, "inputs", where)
    ]
    outputs = [
        _decode_port(p, aliases, node_id, texts)
        for p in _list(obj, "outputs", where)
    ]
    meta = {k: v for k, v in obj.items() if k not in NODE_KEYS}
    try:
        return Node(
            node_id,
            coerce_kind(kind),
            inputs,
            outputs,
            label=label,
            meta=meta,
        )
    except ValueError as e:
        raise DocumentError(str(e)) from None


def _decode_endpoint(obj: Any, where: str) -> Endpoint:
    if isinstance(obj, Mapping) and "boundary" in obj:
        side = _field(obj, "boundary", str, where)
        if side not in ("input", "output"):
            raise DocumentError(f"Unknown boundary side {side!r} in {where}.")
        index = _field(obj, "index", int, where)
        if index < 0:
            raise DocumentError(f"Negative boundary index in {where}.")
        return BoundarySlot(side, index)  # type: ignore[arg-type]
    return PortRef(_field(obj, "node", str, where), _field(obj, "port", str, where))


def decode_diagram(doc: Any) -> Diagram:
    """
    Decodes a diagram from an interchange document.

    :raises DocumentError: if the document is malformed, or describes a diagram
                           with duplicate identifiers or dangling references.
    """
    if not isinstance(doc, Mapping):
        raise DocumentError(f"Expected a document object, got {type(doc).__name__}.")
    aliases: dict[str, Type] = {}
    type_decls: dict[str, Type | None] = {}
    texts: dict[Endpoint | str, str] = {}
    for idx, entry in enumerate(_list(doc, "types", "document", default=True)):
        name = _field(entry, "name", str, f"type #{idx}")
        if name in type_decls:
            raise DocumentError(f"Duplicate type name {name!r}.")
        definition = entry.get("definition")
        if definition is None:
            type_decls[name] = None
            continue
        t = _type(definition, aliases, f"type {name!r}", texts, name)
        type_decls[name] = aliases[name] = t
    boundary_doc = doc.get("boundary", {})
    sides: dict[str, list[Type]] = {}
    for side in ("input", "output"):
        key = f"{side}s"
        sides[side] = [
            _type(t, aliases, f"boundary {key}", texts, BoundarySlot(side, idx))  # type: ignore[arg-type]
            for idx, t in enumerate(_list(boundary_doc, key, "boundary", default=True))
        ]
    boundary = Boundary(sides["input"], sides["output"])
    nodes = [
        _decode_node(obj, aliases, idx, texts)
        for idx, obj in enumerate(_list(doc, "nodes", "document", default=True))
    ]
    wires = []
    for idx, obj in enumerate(_list(doc, "wires", "document", default=True)):
        wire_id = _field(obj, "id", str, f"wire #{idx}")
        where = f"wire {wire_id!r}"
        source = _decode_endpoint(_field(obj, "source", Mapping, where), where)
        target = _decode_endpoint(_field(obj, "target", Mapping, where), where)
        try:
            wires.append(Wire(wire_id, source, target))
        except ValueError as e:
            raise DocumentError(str(e)) from None
    try:
        return Diagram(nodes, wires, boundary, type_decls, texts)
    except ValueError as e:
        raise DocumentError(str(e)) from None


def _type_text(
    t: Type,
    key: Endpoint | str,
    texts: Mapping[Endpoint | str, str],
    aliases: Mapping[str, Type],
) -> str:
    """
    The type expression originally written for the given key, if it still denotes
    the given type, otherwise the pretty-printed type.
    """
    text = texts.get(key)
    if text is not None and parse_type(text, aliases) is t:
        return text
    return str(t)


def _encode_port(
    port: Port,
    ref: PortRef,
    texts: Mapping[Endpoint | str, str],
    aliases: Mapping[str, Type],
) -> dict[str, Any]:
    if port.type is None:
        return {"id": port.id}
    return {"id": port.id, "type": _type_text(port.type, ref, texts, aliases)}


def _encode_endpoint(endpoint: Endpoint) -> dict[str, Any]:
    if isinstance(endpoint, BoundarySlot):
        return {"boundary": endpoint.side, "index": endpoint.index}
    return {"node": endpoint.node, "port": endpoint.port}


def _encode_node(
    node: Node, texts: Mapping[Endpoint | str, str], aliases: Mapping[str, Type]
) -> dict[str, Any]:
    obj: dict[str, Any] = {"id": node.id, "kind": node.kind.value}
    if node.label is not None:
        obj["label"] = node.label
    obj["inputs"] = [
        _encode_port(port, PortRef(node.id, port.id), texts, aliases)
        for port in node.inputs
    ]
    obj["outputs"] = [
        _encode_port(port, PortRef(node.id, port.id), texts, aliases)
        for port in node.outputs
    ]
    obj.update(node.meta)
    return obj


def encode_diagram(diagram: Diagram) -> dict[str, Any]:
    """
    Encodes a diagram as an interchange document. Type expressions are emitted as
    they were written in the document the diagram was decoded from, where known
    (cf. :attr:`Diagram.type_texts`), and pretty-printed otherwise.
    """
    texts = diagram.type_texts
    aliases: dict[str, Type] = {}
    types: list[dict[str, Any]] = []
    for name, definition in diagram.type_decls.items():
        if definition is None:
            types.append({"name": name})
            continue
        text = _type_text(definition, name, texts, aliases)
        types.append({"name": name, "definition": text})
        aliases[name] = definition
    boundary = diagram.boundary
    return {
        "types": types,
        "nodes": [_encode_node(node, texts, aliases) for node in diagram.nodes.values()],
        "wires": [
            {
                "id": wire.id,
                "source": _encode_endpoint(wire.source),
                "target": _encode_endpoint(wire.target),
            }
            for wire in diagram.wires.values()
        ],
        "boundary": {
            f"{side}s": [
                _type_text(t, BoundarySlot(side, idx), texts, aliases)
                for idx, t in enumerate(types_)
            ]
            for side, types_ in (
                ("input", boundary.inputs),
                ("output", boundary.outputs),
            )
        },
    }


def loads_diagram(text: str | bytes) -> Diagram:
    """Decodes a diagram from the JSON text of an interchange document."""
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as e:
        raise DocumentError(f"Invalid JSON: {e}") from None
    return decode_diagram(doc)


def dumps_diagram(diagram: Diagram, *, indent: int | None = None) -> str:
    """Encodes a diagram as the JSON text of an interchange document."""
    return json.dumps(encode_diagram(diagram), indent=indent, ensure_ascii=False)
