import pytest

from stringc.diagrams import (
    Base,
    Boundary,
    BoundarySlot,
    Diagram,
    DiagramBuilder,
    NodeKind,
)
from stringc.lib.std import in_range, swap_sub
from stringc.serialization import (
    DocumentError,
    decode_diagram,
    dumps_diagram,
    encode_diagram,
    loads_diagram,
)

A, B, C = Base("A"), Base("B"), Base("C")


def canonical_doc():
    return {
        "types": [{"name": "Pair", "definition": "A ⊗ B"}, {"name": "C"}],
        "nodes": [
            {
                "id": "f",
                "kind": "box",
                "label": "f",
                "inputs": [{"id": "f.0", "type": "A ⊗ B"}],
                "outputs": [{"id": "f.1", "type": "C"}],
                "position": [10, 20],
            },
            {
                "id": "id",
                "kind": "identity",
                "inputs": [{"id": "id.0"}],
                "outputs": [{"id": "id.1"}],
            },
        ],
        "wires": [
            {
                "id": "w0",
                "source": {"boundary": "input", "index": 0},
                "target": {"node": "f", "port": "f.0"},
            },
            {
                "id": "w1",
                "source": {"node": "f", "port": "f.1"},
                "target": {"node": "id", "port": "id.0"},
            },
            {
                "id": "w2",
                "source": {"node": "id", "port": "id.1"},
                "target": {"boundary": "output", "index": 0},
            },
        ],
        "boundary": {"inputs": ["A ⊗ B"], "outputs": ["C"]},
    }


def test_decode_canonical_document():
    diagram = decode_diagram(canonical_doc())
    assert list(diagram.nodes) == ["f", "id"]
    assert diagram.nodes["f"].meta == {"position": [10, 20]}
    assert diagram.nodes["id"].kind is NodeKind.IDENTITY
    assert diagram.boundary.inputs == (A * B,)
    assert diagram.type_decls == {"Pair": A * B, "C": None}
    assert diagram.wires["w0"].source == BoundarySlot("input", 0)


def test_canonical_documents_round_trip():
    doc = canonical_doc()
    assert encode_diagram(decode_diagram(doc)) == doc


def test_named_types_round_trip():
    doc = canonical_doc()
    doc["types"].append({"name": "Fun", "definition": "Pair * C"})
    doc["boundary"]["inputs"] = ["Pair"]
    doc["nodes"][0]["inputs"][0]["type"] = "Pair"
    diagram = decode_diagram(doc)
    assert diagram.boundary.inputs == (A * B,)
    assert diagram.type_decls["Fun"] is A * B * C
    assert encode_diagram(diagram) == doc
    expanded = canonical_doc() | {"types": doc["types"]}
    assert diagram.digest == decode_diagram(expanded).digest


def test_named_boundary_round_trip():
    doc = {
        "types": [{"name": "Pair", "definition": "A ⊗ B"}],
        "nodes": [],
        "wires": [
            {
                "id": "w0",
                "source": {"boundary": "input", "index": 0},
                "target": {"boundary": "output", "index": 0},
            }
        ],
        "boundary": {"inputs": ["Pair"], "outputs": ["Pair"]},
    }
    assert encode_diagram(decode_diagram(doc)) == doc
    assert loads_diagram(dumps_diagram(decode_diagram(doc))) == decode_diagram(doc)


def test_changed_types_fall_back_to_printing():
    doc = canonical_doc()
    doc["boundary"]["outputs"] = ["Pair"]
    doc["nodes"][0]["outputs"][0]["type"] = "Pair"
    diagram = decode_diagram(doc)
    builder = DiagramBuilder.from_diagram(diagram)
    assert builder.diagram.type_texts == diagram.type_texts
    stale = Diagram(
        diagram.nodes.values(),
        diagram.wires.values(),
        Boundary([A * B], [C]),
        diagram.type_decls,
        diagram.type_texts,
    )
    encoded = encode_diagram(stale)
    assert encoded["boundary"]["outputs"] == ["C"]
    assert encoded["nodes"][0]["outputs"] == [{"id": "f.1", "type": "Pair"}]


def test_json_text_round_trip():
    for diagram in (swap_sub, in_range):
        text = dumps_diagram(diagram)
        assert loads_diagram(text) == diagram
    assert "⊗" in dumps_diagram(decode_diagram(canonical_doc()))


def test_optional_sections_default_to_empty():
    diagram = decode_diagram({})
    assert len(diagram.nodes) == 0
    assert len(diagram.wires) == 0
    assert diagram.boundary.inputs == ()


def broken_docs():
    doc_no_id = canonical_doc()
    del doc_no_id["nodes"][0]["id"]
    doc_bad_type = canonical_doc()
    doc_bad_type["boundary"]["inputs"] = ["A ⊗"]
    doc_bad_kind = canonical_doc()
    doc_bad_kind["nodes"][1]["kind"] = "spider"
    doc_dangling = canonical_doc()
    doc_dangling["wires"][1]["target"] = {"node": "g", "port": "g.0"}
    doc_bool_index = canonical_doc()
    doc_bool_index["wires"][0]["source"]["index"] = True
    doc_bad_side = canonical_doc()
    doc_bad_side["wires"][0]["source"]["boundary"] = "left"
    doc_duplicate = canonical_doc()
    doc_duplicate["wires"].append(doc_duplicate["wires"][0])
    return [
        [],
        {"nodes": 3},
        doc_no_id,
        doc_bad_type,
        doc_bad_kind,
        doc_dangling,
        doc_bool_index,
        doc_bad_side,
        doc_duplicate,
    ]


@pytest.mark.parametrize("doc", broken_docs())
def test_malformed_documents(doc):
    with pytest.raises(DocumentError):
        decode_diagram(doc)


def test_invalid_json():
    with pytest.raises(DocumentError) as info:
        loads_diagram("{")
    assert "Invalid JSON" in str(info.value)
