from stringc.api import compile_diagram, list_rewrites, rewrite, type_check
from stringc.cancellation import CancellationToken
from stringc.diagrams import DiagramBuilder
from stringc.lib.std import Int, identity, neg, swap_sub
from stringc.serialization import encode_diagram


def identity_then_neg():
    diag = DiagramBuilder()
    (x,) = diag.add_inputs([Int])
    (y,) = diag.add_block(identity, [x], "id")
    (z,) = diag.add_block(neg, [y], "n")
    diag.add_outputs([z])
    return encode_diagram(diag.diagram)


def untyped_box_doc():
    return {
        "nodes": [
            {
                "id": "t",
                "kind": "box",
                "label": "twice",
                "inputs": [{"id": "t.0"}],
                "outputs": [{"id": "t.1"}],
            }
        ],
        "wires": [
            {
                "id": "w0",
                "source": {"boundary": "input", "index": 0},
                "target": {"node": "t", "port": "t.0"},
            },
            {
                "id": "w1",
                "source": {"node": "t", "port": "t.1"},
                "target": {"boundary": "output", "index": 0},
            },
        ],
        "boundary": {"inputs": ["Int"], "outputs": ["Int"]},
    }


def test_type_check():
    response = type_check(encode_diagram(swap_sub))
    assert response == {
        "status": "ok",
        "valid": True,
        "diagnostics": [],
        "signature": "[Int, Int] -> [Int]",
    }


def test_type_check_reports_diagnostics():
    response = type_check(untyped_box_doc())
    assert response["status"] == "ok"
    assert not response["valid"]
    assert response["signature"] is None
    (diagnostic,) = response["diagnostics"]
    assert diagnostic["kind"] == "unknown-box"
    assert diagnostic["subject"] == "t"


def test_declarations_extend_registry():
    declarations = [{"label": "twice", "inputs": ["Int"], "outputs": ["Int"]}]
    response = type_check(untyped_box_doc(), declarations=declarations)
    assert response["valid"]
    assert response["signature"] == "[Int] -> [Int]"
    response = type_check(untyped_box_doc(), declarations=[{"inputs": []}])
    assert response["status"] == "error"
    assert response["error"]["kind"] == "document"


def test_malformed_document():
    response = type_check({"nodes": 3})
    assert response["status"] == "error"
    assert response["error"]["kind"] == "document"
    response = list_rewrites([], ["id"])
    assert response["error"]["kind"] == "document"


def test_list_rewrites():
    response = list_rewrites(identity_then_neg(), ["id"])
    assert response["status"] == "ok"
    assert [r["ruleId"] for r in response["rules"]] == ["identity-left"]
    assert set(response["rules"][0]) == {"ruleId", "name", "description"}
    assert list_rewrites(identity_then_neg(), ["n"])["rules"] == []


def test_rewrite():
    response = rewrite(identity_then_neg(), "identity-left", ["id"], recheck=True)
    assert response["status"] == "ok"
    doc = response["diagram"]
    assert [node["id"] for node in doc["nodes"]] == ["n"]
    assert type_check(doc)["valid"]


def test_rewrite_errors():
    response = rewrite(identity_then_neg(), "no-such-rule", ["id"])
    assert response["status"] == "error"
    assert response["error"]["kind"] == "unknown-rule"
    response = rewrite(identity_then_neg(), "identity-right", ["id"])
    assert response["error"]["kind"] == "no-match"
    assert "diagram" not in response


def test_compile_diagram():
    response = compile_diagram(encode_diagram(swap_sub), "python")
    assert response["status"] == "ok"
    assert "v0 = sub(x1, x0)" in response["source"]
    response = compile_diagram(
        encode_diagram(swap_sub), "typescript", options={"function_name": "swapped"}
    )
    assert response["source"].startswith("export function swapped(")


def test_compile_errors():
    response = compile_diagram(encode_diagram(swap_sub), "cobol")
    assert response == {
        "status": "error",
        "errors": [
            {
                "kind": "unknown-target",
                "subject": "cobol",
                "message": "Unknown target 'cobol'.",
            }
        ],
    }
    response = compile_diagram(untyped_box_doc(), "python")
    assert [e["kind"] for e in response["errors"]] == ["unchecked"]
    response = compile_diagram({"wires": [{}]}, "python")
    (error,) = response["errors"]
    assert error["kind"] == "document"
    assert error["subject"] is None


def test_cancelled_requests():
    token = CancellationToken()
    token.cancel()
    doc = encode_diagram(swap_sub)
    assert type_check(doc, cancel=token) == {"status": "cancelled"}
    assert compile_diagram(doc, "python", cancel=token) == {"status": "cancelled"}
    selection = sorted(swap_sub.nodes)
    assert list_rewrites(doc, selection, cancel=token) == {"status": "cancelled"}
    assert rewrite(doc, "braiding", selection, cancel=token) == {"status": "cancelled"}
