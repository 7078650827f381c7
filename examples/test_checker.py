import pytest

from stringc.cancellation import CancellationToken, Cancelled
from stringc.checker import check
from stringc.diagrams import (
    Base,
    Boundary,
    BoundarySlot,
    Diagram,
    DiagramBuilder,
    Node,
    NodeSpec,
    Port,
    PortRef,
    Signature,
    Wire,
)
from stringc.lib.std import (
    Bool,
    Int,
    add,
    braiding,
    identity,
    in_range,
    report_divmod,
    std_registry,
    swap_sub,
)

A, B, C, D, E = (Base(name) for name in "ABCDE")

registry = std_registry.extend(
    f=Signature([A, B], [C]),
    g=Signature([C], [D, E]),
)

f_spec = NodeSpec(registry["f"], "f")
g_spec = NodeSpec(registry["g"], "g")


def f_g_pipeline() -> Diagram:
    diag = DiagramBuilder()
    a, b = diag.add_inputs([A, B])
    (c,) = diag.add_block(f_spec, [a, b], "f")
    d, e = diag.add_block(g_spec, [c], "g")
    diag.add_outputs([d, e])
    return diag.diagram


def f_g_nodes() -> tuple[Node, Node]:
    f = Node(
        "f", "box", [Port("f.0", A), Port("f.1", B)], [Port("f.2", C)], label="f"
    )
    g = Node(
        "g", "box", [Port("g.0", C)], [Port("g.1", D), Port("g.2", E)], label="g"
    )
    return f, g


def test_f_g_pipeline_is_valid():
    result = check(f_g_pipeline(), registry)
    assert result.valid
    assert result.diagnostics == ()
    assert str(result.signature) == "[A, B] -> [D, E]"


def test_dangling_g_input():
    f, g = f_g_nodes()
    wires = [
        Wire("w0", BoundarySlot("input", 0), PortRef("f", "f.0")),
        Wire("w1", BoundarySlot("input", 1), PortRef("f", "f.1")),
        Wire("w2", PortRef("f", "f.2"), BoundarySlot("output", 2)),
        Wire("w3", PortRef("g", "g.1"), BoundarySlot("output", 0)),
        Wire("w4", PortRef("g", "g.2"), BoundarySlot("output", 1)),
    ]
    diagram = Diagram([f, g], wires, Boundary([A, B], [D, E, C]))
    result = check(diagram, registry)
    assert not result.valid
    assert [d.kind for d in result.diagnostics] == ["unconnected-input"]
    assert result.diagnostics[0].subject == PortRef("g", "g.0")
    assert result.signature is None


def test_dangling_g_input_frees_boundary_output():
    f, g = f_g_nodes()
    wires = [
        Wire("w0", BoundarySlot("input", 0), PortRef("f", "f.0")),
        Wire("w1", BoundarySlot("input", 1), PortRef("f", "f.1")),
        Wire("w2", PortRef("f", "f.2"), BoundarySlot("output", 2)),
        Wire("w4", PortRef("g", "g.2"), BoundarySlot("output", 1)),
    ]
    diagram = Diagram([f, g], wires, Boundary([A, B], [D, E, C]))
    result = check(diagram, registry)
    assert not result.valid
    by_kind = {d.kind: d.subject for d in result.diagnostics}
    assert by_kind == {
        "unconnected-input": PortRef("g", "g.0"),
        "unconnected-output": PortRef("g", "g.1"),
        "unconnected-boundary-output": BoundarySlot("output", 0),
    }
    assert not any(d.category == "type" for d in result.diagnostics)


def test_dangling_boundary_output():
    f, g = f_g_nodes()
    wires = [
        Wire("w0", BoundarySlot("input", 0), PortRef("f", "f.0")),
        Wire("w1", BoundarySlot("input", 1), PortRef("f", "f.1")),
        Wire("w2", PortRef("f", "f.2"), PortRef("g", "g.0")),
        Wire("w3", PortRef("g", "g.1"), BoundarySlot("output", 0)),
    ]
    diagram = Diagram([f, g], wires, Boundary([A, B], [D, E]))
    result = check(diagram, registry)
    kinds = [d.kind for d in result.diagnostics]
    assert kinds == ["unconnected-output", "unconnected-boundary-output"]
    assert not any(d.category == "type" for d in result.diagnostics)


def test_multiply_connected_and_misdirected_wires():
    f, g = f_g_nodes()
    wires = [
        Wire("w0", BoundarySlot("input", 0), PortRef("f", "f.0")),
        Wire("w1", BoundarySlot("input", 1), PortRef("f", "f.1")),
        Wire("w2", PortRef("f", "f.2"), PortRef("g", "g.0")),
        Wire("w3", PortRef("g", "g.1"), BoundarySlot("output", 0)),
        Wire("w4", PortRef("g", "g.2"), BoundarySlot("output", 1)),
        Wire("w5", PortRef("g", "g.0"), PortRef("f", "f.2")),
    ]
    diagram = Diagram([f, g], wires, Boundary([A, B], [D, E]))
    result = check(diagram, registry)
    kinds = {d.kind for d in result.diagnostics}
    assert "misdirected-wire" in kinds
    assert "multiply-connected" in kinds
    misdirected = result.of_kind("misdirected-wire")
    assert [d.subject for d in misdirected] == ["w5"]


def test_cycle_is_reported():
    diag = DiagramBuilder()
    x = diag.add_node(
        Node("x", "box", [Port("x.0", Int)], [Port("x.1", Int)], label="neg")
    )
    y = diag.add_node(
        Node("y", "box", [Port("y.0", Int)], [Port("y.1", Int)], label="neg")
    )
    diag.connect(x.output_refs()[0], y.input_refs()[0])
    diag.connect(y.output_refs()[0], x.input_refs()[0])
    result = check(diag.diagram, std_registry)
    assert [d.kind for d in result.diagnostics] == ["cycle"]
    assert result.diagnostics[0].subject == "x"


def test_wire_type_mismatch():
    diag = DiagramBuilder()
    a, b, c, d = diag.add_inputs([Int, Int, Int, Int])
    (s,) = add @ diag[a, b]
    diag.add_outputs([s], [Bool])
    diag.add_outputs([c, d])
    result = check(diag.diagram, std_registry)
    assert [d.kind for d in result.diagnostics] == ["boundary-mismatch"]
    assert "of type Int" in result.diagnostics[0].message
    assert "of type Bool" in result.diagnostics[0].message


def test_signature_mismatch_and_unknown_box():
    bad = Node(
        "bad", "box", [Port("bad.0", Bool), Port("bad.1", Int)], [Port("bad.2")],
        label="add",
    )
    mystery = Node("mystery", "box", [Port("m.0")], [], label="mystery")
    wires = [
        Wire("w0", BoundarySlot("input", 0), PortRef("bad", "bad.0")),
        Wire("w1", BoundarySlot("input", 1), PortRef("bad", "bad.1")),
        Wire("w2", PortRef("bad", "bad.2"), PortRef("mystery", "m.0")),
    ]
    diagram = Diagram([bad, mystery], wires, Boundary([Bool, Int], []))
    result = check(diagram, std_registry)
    assert [(d.kind, d.subject) for d in result.diagnostics] == [
        ("signature-mismatch", "bad"),
        ("unknown-box", "mystery"),
    ]


def test_unregistered_box_with_declared_types_is_accepted():
    spec = NodeSpec.box("h", [Int], [Bool])
    diag = DiagramBuilder()
    (x,) = diag.add_inputs([Int])
    (y,) = spec @ diag[x]
    diag.add_outputs([y])
    assert check(diag.diagram, std_registry).valid


def test_structural_nodes_are_resolved():
    result = check(swap_sub, std_registry)
    assert result.valid
    (braid,) = [n for n in swap_sub.nodes.values() if n.is_structural]
    assert str(result.resolved[braid.id]) == "[Int, Int] -> [Int, Int]"


def test_underconstrained_structural_node():
    ident = Node("id", "identity", [Port("id.0")], [Port("id.1")])
    wires = [Wire("w0", PortRef("id", "id.1"), PortRef("id", "id.0"))]
    result = check(Diagram([ident], wires), std_registry)
    kinds = [d.kind for d in result.diagnostics]
    assert "cycle" in kinds
    ident2 = Node("id", "identity", [Port("id.0")], [Port("id.1")])
    sink = Node("s", "box", [Port("s.0")], [], label="sink")
    source = Node("t", "box", [], [Port("t.0")], label="source")
    wires = [
        Wire("w0", PortRef("t", "t.0"), PortRef("id", "id.0")),
        Wire("w1", PortRef("id", "id.1"), PortRef("s", "s.0")),
    ]
    result = check(Diagram([ident2, sink, source], wires), std_registry)
    assert [d.kind for d in result.diagnostics] == [
        "unknown-box",
        "unknown-box",
        "underconstrained-structural",
    ]


def test_structural_conflict_is_signature_mismatch():
    diag = DiagramBuilder()
    (x,) = diag.add_inputs([Int])
    (y,) = identity @ diag[x]
    diag.add_outputs([y], [Bool])
    result = check(diag.diagram, std_registry)
    assert [d.kind for d in result.diagnostics] == ["signature-mismatch"]


def test_check_is_deterministic():
    results = [check(in_range, std_registry) for _ in range(3)]
    assert all(r.valid for r in results)
    assert len({r.digest for r in results}) == 1
    assert check(report_divmod, std_registry).valid


def test_diagnostics_are_stable_across_runs():
    diag = DiagramBuilder()
    a, b = diag.add_inputs([Int, Bool])
    braiding @ diag[a, b]
    first = [d.to_dict() for d in check(diag.diagram, std_registry).diagnostics]
    second = [d.to_dict() for d in check(diag.diagram, std_registry).diagnostics]
    assert first == second
    assert {d["kind"] for d in first} == {"unconnected-output"}


def test_check_can_be_cancelled():
    token = CancellationToken()
    token.cancel()
    with pytest.raises(Cancelled):
        check(in_range, std_registry, cancel=token)
