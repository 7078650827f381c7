import pytest

from stringc.diagrams import (
    Boundary,
    BoundarySlot,
    Diagram,
    DiagramBuilder,
    Node,
    NodeKind,
    NodeSpec,
    Port,
    PortRef,
    Wire,
    dependency_order,
)
from stringc.lib.std import Int, add, braiding, in_range, neg, swap_sub


def test_recipe_builds_expected_diagram():
    assert len(swap_sub.nodes) == 2
    assert len(swap_sub.wires) == 5
    assert swap_sub.boundary == Boundary([Int, Int], [Int])
    kinds = sorted(node.kind.value for node in swap_sub.nodes.values())
    assert kinds == ["box", "braiding"]


def test_builder_infers_structural_output_types():
    diag = DiagramBuilder()
    x, y = diag.add_inputs(["Int", "Bool"])
    b0, b1 = braiding @ diag[x, y]
    assert str(diag.type_of(b0)) == "Bool"
    assert str(diag.type_of(b1)) == "Int"
    diag.add_outputs([b0, b1])
    assert [str(t) for t in diag.boundary.outputs] == ["Bool", "Int"]


def test_builder_rejects_reused_endpoints():
    diag = DiagramBuilder()
    (x,) = diag.add_inputs([Int])
    neg @ diag[x]
    with pytest.raises(ValueError):
        neg @ diag[x]
    (y,) = diag.add_inputs([Int])
    with pytest.raises(ValueError):
        add @ diag[y, y]
    with pytest.raises(ValueError):
        add @ diag[y]


def test_box_spec_needs_label_and_coerces_types():
    spec = NodeSpec.box("f", ["A", "B"], ["A ⊗ B"])
    assert spec.kind is NodeKind.BOX
    assert [str(t) for t in spec.outputs] == ["A ⊗ B"]
    with pytest.raises(ValueError):
        Node("f", NodeKind.BOX, [], [])


def test_duplicate_ids_are_rejected():
    node = Node("f", "box", [Port("p")], [Port("q")], label="f")
    other = Node("g", "box", [Port("p")], [], label="g")
    with pytest.raises(ValueError):
        Diagram([node, node], [])
    with pytest.raises(ValueError):
        Diagram([node, other], [])
    with pytest.raises(ValueError):
        Node("h", "box", [Port("p")], [Port("p")], label="h")
    wire = Wire("w", PortRef("f", "q"), PortRef("f", "p"))
    with pytest.raises(ValueError):
        Diagram([node], [wire, wire])


def test_dangling_references_are_rejected():
    node = Node("f", "box", [Port("p")], [Port("q")], label="f")
    with pytest.raises(ValueError):
        Diagram([node], [Wire("w", PortRef("f", "q"), PortRef("g", "p"))])
    with pytest.raises(ValueError):
        Diagram([node], [Wire("w", PortRef("f", "q"), PortRef("f", "r"))])
    with pytest.raises(ValueError):
        Diagram([node], [Wire("w", BoundarySlot("input", 0), PortRef("f", "p"))])


def test_digest_ignores_order_and_metadata():
    n1 = Node("f", "box", [Port("f.0", Int)], [Port("f.1", Int)], label="neg")
    n2 = Node("g", "box", [Port("g.0", Int)], [Port("g.1", Int)], label="neg")
    n1_meta = Node(
        "f",
        "box",
        [Port("f.0", Int)],
        [Port("f.1", Int)],
        label="neg",
        meta={"position": [1, 2]},
    )
    wires = [
        Wire("w0", BoundarySlot("input", 0), PortRef("f", "f.0")),
        Wire("w1", PortRef("f", "f.1"), PortRef("g", "g.0")),
        Wire("w2", PortRef("g", "g.1"), BoundarySlot("output", 0)),
    ]
    boundary = Boundary([Int], [Int])
    d1 = Diagram([n1, n2], wires, boundary)
    d2 = Diagram([n2, n1_meta], wires[::-1], boundary)
    assert d1.digest == d2.digest
    assert d1 != d2
    assert d1 == Diagram([n2, n1], wires[::-1], boundary)
    d3 = Diagram([n1, n2], wires[:2], boundary)
    assert d3.digest != d1.digest


def test_dependency_order_breaks_ties_by_node_id():
    diag = DiagramBuilder()
    a, b, c, d = diag.add_inputs([Int] * 4)
    diag.add_block(neg, [d], "z")
    diag.add_block(neg, [c], "a")
    (s,) = diag.add_block(add, [a, b], "m")
    diag.add_block(neg, [s], "b")
    assert dependency_order(diag.diagram) == ["a", "m", "b", "z"]


def test_dependency_order_is_deterministic():
    orders = {tuple(dependency_order(in_range)) for _ in range(5)}
    assert len(orders) == 1


def test_builder_round_trip_from_diagram():
    builder = DiagramBuilder.from_diagram(swap_sub)
    assert builder.diagram == swap_sub
    copy = builder.copy()
    (x,) = copy.add_inputs([Int])
    neg @ copy[x]
    assert builder.diagram == swap_sub
    assert copy.diagram != swap_sub
