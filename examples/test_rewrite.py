import pytest

from stringc.cancellation import CancellationToken, Cancelled
from stringc.checker import check
from stringc.diagrams import (
    Base,
    BoundarySlot,
    DiagramBuilder,
    NodeKind,
    NodeSpec,
    Signature,
    Var,
)
from stringc.lib.std import (
    Int,
    associator_left,
    braiding,
    identity,
    neg,
    std_registry,
    swap_sub,
    unitor_left,
)
from stringc.rewriting import (
    BUILTIN_RULES,
    Fragment,
    Pattern,
    PatternNode,
    RewriteError,
    Rule,
    apply,
    list_applicable,
    rule_table,
)

A, B = Base("A"), Base("B")

registry = std_registry.extend(f=Signature([A], [B]), rsub=Signature([Int, Int], [Int]))

f_spec = NodeSpec(registry["f"], "f")


def identity_then_f():
    diag = DiagramBuilder()
    (x,) = diag.add_inputs([A])
    (y,) = diag.add_block(identity, [x], "id")
    (z,) = diag.add_block(f_spec, [y], "f")
    diag.add_outputs([z])
    return diag.diagram


def f_then_identity():
    diag = DiagramBuilder()
    (x,) = diag.add_inputs([A])
    (y,) = diag.add_block(f_spec, [x], "f")
    (z,) = diag.add_block(identity, [y], "id")
    diag.add_outputs([z])
    return diag.diagram


def braiding_twice():
    diag = DiagramBuilder()
    x, y = diag.add_inputs([A, B])
    y1, x1 = diag.add_block(braiding, [x, y], "b1")
    x2, y2 = diag.add_block(braiding, [y1, x1], "b2")
    diag.add_outputs([x2, y2])
    return diag.diagram


def test_builtin_rule_ids():
    assert list(BUILTIN_RULES) == [
        "identity-left",
        "identity-right",
        "associativity-left",
        "associativity-right",
        "braiding",
        "unit-left",
        "unit-right",
    ]


def test_identity_left_removes_identity():
    diagram = identity_then_f()
    (w_in,) = diagram.wires_at(diagram.nodes["id"].input_refs()[0])
    (w_out,) = diagram.wires_at(diagram.nodes["id"].output_refs()[0])
    result = apply(diagram, "identity-left", ["id"], registry)
    assert list(result.nodes) == ["f"]
    assert w_in.id not in result.wires
    rewired = result.wires[w_out.id]
    assert rewired.source == BoundarySlot("input", 0)
    assert rewired.target == result.nodes["f"].input_refs()[0]
    assert result.boundary == diagram.boundary
    assert check(result, registry).valid


def test_rewrite_leaves_input_untouched():
    diagram = identity_then_f()
    digest = diagram.digest
    apply(diagram, "identity-left", ["id"], registry)
    assert diagram.digest == digest
    assert "id" in diagram.nodes


def test_identity_attachments():
    assert [r.id for r in list_applicable(identity_then_f(), ["id"], registry)] == [
        "identity-left"
    ]
    assert [r.id for r in list_applicable(f_then_identity(), ["id"], registry)] == [
        "identity-right"
    ]
    with pytest.raises(RewriteError) as info:
        apply(f_then_identity(), "identity-left", ["id"], registry)
    assert info.value.kind == "no-match"


def test_braiding_collapse():
    diagram = braiding_twice()
    assert [r.id for r in list_applicable(diagram, ["b1", "b2"], registry)] == [
        "braiding"
    ]
    result = apply(diagram, "braiding", ["b2", "b1"], registry, recheck=True)
    assert len(result.nodes) == 0
    assert len(result.wires) == 2
    sources = {w.target: w.source for w in result.wires.values()}
    assert sources == {
        BoundarySlot("output", 0): BoundarySlot("input", 0),
        BoundarySlot("output", 1): BoundarySlot("input", 1),
    }
    checked = check(result, registry)
    assert checked.valid
    assert str(checked.signature) == "[A, B] -> [A, B]"


def test_single_braiding_does_not_collapse():
    with pytest.raises(RewriteError) as info:
        apply(braiding_twice(), "braiding", ["b1"], registry)
    assert info.value.kind == "no-match"


def test_unit_and_associativity_rules():
    diag = DiagramBuilder()
    x, y, z, w = diag.add_inputs([A, B, A, B])
    outs = diag.add_block(associator_left, [x, y, z], "assoc")
    (u,) = diag.add_block(unitor_left, [w], "unit")
    diag.add_outputs([*outs, u])
    diagram = diag.diagram
    assert [r.id for r in list_applicable(diagram, ["unit"], registry)] == [
        "unit-left"
    ]
    assert [r.id for r in list_applicable(diagram, ["assoc"], registry)] == [
        "associativity-left"
    ]
    result = apply(diagram, "unit-left", ["unit"], registry, recheck=True)
    assert "unit" not in result.nodes
    joined = [
        (wire.source, wire.target)
        for wire in result.wires.values()
        if wire.target == BoundarySlot("output", 3)
    ]
    assert joined == [(BoundarySlot("input", 3), BoundarySlot("output", 3))]
    assert result.boundary == diagram.boundary
    assert "joining the wires" in BUILTIN_RULES["unit-left"].description
    result = apply(result, "associativity-left", ["assoc"], registry, recheck=True)
    assert len(result.nodes) == 0
    assert check(result, registry).valid


def test_unknown_rule():
    with pytest.raises(RewriteError) as info:
        apply(identity_then_f(), "no-such-rule", ["id"], registry)
    assert info.value.kind == "unknown-rule"
    assert info.value.to_dict()["kind"] == "unknown-rule"


def test_type_conflict():
    rules = rule_table(
        [
            Rule(
                "neg-bool",
                "Boolean negation",
                "Matches negation on booleans only.",
                Pattern([PatternNode.box("n", "neg", ["Bool"], ["Bool"])]),
                Fragment(
                    [PatternNode.box("m", "not", ["Bool"], ["Bool"])],
                    inputs=[("m", 0)],
                    outputs=[("m", 0)],
                ),
            )
        ]
    )
    diag = DiagramBuilder()
    (x,) = diag.add_inputs([Int])
    (y,) = diag.add_block(neg, [x], "n")
    diag.add_outputs([y])
    with pytest.raises(RewriteError) as info:
        apply(diag.diagram, "neg-bool", ["n"], std_registry, rules=rules)
    assert info.value.kind == "type-conflict"


def test_custom_rule_with_replacement_box():
    lhs = Pattern(
        [
            PatternNode("b", NodeKind.BRAIDING),
            PatternNode.box("s", "sub", ["Int", "Int"], ["Int"]),
        ],
        [(("b", 0), ("s", 0)), (("b", 1), ("s", 1))],
    )
    rhs = Fragment(
        [PatternNode.box("r", "rsub", ["Int", "Int"], ["Int"])],
        inputs=[("r", 0), ("r", 1)],
        outputs=[("r", 0)],
    )
    rules = rule_table(
        [Rule("fuse-swap-sub", "Fuse swap", "Swapped subtraction.", lhs, rhs)]
    )
    selection = sorted(swap_sub.nodes)
    result = apply(swap_sub, "fuse-swap-sub", selection, registry, rules=rules)
    (node,) = result.nodes.values()
    assert node.label == "rsub"
    ins = [result.wires_at(ref)[0].source for ref in node.input_refs()]
    assert ins == [BoundarySlot("input", 0), BoundarySlot("input", 1)]
    assert check(result, registry).valid


def test_rules_reject_unbound_replacement_variables():
    with pytest.raises(ValueError):
        Rule(
            "bad",
            "Bad",
            "Introduces a variable.",
            Pattern([PatternNode("id", NodeKind.IDENTITY)]),
            Fragment(
                [PatternNode.box("h", "h", [Var("Z")], [Var("Z")])],
                inputs=[("h", 0)],
                outputs=[("h", 0)],
            ),
        )


def test_list_applicable_can_be_cancelled():
    token = CancellationToken()
    token.cancel()
    with pytest.raises(Cancelled):
        list_applicable(braiding_twice(), ["b1", "b2"], registry, cancel=token)
