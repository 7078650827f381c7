import pytest

from stringc.cancellation import CancellationToken, Cancelled
from stringc.checker import check
from stringc.codegen import (
    BACKENDS,
    CodegenFailure,
    c_backend,
    generate,
    python_backend,
    typescript_backend,
)
from stringc.diagrams import Base, DiagramBuilder, NodeSpec, Signature
from stringc.lib.std import (
    Int,
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

type_map = {"A": "int", "B": "str", "C": "float", "D": "bool", "E": "bytes"}


def f_g_pipeline():
    diag = DiagramBuilder()
    a, b = diag.add_inputs([A, B])
    (c,) = diag.add_block(NodeSpec(registry["f"], "f"), [a, b], "f")
    d, e = diag.add_block(NodeSpec(registry["g"], "g"), [c], "g")
    diag.add_outputs([d, e])
    return diag.diagram


def generate_checked(diagram, target, reg=std_registry, **options):
    return generate(diagram, target, check(diagram, reg), **options)


def test_backends():
    assert list(BACKENDS) == ["python", "typescript", "c"]


def test_f_g_pipeline_python():
    source = generate_checked(f_g_pipeline(), "python", registry, type_map=type_map)
    assert source == (
        "from __future__ import annotations\n"
        "\n"
        "\n"
        "def diagram(inputs: tuple[int, str]) -> tuple[bool, bytes]:\n"
        "    x0, x1 = inputs\n"
        "    v0 = f(x0, x1)\n"
        "    v1, v2 = g(v0)\n"
        "    return (v1, v2)\n"
    )


def test_swap_sub_typescript():
    source = generate_checked(swap_sub, "typescript")
    assert source == (
        "export function diagram(inputs: [number, number]): number {\n"
        "    const [x0, x1]: [number, number] = inputs;\n"
        "    const v0: number = sub(x1, x0);\n"
        "    return v0;\n"
        "}\n"
    )


def test_swap_sub_c():
    source = generate_checked(swap_sub, "c")
    assert source == (
        "#include <stdbool.h>\n"
        "#include <stdint.h>\n"
        "\n"
        "int64_t diagram(int64_t x0, int64_t x1) {\n"
        "    int64_t v0 = sub(x1, x0);\n"
        "    return v0;\n"
        "}\n"
    )


def test_keyword_labels_python():
    source = generate_checked(in_range, "python")
    assert source.splitlines()[3:] == [
        "def diagram(inputs: tuple[int, int, int, int]) -> bool:",
        "    x0, x1, x2, x3 = inputs",
        "    v0 = lt(x0, x1)",
        "    v1 = lt(x2, x3)",
        "    v2 = and_(v0, v1)",
        "    return v2",
    ]


def test_effects_and_destructuring_typescript():
    source = generate_checked(report_divmod, "typescript")
    assert source.splitlines()[1:-1] == [
        "    const [x0, x1]: [number, number] = inputs;",
        "    const [v0, v1]: [number, number] = divmod(x0, x1);",
        "    const v2: string = show_int(v0);",
        "    print(v2);",
        "    return v1;",
    ]


def test_unit_return():
    diag = DiagramBuilder()
    (x,) = diag.add_inputs([Int])
    (s,) = diag.add_block(std_registry.spec("show_int"), [x])
    diag.add_block(std_registry.spec("print"), [s])
    source = generate_checked(diag.diagram, "python")
    assert "def diagram(x0: int) -> None:" in source
    assert source.endswith("    return None\n")
    assert generate_checked(diag.diagram, "c").splitlines()[3] == "void diagram(int64_t x0) {"


def test_function_types():
    curry = NodeSpec.box("curry", [Int], ["Int -> Int"])
    diag = DiagramBuilder()
    (x,) = diag.add_inputs([Int])
    (y,) = curry @ diag[x]
    diag.add_outputs([y])
    source = generate_checked(diag.diagram, "python")
    assert "from collections.abc import Callable" in source
    assert "-> Callable[[int], int]:" in source
    with pytest.raises(CodegenFailure) as info:
        generate_checked(diag.diagram, "c")
    assert [(e.kind, e.subject) for e in info.value.errors] == [
        ("unmapped-type", curry_node_id(diag)),
        ("unmapped-type", "boundary"),
    ]


def curry_node_id(diag):
    (node_id,) = diag.nodes
    return node_id


def test_c_rejects_multiple_outputs():
    diagram = f_g_pipeline()
    with pytest.raises(CodegenFailure) as info:
        generate_checked(diagram, "c", registry, type_map=type_map)
    assert [(e.kind, e.subject) for e in info.value.errors] == [
        ("unsupported-construct", "g"),
        ("unsupported-construct", "boundary"),
    ]
    with pytest.raises(CodegenFailure) as info:
        generate_checked(report_divmod, "c")
    (error,) = info.value.errors
    assert error.kind == "unsupported-construct"
    assert report_divmod.nodes[error.subject].label == "divmod"


def test_tuple_hooks_declare_multi_value():
    assert python_backend.multi_value and typescript_backend.multi_value
    assert not c_backend.multi_value
    assert c_backend.render_tuple(["a", "b"]) is None
    assert c_backend.render_destructure(["a", "b"], ["int", "int"], "f()") is None
    assert python_backend.render_tuple(["a", "b"]) == "(a, b)"


def test_unmapped_types_are_collected():
    with pytest.raises(CodegenFailure) as info:
        generate_checked(f_g_pipeline(), "python", registry)
    errors = info.value.errors
    assert {e.kind for e in errors} == {"unmapped-type"}
    assert {e.subject for e in errors} == {"boundary", "f", "g"}


def test_locals_do_not_shadow_callees():
    diag = DiagramBuilder()
    (x,) = diag.add_inputs([Int])
    (y,) = NodeSpec.box("x0", [Int], [Int]) @ diag[x]
    (z,) = NodeSpec.box("v0", [Int], [Int]) @ diag[y]
    diag.add_outputs([z])
    source = generate_checked(diag.diagram, "python")
    assert source.splitlines()[3:] == [
        "def diagram(x0_: int) -> int:",
        "    v0_ = x0(x0_)",
        "    v1 = v0(v0_)",
        "    return v1",
    ]
    diag = DiagramBuilder()
    a, b = diag.add_inputs([Int, Int])
    (c,) = NodeSpec.box("inputs", [Int, Int], [Int]) @ diag[a, b]
    diag.add_outputs([c])
    source = generate_checked(diag.diagram, "typescript", function_name="x1")
    assert source.splitlines()[:3] == [
        "export function x1(inputs_: [number, number]): number {",
        "    const [x0, x1_]: [number, number] = inputs_;",
        "    const v0: number = inputs(x0, x1_);",
    ]


def test_unchecked_diagrams_are_rejected():
    checked = check(swap_sub, std_registry)
    with pytest.raises(CodegenFailure) as info:
        generate(in_range, "python", checked)
    assert [e.kind for e in info.value.errors] == ["unchecked"]
    diag = DiagramBuilder()
    (x,) = diag.add_inputs([Int])
    diag.add_block(std_registry.spec("neg"), [x])
    invalid = check(diag.diagram, std_registry)
    assert not invalid.valid
    with pytest.raises(CodegenFailure) as info:
        generate(diag.diagram, "python", invalid)
    assert [e.kind for e in info.value.errors] == ["unchecked"]


def test_unknown_target():
    with pytest.raises(CodegenFailure) as info:
        generate_checked(swap_sub, "cobol")
    (error,) = info.value.errors
    assert error.to_dict() == {
        "kind": "unknown-target",
        "subject": "cobol",
        "message": "Unknown target 'cobol'.",
    }


def test_options():
    source = generate_checked(swap_sub, "python", module_prefix="ops", function_name="swapped")
    assert "def swapped(" in source
    assert "v0 = ops.sub(x1, x0)" in source
    source = generate_checked(swap_sub, "c", module_prefix="ops")
    assert "int64_t v0 = ops_sub(x1, x0);" in source
    source = generate_checked(swap_sub, "python", labels={"sub": "operator.sub"})
    assert "v0 = operator.sub(x1, x0)" in source
    source = generate_checked(swap_sub, "python", type_map={"Int": "numbers.Integral"})
    assert "inputs: tuple[numbers.Integral, numbers.Integral]" in source


def test_generator_defaults():
    custom = generate.with_defaults(function_name="kernel", indent="\t")
    assert custom.defaults["function_name"] == "kernel"
    assert generate.defaults["function_name"] == "diagram"
    source = custom(swap_sub, "python", check(swap_sub, std_registry))
    assert "def kernel(" in source
    assert "\tv0 = sub(x1, x0)" in source
    clone = custom.clone()
    assert clone.defaults == custom.defaults


def test_generation_is_deterministic():
    sources = {generate_checked(in_range, target) for target in ["typescript"] * 3}
    assert len(sources) == 1


def test_generation_can_be_cancelled():
    token = CancellationToken()
    checked = check(swap_sub, std_registry)
    token.cancel()
    with pytest.raises(Cancelled):
        generate(swap_sub, "python", checked, cancel=token)
