import pickle

from hashcons import InstanceStore
import pytest

from stringc.diagrams import (
    Base,
    Hom,
    I,
    Signature,
    Tensor,
    Type,
    TypeSyntaxError,
    UnitType,
    Var,
    match,
    parse_type,
    tensor_of,
)

A, B, C = Base("A"), Base("B"), Base("C")


def test_types_are_hash_consed():
    assert Base("A") is A
    assert Tensor(A, B) is A * B
    assert Hom(A, B) is (A >> B)
    assert Var("X") is Var("X")
    assert A * B is not B * A


def test_type_store_keys_by_class():
    assert isinstance(Type._store, InstanceStore)
    assert Var("A") is not A
    assert UnitType() is I
    assert parse_type("A ⊗ B -> A") is Hom(Tensor(A, B), A)


def test_unit_name_is_reserved():
    with pytest.raises(ValueError):
        Base("I")


@pytest.mark.parametrize(
    "t, text",
    [
        (A * B * C, "A ⊗ B ⊗ C"),
        (A * (B * C), "A ⊗ (B ⊗ C)"),
        (A >> (B >> C), "A -> B -> C"),
        ((A >> B) >> C, "(A -> B) -> C"),
        (A * B >> C, "A ⊗ B -> C"),
        (A * (B >> C), "A ⊗ (B -> C)"),
        (A * I, "A ⊗ I"),
        (Var("X") >> Var("X"), "?X -> ?X"),
    ],
)
def test_printing_and_parsing(t, text):
    assert str(t) == text
    assert parse_type(text) is t


def test_parsing_alternative_syntax():
    assert parse_type("A * B → C") is (A * B >> C)
    assert parse_type("  ( A )  ") is A


def test_parsing_aliases():
    pair = A * B
    assert parse_type("Pair -> C", {"Pair": pair}) is (pair >> C)


@pytest.mark.parametrize("text", ["", "A ⊗", "(A", "A B", "-> A", "A )"])
def test_parsing_errors(text):
    with pytest.raises(TypeSyntaxError):
        parse_type(text)


def test_tensor_of():
    assert tensor_of([]) is I
    assert tensor_of([A]) is A
    assert tensor_of([A, B, C]) is A * B * C


def test_match_binds_variables_consistently():
    x, y = Var("X"), Var("Y")
    assert match(x * y, A * B) == {"X": A, "Y": B}
    assert match(x * x, A * A) == {"X": A}
    assert match(x * x, A * B) is None
    assert match(x >> y, A * B >> C) == {"X": A * B, "Y": C}
    assert match(x, A, {"X": B}) is None


def test_substitution_and_free_vars():
    x = Var("X")
    t = x * (x >> B)
    assert t.free_vars == {"X"}
    assert not t.is_ground
    assert t.substitute({"X": A}) is A * (A >> B)


def test_signature():
    sig = Signature([A, B], [C])
    assert str(sig) == "[A, B] -> [C]"
    assert sig == Signature([A, B], [C])
    assert sig.as_hom is (A * B >> C)
    assert Signature([], []).as_hom is (I >> I)


def test_pickling_preserves_identity():
    t = A * (B >> C)
    assert pickle.loads(pickle.dumps(t)) is t
    sig = Signature([A], [t])
    assert pickle.loads(pickle.dumps(sig)) == sig
