import pytest

from objdiff.obj import (
    ArgValueKind,
    DiffAlg,
    DiffObjConfig,
    ObjDataDiff,
    ObjDataDiffKind,
    ObjInsArg,
    ObjInsArgKind,
    ObjInsArgValue,
    ObjInsDiff,
    ObjInsDiffKind,
    ObjSymbol,
    ObjSymbolFlags,
)


def signed(v):
    return ObjInsArgValue(ArgValueKind.SIGNED, v)


def unsigned(v):
    return ObjInsArgValue(ArgValueKind.UNSIGNED, v)


def opaque(s):
    return ObjInsArgValue(ArgValueKind.OPAQUE, s)


def test_value_loose_eq_signed_unsigned_bit_pattern():
    assert signed(-1).loose_eq(unsigned(0xFFFF))
    assert unsigned(0xFFFF).loose_eq(signed(-1))
    assert not signed(-1).loose_eq(unsigned(1))


def test_value_loose_eq_same_kind():
    assert signed(5).loose_eq(signed(5))
    assert not signed(5).loose_eq(signed(6))
    assert opaque("r3").loose_eq(opaque("r3"))
    assert not opaque("r3").loose_eq(opaque("r4"))


def test_value_loose_eq_opaque_never_matches_number():
    assert not opaque("5").loose_eq(signed(5))


def test_value_display():
    assert str(signed(-16)) == "-0x10"
    assert str(unsigned(255)) == "0xff"
    assert str(opaque("r1")) == "r1"


@pytest.mark.parametrize("kind,value", [(ArgValueKind.SIGNED, 0x8000), (ArgValueKind.UNSIGNED, -1)])
def test_value_range_checked(kind, value):
    with pytest.raises(ValueError):
        ObjInsArgValue(kind, value)


def test_arg_loose_eq():
    a = ObjInsArg(ObjInsArgKind.ARG, signed(-1))
    b = ObjInsArg(ObjInsArgKind.ARG, unsigned(0xFFFF))
    assert a.loose_eq(b)
    assert not a.loose_eq(ObjInsArg(ObjInsArgKind.ARG_WITH_BASE, unsigned(0xFFFF)))
    assert ObjInsArg(ObjInsArgKind.RELOC).loose_eq(ObjInsArg(ObjInsArgKind.RELOC))
    assert not ObjInsArg(ObjInsArgKind.RELOC).loose_eq(ObjInsArg(ObjInsArgKind.RELOC_WITH_BASE))
    assert ObjInsArg(ObjInsArgKind.BRANCH_OFFSET, 8).loose_eq(
        ObjInsArg(ObjInsArgKind.BRANCH_OFFSET, 8)
    )
    assert not ObjInsArg(ObjInsArgKind.BRANCH_OFFSET, 8).loose_eq(
        ObjInsArg(ObjInsArgKind.BRANCH_OFFSET, -8)
    )


def test_arg_validation():
    with pytest.raises(TypeError):
        ObjInsArg(ObjInsArgKind.ARG)
    with pytest.raises(TypeError):
        ObjInsArg(ObjInsArgKind.RELOC, 4)


def test_defaults():
    assert DiffObjConfig().code_alg is DiffAlg.PATIENCE
    assert ObjInsDiff().kind is ObjInsDiffKind.NONE
    assert ObjDataDiff().kind is ObjDataDiffKind.NONE
    sym = ObjSymbol("foo")
    assert sym.instructions == [] and sym.match_percent is None
    assert not (sym.flags & ObjSymbolFlags.WEAK)


def test_diff_alg_by_name():
    assert DiffAlg("Levenshtein") is DiffAlg.LEVENSHTEIN


def test_mutable_defaults_are_independent():
    a, b = ObjSymbol("a"), ObjSymbol("b")
    a.instructions.append(ObjInsDiff())
    assert b.instructions == []