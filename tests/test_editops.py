import random

import pytest

from objdiff.editops import Affix, LevEditOp, LevEditType, editops_find, find_affix


def _apply(ops, query, choice):
    out = []
    cursor = 0
    for op in ops:
        out.extend(query[cursor : op.first_start])
        if op.op_type is LevEditType.REPLACE:
            out.append(choice[op.second_start])
            cursor = op.first_start + 1
        elif op.op_type is LevEditType.INSERT:
            out.append(choice[op.second_start])
            cursor = op.first_start
        else:
            cursor = op.first_start + 1
    out.extend(query[cursor:])
    return out


def test_identical_sequences_have_no_ops():
    assert editops_find(b"abcdef", b"abcdef") == []


def test_empty_sequences():
    assert editops_find([], []) == []


def test_single_replace():
    assert editops_find("abc", "abd") == [LevEditOp(LevEditType.REPLACE, 2, 2)]


def test_single_insert_and_delete():
    assert editops_find("ac", "abc") == [LevEditOp(LevEditType.INSERT, 1, 1)]
    assert editops_find("abc", "ac") == [LevEditOp(LevEditType.DELETE, 1, 1)]


def test_kitten_sitting_distance():
    ops = editops_find("kitten", "sitting")
    assert len(ops) == 3
    assert "".join(_apply(ops, "kitten", "sitting")) == "sitting"


def test_all_insert_from_empty():
    ops = editops_find("", "xyz")
    assert [op.op_type for op in ops] == [LevEditType.INSERT] * 3
    assert "".join(_apply(ops, "", "xyz")) == "xyz"


def test_find_affix():
    assert find_affix("abcxyz", "abqxyz") == Affix(prefix_len=2, suffix_len=3)


def test_affix_does_not_overlap_prefix():
    affix = find_affix("aaa", "aa")
    assert affix.prefix_len + affix.suffix_len <= 2


@pytest.mark.parametrize("seed", range(25))
def test_ops_transform_query_into_choice(seed):
    rng = random.Random(seed)
    query = [rng.randrange(4) for _ in range(rng.randrange(12))]
    choice = [rng.randrange(4) for _ in range(rng.randrange(12))]
    ops = editops_find(query, choice)
    assert _apply(ops, query, choice) == choice
    assert len(ops) <= max(len(query), len(choice))
    positions = [(op.first_start, op.second_start) for op in ops]
    assert positions == sorted(positions)