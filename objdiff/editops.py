"""Levenshtein edit operations between two sequences."""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass


class LevEditType(enum.Enum):
    """Kind of a single edit operation."""

    REPLACE = "replace"
    INSERT = "insert"
    DELETE = "delete"


@dataclass(frozen=True)
class LevEditOp:
    """One edit: its type, the position in the source and in the destination."""

    op_type: LevEditType
    first_start: int
    second_start: int


@dataclass(frozen=True)
class Affix:
    """Lengths of the common prefix and suffix of two sequences."""

    prefix_len: int
    suffix_len: int


def find_affix(s1: Sequence, s2: Sequence) -> Affix:
    """Find the common prefix and, after it, the common suffix of two sequences."""
    prefix_len = 0
    for a, b in zip(s1, s2):
        if a != b:
            break
        prefix_len += 1
    suffix_len = 0
    for a, b in zip(reversed(s1[prefix_len:]), reversed(s2[prefix_len:])):
        if a != b:
            break
        suffix_len += 1
    return Affix(prefix_len, suffix_len)


def editops_find(query: Sequence, choice: Sequence) -> list[LevEditOp]:
    """Return the edit operations turning ``query`` into ``choice``."""
    affix = find_affix(query, choice)
    prefix_len = affix.prefix_len
    first = query[prefix_len : len(query) - affix.suffix_len]
    second = choice[prefix_len : len(choice) - affix.suffix_len]

    # matrix[i][j] is the distance between first[:i] and second[:j]
    matrix = [[0] * (len(second) + 1) for _ in range(len(first) + 1)]
    matrix[0] = list(range(len(second) + 1))
    for i, row in enumerate(matrix):
        row[0] = i

    for i, char1 in enumerate(first):
        above = matrix[i]
        current = matrix[i + 1]
        x = i + 1
        for j, char2 in enumerate(second):
            x = min(x + 1, above[j] + (char1 != char2), above[j + 1] + 1)
            current[j + 1] = x

    return _editops_from_matrix(matrix, prefix_len)


def _editops_from_matrix(matrix: list[list[int]], prefix_len: int) -> list[LevEditOp]:
    ops: list[LevEditOp] = []
    direction = 0
    i = len(matrix) - 1
    j = len(matrix[0]) - 1

    while i > 0 or j > 0:
        value = matrix[i][j]
        # Several operations may be possible; `direction` breaks ties.
        is_insert = j > 0 and value == matrix[i][j - 1] + 1
        is_delete = i > 0 and value == matrix[i - 1][j] + 1
        is_replace = i > 0 and j > 0 and value == matrix[i - 1][j - 1] + 1

        if not (is_insert or is_delete or is_replace):
            op_type, new_direction = None, 0
        elif direction == -1 and is_insert:
            op_type, new_direction = LevEditType.INSERT, -1
        elif direction == 1 and is_delete:
            op_type, new_direction = LevEditType.DELETE, 1
        elif is_replace:
            op_type, new_direction = LevEditType.REPLACE, 0
        elif direction == 0 and is_insert:
            op_type, new_direction = LevEditType.INSERT, -1
        elif direction == 0 and is_delete:
            op_type, new_direction = LevEditType.DELETE, 1
        else:
            raise RuntimeError("inconsistent edit distance matrix")

        if new_direction == -1:
            j -= 1
        elif new_direction == 1:
            i -= 1
        else:
            i -= 1
            j -= 1
        direction = new_direction

        if op_type is not None:
            ops.append(LevEditOp(op_type, i + prefix_len, j + prefix_len))

    ops.reverse()
    return ops