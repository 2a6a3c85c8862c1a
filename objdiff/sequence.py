"""Sequence diffing with the Myers, LCS and patience algorithms."""

from __future__ import annotations

import bisect
import enum
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Optional

from objdiff.obj import DiffAlg

_Matches = list[tuple[int, int]]


class DiffTag(enum.Enum):
    """Kind of a diff operation."""

    EQUAL = "equal"
    DELETE = "delete"
    INSERT = "insert"
    REPLACE = "replace"


@dataclass(frozen=True)
class DiffOp:
    """A run of equal or changed elements, as ranges into the old and new sequences."""

    tag: DiffTag
    old_range: range
    new_range: range

    def as_tag_tuple(self) -> tuple[DiffTag, range, range]:
        return self.tag, self.old_range, self.new_range


class _Deadline:
    def __init__(self, timeout: Optional[float]) -> None:
        self._end = None if timeout is None else time.monotonic() + timeout

    def expired(self) -> bool:
        return self._end is not None and time.monotonic() >= self._end


def capture_diff(
    alg: DiffAlg, old: Sequence, new: Sequence, timeout: Optional[float] = None
) -> list[DiffOp]:
    """Diff two sequences, returning runs of equal, deleted, inserted and replaced elements.

    Once ``timeout`` seconds have passed, the parts not yet examined are
    reported as replacements rather than diffed in detail.
    """
    middles: dict[DiffAlg, Callable] = {
        DiffAlg.MYERS: _myers_middle,
        DiffAlg.LCS: _lcs_middle,
        DiffAlg.PATIENCE: _patience_middle,
    }
    if alg not in middles:
        raise ValueError(f"{alg.value} is not a sequence diff algorithm")
    matches: _Matches = []
    _solve(middles[alg], old, new, 0, len(old), 0, len(new), _Deadline(timeout), matches)
    return _ops_from_matches(matches, len(old), len(new))


def _solve(middle, old, new, olo, ohi, nlo, nhi, deadline: _Deadline, out: _Matches) -> None:
    """Strip the common prefix and suffix, then diff the rest with ``middle``."""
    while olo < ohi and nlo < nhi and old[olo] == new[nlo]:
        out.append((olo, nlo))
        olo += 1
        nlo += 1
    old_end, new_end = ohi, nhi
    while olo < ohi and nlo < nhi and old[ohi - 1] == new[nhi - 1]:
        ohi -= 1
        nhi -= 1
    if olo < ohi and nlo < nhi and not deadline.expired():
        middle(old, new, olo, ohi, nlo, nhi, deadline, out)
    out.extend(zip(range(ohi, old_end), range(nhi, new_end)))


def _myers_middle(old, new, olo, ohi, nlo, nhi, deadline: _Deadline, out: _Matches) -> None:
    n = ohi - olo
    m = nhi - nlo
    v = {1: 0}
    trace: list[dict[int, int]] = []
    for d in range(n + m + 1):
        if deadline.expired():
            return
        trace.append(v.copy())
        for k in range(-d, d + 1, 2):
            if k == -d or (k != d and v[k - 1] < v[k + 1]):
                x = v[k + 1]
            else:
                x = v[k - 1] + 1
            y = x - k
            while x < n and y < m and old[olo + x] == new[nlo + y]:
                x += 1
                y += 1
            v[k] = x
            if x >= n and y >= m:
                out.extend(_myers_backtrack(trace, n, m, olo, nlo))
                return


def _myers_backtrack(trace, n: int, m: int, olo: int, nlo: int) -> _Matches:
    pairs: _Matches = []
    x, y = n, m
    for d in range(len(trace) - 1, -1, -1):
        v = trace[d]
        k = x - y
        if k == -d or (k != d and v[k - 1] < v[k + 1]):
            prev_k = k + 1
        else:
            prev_k = k - 1
        prev_x = v[prev_k]
        prev_y = prev_x - prev_k
        while x > prev_x and y > prev_y:
            x -= 1
            y -= 1
            pairs.append((olo + x, nlo + y))
        x, y = prev_x, prev_y
    pairs.reverse()
    return pairs


def _lcs_middle(old, new, olo, ohi, nlo, nhi, deadline: _Deadline, out: _Matches) -> None:
    n = ohi - olo
    m = nhi - nlo
    table = [[0] * (m + 1) for _ in range(n + 1)]
    for i in range(n - 1, -1, -1):
        if deadline.expired():
            return
        item = old[olo + i]
        row, below = table[i], table[i + 1]
        for j in range(m - 1, -1, -1):
            if item == new[nlo + j]:
                row[j] = below[j + 1] + 1
            else:
                row[j] = max(below[j], row[j + 1])
    i = j = 0
    while i < n and j < m:
        if old[olo + i] == new[nlo + j]:
            out.append((olo + i, nlo + j))
            i += 1
            j += 1
        elif table[i + 1][j] >= table[i][j + 1]:
            i += 1
        else:
            j += 1


def _unique_positions(seq: Sequence, lo: int, hi: int) -> dict:
    seen: dict = {}
    repeated = set()
    for idx, item in enumerate(seq[lo:hi], start=lo):
        if item in seen:
            repeated.add(item)
        else:
            seen[item] = idx
    return {item: idx for item, idx in seen.items() if item not in repeated}


def _longest_increasing(pairs: _Matches) -> _Matches:
    """Longest chain of pairs increasing in their second element."""
    tails: list[int] = []
    tail_values: list[int] = []
    previous: list[Optional[int]] = [None] * len(pairs)
    for idx, (_, second) in enumerate(pairs):
        pos = bisect.bisect_left(tail_values, second)
        if pos > 0:
            previous[idx] = tails[pos - 1]
        if pos == len(tails):
            tails.append(idx)
            tail_values.append(second)
        else:
            tails[pos] = idx
            tail_values[pos] = second
    chain: _Matches = []
    cursor = tails[-1] if tails else None
    while cursor is not None:
        chain.append(pairs[cursor])
        cursor = previous[cursor]
    chain.reverse()
    return chain


def _patience_middle(old, new, olo, ohi, nlo, nhi, deadline: _Deadline, out: _Matches) -> None:
    old_unique = _unique_positions(old, olo, ohi)
    new_unique = _unique_positions(new, nlo, nhi)
    candidates = sorted(
        (idx, new_unique[item]) for item, idx in old_unique.items() if item in new_unique
    )
    anchors = _longest_increasing(candidates)
    if not anchors:
        _myers_middle(old, new, olo, ohi, nlo, nhi, deadline, out)
        return
    old_pos, new_pos = olo, nlo
    for anchor_old, anchor_new in anchors:
        _solve(_patience_middle, old, new, old_pos, anchor_old, new_pos, anchor_new, deadline, out)
        out.append((anchor_old, anchor_new))
        old_pos, new_pos = anchor_old + 1, anchor_new + 1
    _solve(_patience_middle, old, new, old_pos, ohi, new_pos, nhi, deadline, out)


def _change(old_start: int, old_stop: int, new_start: int, new_stop: int) -> DiffOp:
    if old_stop > old_start and new_stop > new_start:
        tag = DiffTag.REPLACE
    elif old_stop > old_start:
        tag = DiffTag.DELETE
    else:
        tag = DiffTag.INSERT
    return DiffOp(tag, range(old_start, old_stop), range(new_start, new_stop))


def _ops_from_matches(matches: _Matches, old_len: int, new_len: int) -> list[DiffOp]:
    ops: list[DiffOp] = []
    old_pos = new_pos = 0
    for i, j in matches:
        if i != old_pos or j != new_pos:
            ops.append(_change(old_pos, i, new_pos, j))
        last = ops[-1] if ops else None
        if last is not None and last.tag is DiffTag.EQUAL and last.old_range.stop == i \
                and last.new_range.stop == j:
            ops[-1] = DiffOp(
                DiffTag.EQUAL,
                range(last.old_range.start, i + 1),
                range(last.new_range.start, j + 1),
            )
        else:
            ops.append(DiffOp(DiffTag.EQUAL, range(i, i + 1), range(j, j + 1)))
        old_pos, new_pos = i + 1, j + 1
    if old_pos < old_len or new_pos < new_len:
        ops.append(_change(old_pos, old_len, new_pos, new_len))
    return ops