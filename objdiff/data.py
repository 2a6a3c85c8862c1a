"""Byte-level diffing of data sections and matching of BSS symbols."""

from __future__ import annotations

from objdiff.editops import LevEditType, editops_find
from objdiff.obj import DiffAlg, ObjDataDiff, ObjDataDiffKind, ObjSection, ObjSymbol
from objdiff.sequence import DiffTag, capture_diff

_DIFF_TIMEOUT = 5.0
_LEV_MATRIX_LIMIT = 1_000_000_000

_TAG_KIND = {
    DiffTag.EQUAL: ObjDataDiffKind.NONE,
    DiffTag.DELETE: ObjDataDiffKind.DELETE,
    DiffTag.INSERT: ObjDataDiffKind.INSERT,
    DiffTag.REPLACE: ObjDataDiffKind.REPLACE,
}


def diff_data(alg: DiffAlg, left: ObjSection, right: ObjSection) -> None:
    """Diff two data sections with ``alg``, filling both ``data_diff`` lists."""
    if alg is DiffAlg.LEVENSHTEIN:
        diff_data_lev(left, right)
    else:
        diff_data_similar(alg, left, right)


def diff_bss_symbols(left_symbols: list[ObjSymbol], right_symbols: list[ObjSymbol]) -> None:
    """Pair symbols by name; equal sizes match fully, different sizes half."""
    for left_symbol in left_symbols:
        right_symbol = next((s for s in right_symbols if s.name == left_symbol.name), None)
        if right_symbol is None:
            continue
        left_symbol.diff_symbol = right_symbol.name
        right_symbol.diff_symbol = left_symbol.name
        percent = 100.0 if left_symbol.size == right_symbol.size else 50.0
        left_symbol.match_percent = percent
        right_symbol.match_percent = percent


def diff_data_similar(alg: DiffAlg, left: ObjSection, right: ObjSection) -> None:
    """Diff section bytes with a sequence diff algorithm."""
    ops = capture_diff(alg, left.data, right.data, _DIFF_TIMEOUT)
    left_diff: list[ObjDataDiff] = []
    right_diff: list[ObjDataDiff] = []
    for op in ops:
        tag, left_range, right_range = op.as_tag_tuple()
        left_len = len(left_range)
        right_len = len(right_range)
        kind = _TAG_KIND[tag]
        # Replacements are kept equal length; the excess becomes an insert or delete.
        length = min(left_len, right_len) if kind is ObjDataDiffKind.REPLACE else max(
            left_len, right_len
        )
        left_data = bytes(left.data[left_range.start : left_range.stop])
        right_data = bytes(right.data[right_range.start : right_range.stop])
        left_diff.append(ObjDataDiff(left_data[:length], kind, length))
        right_diff.append(ObjDataDiff(right_data[:length], kind, length))
        if kind is not ObjDataDiffKind.REPLACE:
            continue
        if left_len < right_len:
            extra = right_len - left_len
            left_diff.append(ObjDataDiff(b"", ObjDataDiffKind.INSERT, extra))
            right_diff.append(
                ObjDataDiff(right_data[left_len:right_len], ObjDataDiffKind.INSERT, extra)
            )
        elif left_len > right_len:
            extra = left_len - right_len
            left_diff.append(
                ObjDataDiff(left_data[right_len:left_len], ObjDataDiffKind.DELETE, extra)
            )
            right_diff.append(ObjDataDiff(b"", ObjDataDiffKind.DELETE, extra))
    left.data_diff = left_diff
    right.data_diff = right_diff


def _flush(
    op_type: LevEditType,
    left_buf: bytearray,
    right_buf: bytearray,
    left_diff: list[ObjDataDiff],
    right_diff: list[ObjDataDiff],
) -> None:
    left_data = bytes(left_buf)
    right_data = bytes(right_buf)
    left_buf.clear()
    right_buf.clear()
    if op_type is LevEditType.REPLACE:
        left_diff.append(ObjDataDiff(left_data, ObjDataDiffKind.REPLACE, len(left_data)))
        right_diff.append(ObjDataDiff(right_data, ObjDataDiffKind.REPLACE, len(right_data)))
    elif op_type is LevEditType.INSERT:
        left_diff.append(ObjDataDiff(b"", ObjDataDiffKind.INSERT, len(right_data)))
        right_diff.append(ObjDataDiff(right_data, ObjDataDiffKind.INSERT, len(right_data)))
    else:
        left_diff.append(ObjDataDiff(left_data, ObjDataDiffKind.DELETE, len(left_data)))
        right_diff.append(ObjDataDiff(b"", ObjDataDiffKind.DELETE, len(left_data)))


def diff_data_lev(left: ObjSection, right: ObjSection) -> None:
    """Diff section bytes with Levenshtein edit operations.

    Raises :class:`ValueError` when the cost matrix would be too large.
    """
    left_len = len(left.data)
    right_len = len(right.data)
    matrix_size = left_len * right_len
    if matrix_size >= _LEV_MATRIX_LIMIT:
        raise ValueError(
            f"Data section {left.name} too large for Levenshtein diff "
            f"({left_len} * {right_len} = {matrix_size})"
        )

    edit_ops = editops_find(left.data, right.data)
    if not edit_ops and left.data:
        left.data_diff = [ObjDataDiff(bytes(left.data), ObjDataDiffKind.NONE, left_len)]
        right.data_diff = [ObjDataDiff(bytes(right.data), ObjDataDiffKind.NONE, right_len)]
        return

    left_diff: list[ObjDataDiff] = []
    right_diff: list[ObjDataDiff] = []
    left_cur = right_cur = 0
    cur_op = LevEditType.REPLACE
    left_buf = bytearray()
    right_buf = bytearray()
    for op in edit_ops:
        if cur_op is not op.op_type or left_cur < op.first_start or right_cur < op.second_start:
            _flush(cur_op, left_buf, right_buf, left_diff, right_diff)
        if left_cur < op.first_start:
            left_diff.append(
                ObjDataDiff(
                    bytes(left.data[left_cur : op.first_start]),
                    ObjDataDiffKind.NONE,
                    op.first_start - left_cur,
                )
            )
            left_cur = op.first_start
        if right_cur < op.second_start:
            right_diff.append(
                ObjDataDiff(
                    bytes(right.data[right_cur : op.second_start]),
                    ObjDataDiffKind.NONE,
                    op.second_start - right_cur,
                )
            )
            right_cur = op.second_start
        if op.op_type is LevEditType.REPLACE:
            left_buf.append(left.data[left_cur])
            right_buf.append(right.data[right_cur])
            left_cur += 1
            right_cur += 1
        elif op.op_type is LevEditType.INSERT:
            right_buf.append(right.data[right_cur])
            right_cur += 1
        else:
            left_buf.append(left.data[left_cur])
            left_cur += 1
        cur_op = op.op_type
    _flush(cur_op, left_buf, right_buf, left_diff, right_diff)

    if left_cur < left_len:
        left_diff.append(
            ObjDataDiff(bytes(left.data[left_cur:]), ObjDataDiffKind.NONE, left_len - left_cur)
        )
    if right_cur < right_len:
        right_diff.append(
            ObjDataDiff(
                bytes(right.data[right_cur:]), ObjDataDiffKind.NONE, right_len - right_cur
            )
        )
    left.data_diff = left_diff
    right.data_diff = right_diff


def no_diff_data(section: ObjSection) -> None:
    """Show a section without a counterpart as one unchanged chunk."""
    section.data_diff = [ObjDataDiff(bytes(section.data), ObjDataDiffKind.NONE, len(section.data))]