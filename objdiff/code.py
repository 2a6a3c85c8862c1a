"""Instruction-level diffing of code symbols."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from objdiff.editops import LevEditType, editops_find
from objdiff.obj import (
    DiffAlg,
    DiffObjConfig,
    ObjInfo,
    ObjInsArg,
    ObjInsArgDiff,
    ObjInsArgKind,
    ObjInsBranchFrom,
    ObjInsBranchTo,
    ObjInsDiff,
    ObjInsDiffKind,
    ObjReloc,
    ObjSymbol,
    ObjSymbolFlags,
    ProcessCodeResult,
)
from objdiff.sequence import capture_diff

_DIFF_TIMEOUT = 5.0
_U32_MASK = 0xFFFFFFFF


def symbol_code(data: bytes, symbol: ObjSymbol) -> bytes:
    """Return the bytes of ``symbol`` within its section's ``data``."""
    start = symbol.section_address
    end = start + symbol.size
    if end > len(data):
        raise ValueError(
            f"symbol {symbol.name} ({start:#x}..{end:#x}) exceeds section data "
            f"of {len(data):#x} bytes"
        )
    return bytes(data[start:end])


def no_diff_code(symbol: ObjSymbol, code: ProcessCodeResult) -> None:
    """Fill ``symbol.instructions`` from disassembled code without a counterpart."""
    diffs = [ObjInsDiff(ins=ins) for ins in code.insts]
    resolve_branches(diffs)
    symbol.instructions = diffs


def diff_code(
    config: DiffObjConfig,
    left_symbol: ObjSymbol,
    right_symbol: ObjSymbol,
    left_code: ProcessCodeResult,
    right_code: ProcessCodeResult,
) -> None:
    """Diff two disassembled symbols, storing instruction diffs and match percentages."""
    if config.code_alg is DiffAlg.LEVENSHTEIN:
        left_diff, right_diff = _diff_instructions_lev(
            left_symbol, right_symbol, left_code, right_code
        )
    else:
        left_diff, right_diff = _diff_instructions_similar(
            config.code_alg, left_code, right_code
        )

    resolve_branches(left_diff)
    resolve_branches(right_diff)

    state = _InsDiffState()
    for left, right in zip(left_diff, right_diff):
        result = _compare_ins(config, left, right, state)
        left.kind = result.kind
        right.kind = result.kind
        left.arg_diff = result.left_args_diff
        right.arg_diff = result.right_args_diff

    total = len(left_code.insts)
    if state.diff_count >= total:
        percent = 0.0
    else:
        percent = (total - state.diff_count) / total * 100.0
    left_symbol.match_percent = percent
    right_symbol.match_percent = percent
    left_symbol.instructions = left_diff
    right_symbol.instructions = right_diff


def _diff_instructions_similar(
    alg: DiffAlg, left_code: ProcessCodeResult, right_code: ProcessCodeResult
) -> tuple[list[ObjInsDiff], list[ObjInsDiff]]:
    ops = capture_diff(alg, left_code.ops, right_code.ops, _DIFF_TIMEOUT)
    if not ops:
        return (
            [ObjInsDiff(ins=ins) for ins in left_code.insts],
            [ObjInsDiff(ins=ins) for ins in right_code.insts],
        )
    left_diff: list[ObjInsDiff] = []
    right_diff: list[ObjInsDiff] = []
    for op in ops:
        _tag, left_range, right_range = op.as_tag_tuple()
        length = max(len(left_range), len(right_range))
        left_diff.extend(ObjInsDiff(ins=left_code.insts[i]) for i in left_range)
        right_diff.extend(ObjInsDiff(ins=right_code.insts[i]) for i in right_range)
        left_diff.extend(ObjInsDiff() for _ in range(length - len(left_range)))
        right_diff.extend(ObjInsDiff() for _ in range(length - len(right_range)))
    return left_diff, right_diff


def _diff_instructions_lev(
    left_symbol: ObjSymbol,
    right_symbol: ObjSymbol,
    left_code: ProcessCodeResult,
    right_code: ProcessCodeResult,
) -> tuple[list[ObjInsDiff], list[ObjInsDiff]]:
    edit_ops = editops_find(left_code.ops, right_code.ops)
    left_diff: list[ObjInsDiff] = []
    right_diff: list[ObjInsDiff] = []
    left_iter = iter(left_code.insts)
    right_iter = iter(right_code.insts)
    cur_left = next(left_iter, None)
    cur_right = next(right_iter, None)

    for op in edit_ops:
        left_addr = op.first_start * 4
        while cur_left is not None and cur_right is not None:
            if (cur_left.address - left_symbol.address) >= left_addr:
                break
            left_diff.append(ObjInsDiff(ins=cur_left))
            right_diff.append(ObjInsDiff(ins=cur_right))
            cur_left = next(left_iter, None)
            cur_right = next(right_iter, None)
        if cur_left is None or cur_right is None:
            break
        if op.op_type is LevEditType.REPLACE:
            left_diff.append(ObjInsDiff(ins=cur_left))
            right_diff.append(ObjInsDiff(ins=cur_right))
            cur_left = next(left_iter, None)
            cur_right = next(right_iter, None)
        elif op.op_type is LevEditType.INSERT:
            left_diff.append(ObjInsDiff())
            right_diff.append(ObjInsDiff(ins=cur_right))
            cur_right = next(right_iter, None)
        else:
            left_diff.append(ObjInsDiff(ins=cur_left))
            right_diff.append(ObjInsDiff())
            cur_left = next(left_iter, None)

    while cur_left is not None or cur_right is not None:
        left_diff.append(ObjInsDiff(ins=cur_left))
        right_diff.append(ObjInsDiff(ins=cur_right))
        cur_left = next(left_iter, None)
        cur_right = next(right_iter, None)
    return left_diff, right_diff


def resolve_branches(diffs: list[ObjInsDiff]) -> None:
    """Link branch instructions to their targets within ``diffs``."""
    addr_map = {d.ins.address: i for i, d in enumerate(diffs) if d.ins is not None}
    branches: dict[int, ObjInsBranchFrom] = {}
    next_branch_idx = 0
    for i, ins_diff in enumerate(diffs):
        ins = ins_diff.ins
        if ins is None:
            continue
        offset = next(
            (a.value for a in ins.args if a.kind is ObjInsArgKind.BRANCH_OFFSET), None
        )
        if offset is None:
            continue
        target_idx = addr_map.get((ins.address + offset) & _U32_MASK)
        if target_idx is None:
            continue
        branch = branches.get(target_idx)
        if branch is not None:
            ins_diff.branch_to = ObjInsBranchTo(target_idx, branch.branch_idx)
            branch.ins_idx.append(i)
        else:
            ins_diff.branch_to = ObjInsBranchTo(target_idx, next_branch_idx)
            branches[target_idx] = ObjInsBranchFrom([i], next_branch_idx)
            next_branch_idx += 1
    for target_idx, branch in branches.items():
        diffs[target_idx].branch_from = branch


def _address_eq(left: ObjSymbol, right: ObjSymbol) -> bool:
    return left.address + left.addend == right.address + right.addend


def _reloc_eq(
    config: DiffObjConfig, left: Optional[ObjReloc], right: Optional[ObjReloc]
) -> bool:
    if left is None or right is None:
        return False
    if left.kind is not right.kind:
        return False
    if config.relax_reloc_diffs:
        return True
    name_matches = left.target.name == right.target.name
    sl, sr = left.target_section, right.target_section
    if sl is not None and sr is not None:
        return sl == sr and (name_matches or _address_eq(left.target, right.target))
    if sl is not None:
        return False
    if sr is not None:
        # Possibly a stripped weak symbol
        return name_matches and ObjSymbolFlags.WEAK in right.target.flags
    return name_matches


def _ins_reloc(diff: ObjInsDiff) -> Optional[ObjReloc]:
    return diff.ins.reloc if diff.ins is not None else None


_VALUE_KINDS = (ObjInsArgKind.ARG, ObjInsArgKind.ARG_WITH_BASE)


def _arg_eq(
    config: DiffObjConfig,
    left: ObjInsArg,
    right: ObjInsArg,
    left_diff: ObjInsDiff,
    right_diff: ObjInsDiff,
) -> bool:
    if left.kind in _VALUE_KINDS:
        return right.kind in _VALUE_KINDS and left.value == right.value
    if left.kind in (ObjInsArgKind.RELOC, ObjInsArgKind.RELOC_WITH_BASE):
        return right.kind is left.kind and _reloc_eq(
            config, _ins_reloc(left_diff), _ins_reloc(right_diff)
        )
    # Branch offsets: compare destination instruction index after diffing
    left_to = left_diff.branch_to.ins_idx if left_diff.branch_to else None
    right_to = right_diff.branch_to.ins_idx if right_diff.branch_to else None
    return left_to == right_to


def _arg_text(arg: ObjInsArg) -> str:
    if arg.kind in _VALUE_KINDS:
        return str(arg.value)
    if arg.kind is ObjInsArgKind.BRANCH_OFFSET:
        return str(arg.value)
    return ""


@dataclass
class _InsDiffState:
    diff_count: int = 0
    left_args_idx: dict[str, int] = field(default_factory=dict)
    right_args_idx: dict[str, int] = field(default_factory=dict)


@dataclass
class _InsDiffResult:
    kind: ObjInsDiffKind = ObjInsDiffKind.NONE
    left_args_diff: list[Optional[ObjInsArgDiff]] = field(default_factory=list)
    right_args_diff: list[Optional[ObjInsArgDiff]] = field(default_factory=list)


def _arg_index(indices: dict[str, int], text: str) -> ObjInsArgDiff:
    return ObjInsArgDiff(indices.setdefault(text, len(indices)))


def _compare_ins(
    config: DiffObjConfig, left: ObjInsDiff, right: ObjInsDiff, state: _InsDiffState
) -> _InsDiffResult:
    result = _InsDiffResult()
    left_ins, right_ins = left.ins, right.ins
    if left_ins is not None and right_ins is not None:
        if len(left_ins.args) != len(right_ins.args) or left_ins.op != right_ins.op:
            result.kind = ObjInsDiffKind.REPLACE
            state.diff_count += 1
            return result
        if left_ins.mnemonic != right_ins.mnemonic:
            result.kind = ObjInsDiffKind.OP_MISMATCH
            state.diff_count += 1
        for a, b in zip(left_ins.args, right_ins.args):
            if _arg_eq(config, a, b, left, right):
                result.left_args_diff.append(None)
                result.right_args_diff.append(None)
                continue
            if result.kind is ObjInsDiffKind.NONE:
                result.kind = ObjInsDiffKind.ARG_MISMATCH
                state.diff_count += 1
            result.left_args_diff.append(_arg_index(state.left_args_idx, _arg_text(a)))
            result.right_args_diff.append(_arg_index(state.right_args_idx, _arg_text(b)))
    elif left_ins is not None:
        result.kind = ObjInsDiffKind.DELETE
        state.diff_count += 1
    else:
        result.kind = ObjInsDiffKind.INSERT
        state.diff_count += 1
    return result


def find_section_and_symbol(obj: ObjInfo, name: str) -> Optional[tuple[int, int]]:
    """Return (section index, symbol index) of the first symbol called ``name``."""
    for section_idx, section in enumerate(obj.sections):
        for symbol_idx, symbol in enumerate(section.symbols):
            if symbol.name == name:
                return section_idx, symbol_idx
    return None