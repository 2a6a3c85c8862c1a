"""Diff two whole object files section by section."""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from objdiff.code import diff_code, find_section_and_symbol, no_diff_code, symbol_code
from objdiff.data import diff_bss_symbols, diff_data, no_diff_data
from objdiff.obj import (
    DiffObjConfig,
    ObjArchitecture,
    ObjInfo,
    ObjReloc,
    ObjSectionKind,
    ObjSymbol,
    ProcessCodeResult,
)

ProcessCode = Callable[
    [ObjArchitecture, bytes, ObjSymbol, list[ObjReloc], Optional[dict[int, int]]],
    ProcessCodeResult,
]
"""Disassembles a symbol's bytes: (architecture, code, symbol, relocations, line info)."""


def diff_objs(
    config: DiffObjConfig,
    left: Optional[ObjInfo],
    right: Optional[ObjInfo],
    process_code: ProcessCode,
) -> None:
    """Diff ``left`` against ``right`` in place; either may be missing."""
    if left is not None:
        for left_section in left.sections:
            if left_section.kind is ObjSectionKind.CODE:
                for left_symbol in left_section.symbols:
                    left_code = process_code(
                        left.architecture,
                        symbol_code(left_section.data, left_symbol),
                        left_symbol,
                        left_section.relocations,
                        left.line_info,
                    )
                    found = (
                        find_section_and_symbol(right, left_symbol.name)
                        if right is not None
                        else None
                    )
                    if found is None:
                        no_diff_code(left_symbol, left_code)
                        continue
                    right_section = right.sections[found[0]]
                    right_symbol = right_section.symbols[found[1]]
                    left_symbol.diff_symbol = right_symbol.name
                    right_symbol.diff_symbol = left_symbol.name
                    right_code = process_code(
                        left.architecture,
                        symbol_code(right_section.data, right_symbol),
                        right_symbol,
                        right_section.relocations,
                        right.line_info,
                    )
                    diff_code(config, left_symbol, right_symbol, left_code, right_code)
                continue

            right_section = None
            if right is not None:
                right_section = next(
                    (s for s in right.sections if s.name == left_section.name), None
                )
            if right_section is not None:
                if left_section.kind is ObjSectionKind.DATA:
                    diff_data(config.data_alg, left_section, right_section)
                elif left_section.kind is ObjSectionKind.BSS:
                    diff_bss_symbols(left_section.symbols, right_section.symbols)
            elif left_section.kind is ObjSectionKind.DATA:
                no_diff_data(left_section)

    if right is not None:
        for right_section in right.sections:
            if right_section.kind is ObjSectionKind.CODE:
                for right_symbol in right_section.symbols:
                    if right_symbol.instructions:
                        continue
                    code = process_code(
                        right.architecture,
                        symbol_code(right_section.data, right_symbol),
                        right_symbol,
                        right_section.relocations,
                        right.line_info,
                    )
                    no_diff_code(right_symbol, code)
            elif right_section.kind is ObjSectionKind.DATA and not right_section.data_diff:
                no_diff_data(right_section)

    if left is not None and right is not None:
        diff_bss_symbols(left.common, right.common)